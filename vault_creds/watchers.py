# -*- coding: utf-8 -*-
"""Job completion detection.

When the sidecar runs next to a batch job it has to notice the job finishing,
otherwise the pod never completes. Two strategies exist: asking the Kubernetes
API about the other containers of the pod, or waiting for a marker file the
job drops when it is done.
"""

import logging
import os
import threading
from abc import ABC, abstractmethod

from kubernetes import client as kube_client
from kubernetes import config as kube_config

from . import status
from .exceptions import SiblingError
from .status import CompletionSignal

KUBE_POLL_INTERVAL = 5.0
FILE_POLL_INTERVAL = 10.0


class CompletionWatcher(ABC):

    def __init__(self, interval):
        self.interval = interval

    @abstractmethod
    def poll(self):
        """Return a ``(CompletionSignal, reason)`` tuple."""

    def run(self, stop_event, status_channel):
        t = threading.Thread(target=self._loop,
                             name=type(self).__name__,
                             args=[stop_event, status_channel])
        t.daemon = True
        t.start()
        return t

    def _loop(self, stop_event, status_channel):
        logger = logging.getLogger(__name__)
        while not stop_event.wait(self.interval):
            try:
                signal, reason = self.poll()
            except Exception:
                logger.exception("error checking for job completion")
                continue

            if signal == CompletionSignal.ERRORED:
                logger.error(f"primary container has errored: {reason}")
                status_channel.put(status.SIBLING_ERROR)
                return
            if signal == CompletionSignal.COMPLETED:
                logger.info(f"received completion signal: {reason}")
                status_channel.put(status.COMPLETED)
                return
        logger.info("stopping checker")


def termination_signal(pod, own_container):
    """Work out the job's state from a pod's container statuses.

    Args:
        pod (kubernetes.client.V1Pod): the pod the sidecar runs in.
        own_container (str): the sidecar's container name, ignored.

    Returns:
        tuple: ``(CompletionSignal, reason)``. Any sibling terminated with a non
        zero exit code means errored, all siblings terminated cleanly means completed.
    """
    statuses = (pod.status.container_statuses if pod.status else None) or []
    siblings = [s for s in statuses if s.name != own_container]
    if not siblings:
        return CompletionSignal.NONE, ""

    finished = 0
    for container in siblings:
        terminated = container.state.terminated if container.state else None
        if terminated is None:
            continue
        if terminated.exit_code:
            error = SiblingError(container.name, pod.metadata.name if pod.metadata else "",
                                 terminated.reason or f"exit code {terminated.exit_code}")
            return CompletionSignal.ERRORED, str(error)
        finished += 1

    if finished == len(siblings):
        return CompletionSignal.COMPLETED, ", ".join(f"{s.name} completed" for s in siblings)
    return CompletionSignal.NONE, ""


class KubeStatusWatcher(CompletionWatcher):
    """Polls the pod through the Kubernetes API."""

    def __init__(self, core_api, namespace, pod_name, container_name, interval=KUBE_POLL_INTERVAL):
        super(KubeStatusWatcher, self).__init__(interval)
        self.core_api = core_api
        self.namespace = namespace
        self.pod_name = pod_name
        self.container_name = container_name

    @classmethod
    def in_cluster(cls, namespace, pod_name, container_name, interval=KUBE_POLL_INTERVAL):
        kube_config.load_incluster_config()
        return cls(kube_client.CoreV1Api(), namespace, pod_name, container_name, interval)

    def poll(self):
        pod = self.core_api.read_namespaced_pod(name=self.pod_name, namespace=self.namespace)
        return termination_signal(pod, self.container_name)


class CompletionFileWatcher(CompletionWatcher):
    """Completed once the marker file shows up."""

    def __init__(self, path, interval=FILE_POLL_INTERVAL):
        super(CompletionFileWatcher, self).__init__(interval)
        self.path = path

    def poll(self):
        if os.path.exists(self.path):
            return CompletionSignal.COMPLETED, f"found {self.path}"
        return CompletionSignal.NONE, ""
