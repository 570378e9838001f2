# -*- coding: utf-8 -*-
"""Startup, supervision and shutdown of the sidecar.

The renewal loop and the completion watcher run in their own threads and only
talk to the main thread through ``status_channel``. The main thread is the one
place a status turns into cleanup and an exit code, so cleanup happens exactly
once whichever thread reported first.
"""

import logging
import os
import queue
import signal
import threading

from . import status
from .auth import FileAuthClientFactory, KubernetesAuthClientFactory
from .exceptions import VaultCredsError
from .manager import LeaseManager
from .metrics import PushGateway
from .output import OutputWriter, load_template
from .providers import FileSecretsProvider, VaultSecretsProvider
from .watchers import CompletionFileWatcher, KubeStatusWatcher

CHANNEL_POLL_INTERVAL = 1.0
THREAD_JOIN_TIMEOUT = 30.0


def cleanup(lease_path, token_path):
    """Remove lease and token files left behind by an expired session."""
    logger = logging.getLogger(__name__)
    logger.info("deleting lease and credentials")
    for what, path in (("lease", lease_path), ("token", token_path)):
        if not path:
            continue
        try:
            os.remove(path)
        except OSError as e:
            logger.error(f"failed to remove {what}: {e}")


class Orchestrator:
    """Runs the renewal engine (and watcher) until a status or signal arrives.

    Status codes and exit codes:

    ``0``  completion signal or SIGINT/SIGTERM, revoke the session and exit cleanly.
    ``1``  the secret or session can no longer be renewed, delete lease and token.
    ``2``  a sibling container failed, leave lease and token alone.
    """

    def __init__(self,
                 manager,
                 watcher=None,
                 lease_path=None,
                 token_path=None,
                 init_mode=False,
                 status_channel=None,
                 stop_event=None):
        self.manager = manager
        self.watcher = watcher
        self.lease_path = lease_path
        self.token_path = token_path
        self.init_mode = init_mode
        # SimpleQueue.put is reentrant so signal handlers may call it
        self.status_channel = status_channel or queue.SimpleQueue()
        self.stop_event = stop_event or threading.Event()
        self._threads = []
        self._exit_code = None

    def install_signal_handlers(self):
        for signum in (signal.SIGINT, signal.SIGTERM):
            signal.signal(signum, self._on_signal)

    def _on_signal(self, signum, frame):
        self.status_channel.put(status.TERMINATED)

    def start(self):
        if self.init_mode:
            logging.getLogger(__name__).info("completed init")
            self.status_channel.put(status.COMPLETED)
            return
        self._threads.append(self.manager.run(self.stop_event, self.status_channel))
        if self.watcher is not None:
            self._threads.append(self.watcher.run(self.stop_event, self.status_channel))

    def wait(self):
        """Block until the first status arrives, then shut down and return the exit code."""
        while True:
            try:
                code = self.status_channel.get(timeout=CHANNEL_POLL_INTERVAL)
            except queue.Empty:
                continue
            return self.shutdown(code)

    def run(self):
        self.install_signal_handlers()
        self.start()
        return self.wait()

    def shutdown(self, code):
        if self._exit_code is not None:
            return self._exit_code

        logger = logging.getLogger(__name__)
        self.stop_event.set()
        for t in self._threads:
            t.join(THREAD_JOIN_TIMEOUT)
            if t.is_alive():
                logger.warning(f"{t.name} still running after {THREAD_JOIN_TIMEOUT}s")

        if code == status.SECRET_FATAL:
            logger.error("credentials could no longer be renewed, "
                         "check the vault policy and lease for this role")
            cleanup(self.lease_path, self.token_path)
            exit_code = status.SECRET_FATAL
        elif code == status.SIBLING_ERROR:
            logger.error("sibling container failed, check the workload not the sidecar")
            exit_code = status.SIBLING_ERROR
        elif code == status.TERMINATED:
            logger.info("received termination signal")
            exit_code = status.COMPLETED
        else:
            exit_code = status.COMPLETED

        if not self.init_mode:
            self.manager.revoke_self()
        logger.info("shutting down")
        self._exit_code = exit_code
        return exit_code


def build(config, watcher_factory=None):
    """Authenticate, fetch or replay the secret, write it out and wire everything up.

    Any failure here is fatal and raised as is, there is nothing to retry
    without a session or a secret.

    Args:
        config (Config): runtime configuration.
        watcher_factory (callable): optional replacement for the in-cluster
            ``KubeStatusWatcher`` constructor.

    Returns:
        Orchestrator: ready to ``run()``.
    """
    logger = logging.getLogger(__name__)
    lease_path = config.lease_path
    token_path = config.token_path
    lease_exists = bool(lease_path) and os.path.exists(lease_path)

    if lease_exists and config.init:
        cleanup(lease_path, token_path)
        raise VaultCredsError("lease detected while in init mode, shutting down and cleaning up")

    if token_path and os.path.exists(token_path):
        factory = FileAuthClientFactory(config.vault_addr, token_path, config.ca_cert)
    else:
        factory = KubernetesAuthClientFactory(config.vault_addr,
                                              config.token_file,
                                              config.login_path,
                                              config.auth_role,
                                              config.ca_cert)
    auth_client = factory.create()

    vault_provider = VaultSecretsProvider(auth_client.client,
                                          config.secret_type,
                                          config.secret_path,
                                          config.cert_options)
    # an existing lease must be replayed, never fetched again
    if lease_exists:
        source = FileSecretsProvider(config.secret_type, lease_path)
    else:
        source = vault_provider
    secret = source.fetch()

    writer = OutputWriter(load_template(config.template), config.out, config.environ)
    if not lease_exists:
        if token_path:
            auth_client.save(token_path)
        writer.save(secret)

    gateway = None
    if config.gateway_addr:
        gateway = PushGateway(config.gateway_addr, config.namespace, config.pod_name)

    manager = LeaseManager(auth_client,
                           secret,
                           vault_provider,
                           config.lease_duration,
                           config.renew_interval,
                           writer=writer,
                           gateway=gateway)

    watcher = None
    if config.job and not config.init:
        if config.use_kube_status:
            watcher_factory = watcher_factory or KubeStatusWatcher.in_cluster
            watcher = watcher_factory(config.namespace, config.pod_name, config.container_name)
            logger.info(f"watching pod {config.namespace}/{config.pod_name} for completion")
        else:
            watcher = CompletionFileWatcher(config.completed_path)
            logger.info(f"watching {config.completed_path} for completion")

    return Orchestrator(manager,
                        watcher=watcher,
                        lease_path=lease_path,
                        token_path=token_path,
                        init_mode=config.init)
