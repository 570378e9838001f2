# -*- coding: utf-8 -*-

import logging

from prometheus_client import CollectorRegistry, Counter, Gauge, pushadd_to_gateway

PROM_NAMESPACE = "vault_creds"
JOB_NAME = "vault-creds"


class PushGateway:
    """Renewal metrics pushed to a Prometheus push gateway.

    Each instance owns its registry, so several can live in one process (tests).
    Pushing is skipped when no address is configured and push failures are
    only logged, metrics must never get in the way of renewing.
    """

    def __init__(self, address, namespace="", pod_name=""):
        self.address = address
        self.grouping_key = {"instance": pod_name, "namespace": namespace, "pod": pod_name}
        self.registry = CollectorRegistry()
        self.error_time = Gauge("last_renewal_error_timestamp_seconds",
                                "The timestamp of the last error during renewal of a secret",
                                namespace=PROM_NAMESPACE,
                                registry=self.registry)
        self.error_count = Counter("error_count",
                                   "Number of errors when renewing credentials",
                                   namespace=PROM_NAMESPACE,
                                   registry=self.registry)
        self.success_time = Gauge("last_renewal_success_timestamp_seconds",
                                  "The timestamp of the last successful renewal of a secret",
                                  namespace=PROM_NAMESPACE,
                                  registry=self.registry)
        self.lease_expiration = Gauge("time_until_secrets_expire",
                                      "The time remaining until the secret lease expires",
                                      namespace=PROM_NAMESPACE,
                                      registry=self.registry)

    def set_expiration(self, seconds):
        self.lease_expiration.set(seconds)

    def set_success_time(self):
        self.success_time.set_to_current_time()

    def set_failure(self):
        self.error_time.set_to_current_time()
        self.error_count.inc()

    def push(self):
        if not self.address:
            return
        try:
            pushadd_to_gateway(self.address,
                               job=JOB_NAME,
                               registry=self.registry,
                               grouping_key=self.grouping_key)
        except Exception as e:
            logging.getLogger(__name__).error(f"Could not push to Pushgateway: {e}")
