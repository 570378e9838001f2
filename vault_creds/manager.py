# -*- coding: utf-8 -*-
"""The renewal engine.

A :class:`LeaseManager` owns the Vault session and the secret for the life of
the process. On every tick it first extends the session, then renews (or, for
certificates, reissues) the secret. Transient failures are retried within the
lease duration and then left for the next tick; a fatal failure is reported on
the status channel and ends the loop.
"""

import logging
import threading
import time

from . import status
from .exceptions import FatalRenewalError, PersistenceError, TransientBackendError
from .retry import RetryPolicy

METRIC_INTERVAL = 5.0


class LeaseManager:
    """Keeps one session and one secret alive.

    Args:
        auth_client (AuthClient): the authenticated session.
        secret (Secret): the secret fetched or replayed at startup.
        provider (VaultSecretsProvider): used to reissue certificates.
        lease_duration (float): seconds requested on each renewal, also the retry budget.
        renew_interval (float): seconds between renewals of credentials.
        writer (OutputWriter): rerenders output and lease after a reissue.
        gateway (PushGateway): optional metrics sink.
        retry_policy (RetryPolicy): defaults to one that stops on shutdown.
    """

    IDLE = "idle"
    RENEWING = "renewing"
    FATAL = "fatal"
    STOPPED = "stopped"

    def __init__(self,
                 auth_client,
                 secret,
                 provider,
                 lease_duration,
                 renew_interval,
                 writer=None,
                 gateway=None,
                 retry_policy=None):
        self.auth_client = auth_client
        self.secret = secret
        self.provider = provider
        self.lease_duration = lease_duration
        self.renew_interval = renew_interval
        self.writer = writer
        self.gateway = gateway
        self._own_retry_policy = retry_policy is None
        self.retry_policy = retry_policy or RetryPolicy()
        self.state = self.IDLE

    def run(self, stop_event, status_channel):
        """Start the renewal loop in a daemon thread and return the thread."""
        if self._own_retry_policy:
            self.retry_policy = RetryPolicy(stop_event=stop_event)
        t = threading.Thread(target=self._loop,
                             name="lease-renewal",
                             args=[stop_event, status_channel])
        t.daemon = True
        t.start()
        return t

    def _loop(self, stop_event, status_channel):
        logger = logging.getLogger(__name__)
        secret_interval = self.secret.renew_interval(self.renew_interval)
        logger.info(f"renewing session every {self.renew_interval}s and "
                    f"{self.secret.secret_type} every {secret_interval}s "
                    f"{self.secret.log_fields()}")

        # the session keeps the operator's interval, a certificate follows its own expiry
        now = time.monotonic()
        next_session = now + self.renew_interval
        next_secret = now + secret_interval
        while True:
            timeout = min(next_session, next_secret) - time.monotonic()
            if self.gateway is not None:
                timeout = min(timeout, METRIC_INTERVAL)
            if stop_event.wait(max(timeout, 0.0)):
                break

            now = time.monotonic()
            if now < next_session and now < next_secret:
                self._push_expiration()
                continue

            renew_secret = now >= next_secret
            if not self._tick(status_channel, renew_secret):
                return
            now = time.monotonic()
            next_session = now + self.renew_interval
            if renew_secret:
                next_secret = now + self.secret.renew_interval(self.renew_interval)

        self.state = self.STOPPED
        logger.info("stopping renewal")

    def _tick(self, status_channel, renew_secret=True):
        """One scheduled renewal, returns False once the loop has to end.

        An error that is neither fatal nor a spent retry budget is a bug, not an
        outage. It is logged with its traceback and the next tick tries again.
        """
        logger = logging.getLogger(__name__)
        try:
            self.renew(renew_secret)
        except FatalRenewalError as e:
            self.state = self.FATAL
            self._record_failure()
            logger.error(f"secret could no longer be renewed: {e}")
            status_channel.put(status.SECRET_FATAL)
            return False
        except TransientBackendError as e:
            self.state = self.IDLE
            self._record_failure()
            logger.error(f"error renewing secret, will retry next interval: {e}")
        except Exception:
            self.state = self.IDLE
            self._record_failure()
            logger.exception("unexpected error renewing secret, will retry next interval")
        else:
            self._record_success()
        return True

    def renew(self, renew_secret=True):
        """Extend the session, then renew or reissue the secret.

        Args:
            renew_secret (bool): False extends the session only.

        Raises:
            FatalRenewalError: the session or the secret can't be renewed anymore.
            TransientBackendError: retries ran out before a renewal succeeded.
        """
        self.state = self.RENEWING
        self.retry_policy.call(lambda: self.auth_client.renew_self(self.lease_duration),
                               "renewing auth token",
                               self.lease_duration)

        if renew_secret:
            self.secret = self.retry_policy.call(
                lambda: self.secret.renew_or_reissue(self.auth_client.client,
                                                     self.provider,
                                                     self.lease_duration),
                f"renewing {self.secret.secret_type}",
                self.lease_duration)
            logging.getLogger(__name__).info(
                f"renewed {self.secret.secret_type} {self.secret.log_fields()}")

            if self.secret.persist_on_renewal:
                self.save()
        self.state = self.IDLE

    def save(self):
        """Rewrite output and lease file, a failed write only costs us the on disk copy."""
        if self.writer is None:
            return
        try:
            self.writer.save(self.secret)
        except PersistenceError as e:
            logging.getLogger(__name__).error(f"error overwriting lease: {e}")

    def revoke_self(self):
        return self.auth_client.revoke_self()

    def _record_success(self):
        self._update_metrics(lambda: self.gateway.set_success_time())

    def _record_failure(self):
        self._update_metrics(lambda: self.gateway.set_failure())

    def _push_expiration(self):
        self._update_metrics(lambda: self.gateway.set_expiration(self.secret.expires_in()))

    def _update_metrics(self, update):
        # metrics must never end the renewal loop
        if self.gateway is None:
            return
        try:
            update()
            self.gateway.push()
        except Exception:
            logging.getLogger(__name__).exception("error updating metrics")
