# -*- coding: utf-8 -*-
"""Bounded retry of Vault operations.

Every renewal call goes through a :class:`RetryPolicy`. Failures are passed to a
classifier first; anything it marks fatal (a revoked policy, a lease Vault has
forgotten) is raised straight away, everything else is retried with exponential
backoff until the lease duration budget runs out.
"""

import logging
import time

from hvac import exceptions as vault_exceptions
from tenacity import (RetryError,
                      Retrying,
                      retry_if_not_exception_type,
                      stop_before_delay,
                      stop_when_event_set,
                      wait_exponential)

from .exceptions import (FatalRenewalError,
                         LeaseNotFound,
                         PermissionDenied,
                         TransientBackendError)

DEFAULT_INITIAL_INTERVAL = 0.5
DEFAULT_MAX_INTERVAL = 60.0

PERMISSION_DENIED_MARKERS = ("code: 403", "permission denied")
LEASE_NOT_FOUND_MARKERS = ("lease not found", "lease is not renewable")


def classify_error(error):
    """Classify an error raised by a Vault call.

    Args:
        error (Exception): whatever the operation raised.

    Returns:
        FatalRenewalError: a ``PermissionDenied`` or ``LeaseNotFound`` wrapping
        ``error`` when retrying cannot help, otherwise ``None`` (transient).
    """
    if isinstance(error, FatalRenewalError):
        return error
    # a reissue surfaces Vault's error as the cause of a FetchError
    if isinstance(error, vault_exceptions.Forbidden) or \
            isinstance(error.__cause__, vault_exceptions.Forbidden):
        return PermissionDenied(error)

    message = str(error).lower()
    if any(marker in message for marker in PERMISSION_DENIED_MARKERS):
        return PermissionDenied(error)
    if any(marker in message for marker in LEASE_NOT_FOUND_MARKERS):
        return LeaseNotFound(error)
    return None


class RetryPolicy:
    """Exponential backoff bounded by an elapsed time budget.

    Attributes:
        initial_interval (float): first wait in seconds, doubled on each retry.
        max_interval (float): cap on a single wait.
        classifier (callable): maps an exception to a fatal error or ``None``.
        stop_event (threading.Event): optional, ends backoff early once set.
    """

    def __init__(self,
                 initial_interval=DEFAULT_INITIAL_INTERVAL,
                 max_interval=DEFAULT_MAX_INTERVAL,
                 classifier=classify_error,
                 stop_event=None,
                 sleep=None):
        self.initial_interval = initial_interval
        self.max_interval = max_interval
        self.classifier = classifier
        self.stop_event = stop_event
        # waiting on the stop event lets shutdown cut a backoff short
        if sleep is None and stop_event is not None:
            sleep = stop_event.wait
        self._sleep = sleep

    def _classified(self, operation):
        def _attempt():
            try:
                return operation()
            except Exception as e:
                fatal = self.classifier(e)
                if fatal is not None:
                    if fatal is e:
                        raise
                    raise fatal from e
                raise
        return _attempt

    def call(self, operation, description, budget):
        """Run ``operation`` until it succeeds, fails fatally or the budget is spent.

        Args:
            operation (callable): zero argument callable doing one attempt.
            description (str): used in log lines and errors, e.g. "renewing auth token".
            budget (float): total seconds retries may take, normally the lease duration.

        Returns:
            whatever ``operation`` returned.

        Raises:
            FatalRenewalError: the classifier marked an attempt's error fatal.
            TransientBackendError: the budget ran out (or shutdown began) first.
        """
        stop = stop_before_delay(budget)
        if self.stop_event is not None:
            stop = stop | stop_when_event_set(self.stop_event)

        kwargs = {}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep

        retrying = Retrying(
            stop=stop,
            wait=wait_exponential(multiplier=self.initial_interval, max=self.max_interval),
            retry=retry_if_not_exception_type(FatalRenewalError),
            before_sleep=self._log_retry(description),
            **kwargs)

        started = time.monotonic()
        try:
            return retrying(self._classified(operation))
        except RetryError as e:
            raise TransientBackendError(description,
                                        time.monotonic() - started,
                                        e.last_attempt.exception()) from None

    @staticmethod
    def _log_retry(description):
        def _before_sleep(retry_state):
            logging.getLogger(__name__).warning(
                f"{description} failed (attempt {retry_state.attempt_number}), "
                f"retrying in {retry_state.next_action.sleep:.2f}s: "
                f"{retry_state.outcome.exception()}")
        return _before_sleep
