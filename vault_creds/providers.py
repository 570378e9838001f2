# -*- coding: utf-8 -*-
"""Where secrets come from: Vault itself, or the lease file of a previous run."""

import logging
from abc import ABC, abstractmethod

import requests
import yaml
from hvac import exceptions as vault_exceptions

from .exceptions import FetchError
from .secret import SecretType, secret_class


def secret_fields(response):
    """Non sensitive fields of a Vault response, for logging."""
    fields = {
        "request_id": response.get("request_id"),
        "lease_id": response.get("lease_id"),
        "renewable": response.get("renewable"),
        "lease_duration": response.get("lease_duration"),
    }
    auth = response.get("auth")
    if auth:
        fields["auth.policies"] = auth.get("policies")
        fields["auth.lease_duration"] = auth.get("lease_duration")
        fields["auth.renewable"] = auth.get("renewable")
        fields["warnings"] = response.get("warnings")
    return fields


class SecretsProvider(ABC):
    """Produces the :class:`~vault_creds.secret.Secret` the sidecar starts with."""

    def __init__(self, secret_type, path):
        self.secret_type = secret_type
        self.path = path
        self._secret_class = secret_class(secret_type)

    @abstractmethod
    def fetch(self):
        """Return a Secret of ``secret_type``, raising FetchError when that isn't possible."""


class VaultSecretsProvider(SecretsProvider):
    """Asks Vault for a new secret on every fetch.

    Dynamic credentials are read from ``path``. Certificates are issued by
    writing ``options`` (``common_name``, ``ttl``...) to ``path``.
    """

    def __init__(self, client, secret_type, path, options=None):
        super(VaultSecretsProvider, self).__init__(secret_type, path)
        self.client = client
        self.options = dict(options or {})

    def fetch(self):
        logger = logging.getLogger(__name__)
        logger.info(f"requesting {self.secret_type} from {self.path}")

        try:
            if self.secret_type == SecretType.CERTIFICATE:
                response = self.client.write_data(self.path, data=self.options)
            else:
                response = self.client.read(self.path)
        except (vault_exceptions.VaultError, requests.exceptions.RequestException) as e:
            raise FetchError(self.secret_type, self.path, e) from e

        if not isinstance(response, dict) or not response.get("data"):
            raise FetchError(self.secret_type, self.path, "vault returned no data")

        try:
            secret = self._secret_class.from_response(response)
        except (KeyError, TypeError, ValueError) as e:
            raise FetchError(self.secret_type, self.path, f"unexpected response: {e!r}") from e

        logger.info(f"successfully retrieved {self.secret_type} {secret_fields(response)}")
        return secret


class FileSecretsProvider(SecretsProvider):
    """Replays the secret saved in the lease file, Vault is never contacted.

    The lease file doesn't say which variant it holds so ``secret_type`` has to
    match what was written.
    """

    def fetch(self):
        logging.getLogger(__name__).info(f"detected existing lease {self.path}")
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                raw = fh.read()
        except OSError as e:
            raise FetchError(self.secret_type, self.path, f"error reading lease: {e}") from e

        try:
            return self._secret_class.loads(raw)
        except (yaml.YAMLError, KeyError, TypeError, ValueError) as e:
            raise FetchError(self.secret_type, self.path, f"error unmarshalling lease: {e!r}") from e
