# -*- coding: utf-8 -*-
"""Vault session handling.

The sidecar trades the pod's service account token for a Vault token once. The
session is saved next to the lease so a restarted container picks the same
token back up instead of logging in again.
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field

import hvac
import requests
import yaml
from hvac import exceptions as vault_exceptions

from .exceptions import AuthError, PersistenceError
from .providers import secret_fields


@dataclass
class AuthSession:
    client_token: str
    accessor: str = ""
    policies: list = field(default_factory=list)
    renewable: bool = True
    lease_duration: int = 0

    @classmethod
    def from_auth(cls, auth):
        return cls(client_token=auth["client_token"],
                   accessor=auth.get("accessor") or "",
                   policies=list(auth.get("policies") or []),
                   renewable=bool(auth.get("renewable", True)),
                   lease_duration=int(auth.get("lease_duration") or 0))

    @classmethod
    def from_dict(cls, data):
        return cls(client_token=data["client_token"],
                   accessor=data.get("accessor", ""),
                   policies=list(data.get("policies") or []),
                   renewable=bool(data.get("renewable", True)),
                   lease_duration=int(data.get("lease_duration") or 0))


def create_vault_client(vault_addr, ca_cert=None):
    # requests accepts a CA bundle file or a c_rehash'd directory for verify
    return hvac.Client(url=vault_addr, verify=ca_cert or True)


class AuthClient:
    """An authenticated ``hvac.Client`` together with the session behind it."""

    def __init__(self, client, session):
        self.client = client
        self.session = session
        self.client.token = session.client_token

    @property
    def token(self):
        return self.session.client_token

    def renew_self(self, increment):
        """One attempt at extending the session by ``increment`` seconds."""
        response = self.client.auth.token.renew_self(increment=int(increment))
        if not response or not response.get("auth"):
            raise vault_exceptions.VaultError("empty response renewing auth token")
        self.session.lease_duration = int(response["auth"].get("lease_duration") or 0)
        self.session.renewable = bool(response["auth"].get("renewable", self.session.renewable))
        logging.getLogger(__name__).info(
            f"successfully renewed auth token {secret_fields(response)}")
        return response

    def revoke_self(self):
        """Best effort, shutdown must carry on whatever happens here."""
        logger = logging.getLogger(__name__)
        try:
            self.client.auth.token.revoke_self()
        except (vault_exceptions.VaultError, requests.exceptions.RequestException) as e:
            logger.error(f"failed to revoke self: {e}")
            return False
        logger.info("revoked own token")
        return True

    def save(self, path):
        try:
            with open(path, "w", encoding="utf-8") as fh:
                yaml.safe_dump(asdict(self.session), fh, default_flow_style=False)
            os.chmod(path, 0o600)
        except (OSError, yaml.YAMLError) as e:
            raise PersistenceError("write token", path, e) from e
        logging.getLogger(__name__).info(f"wrote token to {path}")


class ClientFactory(ABC):

    def __init__(self, vault_addr, ca_cert=None):
        self.vault_addr = vault_addr
        self.ca_cert = ca_cert

    def _unauthenticated_client(self):
        return create_vault_client(self.vault_addr, self.ca_cert)

    @abstractmethod
    def create(self):
        """Return an :class:`AuthClient`, raising AuthError on failure."""


class KubernetesAuthClientFactory(ClientFactory):
    """Logs in with the pod's service account token.

    Args:
        vault_addr (str): Vault address, e.g. ``https://vault:8200``.
        token_file (str): service account token path.
        login_path (str): auth path below ``/v1/auth``, e.g. ``kubernetes/login``.
        role (str): Vault role bound to the service account.
        ca_cert (str): optional CA bundle file or directory.
    """

    def __init__(self, vault_addr, token_file, login_path, role, ca_cert=None):
        super(KubernetesAuthClientFactory, self).__init__(vault_addr, ca_cert)
        self.token_file = token_file
        self.login_path = login_path.strip("/")
        self.role = role

    def create(self):
        try:
            with open(self.token_file, "r", encoding="utf-8") as fh:
                jwt = fh.read().strip()
        except OSError as e:
            raise AuthError(self.login_path, f"error reading token: {e}") from e

        client = self._unauthenticated_client()
        try:
            response = client.login(f"/v1/auth/{self.login_path}",
                                    json={"jwt": jwt, "role": self.role})
        except (vault_exceptions.VaultError, requests.exceptions.RequestException) as e:
            raise AuthError(self.login_path, e) from e

        if not isinstance(response, dict) or not response.get("auth"):
            raise AuthError(self.login_path, "response carried no auth block")

        try:
            session = AuthSession.from_auth(response["auth"])
        except (KeyError, TypeError, ValueError) as e:
            raise AuthError(self.login_path, f"error parsing response: {e!r}") from e

        logging.getLogger(__name__).info(f"successfully authenticated {secret_fields(response)}")
        return AuthClient(client, session)


class FileAuthClientFactory(ClientFactory):
    """Reuses the session saved by a previous run."""

    def __init__(self, vault_addr, path, ca_cert=None):
        super(FileAuthClientFactory, self).__init__(vault_addr, ca_cert)
        self.path = path

    def create(self):
        logging.getLogger(__name__).info(f"detected existing vault token {self.path}, using that")
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh)
            session = AuthSession.from_dict(data)
        except OSError as e:
            raise AuthError(self.path, f"error reading token: {e}") from e
        except (yaml.YAMLError, KeyError, TypeError, ValueError) as e:
            raise AuthError(self.path, f"error unmarshalling token: {e!r}") from e

        return AuthClient(self._unauthenticated_client(), session)
