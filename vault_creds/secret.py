# -*- coding: utf-8 -*-
"""The two kinds of secret the sidecar looks after.

``Credentials`` are dynamic username/password pairs whose lease is extended in
place. A ``Certificate`` cannot be extended so each renewal swaps it for a
freshly issued one. Call sites only ever use the :class:`Secret` interface.
"""

import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

import yaml
from dateutil import parser

from .exceptions import PersistenceError, VaultCredsError

MIN_CERTIFICATE_RENEW_INTERVAL = 60


class SecretType:
    CREDENTIALS = "credentials"
    CERTIFICATE = "certificate"

    ALL = (CREDENTIALS, CERTIFICATE)


def _utcnow():
    return datetime.now(timezone.utc)


def _format_time(value):
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


class Secret(ABC):
    """Interface shared by every secret variant."""

    secret_type = None

    # whether the lease file has to be rewritten after each renewal
    persist_on_renewal = False

    @abstractmethod
    def renew_or_reissue(self, client, provider, lease_duration):
        """Extend or replace this secret.

        Args:
            client (hvac.Client): an authenticated Vault client.
            provider (VaultSecretsProvider): used by variants that must be reissued.
            lease_duration (int): requested extension in seconds.

        Returns:
            Secret: the secret to hold from now on, may be ``self``.
        """

    @abstractmethod
    def renew_interval(self, configured):
        """Seconds until the next renewal, given the operator's renew interval."""

    @abstractmethod
    def expires_in(self):
        """Seconds of validity left, used for the expiry metric."""

    @abstractmethod
    def secret_env(self):
        """Template variables carrying the secret material."""

    @abstractmethod
    def to_dict(self):
        pass

    @classmethod
    @abstractmethod
    def from_dict(cls, data):
        pass

    def log_fields(self):
        return {}

    def env_vars(self, base_env=None):
        """Template context: ``base_env`` overlaid with the secret material."""
        env = dict(base_env or {})
        env.update(self.secret_env())
        return env

    def dumps(self):
        return yaml.safe_dump(self.to_dict(), default_flow_style=False)

    @classmethod
    def loads(cls, raw):
        data = yaml.safe_load(raw)
        if not isinstance(data, dict):
            raise ValueError(f"expected a mapping, got {type(data).__name__}")
        return cls.from_dict(data)

    def save(self, path):
        """Write the secret to ``path`` readable by the owner only."""
        try:
            with open(path, "w", encoding="utf-8") as fh:
                fh.write(self.dumps())
            os.chmod(path, 0o600)
        except (OSError, yaml.YAMLError) as e:
            raise PersistenceError("write lease", path, e) from e
        logging.getLogger(__name__).info(f"wrote lease to {path}")


class Credentials(Secret):
    secret_type = SecretType.CREDENTIALS

    def __init__(self,
                 username,
                 password,
                 lease_id,
                 lease_duration=0,
                 renewable=True,
                 lease_expire_time=None):
        self.username = username
        self.password = password
        self.lease_id = lease_id
        self.lease_duration = int(lease_duration)
        self.renewable = renewable
        if lease_expire_time is None:
            lease_expire_time = _format_time(_utcnow() + timedelta(seconds=self.lease_duration))
        self.lease_expire_time = lease_expire_time

    @classmethod
    def from_response(cls, response):
        data = response["data"]
        lease_duration = int(response.get("lease_duration") or 0)
        return cls(username=data["username"],
                   password=data["password"],
                   lease_id=response["lease_id"],
                   lease_duration=lease_duration,
                   renewable=bool(response.get("renewable", True)))

    def renew_or_reissue(self, client, provider, lease_duration):
        logger = logging.getLogger(__name__)
        logger.info(f"renewing lease {self.lease_id} by {lease_duration}s")
        response = client.sys.renew_lease(lease_id=self.lease_id, increment=int(lease_duration))
        if not response:
            raise VaultCredsError(f"empty response renewing lease {self.lease_id}")

        self.lease_duration = int(response.get("lease_duration") or 0)
        self.renewable = bool(response.get("renewable", self.renewable))
        self.lease_expire_time = _format_time(
            _utcnow() + timedelta(seconds=self.lease_duration))
        logger.info(f"successfully renewed lease {self.lease_id}, "
                    f"expires {self.lease_expire_time}")
        return self

    def renew_interval(self, configured):
        return configured

    @property
    def expire_time(self):
        return parser.isoparse(self.lease_expire_time)

    def expires_in(self):
        return (self.expire_time - _utcnow()).total_seconds()

    def secret_env(self):
        return {"Username": self.username, "Password": self.password}

    def log_fields(self):
        return {"lease_id": self.lease_id,
                "lease_duration": self.lease_duration,
                "renewable": self.renewable}

    def to_dict(self):
        return {"username": self.username,
                "password": self.password,
                "lease_id": self.lease_id,
                "lease_duration": self.lease_duration,
                "renewable": self.renewable,
                "lease_expire_time": self.lease_expire_time}

    @classmethod
    def from_dict(cls, data):
        return cls(username=data["username"],
                   password=data["password"],
                   lease_id=data["lease_id"],
                   lease_duration=data.get("lease_duration", 0),
                   renewable=data.get("renewable", True),
                   lease_expire_time=data.get("lease_expire_time"))


class Certificate(Secret):
    secret_type = SecretType.CERTIFICATE
    persist_on_renewal = True

    def __init__(self,
                 certificate,
                 private_key,
                 expiration,
                 issuing_ca="",
                 serial_number=""):
        self.certificate = certificate
        self.private_key = private_key
        self.expiration = int(expiration)
        self.issuing_ca = issuing_ca
        self.serial_number = serial_number

    @classmethod
    def from_response(cls, response):
        data = response["data"]
        return cls(certificate=data["certificate"],
                   private_key=data["private_key"],
                   expiration=int(data["expiration"]),
                   issuing_ca=data.get("issuing_ca", ""),
                   serial_number=data.get("serial_number", ""))

    def renew_or_reissue(self, client, provider, lease_duration):
        # a certificate can't be extended, only swapped for a new one
        logging.getLogger(__name__).info(f"reissuing certificate {self.serial_number}")
        return provider.fetch()

    def renew_interval(self, configured):
        # reissue on the last whole minute before expiry
        remaining = int(self.expires_in())
        return max(remaining - remaining % 60, MIN_CERTIFICATE_RENEW_INTERVAL)

    def expires_in(self):
        return self.expiration - _utcnow().timestamp()

    def secret_env(self):
        return {"Certificate": self.certificate,
                "PrivateKey": self.private_key,
                "IssuingCA": self.issuing_ca}

    def log_fields(self):
        return {"serial_number": self.serial_number,
                "expiration": self.expiration}

    def to_dict(self):
        return {"certificate": self.certificate,
                "private_key": self.private_key,
                "expiration": self.expiration,
                "issuing_ca": self.issuing_ca,
                "serial_number": self.serial_number}

    @classmethod
    def from_dict(cls, data):
        return cls(certificate=data["certificate"],
                   private_key=data["private_key"],
                   expiration=data["expiration"],
                   issuing_ca=data.get("issuing_ca", ""),
                   serial_number=data.get("serial_number", ""))


SECRET_CLASSES = {
    SecretType.CREDENTIALS: Credentials,
    SecretType.CERTIFICATE: Certificate,
}


def secret_class(secret_type):
    try:
        return SECRET_CLASSES[secret_type]
    except KeyError:
        raise ValueError(f"unknown secret type {secret_type}, "
                         f"expected one of {', '.join(SecretType.ALL)}") from None
