# -*- coding: utf-8 -*-
"""Runtime configuration, built once at startup from flags and environment."""

import re
from dataclasses import dataclass, field

from .secret import SecretType

DEFAULT_TOKEN_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/token"
DEFAULT_COMPLETED_PATH = "/tmp/vault-creds/completed"
DEFAULT_CONTAINER_NAME = "vault-creds"

DURATION_UNITS = {
    "ms": 0.001,
    "s": 1,
    "m": 60,
    "h": 3600,
}
DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")


def parse_duration(value):
    """Parse a duration such as ``15m``, ``1h30m`` or ``90`` into seconds."""
    value = str(value).strip()
    if re.fullmatch(r"\d+(?:\.\d+)?", value):
        return float(value)

    total = 0.0
    pos = 0
    for match in DURATION_PART.finditer(value):
        if match.start() != pos:
            break
        total += float(match.group(1)) * DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos == 0 or pos != len(value):
        raise ValueError(f"invalid duration {value!r}")
    return total


@dataclass
class Config:
    vault_addr: str
    login_path: str
    auth_role: str
    secret_path: str
    template: str
    out: str = ""
    ca_cert: str = ""
    token_file: str = DEFAULT_TOKEN_FILE
    secret_type: str = SecretType.CREDENTIALS
    cert_options: dict = field(default_factory=dict)
    renew_interval: float = 15 * 60
    lease_duration: float = 60 * 60
    json_log: bool = False
    completed_path: str = DEFAULT_COMPLETED_PATH
    job: bool = False
    init: bool = False
    gateway_addr: str = ""
    namespace: str = ""
    pod_name: str = ""
    container_name: str = DEFAULT_CONTAINER_NAME
    environ: dict = field(default_factory=dict, repr=False)

    def __post_init__(self):
        if self.secret_type not in SecretType.ALL:
            raise ValueError(f"secret type must be one of {', '.join(SecretType.ALL)}")
        if self.renew_interval <= 0 or self.lease_duration <= 0:
            raise ValueError("renew interval and lease duration must be positive")

    @classmethod
    def from_args(cls, args, environ):
        """Build from parsed command line ``args`` and a snapshot of the environment."""
        cert_options = {}
        if args.common_name:
            cert_options["common_name"] = args.common_name
        if args.cert_ttl:
            cert_options["ttl"] = args.cert_ttl

        return cls(vault_addr=args.vault_addr or environ.get("VAULT_ADDR", ""),
                   login_path=args.login_path,
                   auth_role=args.auth_role,
                   secret_path=args.secret_path,
                   template=args.template,
                   out=args.out or "",
                   ca_cert=args.ca_cert or "",
                   token_file=args.token_file,
                   secret_type=args.secret_type,
                   cert_options=cert_options,
                   renew_interval=parse_duration(args.renew_interval),
                   lease_duration=parse_duration(args.lease_duration),
                   json_log=args.json_log,
                   completed_path=args.completed_path,
                   job=args.job,
                   init=args.init,
                   gateway_addr=args.gateway_addr or "",
                   namespace=environ.get("NAMESPACE", ""),
                   pod_name=environ.get("POD_NAME", ""),
                   container_name=environ.get("CONTAINER_NAME", DEFAULT_CONTAINER_NAME),
                   environ=dict(environ))

    # lease and token are only persisted when there is an output file
    @property
    def lease_path(self):
        return f"{self.out}.lease" if self.out else None

    @property
    def token_path(self):
        return f"{self.out}.token" if self.out else None

    @property
    def use_kube_status(self):
        return self.job and bool(self.namespace and self.pod_name)
