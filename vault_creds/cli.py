# -*- coding: utf-8 -*-
"""Command line entry point: ``vault-creds``."""

import argparse
import json
import logging
import os
import sys

from . import status
from ._version import __version__
from .config import DEFAULT_COMPLETED_PATH, DEFAULT_TOKEN_FILE, Config
from .exceptions import VaultCredsError
from .orchestrator import build
from .secret import SecretType


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record):
        entry = {
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
            "version": __version__,
        }
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def configure_logging(json_log=False, level=logging.INFO):
    handler = logging.StreamHandler(sys.stderr)
    if json_log:
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            f"%(asctime)s %(levelname)s %(name)s [{__version__}] %(message)s"))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="vault-creds",
        description="Fetch a secret from Vault with the pod's service account and keep it renewed")
    parser.add_argument("--vault-addr", help="Vault address, e.g. https://vault:8200")
    parser.add_argument("--ca-cert",
                        help="Path to CA certificate or certificate folder to validate Vault server")
    parser.add_argument("--token-file", default=DEFAULT_TOKEN_FILE,
                        help="Service account token path")
    parser.add_argument("--login-path", required=True,
                        help="Vault path to authenticate against, e.g. kubernetes/login")
    parser.add_argument("--auth-role", required=True, help="Kubernetes authentication role")
    parser.add_argument("--secret-path", required=True,
                        help="Path to secret in Vault, e.g. database/creds/foo")
    parser.add_argument("--secret-type", default=SecretType.CREDENTIALS, choices=SecretType.ALL,
                        help="Kind of secret held at --secret-path")
    parser.add_argument("--common-name", help="Certificate common name")
    parser.add_argument("--cert-ttl", help="Requested certificate ttl, e.g. 24h")
    parser.add_argument("--template", required=True, help="Path to template file")
    parser.add_argument("--out", help="Output file name, stdout when not set")
    parser.add_argument("--renew-interval", default="15m", help="Interval to renew credentials")
    parser.add_argument("--lease-duration", default="1h", help="Credentials lease duration")
    parser.add_argument("--json-log", action="store_true", help="Output log in JSON format")
    parser.add_argument("--completed-path", default=DEFAULT_COMPLETED_PATH,
                        help="Path where a 'completion' file will be dropped")
    parser.add_argument("--job", action="store_true", help="Whether to run in cronjob mode")
    parser.add_argument("--init", action="store_true",
                        help="Write out credentials but do not renew")
    parser.add_argument("--gateway-addr", help="Prometheus push gateway address")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv=None, environ=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if environ is None:
        environ = os.environ

    try:
        config = Config.from_args(args, environ)
    except ValueError as e:
        parser.error(str(e))

    configure_logging(config.json_log)
    logger = logging.getLogger(__name__)
    logger.info(f"started application {__version__}")

    try:
        orchestrator = build(config)
    except VaultCredsError as e:
        logger.error(f"error starting up: {e}")
        return status.SECRET_FATAL
    return orchestrator.run()


if __name__ == "__main__":
    sys.exit(main())
