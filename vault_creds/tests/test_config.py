# -*- coding: utf-8 -*-
import logging
import unittest

from vault_creds.cli import build_parser
from vault_creds.config import DEFAULT_CONTAINER_NAME, Config, parse_duration
from vault_creds.secret import SecretType

REQUIRED_ARGS = ["--login-path", "kubernetes/login",
                 "--auth-role", "app",
                 "--secret-path", "database/creds/app",
                 "--template", "/config/db.tmpl"]


def setup_module():
    logging.basicConfig(level=logging.DEBUG)


class TestParseDuration(unittest.TestCase):

    def test_units(self):
        self.assertEqual(parse_duration("15m"), 900)
        self.assertEqual(parse_duration("1h"), 3600)
        self.assertEqual(parse_duration("90s"), 90)
        self.assertEqual(parse_duration("500ms"), 0.5)

    def test_compound(self):
        self.assertEqual(parse_duration("1h30m"), 5400)
        self.assertEqual(parse_duration("2m30s"), 150)

    def test_bare_seconds(self):
        self.assertEqual(parse_duration("90"), 90)
        self.assertEqual(parse_duration(45), 45)

    def test_invalid(self):
        for value in ("", "abc", "15x", "m15", "1h-30m"):
            with self.assertRaises(ValueError, msg=value):
                parse_duration(value)


class TestConfig(unittest.TestCase):

    def parse(self, *extra, environ=None):
        args = build_parser().parse_args(REQUIRED_ARGS + list(extra))
        return Config.from_args(args, environ or {})

    def test_defaults(self):
        config = self.parse(environ={"VAULT_ADDR": "https://vault:8200"})
        self.assertEqual(config.vault_addr, "https://vault:8200")
        self.assertEqual(config.renew_interval, 900)
        self.assertEqual(config.lease_duration, 3600)
        self.assertEqual(config.secret_type, SecretType.CREDENTIALS)
        self.assertEqual(config.container_name, DEFAULT_CONTAINER_NAME)
        self.assertEqual(config.cert_options, {})
        self.assertFalse(config.job)
        self.assertIsNone(config.lease_path)
        self.assertIsNone(config.token_path)

    def test_flag_wins_over_environment(self):
        config = self.parse("--vault-addr", "https://other:8200",
                            environ={"VAULT_ADDR": "https://vault:8200"})
        self.assertEqual(config.vault_addr, "https://other:8200")

    def test_output_paths(self):
        config = self.parse("--out", "/secrets/db.yaml")
        self.assertEqual(config.lease_path, "/secrets/db.yaml.lease")
        self.assertEqual(config.token_path, "/secrets/db.yaml.token")

    def test_certificate_options(self):
        config = self.parse("--secret-type", "certificate",
                            "--common-name", "app.example.com",
                            "--cert-ttl", "24h")
        self.assertEqual(config.secret_type, SecretType.CERTIFICATE)
        self.assertEqual(config.cert_options, {"common_name": "app.example.com", "ttl": "24h"})

    def test_durations(self):
        config = self.parse("--renew-interval", "10m", "--lease-duration", "2h")
        self.assertEqual(config.renew_interval, 600)
        self.assertEqual(config.lease_duration, 7200)

    def test_pod_identity(self):
        environ = {"NAMESPACE": "batch", "POD_NAME": "job-x7k2p", "CONTAINER_NAME": "creds"}
        config = self.parse("--job", environ=environ)
        self.assertTrue(config.use_kube_status)
        self.assertEqual(config.container_name, "creds")
        self.assertEqual(config.environ, environ)

        self.assertFalse(self.parse(environ=environ).use_kube_status)
        self.assertFalse(self.parse("--job", environ={"NAMESPACE": "batch"}).use_kube_status)

    def test_invalid_values(self):
        with self.assertRaises(ValueError):
            self.parse("--renew-interval", "soon")
        with self.assertRaises(ValueError):
            self.parse("--lease-duration", "0")
        with self.assertRaises(ValueError):
            Config(vault_addr="", login_path="kubernetes/login", auth_role="app",
                   secret_path="kv/app", template="/t", secret_type="kv")
