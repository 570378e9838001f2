# -*- coding: utf-8 -*-
import json
import logging
import sys
import unittest
from unittest import mock

from vault_creds import __version__
from vault_creds.cli import JsonLogFormatter, configure_logging, main
from vault_creds.exceptions import AuthError, FetchError

ARGV = ["--vault-addr", "https://vault:8200",
        "--login-path", "kubernetes/login",
        "--auth-role", "app",
        "--secret-path", "database/creds/app",
        "--template", "/config/db.tmpl"]


def setup_module():
    logging.basicConfig(level=logging.DEBUG)


@mock.patch("vault_creds.cli.configure_logging")
class TestMain(unittest.TestCase):

    @mock.patch("vault_creds.cli.build")
    def test_runs_orchestrator(self, build, configure):
        build.return_value.run.return_value = 2

        self.assertEqual(main(ARGV + ["--json-log"], environ={}), 2)

        configure.assert_called_once_with(True)
        config = build.call_args[0][0]
        self.assertEqual(config.vault_addr, "https://vault:8200")
        self.assertEqual(config.secret_path, "database/creds/app")

    @mock.patch("vault_creds.cli.build")
    def test_startup_failure(self, build, configure):
        build.side_effect = AuthError("kubernetes/login", "permission denied")
        with self.assertLogs("vault_creds.cli", level="ERROR"):
            self.assertEqual(main(ARGV, environ={}), 1)

    @mock.patch("vault_creds.cli.build")
    def test_fetch_failure(self, build, configure):
        build.side_effect = FetchError("credentials", "database/creds/app", "permission denied")
        with self.assertLogs("vault_creds.cli", level="ERROR"):
            self.assertEqual(main(ARGV, environ={}), 1)

    @mock.patch("vault_creds.cli.build")
    def test_invalid_duration(self, build, configure):
        with mock.patch("sys.stderr"):
            with self.assertRaises(SystemExit) as ctx:
                main(ARGV + ["--renew-interval", "soon"], environ={})
        self.assertEqual(ctx.exception.code, 2)
        build.assert_not_called()


class TestLogging(unittest.TestCase):

    def test_json_formatter(self):
        record = logging.LogRecord("vault_creds.manager", logging.INFO, __file__, 1,
                                   "renewed lease %s", ("database/creds/app/1",), None)
        entry = json.loads(JsonLogFormatter().format(record))
        self.assertEqual(entry["level"], "info")
        self.assertEqual(entry["logger"], "vault_creds.manager")
        self.assertEqual(entry["msg"], "renewed lease database/creds/app/1")
        self.assertEqual(entry["version"], __version__)
        self.assertNotIn("error", entry)

    def test_json_formatter_with_exception(self):
        try:
            raise ConnectionError("connection refused")
        except ConnectionError:
            record = logging.LogRecord("vault_creds.manager", logging.ERROR, __file__, 1,
                                       "unexpected error", None, sys.exc_info())
        entry = json.loads(JsonLogFormatter().format(record))
        self.assertIn("connection refused", entry["error"])

    def test_configure_logging(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        self.addCleanup(root.setLevel, level)
        self.addCleanup(root.handlers.__setitem__, slice(None), handlers)

        configure_logging(json_log=True, level=logging.WARNING)

        self.assertEqual(len(root.handlers), 1)
        self.assertIsInstance(root.handlers[0].formatter, JsonLogFormatter)
        self.assertEqual(root.level, logging.WARNING)
