# -*- coding: utf-8 -*-
import logging
import os
import shutil
import tempfile
import unittest
from unittest import mock

import yaml
from hvac import exceptions as vault_exceptions

from vault_creds.auth import (AuthClient,
                              AuthSession,
                              FileAuthClientFactory,
                              KubernetesAuthClientFactory)
from vault_creds.exceptions import AuthError

LOGIN_RESPONSE = {
    "request_id": "9a0e",
    "lease_id": "",
    "renewable": False,
    "lease_duration": 0,
    "auth": {
        "client_token": "s.62gfbWIrr8e1EJzBhK5q5ZEt",
        "accessor": "iF2qW7ntgEcz4YOvHqvkwCzq",
        "policies": ["default", "app-db"],
        "lease_duration": 3600,
        "renewable": True,
    },
}


def setup_module():
    logging.basicConfig(level=logging.DEBUG)


class TestKubernetesAuthClientFactory(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.token_file = os.path.join(self.tmpdir, "token")
        with open(self.token_file, "w", encoding="utf-8") as fh:
            fh.write("eyJhbGciOiJSUzI1NiJ9.service-account\n")
        patcher = mock.patch("vault_creds.auth.create_vault_client")
        self.create_client = patcher.start()
        self.addCleanup(patcher.stop)
        self.client = self.create_client.return_value

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def factory(self):
        return KubernetesAuthClientFactory("https://vault:8200",
                                           self.token_file,
                                           "/kubernetes/login",
                                           "app",
                                           ca_cert="/etc/ssl/vault-ca.pem")

    def test_login(self):
        self.client.login.return_value = LOGIN_RESPONSE

        auth = self.factory().create()

        self.create_client.assert_called_once_with("https://vault:8200", "/etc/ssl/vault-ca.pem")
        self.client.login.assert_called_once_with(
            "/v1/auth/kubernetes/login",
            json={"jwt": "eyJhbGciOiJSUzI1NiJ9.service-account", "role": "app"})
        self.assertEqual(auth.token, "s.62gfbWIrr8e1EJzBhK5q5ZEt")
        self.assertEqual(auth.session.policies, ["default", "app-db"])
        self.assertEqual(auth.session.lease_duration, 3600)
        self.assertEqual(self.client.token, "s.62gfbWIrr8e1EJzBhK5q5ZEt")

    def test_missing_service_account_token(self):
        os.remove(self.token_file)
        with self.assertRaises(AuthError):
            self.factory().create()
        self.client.login.assert_not_called()

    def test_login_rejected(self):
        self.client.login.side_effect = vault_exceptions.Forbidden("permission denied")
        with self.assertRaises(AuthError):
            self.factory().create()

    def test_login_without_auth_block(self):
        self.client.login.return_value = {"data": {}}
        with self.assertRaises(AuthError):
            self.factory().create()


class TestFileAuthClientFactory(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.path = os.path.join(self.tmpdir, "out.token")

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_save_then_restore(self):
        session = AuthSession.from_auth(LOGIN_RESPONSE["auth"])
        AuthClient(mock.MagicMock(), session).save(self.path)

        with mock.patch("vault_creds.auth.create_vault_client") as create_client:
            auth = FileAuthClientFactory("https://vault:8200", self.path).create()

        create_client.return_value.login.assert_not_called()
        self.assertEqual(auth.token, "s.62gfbWIrr8e1EJzBhK5q5ZEt")
        self.assertEqual(auth.client.token, "s.62gfbWIrr8e1EJzBhK5q5ZEt")
        self.assertEqual(auth.session, session)

    def test_token_file_is_private(self):
        AuthClient(mock.MagicMock(), AuthSession("s.token")).save(self.path)
        self.assertEqual(os.stat(self.path).st_mode & 0o777, 0o600)
        with open(self.path, "r", encoding="utf-8") as fh:
            self.assertEqual(yaml.safe_load(fh)["client_token"], "s.token")

    def test_missing_file(self):
        with self.assertRaises(AuthError):
            FileAuthClientFactory("https://vault:8200", self.path).create()

    def test_malformed_file(self):
        with open(self.path, "w", encoding="utf-8") as fh:
            fh.write("- just\n- a list\n")
        with self.assertRaises(AuthError):
            FileAuthClientFactory("https://vault:8200", self.path).create()


class TestAuthClient(unittest.TestCase):

    def test_renew_self_updates_session(self):
        client = mock.MagicMock()
        client.auth.token.renew_self.return_value = {
            "auth": {"client_token": "s.token", "lease_duration": 1800, "renewable": True}}
        auth = AuthClient(client, AuthSession("s.token", lease_duration=60))

        auth.renew_self(1800)

        client.auth.token.renew_self.assert_called_once_with(increment=1800)
        self.assertEqual(auth.session.lease_duration, 1800)

    def test_revoke_self_never_raises(self):
        client = mock.MagicMock()
        client.auth.token.revoke_self.side_effect = vault_exceptions.Forbidden("permission denied")
        auth = AuthClient(client, AuthSession("s.token"))

        with self.assertLogs("vault_creds.auth", level="ERROR"):
            self.assertFalse(auth.revoke_self())

    def test_revoke_self(self):
        client = mock.MagicMock()
        self.assertTrue(AuthClient(client, AuthSession("s.token")).revoke_self())
        client.auth.token.revoke_self.assert_called_once_with()
