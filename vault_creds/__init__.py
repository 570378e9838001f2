# -*- coding: utf-8 -*-
"""vault_creds

A Kubernetes sidecar that trades the pod's service account token for Vault
credentials or a certificate, writes them out, and keeps session and lease
renewed until the workload finishes.

"""

from vault_creds.auth import AuthClient, AuthSession, FileAuthClientFactory, \
    KubernetesAuthClientFactory
from vault_creds.config import Config, parse_duration
from vault_creds.exceptions import VaultCredsError, \
    AuthError, \
    FetchError, \
    PersistenceError, \
    FatalRenewalError, \
    PermissionDenied, \
    LeaseNotFound, \
    SiblingError, \
    TransientBackendError
from vault_creds.manager import LeaseManager
from vault_creds.orchestrator import Orchestrator
from vault_creds.providers import VaultSecretsProvider, FileSecretsProvider
from vault_creds.retry import RetryPolicy, classify_error
from vault_creds.secret import Secret, SecretType, Credentials, Certificate
from vault_creds.watchers import KubeStatusWatcher, CompletionFileWatcher
from ._version import __version__

__all__ = ["__version__",
           "AuthClient",
           "AuthSession",
           "FileAuthClientFactory",
           "KubernetesAuthClientFactory",
           "Config",
           "parse_duration",
           "VaultCredsError",
           "AuthError",
           "FetchError",
           "PersistenceError",
           "FatalRenewalError",
           "PermissionDenied",
           "LeaseNotFound",
           "SiblingError",
           "TransientBackendError",
           "LeaseManager",
           "Orchestrator",
           "VaultSecretsProvider",
           "FileSecretsProvider",
           "RetryPolicy",
           "classify_error",
           "Secret",
           "SecretType",
           "Credentials",
           "Certificate",
           "KubeStatusWatcher",
           "CompletionFileWatcher"]
