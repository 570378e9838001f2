# -*- coding: utf-8 -*-

class VaultCredsError(Exception):
    """Base Error class."""


class AuthError(VaultCredsError):
    CUSTOM_ERROR_MESSAGE = "Unable to authenticate against {}: {}"

    def __init__(self, login_path, reason):
        super(AuthError, self).__init__(self.CUSTOM_ERROR_MESSAGE.format(login_path, reason))
        self._login_path = login_path

    @property
    def login_path(self):
        return self._login_path


class FetchError(VaultCredsError):
    CUSTOM_ERROR_MESSAGE = "Unable to fetch {} from {}: {}"

    def __init__(self, secret_type, path, reason):
        super(FetchError, self).__init__(self.CUSTOM_ERROR_MESSAGE.format(secret_type,
                                                                          path,
                                                                          reason))
        self._path = path

    @property
    def path(self):
        return self._path


class PersistenceError(VaultCredsError):
    CUSTOM_ERROR_MESSAGE = "Unable to {} {}: {}"

    def __init__(self, action, path, reason):
        super(PersistenceError, self).__init__(self.CUSTOM_ERROR_MESSAGE.format(action,
                                                                                path,
                                                                                reason))
        self._path = path

    @property
    def path(self):
        return self._path


class FatalRenewalError(VaultCredsError):
    """A renewal error no amount of retrying can fix."""

    CUSTOM_ERROR_MESSAGE = "{}"

    def __init__(self, error):
        super(FatalRenewalError, self).__init__(self.CUSTOM_ERROR_MESSAGE.format(error))
        self._error = error

    @property
    def error(self):
        return self._error


class PermissionDenied(FatalRenewalError):
    CUSTOM_ERROR_MESSAGE = "permission denied: {}"


class LeaseNotFound(FatalRenewalError):
    CUSTOM_ERROR_MESSAGE = "lease not found or not renewable: {}"


class SiblingError(VaultCredsError):
    CUSTOM_ERROR_MESSAGE = "Container {} in pod {} terminated with {}"

    def __init__(self, container, pod, reason):
        super(SiblingError, self).__init__(self.CUSTOM_ERROR_MESSAGE.format(container,
                                                                            pod,
                                                                            reason))
        self._container = container
        self._reason = reason

    @property
    def container(self):
        return self._container

    @property
    def reason(self):
        return self._reason


class TransientBackendError(VaultCredsError):
    CUSTOM_ERROR_MESSAGE = "Gave up {} after {:.1f}s: {}"

    def __init__(self, description, elapsed, error):
        super(TransientBackendError, self).__init__(self.CUSTOM_ERROR_MESSAGE.format(description,
                                                                                     elapsed,
                                                                                     error))
        self._error = error

    @property
    def error(self):
        return self._error
