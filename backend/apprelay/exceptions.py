"""
Error taxonomy shared by repositories, services and routers.

Every error carries a stable ``code`` and the HTTP status it maps to at the
request boundary. Storage and settings failures expose only a generic
``public_message``; the detailed message stays in the server logs.
"""
from typing import Optional


class AppRelayError(Exception):
    code = "error"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    @property
    def public_message(self) -> str:
        return self.message


class ValidationError(AppRelayError):
    code = "validation_error"
    status_code = 400


class FileTooLargeError(ValidationError):
    code = "file_too_large"
    status_code = 413


class NotFoundError(AppRelayError):
    code = "not_found"
    status_code = 404


class ConflictError(AppRelayError):
    code = "conflict"
    status_code = 409


class FeatureDisabledError(AppRelayError):
    code = "feature_disabled"
    status_code = 403


class StorageError(AppRelayError):
    code = "storage_error"
    status_code = 500

    @property
    def public_message(self) -> str:
        return "File storage operation failed"


class SettingsUnavailableError(AppRelayError):
    code = "settings_unavailable"
    status_code = 500

    @property
    def public_message(self) -> str:
        return "Failed to retrieve application settings"
