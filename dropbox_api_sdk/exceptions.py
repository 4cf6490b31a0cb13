"""
Custom exceptions for the Dropbox API SDK.

This module defines the exception classes used throughout the SDK.
Operations on DropboxClient never raise them to the caller once the client
is constructed; they travel inside a Result instead. The request layer and
the upload pipeline raise them internally.
"""

from typing import Optional


class DropboxError(Exception):
    """Base exception for all Dropbox API SDK errors."""

    def __init__(self, message: str, error_code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self):
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message


class ConfigurationError(DropboxError):
    """Raised when client configuration is invalid."""

    def __init__(self, message: str = "Invalid configuration", config_key: str = None, **kwargs):
        super().__init__(message, error_code="CONFIG_ERROR", **kwargs)
        self.config_key = config_key


class AuthenticationError(DropboxError):
    """Raised when no usable access token is held or the token endpoint fails."""

    def __init__(self, message: str = "Authentication failed", **kwargs):
        super().__init__(message, error_code="AUTH_ERROR", **kwargs)


class ValidationError(DropboxError):
    """Raised when input validation fails before any request is sent."""

    def __init__(self, message: str = "Validation failed", field: str = None, **kwargs):
        super().__init__(message, error_code="VALIDATION_ERROR", **kwargs)
        self.field = field


class LocalFileError(DropboxError):
    """Raised when a local file is missing, unreadable, or fails mid-read."""

    def __init__(self, message: str = "Local file error", path: str = None, **kwargs):
        super().__init__(message, error_code="LOCAL_FILE_ERROR", **kwargs)
        self.path = path


class TransportError(DropboxError):
    """Raised when the HTTP transport fails without producing a response."""

    def __init__(self, message: str = "Network operation failed", **kwargs):
        super().__init__(message, error_code="TRANSPORT_ERROR", **kwargs)


class ApiError(DropboxError):
    """
    Raised when the service answers with a non-2xx status.

    The message is the response body verbatim, which for Dropbox is a JSON
    error document the caller may want to inspect.
    """

    def __init__(self, message: str = "Service error", status_code: int = None, **kwargs):
        kwargs.setdefault("error_code", "API_ERROR")
        super().__init__(message, **kwargs)
        self.status_code = status_code

    @property
    def error_summary(self) -> Optional[str]:
        """The service's ``error_summary`` field, when the body carries one."""
        return self.details.get("error_summary")

    @property
    def error_tag(self) -> Optional[str]:
        """Innermost ``.tag`` of the service's ``error`` union, if any."""
        error = self.details.get("error")
        tag = None
        while isinstance(error, dict) and ".tag" in error:
            tag = error[".tag"]
            error = error.get(tag)
        return tag


class RateLimitError(ApiError):
    """Raised when the service throttles the request (HTTP 429)."""

    def __init__(self, message: str = "Rate limit exceeded", retry_after: int = None, **kwargs):
        super().__init__(message, status_code=429, error_code="RATE_LIMIT", **kwargs)
        self.retry_after = retry_after


class UploadSessionError(DropboxError):
    """Raised when an upload session cannot be started or continued."""

    def __init__(self, message: str = "Upload session failed", session_id: str = None, **kwargs):
        super().__init__(message, error_code="UPLOAD_SESSION_ERROR", **kwargs)
        self.session_id = session_id


class IntegrityError(DropboxError):
    """Raised when an uploaded file's content hash does not match the local one."""

    def __init__(self, message: str = "File integrity check failed", expected_hash: str = None, actual_hash: str = None, **kwargs):
        super().__init__(message, error_code="INTEGRITY_ERROR", **kwargs)
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
