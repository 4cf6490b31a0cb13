"""
Dropbox API SDK - Python client for the Dropbox HTTP API.

This package provides:
- OAuth2 authorization code flow with refresh-token rotation and PKCE
- Folder, file and metadata operations
- Single-request and resumable chunked uploads with per-chunk retries
- Shared link creation, lookup, revocation and settings updates
- A small CLI built on the client
"""

import logging

__version__ = "1.0.0"

from .client import DropboxClient
from .config import ClientConfig
from .models import (
    Result,
    FileMetadata,
    SharedLink,
    UploadProgress,
)
from .exceptions import (
    DropboxError,
    ConfigurationError,
    AuthenticationError,
    ValidationError,
    LocalFileError,
    TransportError,
    ApiError,
    RateLimitError,
    UploadSessionError,
    IntegrityError,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Main client
    "DropboxClient",
    "ClientConfig",

    # Data models
    "Result",
    "FileMetadata",
    "SharedLink",
    "UploadProgress",

    # Exceptions
    "DropboxError",
    "ConfigurationError",
    "AuthenticationError",
    "ValidationError",
    "LocalFileError",
    "TransportError",
    "ApiError",
    "RateLimitError",
    "UploadSessionError",
    "IntegrityError",
]
