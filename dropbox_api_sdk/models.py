"""
Data models for the Dropbox API SDK.

This module defines the Result returned by every client operation and
typed views over the service's metadata documents.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Generic, Optional, TypeVar

from .exceptions import DropboxError

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    """
    Outcome of a client operation: either a value or an error.

    A Result is truthy when the operation succeeded. The error is an
    exception instance that was caught, not raised; ``unwrap`` raises it.
    """

    value: Optional[T] = None
    error: Optional[DropboxError] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: DropboxError) -> "Result[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_message(self) -> Optional[str]:
        """Message recorded for a failed operation."""
        return self.error.message if self.error is not None else None

    def unwrap(self) -> T:
        """Return the value, or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value

    def __bool__(self) -> bool:
        return self.ok


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass
class FileMetadata:
    """Metadata of a file or folder stored in Dropbox."""

    name: str
    tag: str  # "file", "folder" or "deleted"
    path_display: Optional[str] = None
    path_lower: Optional[str] = None
    id: Optional[str] = None
    size: int = 0
    rev: Optional[str] = None
    content_hash: Optional[str] = None
    client_modified: Optional[datetime] = None
    server_modified: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileMetadata":
        """
        Create FileMetadata from an API response dictionary.

        Accepts both bare metadata and the ``{"metadata": {...}}`` wrapper
        returned by the ``*_v2`` endpoints.
        """
        if "metadata" in data and isinstance(data["metadata"], dict):
            data = data["metadata"]

        return cls(
            name=data["name"],
            tag=data.get(".tag", "file"),
            path_display=data.get("path_display"),
            path_lower=data.get("path_lower"),
            id=data.get("id"),
            size=data.get("size", 0),
            rev=data.get("rev"),
            content_hash=data.get("content_hash"),
            client_modified=_parse_datetime(data.get("client_modified")),
            server_modified=_parse_datetime(data.get("server_modified")),
        )

    @property
    def is_folder(self) -> bool:
        return self.tag == "folder"


@dataclass
class SharedLink:
    """A shared link and its effective settings."""

    url: str
    name: Optional[str] = None
    path_lower: Optional[str] = None
    visibility: Optional[str] = None
    expires: Optional[datetime] = None
    tag: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SharedLink":
        """Create SharedLink from an API response dictionary."""
        visibility = None
        permissions = data.get("link_permissions") or {}
        resolved = permissions.get("resolved_visibility") or permissions.get("effective_audience")
        if isinstance(resolved, dict):
            visibility = resolved.get(".tag")

        return cls(
            url=data["url"],
            name=data.get("name"),
            path_lower=data.get("path_lower"),
            visibility=visibility,
            expires=_parse_datetime(data.get("expires")),
            tag=data.get(".tag"),
        )

    @property
    def is_expired(self) -> bool:
        """Check if the shared link has expired."""
        if self.expires is None:
            return False
        return datetime.now(self.expires.tzinfo) > self.expires


@dataclass
class UploadProgress:
    """Progress information for chunked uploads."""

    filename: str
    total_bytes: int
    uploaded_bytes: int
    percentage: float
    speed_bps: float  # Bytes per second
    session_id: Optional[str] = None

    @property
    def speed_mbps(self) -> float:
        """Upload speed in MB/s."""
        return self.speed_bps / (1024 * 1024)
