"""
Client configuration for the Dropbox API SDK.

A ClientConfig is built once from the options mapping handed to
DropboxClient and is immutable afterwards.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

from .exceptions import ConfigurationError
from .utils import normalize_dir

AUTHORIZE_URL = "https://www.dropbox.com/oauth2/authorize"
API_HOST = "https://api.dropboxapi.com"
CONTENT_HOST = "https://content.dropboxapi.com"
TOKEN_ENDPOINT = "/oauth2/token"

DEFAULT_SCOPE = (
    "files.metadata.write files.content.write files.content.read "
    "sharing.write file_requests.write"
)
DEFAULT_CHUNK_SIZE = 8 * 1024 * 1024  # 8MB chunks
DEFAULT_API_TIMEOUT = 60
DEFAULT_CONTENT_TIMEOUT = 120

SHARE_LINK_VISIBILITIES = ("public", "team_only", "password", "members", "disabled")


def _int_option(options: Mapping, key: str, default: int, minimum: int) -> int:
    value = options.get(key)
    if value is None:
        return default
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Option '{key}' must be an integer", config_key=key)
    if value < minimum:
        raise ConfigurationError(f"Option '{key}' must be >= {minimum}", config_key=key)
    return value


@dataclass(frozen=True)
class ClientConfig:
    """Immutable settings for a DropboxClient."""

    app_key: str
    app_secret: str
    redirect_url: str = ""
    scope: str = DEFAULT_SCOPE
    home_dir: str = "/"
    access_token: str = ""
    refresh_token: str = ""
    auto_refresh: bool = False
    chunk_retries: int = 3
    chunk_retry_delay: int = 1
    mode: str = "overwrite"
    autorename: bool = False
    mute: bool = True
    timeout: int = DEFAULT_API_TIMEOUT
    content_timeout: int = DEFAULT_CONTENT_TIMEOUT
    http_retries: int = 0
    refresh_on_unauthorized: bool = False
    verify_content_hash: bool = True

    @classmethod
    def from_options(cls, options: Any) -> "ClientConfig":
        """
        Validate an options mapping and build a config from it.

        Args:
            options: Mapping of option names to values

        Returns:
            ClientConfig instance

        Raises:
            ConfigurationError: If options is not a mapping, credentials are
                missing, or a numeric option is out of range
        """
        if not isinstance(options, Mapping):
            raise ConfigurationError("Options must be a mapping")

        if not options.get("app_key") or not options.get("app_secret"):
            raise ConfigurationError("App key and app secret are required")

        return cls(
            app_key=options["app_key"],
            app_secret=options["app_secret"],
            redirect_url=options.get("redirect_url") or "",
            scope=options.get("scope") or DEFAULT_SCOPE,
            home_dir=normalize_dir(options.get("home_dir") or "/"),
            access_token=options.get("access_token") or "",
            refresh_token=options.get("refresh_token") or "",
            auto_refresh=options.get("auto_refresh") is True,
            chunk_retries=_int_option(options, "chunk_retries", 3, 0),
            chunk_retry_delay=_int_option(options, "chunk_retry_delay", 1, 0),
            mode=options.get("mode") or "overwrite",
            autorename=bool(options.get("autorename", False)),
            mute=bool(options.get("mute", True)),
            timeout=_int_option(options, "timeout", DEFAULT_API_TIMEOUT, 1),
            content_timeout=_int_option(options, "content_timeout", DEFAULT_CONTENT_TIMEOUT, 1),
            http_retries=_int_option(options, "http_retries", 0, 0),
            refresh_on_unauthorized=bool(options.get("refresh_on_unauthorized", False)),
            verify_content_hash=bool(options.get("verify_content_hash", True)),
        )

    def commit_info(self, path: str) -> dict:
        """Upload policy forwarded with every upload to ``path``."""
        return {
            "path": path,
            "mode": self.mode,
            "autorename": self.autorename,
            "mute": self.mute,
        }

    def destination_path(self, local_name: str, dest_dir: Optional[str] = None) -> str:
        """Remote path for a local file uploaded into ``dest_dir`` (or home_dir)."""
        directory = normalize_dir(dest_dir) if dest_dir else self.home_dir
        return directory.rstrip("/") + "/" + local_name
