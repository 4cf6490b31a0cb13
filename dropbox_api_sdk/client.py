"""
Synchronous Dropbox client implementation.

This module provides the main client for the Dropbox HTTP API: OAuth2
token handling, file and folder operations, share links, and chunked
uploads. Operations never raise once the client is constructed; each one
returns a Result, and the message of the most recent failure is also kept
for get_last_error().
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import requests

from .auth import AuthManager, TokenManager
from .config import (
    API_HOST,
    CONTENT_HOST,
    DEFAULT_CHUNK_SIZE,
    SHARE_LINK_VISIBILITIES,
    ClientConfig,
)
from .exceptions import DropboxError, LocalFileError, TransportError, ValidationError
from .models import Result, UploadProgress
from .transport import HttpExecutor, decode_response, raise_for_api_error
from .upload import ChunkedUploader
from .utils import compact_json, is_readable_file

logger = logging.getLogger(__name__)


class DropboxClient:
    """
    Client for the Dropbox HTTP API.

    One instance serves a single caller at a time. Token state and the
    last-error slot are guarded internally, but concurrent operations on the
    same instance are not supported.
    """

    def __init__(self, options: Dict[str, Any]):
        """
        Initialize the Dropbox client.

        Args:
            options: Mapping with ``app_key`` and ``app_secret`` (required),
                optional ``access_token`` / ``refresh_token`` seeds,
                ``auto_refresh``, ``redirect_url``, ``scope``, ``home_dir``,
                upload defaults ``mode`` / ``autorename`` / ``mute``,
                ``chunk_retries`` and ``chunk_retry_delay``, and transport
                settings ``timeout``, ``content_timeout``, ``http_retries``,
                ``refresh_on_unauthorized`` and ``verify_content_hash``

        Raises:
            ConfigurationError: If the options are invalid
        """
        self.config = ClientConfig.from_options(options)
        self.tokens = TokenManager(self.config.access_token, self.config.refresh_token)

        self._api = HttpExecutor(API_HOST, self.config.timeout, self.config.http_retries)
        self._content = HttpExecutor(CONTENT_HOST, self.config.content_timeout)

        self.auth = AuthManager(self.config, self._api, self.tokens)
        self.uploader = ChunkedUploader(self)

        self._error_lock = threading.Lock()
        self._last_error = ""

        if self.config.refresh_token and self.config.auto_refresh:
            self.refresh_access_token()

    # ------------------ Error slot ------------------

    def get_last_error(self) -> str:
        """Message of the most recent failed operation (not cleared on read)."""
        with self._error_lock:
            return self._last_error

    def _fail(self, error: DropboxError) -> Result:
        with self._error_lock:
            self._last_error = error.message
        logger.debug("Operation failed: %s", error)
        return Result.failure(error)

    def _run(self, func: Callable, *args, **kwargs) -> Result:
        try:
            return Result.success(func(*args, **kwargs))
        except DropboxError as e:
            return self._fail(e)

    # ------------------ Tokens ------------------

    @property
    def access_token(self) -> str:
        return self.tokens.access_token

    @property
    def refresh_token(self) -> str:
        return self.tokens.refresh_token

    def get_auth_url(
        self,
        state: str = "",
        extra: Optional[Dict[str, Any]] = None,
        code_challenge: Optional[str] = None,
    ) -> str:
        """Build the authorization URL for the user to visit."""
        return self.auth.get_auth_url(state, extra, code_challenge)

    def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> Result:
        """Exchange an authorization code for an access and refresh token."""
        return self._run(self.auth.exchange_code, code, code_verifier)

    def refresh_access_token(self, refresh_token: Optional[str] = None) -> Result:
        """Refresh the access token, using the stored refresh token by default."""
        return self._run(self.auth.refresh, refresh_token)

    # ------------------ Request layer ------------------

    def _send_authorized(
        self,
        executor: HttpExecutor,
        endpoint: str,
        headers: Dict[str, str],
        data=None,
        stream: bool = False,
    ) -> requests.Response:
        token = self.tokens.require_access_token()
        response = executor.send(
            "POST",
            endpoint,
            headers={**headers, "Authorization": f"Bearer {token}"},
            data=data,
            stream=stream,
        )

        if (
            response.status_code == 401
            and self.config.refresh_on_unauthorized
            and self.tokens.has_refresh_token()
        ):
            logger.info("Access token rejected by %s, refreshing", endpoint)
            self.auth.refresh()
            if hasattr(data, "seek"):
                data.seek(0)
            token = self.tokens.require_access_token()
            response = executor.send(
                "POST",
                endpoint,
                headers={**headers, "Authorization": f"Bearer {token}"},
                data=data,
                stream=stream,
            )

        return response

    def _rpc(self, endpoint: str, arg: Dict[str, Any]) -> Any:
        """JSON-in / JSON-out call against the API host."""
        response = self._send_authorized(
            self._api,
            endpoint,
            {"Content-Type": "application/json"},
            data=json.dumps(arg),
        )
        return decode_response(response)

    def _content_upload(self, endpoint: str, arg: Dict[str, Any], body) -> Any:
        """Binary-in / JSON-out call against the content host."""
        response = self._send_authorized(
            self._content,
            endpoint,
            {
                "Content-Type": "application/octet-stream",
                "Dropbox-API-Arg": compact_json(arg),
            },
            data=body,
        )
        return decode_response(response)

    def _content_download(self, endpoint: str, arg: Dict[str, Any], stream: bool = False) -> requests.Response:
        response = self._send_authorized(
            self._content,
            endpoint,
            {"Dropbox-API-Arg": compact_json(arg)},
            stream=stream,
        )
        raise_for_api_error(response)
        return response

    # ------------------ File operations ------------------

    def create_folder(self, path: str, autorename: bool = False) -> Result:
        """Create a folder at ``path``."""
        return self._run(self._rpc, "/2/files/create_folder_v2", {"path": path, "autorename": autorename})

    def delete(self, path: str) -> Result:
        """Delete the file or folder at ``path``."""
        return self._run(self._rpc, "/2/files/delete_v2", {"path": path})

    def file_info(self, path: str) -> Result:
        """Get metadata for the file or folder at ``path``."""
        return self._run(self._rpc, "/2/files/get_metadata", {"path": path})

    def list_folder(self, path: str = "") -> Result:
        """
        List a folder.

        An empty ``path`` lists the configured home directory; the root is
        sent as the empty string, as the service expects.
        """
        payload = {"path": path if path != "" else self.config.home_dir.rstrip("/")}
        return self._run(self._rpc, "/2/files/list_folder", payload)

    def upload(self, local_file: Union[str, Path], path: str = "") -> Result:
        """
        Upload a file in a single request.

        Args:
            local_file: Local file to upload
            path: Destination folder; defaults to the configured home directory

        Returns:
            Result carrying the uploaded file's metadata
        """
        return self._run(self._upload, local_file, path)

    def _upload(self, local_file: Union[str, Path], path: str) -> Any:
        if not is_readable_file(local_file):
            raise LocalFileError(f"Local file not found or not readable: {local_file}", path=str(local_file))
        self.tokens.require_access_token()

        dropbox_path = self.config.destination_path(os.path.basename(local_file), path)
        logger.debug("Uploading %s to %s", local_file, dropbox_path)

        try:
            with open(local_file, "rb") as f:
                return self._content_upload("/2/files/upload", self.config.commit_info(dropbox_path), f)
        except OSError as e:
            raise LocalFileError(f"Unable to read local file: {e}", path=str(local_file))

    def upload_large_file(
        self,
        local_file: Union[str, Path],
        path: str = "",
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        progress_callback: Optional[Callable[[UploadProgress], None]] = None,
    ) -> Result:
        """
        Upload a file through an upload session, one chunk per request.

        Args:
            local_file: Local file to upload
            path: Destination folder; defaults to the configured home directory
            chunk_size: Bytes sent per request
            progress_callback: Called after every accepted chunk

        Returns:
            Result carrying the committed file's metadata
        """
        return self._run(self.uploader.upload, local_file, path, chunk_size, progress_callback)

    def download(self, path: str) -> Result:
        """Download a file; the Result carries its raw bytes."""
        return self._run(self._download, path)

    def _download(self, path: str) -> bytes:
        response = self._content_download("/2/files/download", {"path": path})
        return response.content

    def download_to_file(self, path: str, local_path: Union[str, Path], chunk_size: int = DEFAULT_CHUNK_SIZE) -> Result:
        """
        Stream a file to disk.

        Args:
            path: Remote file path
            local_path: Local destination; a directory receives the remote name
            chunk_size: Bytes read per iteration

        Returns:
            Result carrying the file metadata from the Dropbox-API-Result header
        """
        return self._run(self._download_to_file, path, local_path, chunk_size)

    def _download_to_file(self, path: str, local_path: Union[str, Path], chunk_size: int) -> Any:
        local_path = Path(local_path)
        if local_path.is_dir():
            local_path = local_path / os.path.basename(path.rstrip("/"))

        response = self._content_download("/2/files/download", {"path": path}, stream=True)
        try:
            with open(local_path, "wb") as f:
                for chunk in response.iter_content(chunk_size=chunk_size):
                    if chunk:
                        f.write(chunk)
        # RequestException subclasses IOError, so it must be caught first
        except requests.exceptions.RequestException as e:
            self._discard_partial(local_path)
            raise TransportError(str(e))
        except OSError as e:
            self._discard_partial(local_path)
            raise LocalFileError(f"Unable to write local file: {e}", path=str(local_path))
        finally:
            response.close()

        try:
            metadata = json.loads(response.headers.get("Dropbox-API-Result") or "{}")
        except ValueError:
            metadata = {}
        metadata["local_path"] = str(local_path)
        return metadata

    @staticmethod
    def _discard_partial(local_path: Path):
        try:
            local_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove partial download %s: %s", local_path, e)

    # ------------------ Share links ------------------

    def create_share_link(self, path: str) -> Result:
        """Create a public shared link for ``path``."""
        payload = {"path": path, "settings": {"requested_visibility": "public"}}
        return self._run(self._rpc, "/2/sharing/create_shared_link_with_settings", payload)

    def get_share_link(self, path: str) -> Result:
        """List the shared links of ``path``."""
        return self._run(self._rpc, "/2/sharing/list_shared_links", {"path": path})

    def delete_share_link(self, url: str) -> Result:
        """Revoke a shared link."""
        return self._run(self._rpc, "/2/sharing/revoke_shared_link", {"url": url})

    def get_file_from_url(self, url: str) -> Result:
        """Get the metadata of the file or folder behind a shared link."""
        return self._run(self._rpc, "/2/sharing/get_shared_link_metadata", {"url": url})

    def update_share_link_settings(
        self,
        url: str,
        visibility: str = "public",
        password: Optional[str] = None,
        expires: Optional[str] = None,
        remove_expire: bool = False,
    ) -> Result:
        """
        Change the settings of a shared link.

        Args:
            url: Shared link URL
            visibility: One of public, team_only, password, members, disabled
            password: Required when visibility is "password"
            expires: Expiry as ISO 8601 UTC (e.g. 2030-01-01T00:00:00Z),
                forwarded verbatim
            remove_expire: Remove the existing expiry; takes precedence
                over ``expires``

        Returns:
            Result carrying the updated link metadata
        """
        return self._run(self._update_share_link_settings, url, visibility, password, expires, remove_expire)

    def _update_share_link_settings(
        self,
        url: str,
        visibility: str,
        password: Optional[str],
        expires: Optional[str],
        remove_expire: bool,
    ) -> Any:
        self.tokens.require_access_token()

        if visibility not in SHARE_LINK_VISIBILITIES:
            raise ValidationError(f"Invalid visibility: {visibility}", field="visibility")

        settings: Dict[str, Any] = {"requested_visibility": visibility}

        if visibility == "password":
            if not password:
                raise ValidationError("Password is required for visibility 'password'.", field="password")
            settings["password"] = password

        if remove_expire:
            settings["expires"] = None
        elif expires:
            settings["expires"] = expires

        return self._rpc("/2/sharing/modify_shared_link_settings", {"url": url, "settings": settings})

    # ------------------ Lifecycle ------------------

    def close(self):
        """Release both HTTP sessions."""
        self._api.close()
        self._content.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
