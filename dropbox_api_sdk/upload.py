"""
Chunked upload pipeline for the Dropbox API SDK.

A file is streamed to the content host through an upload session: one
``start`` call carrying the first chunk, one ``append_v2`` call per further
chunk, and a ``finish`` call that commits the file. Each of those calls is
retried on transport failures and HTTP error responses.

If every attempt of a call fails, the session is abandoned; the service may
already hold bytes from the failed call and discards the session on its own.
"""

import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, BinaryIO, Callable, Dict, Optional, Union

from .config import DEFAULT_CHUNK_SIZE
from .crypto import ContentHasher, hashes_match
from .exceptions import (
    ApiError,
    IntegrityError,
    LocalFileError,
    TransportError,
    UploadSessionError,
    ValidationError,
)
from .models import UploadProgress
from .utils import call_with_retries, is_readable_file

if TYPE_CHECKING:
    from .client import DropboxClient

logger = logging.getLogger(__name__)

START_ENDPOINT = "/2/files/upload_session/start"
APPEND_ENDPOINT = "/2/files/upload_session/append_v2"
FINISH_ENDPOINT = "/2/files/upload_session/finish"

RETRYABLE_ERRORS = (TransportError, ApiError)


@dataclass
class UploadSession:
    """Service-side upload session and the bytes it has accepted so far."""

    session_id: str
    offset: int = 0

    def cursor(self) -> Dict[str, Any]:
        return {"session_id": self.session_id, "offset": self.offset}


def _correct_offset(error: ApiError) -> Optional[int]:
    """``correct_offset`` from an ``incorrect_offset`` lookup error, if present."""
    node = error.details.get("error")
    while isinstance(node, dict):
        tag = node.get(".tag")
        if tag == "incorrect_offset":
            return node.get("correct_offset")
        node = node.get(tag)
    return None


class ChunkedUploader:
    """Uploads large files through Dropbox upload sessions."""

    def __init__(self, client: "DropboxClient"):
        """Initialize with a DropboxClient instance."""
        self.client = client
        self.config = client.config

    def upload(
        self,
        local_file: Union[str, Path],
        path: str = "",
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        progress_callback: Optional[Callable[[UploadProgress], None]] = None,
    ) -> Any:
        """
        Upload ``local_file`` into the folder ``path``.

        Args:
            local_file: Local file to upload
            path: Destination folder; defaults to the configured home directory
            chunk_size: Bytes per request
            progress_callback: Called after the start call and every append

        Returns:
            Decoded metadata of the committed file

        Raises:
            ValidationError: If chunk_size is not positive
            LocalFileError: If the file is missing or cannot be read
            UploadSessionError: If the session cannot be started or drifts
            IntegrityError: If the committed content hash differs
            ApiError, TransportError: When a call fails on every attempt
        """
        if chunk_size <= 0:
            raise ValidationError("Chunk size must be a positive integer", field="chunk_size")
        if not is_readable_file(local_file):
            raise LocalFileError(f"Local file not found: {local_file}", path=str(local_file))
        self.client.tokens.require_access_token()

        filename = os.path.basename(local_file)
        dropbox_path = self.config.destination_path(filename, path)
        total_bytes = os.path.getsize(local_file)
        hasher = ContentHasher()
        started_at = time.time()

        def report(session: UploadSession):
            if progress_callback is None:
                return
            elapsed = time.time() - started_at
            progress_callback(UploadProgress(
                filename=filename,
                total_bytes=total_bytes,
                uploaded_bytes=session.offset,
                percentage=(session.offset / total_bytes) * 100 if total_bytes else 100.0,
                speed_bps=session.offset / elapsed if elapsed > 0 else 0.0,
                session_id=session.session_id,
            ))

        try:
            f = open(local_file, "rb")
        except OSError as e:
            raise LocalFileError(f"Unable to open local file: {e}", path=str(local_file))

        with f:
            first = self._read(f, chunk_size, local_file)
            hasher.update(first)
            session = self._start(first)
            logger.info("Upload session %s started for %s", session.session_id, dropbox_path)
            report(session)

            while True:
                chunk = self._read(f, chunk_size, local_file)
                if not chunk:
                    break
                hasher.update(chunk)
                self._append(session, chunk)

                if f.tell() != session.offset:
                    raise UploadSessionError(
                        f"Upload offset {session.offset} does not match file position {f.tell()}",
                        session_id=session.session_id,
                    )
                report(session)

        metadata = self._finish(session, dropbox_path)
        logger.info("Upload session %s committed %d bytes to %s", session.session_id, session.offset, dropbox_path)

        if self.config.verify_content_hash:
            self._verify_content_hash(metadata, hasher.hexdigest())

        return metadata

    def _read(self, f: BinaryIO, size: int, local_file) -> bytes:
        try:
            return f.read(size)
        except OSError as e:
            raise LocalFileError(f"Unable to read local file: {e}", path=str(local_file))

    def _call(self, phase: str, func: Callable[[], Any]) -> Any:
        def on_retry(attempt: int, error: Exception):
            logger.warning(
                "Upload %s attempt %d failed, retrying in %ss: %s",
                phase, attempt, self.config.chunk_retry_delay, getattr(error, "message", error),
            )

        return call_with_retries(
            func,
            retries=self.config.chunk_retries,
            delay=self.config.chunk_retry_delay,
            exceptions=RETRYABLE_ERRORS,
            on_retry=on_retry,
        )

    def _start(self, chunk: bytes) -> UploadSession:
        data = self._call(
            "start",
            lambda: self.client._content_upload(START_ENDPOINT, {"close": False}, chunk),
        )

        session_id = data.get("session_id") if isinstance(data, dict) else None
        if not session_id:
            raise UploadSessionError("Failed to start upload session")

        return UploadSession(session_id=session_id, offset=len(chunk))

    def _append(self, session: UploadSession, chunk: bytes):
        arg = {"cursor": session.cursor(), "close": False}
        expected_offset = session.offset + len(chunk)

        def attempt():
            try:
                return self.client._content_upload(APPEND_ENDPOINT, arg, chunk)
            except ApiError as e:
                correct = _correct_offset(e)
                if correct is None:
                    raise
                if correct == expected_offset:
                    # An earlier attempt was consumed but its response was lost
                    logger.warning(
                        "Session %s already holds bytes up to %d, continuing",
                        session.session_id, correct,
                    )
                    return None
                raise UploadSessionError(e.message, session_id=session.session_id, details=e.details)

        self._call("append", attempt)
        session.offset = expected_offset

    def _finish(self, session: UploadSession, dropbox_path: str) -> Any:
        arg = {
            "cursor": session.cursor(),
            "commit": self.config.commit_info(dropbox_path),
        }
        return self._call(
            "finish",
            lambda: self.client._content_upload(FINISH_ENDPOINT, arg, b""),
        )

    def _verify_content_hash(self, metadata: Any, local_hash: str):
        remote_hash = metadata.get("content_hash") if isinstance(metadata, dict) else None
        if not remote_hash:
            return
        if not hashes_match(local_hash, remote_hash):
            raise IntegrityError(
                f"Content hash mismatch: local {local_hash}, remote {remote_hash}",
                expected_hash=local_hash,
                actual_hash=remote_hash,
            )
