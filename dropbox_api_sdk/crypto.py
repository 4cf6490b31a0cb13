"""
Cryptographic helpers for the Dropbox API SDK.

This module provides the Dropbox content hash, used to check that a
finished upload matches the local file, and PKCE verifier/challenge
generation for the authorization code flow.
"""

import base64
import hmac
import os
from typing import Tuple

from cryptography.hazmat.primitives import hashes

# Dropbox hashes content in 4MB blocks
CONTENT_HASH_BLOCK_SIZE = 4 * 1024 * 1024


def _sha256(data: bytes) -> bytes:
    digest = hashes.Hash(hashes.SHA256())
    digest.update(data)
    return digest.finalize()


class ContentHasher:
    """
    Incremental Dropbox content hash.

    The file is split into 4MB blocks, each block is hashed with SHA-256,
    and the concatenated block digests are hashed again with SHA-256. Data
    may be fed in pieces of any size.
    """

    def __init__(self):
        self._overall = hashes.Hash(hashes.SHA256())
        self._block = hashes.Hash(hashes.SHA256())
        self._block_pos = 0
        self._digest = None

    def update(self, data: bytes):
        if self._digest is not None:
            raise ValueError("Hasher already finalized")

        view = memoryview(data)
        while len(view) > 0:
            if self._block_pos == CONTENT_HASH_BLOCK_SIZE:
                self._overall.update(self._block.finalize())
                self._block = hashes.Hash(hashes.SHA256())
                self._block_pos = 0

            take = min(len(view), CONTENT_HASH_BLOCK_SIZE - self._block_pos)
            self._block.update(bytes(view[:take]))
            self._block_pos += take
            view = view[take:]

    def hexdigest(self) -> str:
        if self._digest is None:
            if self._block_pos > 0:
                self._overall.update(self._block.finalize())
            self._digest = self._overall.finalize()
        return self._digest.hex()


def content_hash(data: bytes) -> str:
    """Dropbox content hash of an in-memory byte string."""
    hasher = ContentHasher()
    hasher.update(data)
    return hasher.hexdigest()


def hashes_match(expected: str, actual: str) -> bool:
    """Constant-time comparison of two hex digests."""
    return hmac.compare_digest(expected.lower(), actual.lower())


def generate_pkce_pair(length: int = 64) -> Tuple[str, str]:
    """
    Generate a PKCE code verifier and its S256 code challenge.

    Args:
        length: Verifier length, between 43 and 128 characters

    Returns:
        Tuple of (code_verifier, code_challenge)
    """
    if not 43 <= length <= 128:
        raise ValueError("PKCE verifier length must be between 43 and 128")

    verifier = base64.urlsafe_b64encode(os.urandom(96)).decode("ascii").rstrip("=")[:length]
    challenge = base64.urlsafe_b64encode(_sha256(verifier.encode("ascii"))).decode("ascii").rstrip("=")
    return verifier, challenge
