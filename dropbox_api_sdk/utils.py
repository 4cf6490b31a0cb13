"""
Utility functions for the Dropbox API SDK.

This module provides path helpers, file reading helpers, the retry loop
used by chunked uploads, and size formatting for the CLI.
"""

import json
import math
import os
import re
import time
from pathlib import Path
from typing import Any, Callable, Optional, Tuple, Type, Union


def normalize_dir(path: str) -> str:
    """
    Normalize a remote directory path.

    Args:
        path: Directory path, with or without surrounding slashes

    Returns:
        "/" for the root, otherwise the path with exactly one leading
        and one trailing slash
    """
    stripped = path.strip("/")
    if not stripped:
        return "/"
    return "/" + stripped + "/"


def is_readable_file(file_path: Union[str, Path]) -> bool:
    """Check that a local path is an existing, readable regular file."""
    path = Path(file_path)
    return path.is_file() and os.access(path, os.R_OK)


def compact_json(value: Any) -> str:
    """Encode a value as compact JSON, as expected in the Dropbox-API-Arg header."""
    return json.dumps(value, separators=(",", ":"))


def call_with_retries(
    func: Callable[[], Any],
    retries: int = 3,
    delay: float = 1.0,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
):
    """
    Call ``func`` with a bounded number of re-attempts.

    The function is tried once, then up to ``retries`` more times while it
    raises one of ``exceptions``, sleeping ``delay`` seconds between tries.
    Any other exception propagates immediately.

    Args:
        func: Function to call
        retries: Number of re-attempts after the first try
        delay: Fixed delay between attempts, in seconds
        exceptions: Exceptions that make an attempt retryable
        on_retry: Called with (attempt number, exception) before each sleep

    Returns:
        Function result

    Raises:
        Last exception if every attempt fails
    """
    last_exception = None

    for attempt in range(retries + 1):
        try:
            return func()
        except exceptions as e:
            last_exception = e

            if attempt < retries:
                if on_retry:
                    on_retry(attempt + 1, e)
                time.sleep(delay)

    raise last_exception


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB")
    """
    if size_bytes == 0:
        return "0 B"

    size_names = ["B", "KB", "MB", "GB", "TB", "PB"]
    i = int(math.floor(math.log(size_bytes, 1024)))

    if i >= len(size_names):
        i = len(size_names) - 1

    p = math.pow(1024, i)
    size = round(size_bytes / p, 2)

    return f"{size} {size_names[i]}"


def parse_file_size(size_str: str) -> int:
    """
    Parse human-readable file size to bytes.

    Args:
        size_str: Size string (e.g., "8MB", "512 KB", "4194304")

    Returns:
        Size in bytes
    """
    size_str = size_str.strip().upper()

    match = re.match(r'^(\d+(?:\.\d+)?)\s*([KMGT]?)(?:I?B)?$', size_str)
    if not match:
        raise ValueError(f"Invalid size format: {size_str}")

    number, unit = match.groups()
    multipliers = {
        '': 1,
        'K': 1024,
        'M': 1024 ** 2,
        'G': 1024 ** 3,
        'T': 1024 ** 4,
    }

    return int(float(number) * multipliers[unit])
