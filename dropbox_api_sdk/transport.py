"""HTTP executor for the Dropbox API and content hosts."""

import json
import logging
from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from . import __version__
from .exceptions import ApiError, RateLimitError, TransportError

logger = logging.getLogger(__name__)

USER_AGENT = f"dropbox-api-sdk-python/{__version__}"


class HttpExecutor:
    """
    Long-lived HTTPS session bound to one base URL.

    Connection reuse comes from the underlying requests.Session. Responses
    are returned for every status code; only failures that produce no
    response at all are raised, as TransportError.
    """

    def __init__(self, base_url: str, timeout: int, max_retries: int = 0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        self.session = requests.Session()
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=None,
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("https://", adapter)
        self.session.headers.update({"User-Agent": USER_AGENT})

    def send(
        self,
        method: str,
        path: str,
        headers: Optional[dict] = None,
        data=None,
        stream: bool = False,
        **kwargs,
    ) -> requests.Response:
        """Send a request to ``path`` relative to the base URL."""
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method=method,
                url=url,
                headers=headers,
                data=data,
                timeout=self.timeout,
                stream=stream,
                **kwargs,
            )
        except requests.exceptions.RequestException as e:
            logger.debug("%s %s failed: %s", method, url, e)
            raise TransportError(str(e))

        logger.debug("%s %s -> %s", method, url, response.status_code)
        return response

    def close(self):
        self.session.close()


def _json_or_none(body: str):
    try:
        return json.loads(body)
    except ValueError:
        return None


def raise_for_api_error(response: requests.Response):
    """
    Raise ApiError for a non-2xx response.

    The error message is the response body verbatim; a JSON body is also
    decoded into the error's details.
    """
    if 200 <= response.status_code < 300:
        return

    body = response.text
    parsed = _json_or_none(body)
    details = parsed if isinstance(parsed, dict) else {}

    if response.status_code == 429:
        retry_after = response.headers.get("Retry-After")
        raise RateLimitError(
            body,
            retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            details=details,
        )
    raise ApiError(body, status_code=response.status_code, details=details)


def decode_response(response: requests.Response, allow_raw: bool = True) -> Any:
    """
    Decode a JSON response from the service.

    Args:
        response: Response returned by HttpExecutor.send
        allow_raw: Wrap a non-JSON 2xx body as ``{"raw": body}`` instead of
            treating it as an error

    Returns:
        Decoded JSON value

    Raises:
        ApiError: If the status is not 2xx, or the body is not JSON and
            ``allow_raw`` is false
    """
    raise_for_api_error(response)

    body = response.text
    try:
        return json.loads(body)
    except ValueError:
        if allow_raw:
            return {"raw": body}
        raise ApiError(body or "Malformed JSON response", status_code=response.status_code)
