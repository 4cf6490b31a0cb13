"""
Authentication management for the Dropbox API SDK.

This module handles the OAuth2 authorization code flow: building the
authorization URL, exchanging codes for tokens, refreshing access tokens,
and holding the current token pair.
"""

import logging
import threading
from typing import Any, Dict, Optional
from urllib.parse import quote, urlencode

from .config import AUTHORIZE_URL, TOKEN_ENDPOINT, ClientConfig
from .exceptions import AuthenticationError
from .transport import HttpExecutor, decode_response

logger = logging.getLogger(__name__)

NO_ACCESS_TOKEN = "No access token available"


class TokenManager:
    """
    Holds the current access token and refresh token.

    Tokens only change through ``update_from_response``: a field present and
    non-empty in a token response replaces the stored value, a missing or
    empty field leaves it alone. Reads and updates are serialized by a lock.
    """

    def __init__(self, access_token: str = "", refresh_token: str = ""):
        self._lock = threading.Lock()
        self._access_token = access_token or ""
        self._refresh_token = refresh_token or ""

    @property
    def access_token(self) -> str:
        with self._lock:
            return self._access_token

    @property
    def refresh_token(self) -> str:
        with self._lock:
            return self._refresh_token

    def update_from_response(self, data: Any):
        """Apply the tokens carried by a token endpoint response."""
        if not isinstance(data, dict):
            return
        with self._lock:
            if data.get("access_token"):
                self._access_token = data["access_token"]
            if data.get("refresh_token"):
                self._refresh_token = data["refresh_token"]

    def require_access_token(self) -> str:
        """
        Return the access token, or fail when none is held.

        Raises:
            AuthenticationError: If no access token is available
        """
        token = self.access_token
        if not token:
            raise AuthenticationError(NO_ACCESS_TOKEN)
        return token

    def has_refresh_token(self) -> bool:
        return bool(self.refresh_token)


class AuthManager:
    """
    Runs the OAuth2 flows against the Dropbox token endpoint.

    Token requests use HTTP Basic authentication with the app key and
    secret and a form-encoded body. Successful responses update the
    TokenManager and are returned as decoded JSON.
    """

    def __init__(self, config: ClientConfig, executor: HttpExecutor, tokens: TokenManager):
        """
        Initialize authentication manager.

        Args:
            config: Client configuration carrying app credentials
            executor: Executor bound to the API host
            tokens: Token holder shared with the request layer
        """
        self.config = config
        self.executor = executor
        self.tokens = tokens

    def get_auth_url(
        self,
        state: str = "",
        extra: Optional[Dict[str, Any]] = None,
        code_challenge: Optional[str] = None,
    ) -> str:
        """
        Build the URL the user visits to grant access.

        Args:
            state: Opaque value echoed back to the redirect URL
            extra: Additional query parameters
            code_challenge: PKCE S256 challenge, if the PKCE flow is used

        Returns:
            Authorization URL with every parameter percent-encoded
        """
        params = {
            "client_id": self.config.app_key,
            "response_type": "code",
            "token_access_type": "offline",
            "scope": self.config.scope,
        }
        if self.config.redirect_url:
            params["redirect_uri"] = self.config.redirect_url
        if state:
            params["state"] = state
        if code_challenge:
            params["code_challenge"] = code_challenge
            params["code_challenge_method"] = "S256"
        for key, value in (extra or {}).items():
            params[str(key)] = str(value)

        return f"{AUTHORIZE_URL}?{urlencode(params, quote_via=quote)}"

    def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> Any:
        """
        Exchange an authorization code for tokens.

        Args:
            code: Authorization code returned to the redirect URL
            code_verifier: PKCE verifier matching the challenge sent earlier

        Returns:
            Decoded token response
        """
        params = {"code": code, "grant_type": "authorization_code"}
        if self.config.redirect_url:
            params["redirect_uri"] = self.config.redirect_url
        if code_verifier:
            params["code_verifier"] = code_verifier

        data = self._token_request(params)
        logger.info("Authorization code exchanged for tokens")
        return data

    def refresh(self, refresh_token: Optional[str] = None) -> Any:
        """
        Obtain a new access token with a refresh token.

        Args:
            refresh_token: Token to use; defaults to the stored refresh token

        Returns:
            Decoded token response

        Raises:
            AuthenticationError: If no refresh token is available
        """
        refresh_token = refresh_token or self.tokens.refresh_token
        if not refresh_token:
            raise AuthenticationError("No refresh token available")

        params = {"refresh_token": refresh_token, "grant_type": "refresh_token"}
        if self.config.redirect_url:
            params["redirect_uri"] = self.config.redirect_url

        data = self._token_request(params)
        logger.info("Access token refreshed")
        return data

    def _token_request(self, params: Dict[str, str]) -> Any:
        response = self.executor.send(
            "POST",
            TOKEN_ENDPOINT,
            auth=(self.config.app_key, self.config.app_secret),
            data=params,
            headers={"Accept": "application/json"},
        )
        data = decode_response(response, allow_raw=False)
        self.tokens.update_from_response(data)
        return data
