"""Tests for the OAuth2 token lifecycle."""

from urllib.parse import parse_qs, urlparse

import pytest
import requests

from dropbox_api_sdk import ApiError, AuthenticationError, DropboxClient, TransportError
from dropbox_api_sdk.auth import TokenManager

from .conftest import make_response

TOKEN_ENDPOINT = "/oauth2/token"


def _query(url: str) -> dict:
    return {key: values[0] for key, values in parse_qs(urlparse(url).query).items()}


class TestAuthUrl:
    def test_auth_url_parameters(self, fake_dropbox):
        client = DropboxClient({
            "app_key": "abc",
            "app_secret": "secret",
            "scope": "files.content.read",
            "redirect_url": "https://x/cb",
        })

        url = client.get_auth_url("s1")

        assert url.startswith("https://www.dropbox.com/oauth2/authorize?")
        assert "client_id=abc" in url
        assert "response_type=code" in url
        assert "token_access_type=offline" in url
        assert "scope=files.content.read" in url
        assert "redirect_uri=https%3A%2F%2Fx%2Fcb" in url
        assert "state=s1" in url
        assert fake_dropbox.calls == []

    def test_default_scope_is_percent_encoded(self, client):
        url = client.get_auth_url()

        assert "scope=files.metadata.write%20files.content.write" in url
        assert "redirect_uri" not in url
        assert "state" not in url

    def test_extra_parameters(self, client):
        url = client.get_auth_url(extra={"force_reapprove": "true", "locale": "de DE"})

        query = _query(url)
        assert query["force_reapprove"] == "true"
        assert query["locale"] == "de DE"
        assert "locale=de%20DE" in url

    def test_pkce_challenge(self, client):
        query = _query(client.get_auth_url(code_challenge="challenge123"))

        assert query["code_challenge"] == "challenge123"
        assert query["code_challenge_method"] == "S256"


class TestExchangeCode:
    def test_exchange_updates_tokens(self, fake_dropbox, options):
        options["redirect_url"] = "https://x/cb"
        fake_dropbox.add(TOKEN_ENDPOINT, make_response(200, {
            "access_token": "new_access",
            "refresh_token": "new_refresh",
            "token_type": "bearer",
        }))
        client = DropboxClient(options)

        result = client.exchange_code("the_code")

        assert result.ok
        assert result.value["token_type"] == "bearer"
        assert client.access_token == "new_access"
        assert client.refresh_token == "new_refresh"

        call = fake_dropbox.calls[0]
        assert call.host == "api.dropboxapi.com"
        assert call.kwargs["auth"] == ("test_app_key", "test_app_secret")
        assert call.headers["Accept"] == "application/json"
        assert call.data == {
            "code": "the_code",
            "grant_type": "authorization_code",
            "redirect_uri": "https://x/cb",
        }

    def test_exchange_with_code_verifier(self, fake_dropbox, client):
        fake_dropbox.add(TOKEN_ENDPOINT, make_response(200, {"access_token": "a"}))

        client.exchange_code("the_code", code_verifier="verifier")

        assert fake_dropbox.calls[0].data["code_verifier"] == "verifier"
        assert "redirect_uri" not in fake_dropbox.calls[0].data

    def test_exchange_http_error_records_body(self, fake_dropbox, client):
        body = '{"error": "invalid_grant", "error_description": "code doesn\'t exist or has expired"}'
        fake_dropbox.add(TOKEN_ENDPOINT, make_response(400, body=body.encode()))

        result = client.exchange_code("bad")

        assert not result
        assert isinstance(result.error, ApiError)
        assert result.error.status_code == 400
        assert result.error_message == body
        assert client.get_last_error() == body
        assert client.access_token == "test_access_token"

    def test_exchange_transport_error_records_message(self, fake_dropbox, client):
        fake_dropbox.add(TOKEN_ENDPOINT, requests.ConnectionError("connection reset"))

        result = client.exchange_code("code")

        assert isinstance(result.error, TransportError)
        assert client.get_last_error() == "connection reset"

    def test_malformed_token_response_is_failure(self, fake_dropbox, client):
        fake_dropbox.add(TOKEN_ENDPOINT, make_response(200, body=b"<html>oops</html>"))

        result = client.exchange_code("code")

        assert not result
        assert client.get_last_error() == "<html>oops</html>"

    def test_response_without_access_token_keeps_state(self, fake_dropbox, client):
        fake_dropbox.add(TOKEN_ENDPOINT, make_response(200, {"access_token": "", "uid": "12"}))

        result = client.exchange_code("code")

        assert result.ok
        assert result.value == {"access_token": "", "uid": "12"}
        assert client.access_token == "test_access_token"


class TestRefresh:
    def test_refresh_rotates_tokens(self, fake_dropbox, options):
        options["refresh_token"] = "R"
        fake_dropbox.add(
            TOKEN_ENDPOINT,
            make_response(200, {"access_token": "A1", "refresh_token": "R1"}),
            make_response(200, {"access_token": "A2"}),
        )
        fake_dropbox.add("/2/files/get_metadata", make_response(200, {"name": "x"}))
        client = DropboxClient(options)

        assert client.refresh_access_token().ok
        client.file_info("/x")
        assert client.refresh_access_token().ok

        refresh_calls = fake_dropbox.calls_to(TOKEN_ENDPOINT)
        assert refresh_calls[0].data == {"refresh_token": "R", "grant_type": "refresh_token"}
        assert refresh_calls[1].data["refresh_token"] == "R1"
        assert fake_dropbox.calls_to("/2/files/get_metadata")[0].headers["Authorization"] == "Bearer A1"

        # refresh_token omitted from the second response: previous one retained
        assert client.access_token == "A2"
        assert client.refresh_token == "R1"

    def test_refresh_with_explicit_token(self, fake_dropbox, client):
        fake_dropbox.add(TOKEN_ENDPOINT, make_response(200, {"access_token": "A"}))

        client.refresh_access_token("explicit")

        assert fake_dropbox.calls[0].data["refresh_token"] == "explicit"

    def test_refresh_without_any_token(self, fake_dropbox, client):
        result = client.refresh_access_token()

        assert isinstance(result.error, AuthenticationError)
        assert fake_dropbox.calls == []

    def test_auto_refresh_at_construction(self, fake_dropbox):
        fake_dropbox.add(TOKEN_ENDPOINT, make_response(200, {"access_token": "fresh"}))

        client = DropboxClient({
            "app_key": "k",
            "app_secret": "s",
            "refresh_token": "R",
            "auto_refresh": True,
        })

        assert client.access_token == "fresh"
        assert len(fake_dropbox.calls) == 1

    def test_auto_refresh_requires_true(self, fake_dropbox):
        DropboxClient({"app_key": "k", "app_secret": "s", "refresh_token": "R", "auto_refresh": "yes"})

        assert fake_dropbox.calls == []

    def test_auto_refresh_failure_does_not_raise(self, fake_dropbox):
        fake_dropbox.add(TOKEN_ENDPOINT, make_response(400, body=b'{"error": "invalid_grant"}'))

        client = DropboxClient({"app_key": "k", "app_secret": "s", "refresh_token": "R", "auto_refresh": True})

        assert client.access_token == ""
        assert client.get_last_error() == '{"error": "invalid_grant"}'


class TestTokenManager:
    def test_require_access_token(self):
        with pytest.raises(AuthenticationError, match="No access token available"):
            TokenManager().require_access_token()

    def test_update_ignores_non_dict(self):
        tokens = TokenManager("A", "R")
        tokens.update_from_response({"raw": "text"})
        tokens.update_from_response(None)

        assert (tokens.access_token, tokens.refresh_token) == ("A", "R")
