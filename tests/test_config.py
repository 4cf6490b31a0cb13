"""Tests for configuration parsing and path helpers."""

import pytest

from dropbox_api_sdk import ClientConfig, ConfigurationError, DropboxClient
from dropbox_api_sdk.config import DEFAULT_SCOPE
from dropbox_api_sdk.utils import normalize_dir, parse_file_size


@pytest.mark.parametrize(
    "path, expected",
    [
        ("", "/"),
        ("/", "/"),
        ("//", "/"),
        ("///", "/"),
        ("Docs", "/Docs/"),
        ("/Docs", "/Docs/"),
        ("Docs/", "/Docs/"),
        ("//Docs//", "/Docs/"),
        ("a/b/c", "/a/b/c/"),
    ],
)
def test_normalize_dir(path, expected):
    assert normalize_dir(path) == expected


class TestClientConfig:
    def test_defaults(self):
        config = ClientConfig.from_options({"app_key": "k", "app_secret": "s"})

        assert config.scope == DEFAULT_SCOPE
        assert config.home_dir == "/"
        assert config.chunk_retries == 3
        assert config.chunk_retry_delay == 1
        assert (config.mode, config.autorename, config.mute) == ("overwrite", False, True)
        assert config.timeout == 60
        assert config.content_timeout == 120
        assert config.http_retries == 0
        assert config.refresh_on_unauthorized is False

    def test_home_dir_is_normalized(self):
        config = ClientConfig.from_options({"app_key": "k", "app_secret": "s", "home_dir": "Docs"})
        assert config.home_dir == "/Docs/"

    def test_slash_only_home_dir_is_root(self):
        config = ClientConfig.from_options({"app_key": "k", "app_secret": "s", "home_dir": "///"})
        assert config.home_dir == "/"
        assert config.destination_path("r.txt") == "/r.txt"

    @pytest.mark.parametrize(
        "options",
        [
            {},
            {"app_key": "k"},
            {"app_secret": "s"},
            {"app_key": "", "app_secret": "s"},
        ],
    )
    def test_missing_credentials(self, options):
        with pytest.raises(ConfigurationError, match="App key and app secret are required"):
            ClientConfig.from_options(options)

    def test_options_must_be_mapping(self):
        with pytest.raises(ConfigurationError, match="mapping"):
            DropboxClient([("app_key", "k"), ("app_secret", "s")])

    def test_zero_retries_allowed(self):
        config = ClientConfig.from_options(
            {"app_key": "k", "app_secret": "s", "chunk_retries": 0, "chunk_retry_delay": 0}
        )
        assert config.chunk_retries == 0
        assert config.chunk_retry_delay == 0

    def test_negative_retries_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            ClientConfig.from_options({"app_key": "k", "app_secret": "s", "chunk_retries": -1})
        assert exc_info.value.config_key == "chunk_retries"

    def test_config_is_frozen(self):
        config = ClientConfig.from_options({"app_key": "k", "app_secret": "s"})
        with pytest.raises(AttributeError):
            config.app_key = "other"

    @pytest.mark.parametrize(
        "home_dir, dest_dir, expected",
        [
            ("/", "", "/r.txt"),
            ("/Docs", "", "/Docs/r.txt"),
            ("/Docs", "Other", "/Other/r.txt"),
            ("/Docs", "/Other/", "/Other/r.txt"),
        ],
    )
    def test_destination_path(self, home_dir, dest_dir, expected):
        config = ClientConfig.from_options({"app_key": "k", "app_secret": "s", "home_dir": home_dir})
        assert config.destination_path("r.txt", dest_dir) == expected


@pytest.mark.parametrize(
    "text, expected",
    [
        ("4194304", 4194304),
        ("8MB", 8 * 1024 * 1024),
        ("512 KB", 512 * 1024),
        ("1.5MiB", int(1.5 * 1024 * 1024)),
    ],
)
def test_parse_file_size(text, expected):
    assert parse_file_size(text) == expected


def test_parse_file_size_rejects_garbage():
    with pytest.raises(ValueError):
        parse_file_size("lots")
