"""Tests for discord-fuse configuration management."""

import json

import pytest

from discord_fuse.config import (
    DEFAULT_PLACEHOLDER_SIZE, FuseConfig,
    get_config_dir, get_config_path, load_config, read_config_file,
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point XDG_CONFIG_HOME at a temp dir and clear Discord env vars."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    monkeypatch.delenv("DISCORD_TOKEN", raising=False)
    monkeypatch.delenv("DISCORD_API_URL", raising=False)
    return tmp_path


def _write_config(data):
    path = get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))
    return path


class TestDefaults:

    def test_fuse_config_defaults(self):
        cfg = FuseConfig()
        assert cfg.token == ""
        assert cfg.api_url == "https://discord.com/api/v10"
        assert cfg.page_size == 100
        assert cfg.max_pages == 10
        assert cfg.placeholder_size == DEFAULT_PLACEHOLDER_SIZE == 2**32 - 1
        assert cfg.show_timestamps is False

    def test_config_path_under_xdg(self, isolated_env):
        assert get_config_dir() == isolated_env / "discord-fuse"
        assert get_config_path().name == "config.json"


class TestReadConfigFile:

    def test_missing_file(self):
        assert read_config_file() is None

    def test_invalid_json_is_ignored(self):
        path = get_config_path()
        path.parent.mkdir(parents=True)
        path.write_text("{not json")
        assert read_config_file() is None

    def test_non_object_is_ignored(self):
        _write_config([1, 2, 3])
        assert read_config_file() is None


class TestLoadConfig:

    def test_token_from_environment(self, monkeypatch):
        monkeypatch.setenv("DISCORD_TOKEN", "abc")
        assert load_config().token == "abc"

    def test_token_not_read_from_file(self):
        _write_config({"token": "leaked"})
        assert load_config().token == ""

    def test_file_overrides_defaults(self):
        _write_config({"page_size": 50, "show_timestamps": True, "fetch_timeout": 5})
        cfg = load_config()
        assert cfg.page_size == 50
        assert cfg.show_timestamps is True
        assert cfg.fetch_timeout == 5.0

    def test_env_api_url_overrides_file(self, monkeypatch):
        _write_config({"api_url": "http://from-file"})
        monkeypatch.setenv("DISCORD_API_URL", "http://from-env")
        assert load_config().api_url == "http://from-env"

    def test_cli_overrides_everything(self, monkeypatch):
        _write_config({"page_size": 50})
        monkeypatch.setenv("DISCORD_API_URL", "http://from-env")
        cfg = load_config(cli_overrides={"page_size": 20, "api_url": "http://from-cli"})
        assert cfg.page_size == 20
        assert cfg.api_url == "http://from-cli"

    def test_cli_none_values_do_not_override(self):
        _write_config({"max_pages": 3})
        cfg = load_config(cli_overrides={"max_pages": None})
        assert cfg.max_pages == 3

    def test_string_bool_rejected(self):
        _write_config({"show_timestamps": "false"})
        assert load_config().show_timestamps is False

    def test_bad_number_rejected(self):
        _write_config({"page_size": "lots"})
        assert load_config().page_size == 100

    def test_unknown_keys_ignored(self):
        _write_config({"colour": "blue"})
        cfg = load_config()
        assert not hasattr(cfg, "colour")

    def test_explicit_config_path(self, tmp_path):
        path = tmp_path / "other.json"
        path.write_text(json.dumps({"max_pages": 7}))
        assert load_config(config_path=path).max_pages == 7
