"""Tests for PublishedDateConfig and ConfigManager."""

import json
from pathlib import Path

import pytest

from netlify_published_date.config import (
    DEFAULT_API_ROOT,
    ConfigManager,
    PublishedDateConfig,
)
from netlify_published_date.exceptions import ConfigurationError


class TestPublishedDateConfig:
    """Defaults come from the Netlify build environment."""

    def test_defaults_from_environment(self, monkeypatch):
        monkeypatch.setenv("URL", "https://www.example.com")
        monkeypatch.setenv("NETLIFY_API_TOKEN", "secret")

        config = PublishedDateConfig()

        assert config.site_id == "www.example.com"
        assert config.access_token == "secret"
        assert config.api_root == DEFAULT_API_ROOT
        assert config.cache_dir is None
        assert config.pattern == ["**/*.html"]

    def test_defaults_without_environment(self, monkeypatch):
        monkeypatch.delenv("URL", raising=False)
        monkeypatch.delenv("NETLIFY_API_TOKEN", raising=False)

        config = PublishedDateConfig()

        assert config.site_id == ""
        assert config.access_token is None

    def test_http_url_is_not_a_site_id(self, monkeypatch):
        monkeypatch.setenv("URL", "http://insecure.example.com")

        assert PublishedDateConfig().site_id == ""

    def test_normalization(self):
        config = PublishedDateConfig(
            api_root="http://localhost:8080/api/v1",
            cache_dir="/tmp/cache",
            pattern="posts/*.html",
        )

        assert config.api_root == "http://localhost:8080/api/v1/"
        assert config.cache_dir == Path("/tmp/cache")
        assert config.pattern == ["posts/*.html"]

    def test_empty_cache_dir_means_in_memory(self):
        assert PublishedDateConfig(cache_dir="").cache_dir is None


class TestConfigManager:
    """Loading and saving the JSON config file."""

    def test_missing_file_gives_defaults(self, tmp_path):
        manager = ConfigManager(tmp_path / "config.json")

        assert manager.load().pattern == ["**/*.html"]

    def test_save_and_load(self, tmp_path):
        path = tmp_path / ".netlify-published-date" / "config.json"
        manager = ConfigManager(path)
        manager.save(
            PublishedDateConfig(site_id="example.com", access_token="secret", pattern=["*.html"])
        )

        saved = json.loads(path.read_text())
        assert "access_token" not in saved

        loaded = ConfigManager(path).get_config()
        assert loaded.site_id == "example.com"
        assert loaded.pattern == ["*.html"]

    def test_invalid_file_raises(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text('{"http": {"timeout": "soon"}}')

        with pytest.raises(ConfigurationError) as exc_info:
            ConfigManager(path).load()

        assert str(path) in str(exc_info.value)

    def test_save_without_config_raises(self, tmp_path):
        with pytest.raises(ValueError):
            ConfigManager(tmp_path / "config.json").save()

    def test_find_config_path_walks_up(self, tmp_path):
        config_path = tmp_path / ".netlify-published-date" / "config.json"
        config_path.parent.mkdir()
        config_path.write_text("{}")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)

        assert ConfigManager.find_config_path(nested) == config_path
