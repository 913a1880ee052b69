"""Tests for add-on configuration models."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from jira_addon.config import AddonConfig, AppConfig, ServerConfig, load_config
from jira_addon.errors import ConfigurationError


class TestAddonConfig:
    def test_defaults(self) -> None:
        cfg = AddonConfig(key="k", base_url="https://x.example.com")
        assert cfg.scopes == ["read", "write"]
        assert cfg.authentication == "jwt"
        assert cfg.store_url == "sqlite://addon.sqlite"
        assert cfg.max_token_age == 900
        assert cfg.skip_qsh_for_webhooks is True
        assert cfg.store_namespace == "jira-conn-addon"

    def test_scopes_default_is_not_shared(self) -> None:
        a = AddonConfig(key="a", base_url="https://a")
        b = AddonConfig(key="b", base_url="https://b")
        a.scopes.append("admin")
        assert b.scopes == ["read", "write"]

    def test_empty_key_rejected(self) -> None:
        with pytest.raises(PydanticValidationError):
            AddonConfig(key="", base_url="https://x")

    def test_non_positive_token_age_rejected(self) -> None:
        with pytest.raises(PydanticValidationError):
            AddonConfig(key="k", base_url="https://x", max_token_age=0)

    def test_unknown_auth_mode_rejected(self) -> None:
        with pytest.raises(PydanticValidationError):
            AddonConfig(key="k", base_url="https://x", authentication="oauth")  # type: ignore[arg-type]


class TestServerConfig:
    def test_defaults(self) -> None:
        cfg = ServerConfig()
        assert cfg.host == "127.0.0.1"
        assert cfg.port == 8743
        assert cfg.max_body_bytes == 262144


class TestLoadConfig:
    def test_loads_valid_file(self, tmp_path: Path) -> None:
        path = tmp_path / "addon.json"
        path.write_text(
            json.dumps(
                {
                    "log_level": "DEBUG",
                    "addon": {
                        "key": "nexus-addon",
                        "name": "Nexus",
                        "base_url": "https://nexus.example.com",
                        "vendor": {"name": "Nexus", "url": "https://nexus.example.com"},
                    },
                    "server": {"port": 9000},
                }
            )
        )
        cfg = load_config(path)
        assert isinstance(cfg, AppConfig)
        assert cfg.log_level == "DEBUG"
        assert cfg.addon.vendor is not None
        assert cfg.addon.vendor.name == "Nexus"
        assert cfg.server.port == 9000
        assert cfg.server.host == "127.0.0.1"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "addon.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError, match="not valid JSON"):
            load_config(path)

    def test_schema_violation(self, tmp_path: Path) -> None:
        path = tmp_path / "addon.json"
        path.write_text(json.dumps({"addon": {"name": "no key or base url"}}))
        with pytest.raises(ConfigurationError, match="Invalid config"):
            load_config(path)
