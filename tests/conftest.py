"""Shared test fixtures."""

from __future__ import annotations

from typing import Any

import pytest

from jira_addon.config import AddonConfig
from jira_addon.registry import ClientRegistry, MemoryStore

BASE_URL = "https://addon.example.com"
CLIENT_KEY = "jira:8d0e3b7c-1f2a-4c55-9e1b-0a1b2c3d4e5f"
SHARED_SECRET = "s3cr3t-shared-between-jira-and-the-addon-0123456789"


def make_config(**overrides: Any) -> AddonConfig:
    defaults: dict[str, Any] = {
        "key": "nexus-addon",
        "name": "Nexus",
        "base_url": BASE_URL,
        "store_url": "memory://",
    }
    defaults.update(overrides)
    return AddonConfig(**defaults)


def install_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "key": "nexus-addon",
        "clientKey": CLIENT_KEY,
        "sharedSecret": SHARED_SECRET,
        "baseUrl": "https://example.atlassian.net",
        "productType": "jira",
        "eventType": "installed",
        "description": "Atlassian JIRA at https://example.atlassian.net",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def addon_config() -> AddonConfig:
    return make_config()


@pytest.fixture
def registry() -> ClientRegistry:
    return ClientRegistry(MemoryStore())
