"""Tests for the AtlassianAddon facade."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from conftest import BASE_URL, CLIENT_KEY, SHARED_SECRET, install_payload, make_config
from jira_addon.addon import AtlassianAddon
from jira_addon.auth import encode_token
from jira_addon.errors import ConfigurationError
from jira_addon.models import WebhookDefinition, WebhookPayload, WebhookRegistration
from jira_addon.registry import JsonFileStore, MemoryStore, SqliteStore


def _registration(event: str, handler: Any = None) -> WebhookRegistration:
    return WebhookRegistration(
        definition=WebhookDefinition(event=event),
        handler=handler or AsyncMock(return_value=True),
    )


class TestConstruction:
    def test_properties(self) -> None:
        addon = AtlassianAddon(make_config(description="d"), store=MemoryStore())
        assert addon.key == "nexus-addon"
        assert addon.name == "Nexus"
        assert addon.description == "d"
        assert addon.base_url == BASE_URL + "/jira/addon"
        assert addon.context_path == "/jira/addon"
        assert addon.scopes == ["read", "write"]
        assert addon.max_token_age == 900
        assert addon.skip_qsh_verification is True
        assert addon.frozen is False

    def test_store_from_config(self, tmp_path: Path) -> None:
        sqlite_addon = AtlassianAddon(make_config(store_url=f"sqlite://{tmp_path}/a.sqlite"))
        json_addon = AtlassianAddon(make_config(store_url=f"json://{tmp_path}/a.json"))
        assert isinstance(sqlite_addon.registry._store, SqliteStore)
        assert isinstance(json_addon.registry._store, JsonFileStore)

    def test_bad_store_url(self) -> None:
        with pytest.raises(ConfigurationError):
            AtlassianAddon(make_config(store_url="mongodb://db"))

    def test_logger_scoped_to_instance(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.WARNING)
        addon = AtlassianAddon(make_config(key="alpha"), store=MemoryStore())
        addon.add_webhooks([_registration("x"), _registration("x")])
        assert addon.logger.name == "jira_addon.alpha"
        assert any(r.name.startswith("jira_addon.alpha.") for r in caplog.records)

    def test_injected_logger(self) -> None:
        custom = logging.getLogger("my.app.jira")
        addon = AtlassianAddon(make_config(), store=MemoryStore(), logger=custom)
        assert addon.logger is custom


class TestWebhookRegistration:
    def test_descriptor_lists_webhooks_in_order(self) -> None:
        addon = AtlassianAddon(make_config(), store=MemoryStore())
        addon.add_webhooks([_registration("issue:created"), _registration("issue:updated")])
        webhooks = addon.to_json()["modules"]["webhooks"]  # type: ignore[index]
        assert webhooks == [
            {"event": "issue:created", "url": "/webhook/issue:created"},
            {"event": "issue:updated", "url": "/webhook/issue:updated"},
        ]

    def test_add_webhooks_repeatable_before_finalize(self) -> None:
        addon = AtlassianAddon(make_config(), store=MemoryStore())
        addon.add_webhooks([_registration("a")])
        addon.add_webhooks([_registration("b")])
        assert addon.dispatcher.events == ["a", "b"]

    def test_finalize_blocks_registration(self) -> None:
        addon = AtlassianAddon(make_config(), store=MemoryStore())
        addon.finalize()
        addon.finalize()
        with pytest.raises(ConfigurationError, match="finalized"):
            addon.add_webhooks([_registration("a")])

    async def test_decorator(self) -> None:
        addon = AtlassianAddon(make_config(), store=MemoryStore())

        @addon.webhook("jira:issue_created", filter="project = AG", exclude_body=False)
        async def on_created(payload: WebhookPayload) -> bool:
            return payload.get("issue") is not None

        module = addon.to_json()["modules"]["webhooks"][0]  # type: ignore[index]
        assert module == {
            "event": "jira:issue_created",
            "url": "/webhook/jira:issue_created",
            "filter": "project = AG",
            "excludeBody": False,
        }
        result = await addon.dispatcher.dispatch(
            WebhookPayload(webhook_event="jira:issue_created", extras={"issue": {}})
        )
        assert result.handled is True

    def test_duplicate_event_declared_twice_dispatched_once(self) -> None:
        addon = AtlassianAddon(make_config(), store=MemoryStore())
        first = _registration("issue:created")
        addon.add_webhooks([first, _registration("issue:created")])
        assert len(addon.to_json()["modules"]["webhooks"]) == 2  # type: ignore[index]
        assert addon.dispatcher.get("issue:created") is first

    def test_webhooks_rejected_without_jwt_authentication(self) -> None:
        addon = AtlassianAddon(make_config(authentication="none"), store=MemoryStore())
        with pytest.raises(ConfigurationError, match="JWT"):
            addon.add_webhooks([_registration("issue:created")])
        with pytest.raises(ConfigurationError, match="JWT"):
            addon.webhook("issue:updated")(AsyncMock(return_value=True))
        assert "modules" not in addon.to_json()
        assert addon.dispatcher.events == []

    def test_lifecycle_only_addon_without_jwt_authentication(self) -> None:
        addon = AtlassianAddon(make_config(authentication="none"), store=MemoryStore())
        addon.add_webhooks([])
        addon.create_app()
        assert addon.to_json()["authentication"] == {"type": "none"}


class TestRoutes:
    async def test_descriptor_fetch_finalizes_mounted_addon(self) -> None:
        addon = AtlassianAddon(make_config(), store=MemoryStore())
        addon.add_webhooks([_registration("issue:created")])
        app = web.Application()
        addon.add_routes(app)
        assert addon.frozen is False

        client = TestClient(TestServer(app))
        await client.start_server()
        try:
            resp = await client.get("/jira/addon/descriptor")
            assert resp.status == 200
        finally:
            await client.close()

        assert addon.frozen is True
        with pytest.raises(ConfigurationError):
            addon.add_webhooks([_registration("issue:updated")])

    def test_routes_added_once(self) -> None:
        addon = AtlassianAddon(make_config(), store=MemoryStore())
        app = web.Application()
        addon.add_routes(app)
        addon.add_routes(app)
        assert len(app.router.resources()) == 4

    async def test_install_then_webhook_end_to_end(self, tmp_path: Path) -> None:
        handler = AsyncMock(return_value=True)
        addon = AtlassianAddon(make_config(store_url=f"sqlite://{tmp_path}/addon.sqlite"))
        addon.add_webhooks([_registration("issue:created", handler)])
        client = TestClient(TestServer(addon.create_app()))
        await client.start_server()
        try:
            await client.post("/jira/addon/installed", json=install_payload())
            token = encode_token(CLIENT_KEY, SHARED_SECRET)
            resp = await client.post(
                "/jira/addon/webhook/issue:created",
                json={"webhookEvent": "issue:created"},
                headers={"Authorization": f"JWT {token}"},
            )
            assert resp.status == 200
            handler.assert_awaited_once()
        finally:
            await client.close()
            await addon.close()
