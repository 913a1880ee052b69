"""Add-on facade: wires registry, descriptor, auth, lifecycle and dispatch."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from urllib.parse import urlsplit

from aiohttp import web

from jira_addon.auth import AuthenticationVerifier
from jira_addon.config import AddonConfig
from jira_addon.descriptor import MOUNT_PATH, DescriptorBuilder
from jira_addon.dispatcher import WebhookDispatcher
from jira_addon.errors import ConfigurationError
from jira_addon.lifecycle import LifecycleHandler
from jira_addon.logging_config import addon_logger
from jira_addon.models import WebhookDefinition, WebhookHandler, WebhookRegistration
from jira_addon.registry import ClientRegistry, ClientStore, open_store
from jira_addon.server import AddonRoutes


class AtlassianAddon:
    """One Connect add-on instance.

    Usage is two-phase. Configure first: construct, then call `add_webhooks`
    (or decorate handlers with `webhook`). The add-on is finalized when
    `create_app` runs or Jira first fetches the descriptor; registering
    webhooks after that raises ConfigurationError.
    """

    def __init__(
        self,
        config: AddonConfig,
        *,
        store: ClientStore | None = None,
        logger: logging.Logger | None = None,
        mount_path: str = MOUNT_PATH,
    ) -> None:
        self._config = config
        self._log = logger or addon_logger(config.key)
        self._store = store if store is not None else open_store(config.store_url)
        self._routes_added = False

        self.registry = ClientRegistry(
            self._store,
            namespace=config.store_namespace,
            logger=self._log.getChild("registry"),
        )
        self.descriptor = DescriptorBuilder(
            config, mount_path, logger=self._log.getChild("descriptor")
        )
        self.verifier = AuthenticationVerifier(
            self.registry,
            max_token_age=config.max_token_age,
            logger=self._log.getChild("auth"),
        )
        self.lifecycle = LifecycleHandler(self.registry, logger=self._log.getChild("lifecycle"))
        self.dispatcher = WebhookDispatcher(logger=self._log.getChild("webhooks"))

    # -- Properties --

    @property
    def config(self) -> AddonConfig:
        return self._config

    @property
    def logger(self) -> logging.Logger:
        return self._log

    @property
    def key(self) -> str:
        return self._config.key

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def description(self) -> str | None:
        return self._config.description

    @property
    def base_url(self) -> str:
        return self.descriptor.base_url

    @property
    def mount_path(self) -> str:
        return self.descriptor.mount_path

    @property
    def context_path(self) -> str:
        """Path component of the base URL; qsh paths are relative to it."""
        return urlsplit(self.descriptor.base_url).path

    @property
    def scopes(self) -> list[str]:
        return list(self._config.scopes)

    @property
    def max_token_age(self) -> int:
        return self._config.max_token_age

    @property
    def skip_qsh_verification(self) -> bool:
        return self._config.skip_qsh_for_webhooks

    @property
    def frozen(self) -> bool:
        return self.descriptor.frozen

    # -- Configuration phase --

    def add_webhooks(self, registrations: Iterable[WebhookRegistration]) -> None:
        """Declare webhooks in the descriptor and register their handlers."""
        registrations = list(registrations)
        if self.frozen:
            events = ", ".join(r.event for r in registrations)
            msg = f"Cannot add webhooks ({events}) after the add-on is finalized"
            raise ConfigurationError(msg)
        if registrations and self._config.authentication == "none":
            # Jira signs webhook deliveries only for JWT add-ons.
            msg = "Webhooks require JWT authentication; this add-on is configured with 'none'"
            raise ConfigurationError(msg)
        for registration in registrations:
            self.descriptor.add_webhook_module(registration.definition)
            self.dispatcher.register(registration)

    def webhook(
        self,
        event: str,
        *,
        filter: str | None = None,  # noqa: A002
        exclude_body: bool | None = None,
        property_keys: list[str] | None = None,
    ) -> Callable[[WebhookHandler], WebhookHandler]:
        """Decorator form of `add_webhooks` for a single handler."""

        def decorator(handler: WebhookHandler) -> WebhookHandler:
            definition = WebhookDefinition(
                event=event,
                filter=filter,
                exclude_body=exclude_body,
                property_keys=list(property_keys or []),
            )
            self.add_webhooks([WebhookRegistration(definition=definition, handler=handler)])
            return handler

        return decorator

    def finalize(self) -> None:
        """End the configuration phase. Safe to call more than once."""
        self.descriptor.freeze()
        self.dispatcher.freeze()

    # -- Runtime --

    def to_json(self) -> dict[str, object]:
        return self.descriptor.serialize()

    async def shared_secret(self, client_key: str) -> str | None:
        return await self.registry.shared_secret(client_key)

    def add_routes(self, app: web.Application) -> None:
        """Mount the add-on routes onto an existing application."""
        if self._routes_added:
            self._log.info("Trying to reinitialize lifecycle endpoints. Skipping...")
            return
        AddonRoutes(self).register(app)
        self._routes_added = True

    def create_app(self, *, client_max_size: int = 262144) -> web.Application:
        """Finalize the add-on and return a standalone aiohttp application."""
        self.finalize()
        app = web.Application(client_max_size=client_max_size)
        self.add_routes(app)
        return app

    async def close(self) -> None:
        await self.registry.close()
