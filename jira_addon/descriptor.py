"""Descriptor builder: the JSON manifest Jira fetches to learn about the add-on."""

from __future__ import annotations

import copy
import logging
from typing import TYPE_CHECKING, Any

from jira_addon.errors import ConfigurationError

if TYPE_CHECKING:
    from jira_addon.config import AddonConfig
    from jira_addon.models import WebhookDefinition

_module_logger = logging.getLogger(__name__)

MOUNT_PATH = "/jira/addon"
DESCRIPTOR_PATH = "/descriptor"
INSTALLED_PATH = "/installed"
UNINSTALLED_PATH = "/uninstalled"
WEBHOOK_PATH = "/webhook"


def webhook_url(event: str) -> str:
    """Return the descriptor-relative callback URL for *event*."""
    return f"{WEBHOOK_PATH}/{event}"


class DescriptorBuilder:
    """Assembles the add-on descriptor.

    Two phases: while configuring, webhook modules may be added; after
    `freeze()` the module list is fixed and `add_webhook_module` raises.
    `serialize()` works in both phases and always returns a fresh copy.
    """

    def __init__(
        self,
        config: AddonConfig,
        mount_path: str = MOUNT_PATH,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._mount_path = mount_path
        self._log = logger or _module_logger
        # Computed once so repeated serialization never re-appends the mount.
        self._base_url = config.base_url.rstrip("/") + mount_path
        self._modules: dict[str, list[dict[str, Any]]] = {}
        self._frozen = False

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def mount_path(self) -> str:
        return self._mount_path

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def lifecycle(self) -> dict[str, str]:
        return {"installed": INSTALLED_PATH, "uninstalled": UNINSTALLED_PATH}

    def add_webhook_module(self, definition: WebhookDefinition) -> None:
        """Append *definition* to the webhooks module list, computing its URL."""
        if self._frozen:
            msg = (
                f"Cannot add webhook '{definition.event}': descriptor is frozen; "
                "register webhooks before the descriptor is served"
            )
            raise ConfigurationError(msg)
        definition.url = webhook_url(definition.event)
        self._modules.setdefault("webhooks", []).append(definition.to_dict())
        self._log.debug("Webhook module declared event=%s url=%s", definition.event, definition.url)

    def freeze(self) -> None:
        if not self._frozen:
            self._frozen = True
            count = len(self._modules.get("webhooks", []))
            self._log.info("Descriptor finalized with %d webhook module(s)", count)

    def serialize(self) -> dict[str, Any]:
        config = self._config
        data: dict[str, Any] = {
            "key": config.key,
            "name": config.name,
            "baseUrl": self._base_url,
            "authentication": {"type": config.authentication},
            "lifecycle": self.lifecycle,
            "scopes": list(config.scopes),
            "links": {"self": f"{self._base_url}{DESCRIPTOR_PATH}"},
        }
        if config.description is not None:
            data["description"] = config.description
        if config.vendor is not None:
            data["vendor"] = {"name": config.vendor.name, "url": config.vendor.url}
        if config.enable_licensing is not None:
            data["enableLicensing"] = config.enable_licensing
        if self._modules:
            data["modules"] = copy.deepcopy(self._modules)
        return data
