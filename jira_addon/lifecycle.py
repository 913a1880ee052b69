"""Install / uninstall lifecycle callbacks.

Both callbacks arrive before any shared secret is known, so they are not
authenticated.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from jira_addon.models import InstallationRecord

if TYPE_CHECKING:
    from jira_addon.registry import ClientRegistry

_module_logger = logging.getLogger(__name__)


class LifecycleHandler:
    """Applies lifecycle payloads to the client registry."""

    def __init__(self, registry: ClientRegistry, *, logger: logging.Logger | None = None) -> None:
        self._registry = registry
        self._log = logger or _module_logger

    async def install(self, payload: Any) -> InstallationRecord:
        """Store the full payload as the client's record (reinstall overwrites).

        Raises ValidationError if the payload has no clientKey.
        """
        record = InstallationRecord.from_payload(payload)
        await self._registry.put(record.client_key, record.to_dict())
        self._log.info(
            "Add-on installed client=%s base_url=%s", record.client_key, record.base_url or "-"
        )
        return record

    async def uninstall(self, payload: Any) -> bool:
        """Delete the client's record. Returns False if none existed."""
        record = InstallationRecord.from_payload(payload)
        removed = await self._registry.delete(record.client_key)
        if removed:
            self._log.info("Add-on uninstalled client=%s", record.client_key)
        else:
            self._log.info("Uninstall for unknown client=%s, nothing to remove", record.client_key)
        return removed
