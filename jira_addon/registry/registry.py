"""Client registry: per-installation credentials keyed by client key."""

from __future__ import annotations

import logging
from typing import Any

from jira_addon.errors import AddonError, RegistryError
from jira_addon.registry.store import ClientStore

_module_logger = logging.getLogger(__name__)


class ClientRegistry:
    """Stores one installation record per client key.

    The registry is the only writer of installation records. Backend failures
    surface as RegistryError and are never retried here.
    """

    def __init__(
        self,
        store: ClientStore,
        *,
        namespace: str = "jira-conn-addon",
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._namespace = namespace
        self._log = logger or _module_logger

    def _key(self, client_key: str) -> str:
        return f"{self._namespace}:{client_key}"

    async def put(self, client_key: str, record: dict[str, Any]) -> None:
        """Store or overwrite the record for *client_key*."""
        try:
            await self._store.set(self._key(client_key), record)
        except AddonError:
            raise
        except Exception as exc:
            msg = f"Failed to store client {client_key}"
            raise RegistryError(msg) from exc
        self._log.debug("Client record stored client=%s", client_key)

    async def get_record(self, client_key: str) -> dict[str, Any] | None:
        try:
            return await self._store.get(self._key(client_key))
        except AddonError:
            raise
        except Exception as exc:
            msg = f"Failed to read client {client_key}"
            raise RegistryError(msg) from exc

    async def get(self, client_key: str, field: str) -> Any | None:
        """Return *field* of the client's record, or None if either is absent."""
        record = await self.get_record(client_key)
        if record is None or field not in record:
            return None
        return record[field]

    async def delete(self, client_key: str) -> bool:
        """Remove the client's record. Returns False if there was none."""
        try:
            removed = await self._store.delete(self._key(client_key))
        except AddonError:
            raise
        except Exception as exc:
            msg = f"Failed to delete client {client_key}"
            raise RegistryError(msg) from exc
        self._log.debug("Client record delete client=%s removed=%s", client_key, removed)
        return removed

    async def shared_secret(self, client_key: str) -> str | None:
        secret = await self.get(client_key, "sharedSecret")
        return secret if isinstance(secret, str) and secret else None

    async def close(self) -> None:
        await self._store.close()
