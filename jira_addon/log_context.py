"""Logging context: ContextVar-based log enrichment for request handling.

Every log record is automatically enriched with a ``[op:client:event]`` prefix
via a `ContextFilter` attached to the root logger handlers.

Operation codes: ``desc`` (descriptor fetch), ``install``, ``uninstall``,
``wh`` (webhook delivery).
"""

from __future__ import annotations

import logging
from contextvars import ContextVar

# Propagated through the coroutines of one aiohttp request task.
ctx_operation: ContextVar[str | None] = ContextVar("ctx_operation", default=None)
ctx_client_key: ContextVar[str | None] = ContextVar("ctx_client_key", default=None)
ctx_event: ContextVar[str | None] = ContextVar("ctx_event", default=None)


class ContextFilter(logging.Filter):
    """Inject ContextVar values into every LogRecord as ``record.ctx``."""

    def filter(self, record: logging.LogRecord) -> bool:
        op = ctx_operation.get(None)
        client = ctx_client_key.get(None)
        event = ctx_event.get(None)
        parts: list[str] = []
        if op:
            parts.append(op)
        if client:
            parts.append(client[:12])
        if event:
            parts.append(event)
        record.ctx = f"[{':'.join(parts)}] " if parts else ""
        return True


def set_log_context(
    *,
    operation: str | None = None,
    client_key: str | None = None,
    event: str | None = None,
) -> None:
    """Set logging context for the current asyncio task.

    aiohttp runs each request in its own task, so values never leak between
    concurrent requests.
    """
    if operation is not None:
        ctx_operation.set(operation)
    if client_key is not None:
        ctx_client_key.set(client_key)
    if event is not None:
        ctx_event.set(event)
