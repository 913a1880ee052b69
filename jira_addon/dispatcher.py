"""Webhook dispatch: route verified events to registered handlers."""

from __future__ import annotations

import logging

from jira_addon.errors import ConfigurationError, DispatchError, HandlerError
from jira_addon.models import DispatchResult, WebhookPayload, WebhookRegistration

_module_logger = logging.getLogger(__name__)


class WebhookDispatcher:
    """Maps event names to handlers.

    The first registration for an event name wins; later registrations for
    the same name are ignored with a warning. After `freeze()` the mapping is
    read-only, so concurrent dispatches share no mutable state.
    """

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self._handlers: dict[str, WebhookRegistration] = {}
        self._frozen = False
        self._log = logger or _module_logger

    @property
    def events(self) -> list[str]:
        return list(self._handlers)

    def register(self, registration: WebhookRegistration) -> bool:
        """Add *registration*. Returns False if its event was already taken."""
        if self._frozen:
            msg = f"Cannot register webhook '{registration.event}' after the add-on is finalized"
            raise ConfigurationError(msg)
        if registration.event in self._handlers:
            self._log.warning(
                "Duplicate webhook registration for event=%s ignored, first one wins",
                registration.event,
            )
            return False
        self._handlers[registration.event] = registration
        return True

    def freeze(self) -> None:
        self._frozen = True

    def get(self, event: str) -> WebhookRegistration | None:
        return self._handlers.get(event)

    async def dispatch(self, payload: WebhookPayload) -> DispatchResult:
        """Invoke the handler for ``payload.webhook_event``.

        Raises DispatchError when no handler matches and HandlerError when
        the handler raises; the original exception is chained and logged.
        """
        event = payload.webhook_event
        registration = self._handlers.get(event)
        if registration is None:
            self._log.warning("Webhook event handler not found for %s", event)
            raise DispatchError(event)

        try:
            handled = await registration.handler(payload)
        except Exception as exc:
            self._log.exception("Webhook handler raised for event=%s", event)
            raise HandlerError(event) from exc

        if handled is False:
            self._log.warning("Webhook handler reported failure for event=%s", event)
            status = "reported_failure"
        else:
            status = "success"
        self._log.info("Webhook dispatched event=%s status=%s", event, status)
        return DispatchResult(
            event=event,
            client_key=payload.client_key,
            handled=handled is not False,
            status=status,
        )
