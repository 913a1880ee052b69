"""Add-on data models: installation records, webhook payloads and declarations."""

from __future__ import annotations

import copy
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from jira_addon.errors import ValidationError

_RECORD_FIELDS: dict[str, str] = {
    "clientKey": "client_key",
    "sharedSecret": "shared_secret",
    "baseUrl": "base_url",
    "productType": "product_type",
    "eventType": "event_type",
}


def _text(payload: dict[str, Any], name: str) -> str:
    value = payload.get(name)
    return "" if value is None else str(value)


@dataclass
class InstallationRecord:
    """Credentials and metadata Jira sends when the add-on is installed."""

    client_key: str
    shared_secret: str = ""
    base_url: str = ""
    product_type: str = ""
    event_type: str = ""
    extras: dict[str, Any] = field(default_factory=dict)
    # Lifecycle body exactly as Jira sent it.
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    def to_dict(self) -> dict[str, Any]:
        """Persistable form: the received payload verbatim, when there is one."""
        if self.raw:
            return copy.deepcopy(self.raw)
        data: dict[str, Any] = dict(self.extras)
        for wire_name, attr in _RECORD_FIELDS.items():
            value = getattr(self, attr)
            if value or wire_name == "clientKey":
                data[wire_name] = value
        return data

    @classmethod
    def from_payload(cls, payload: Any) -> InstallationRecord:
        """Build a record from a lifecycle payload.

        Raises ValidationError if *payload* is not an object or has no
        ``clientKey``.
        """
        if not isinstance(payload, dict):
            msg = "Lifecycle payload must be a JSON object"
            raise ValidationError(msg)
        client_key = payload.get("clientKey")
        if not client_key or not isinstance(client_key, str):
            msg = "Lifecycle payload is missing clientKey"
            raise ValidationError(msg)

        extras = {k: v for k, v in payload.items() if k not in _RECORD_FIELDS}
        return cls(
            client_key=client_key,
            shared_secret=_text(payload, "sharedSecret"),
            base_url=_text(payload, "baseUrl"),
            product_type=_text(payload, "productType"),
            event_type=_text(payload, "eventType"),
            extras=extras,
            raw=copy.deepcopy(payload),
        )


@dataclass
class WebhookPayload:
    """An inbound Jira webhook body.

    ``client_key`` is not part of the body; the server fills it with the
    client identifier taken from the verified token.
    """

    webhook_event: str
    timestamp: int | None = None
    client_key: str | None = None
    extras: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.extras.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.extras)
        data["webhookEvent"] = self.webhook_event
        if self.timestamp is not None:
            data["timestamp"] = self.timestamp
        return data

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        *,
        client_key: str | None = None,
        fallback_event: str = "",
    ) -> WebhookPayload:
        event = data.get("webhookEvent") or fallback_event
        if not event or not isinstance(event, str):
            msg = "Webhook payload has no webhookEvent"
            raise ValidationError(msg)
        timestamp = data.get("timestamp")
        return cls(
            webhook_event=event,
            timestamp=timestamp if isinstance(timestamp, int) else None,
            client_key=client_key,
            extras={k: v for k, v in data.items() if k not in ("webhookEvent", "timestamp")},
        )


@dataclass
class WebhookDefinition:
    """A webhook module declaration as published in the descriptor.

    ``url`` is computed from the event name at registration time; any value
    set by the caller is replaced.
    """

    event: str
    filter: str | None = None
    exclude_body: bool | None = None
    property_keys: list[str] = field(default_factory=list)
    key: str | None = None
    description: str | None = None
    url: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"event": self.event, "url": self.url}
        if self.filter is not None:
            data["filter"] = self.filter
        if self.exclude_body is not None:
            data["excludeBody"] = self.exclude_body
        if self.property_keys:
            data["propertyKeys"] = list(self.property_keys)
        if self.key is not None:
            data["key"] = self.key
        if self.description is not None:
            data["description"] = self.description
        return data


WebhookHandler = Callable[[WebhookPayload], Awaitable[bool]]


@dataclass(frozen=True)
class WebhookRegistration:
    """Pairs a webhook declaration with the coroutine that handles it."""

    definition: WebhookDefinition
    handler: WebhookHandler

    @property
    def event(self) -> str:
        return self.definition.event


@dataclass(frozen=True)
class DispatchResult:
    """Immutable result of a webhook dispatch."""

    event: str
    client_key: str | None
    handled: bool
    status: str  # "success" | "reported_failure"
