"""Project-level exception hierarchy."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from jira_addon.auth import AuthFailure


class AddonError(Exception):
    """Base for all jira-addon exceptions."""


class ConfigurationError(AddonError):
    """Add-on configuration is invalid or used out of phase."""


class RegistryError(AddonError):
    """Client registry backend failed."""


class ValidationError(AddonError):
    """Inbound payload is malformed."""


class AuthenticationError(AddonError):
    """Inbound request failed Connect JWT verification."""

    def __init__(self, reason: AuthFailure, detail: str = "") -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason.value}: {detail}" if detail else reason.value)


class DispatchError(AddonError):
    """No handler is registered for a webhook event."""

    def __init__(self, event: str) -> None:
        self.event = event
        super().__init__(f"No webhook handler registered for event '{event}'")


class HandlerError(AddonError):
    """A webhook handler raised while processing an event."""

    def __init__(self, event: str) -> None:
        self.event = event
        super().__init__(f"Webhook handler for event '{event}' failed")
