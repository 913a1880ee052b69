"""Server-side Atlassian Connect add-on support for Jira."""

from jira_addon.addon import AtlassianAddon
from jira_addon.auth import AuthenticationVerifier, AuthFailure, encode_token
from jira_addon.config import AddonConfig, AppConfig, ServerConfig, VendorConfig
from jira_addon.descriptor import MOUNT_PATH, DescriptorBuilder
from jira_addon.errors import (
    AddonError,
    AuthenticationError,
    ConfigurationError,
    DispatchError,
    HandlerError,
    RegistryError,
    ValidationError,
)
from jira_addon.models import (
    DispatchResult,
    InstallationRecord,
    WebhookDefinition,
    WebhookPayload,
    WebhookRegistration,
)
from jira_addon.server import AddonServer

__all__ = [
    "MOUNT_PATH",
    "AddonConfig",
    "AddonError",
    "AddonServer",
    "AppConfig",
    "AtlassianAddon",
    "AuthFailure",
    "AuthenticationError",
    "AuthenticationVerifier",
    "ConfigurationError",
    "DescriptorBuilder",
    "DispatchError",
    "DispatchResult",
    "HandlerError",
    "InstallationRecord",
    "RegistryError",
    "ServerConfig",
    "ValidationError",
    "VendorConfig",
    "WebhookDefinition",
    "WebhookPayload",
    "WebhookRegistration",
    "encode_token",
]
