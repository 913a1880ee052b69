"""Add-on configuration models."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from jira_addon.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_STORE_URL = "sqlite://addon.sqlite"
DEFAULT_MAX_TOKEN_AGE = 15 * 60


class VendorConfig(BaseModel):
    """Vendor block published in the descriptor."""

    name: str
    url: str


class AddonConfig(BaseModel):
    """Identity and behaviour of one Connect add-on.

    ``base_url`` is the external root of the host application; the add-on's
    mount path is appended to it when the descriptor is built.
    """

    key: str = Field(min_length=1)
    name: str = ""
    description: str | None = None
    base_url: str = Field(min_length=1)
    vendor: VendorConfig | None = None
    scopes: list[str] = Field(default_factory=lambda: ["read", "write"])
    authentication: Literal["jwt", "none"] = "jwt"
    enable_licensing: bool | None = None
    store_url: str = DEFAULT_STORE_URL
    store_namespace: str = "jira-conn-addon"
    max_token_age: int = Field(default=DEFAULT_MAX_TOKEN_AGE, gt=0)
    # Jira does not sign a stable qsh for asynchronous webhook deliveries.
    skip_qsh_for_webhooks: bool = True


class ServerConfig(BaseModel):
    """Settings for the standalone aiohttp server."""

    host: str = "127.0.0.1"
    port: int = 8743
    max_body_bytes: int = 262144


class AppConfig(BaseModel):
    """Top-level configuration loaded from a JSON file."""

    log_level: str = "INFO"
    addon: AddonConfig
    server: ServerConfig = Field(default_factory=ServerConfig)


def load_config(config_path: Path) -> AppConfig:
    """Read and validate *config_path*.

    Raises ConfigurationError when the file is missing, is not JSON, or does
    not match the schema.
    """
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        msg = f"Config file not found: {config_path}"
        raise ConfigurationError(msg) from exc
    except json.JSONDecodeError as exc:
        msg = f"Config file is not valid JSON: {config_path}"
        raise ConfigurationError(msg) from exc

    try:
        config = AppConfig.model_validate(data)
    except PydanticValidationError as exc:
        msg = f"Invalid config in {config_path}: {exc}"
        raise ConfigurationError(msg) from exc

    logger.info("Loaded add-on config key=%s from %s", config.addon.key, config_path)
    return config
