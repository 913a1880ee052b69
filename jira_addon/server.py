"""HTTP surface of the add-on: aiohttp routes and a standalone runner."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from aiohttp import web

from jira_addon.auth import AuthenticationVerifier, VerifiedToken, extract_token
from jira_addon.descriptor import (
    DESCRIPTOR_PATH,
    INSTALLED_PATH,
    UNINSTALLED_PATH,
    WEBHOOK_PATH,
)
from jira_addon.errors import (
    AuthenticationError,
    DispatchError,
    HandlerError,
    RegistryError,
    ValidationError,
)
from jira_addon.log_context import set_log_context
from jira_addon.models import WebhookPayload

if TYPE_CHECKING:
    from jira_addon.addon import AtlassianAddon
    from jira_addon.config import ServerConfig

logger = logging.getLogger(__name__)

# Request key holding the VerifiedToken of an authenticated request.
VERIFIED_TOKEN: web.RequestKey[VerifiedToken] = web.RequestKey("verified_token", VerifiedToken)


def send_error(code: int, msg: str) -> web.Response:
    """JSON ``{code, msg}`` response; used for successes too, like Jira expects."""
    return web.json_response({"code": code, "msg": msg}, status=code)


async def _read_json(request: web.Request) -> Any:
    try:
        return json.loads(await request.read())
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError):
        return None


class AddonRoutes:
    """Request handlers for one add-on, mounted under its mount path.

    Routes:
    - ``GET  <mount>/descriptor``       -- serialized descriptor (no auth).
    - ``POST <mount>/installed``        -- install callback (no auth).
    - ``POST <mount>/uninstalled``      -- uninstall callback (no auth).
    - ``POST <mount>/webhook/{event}``  -- signed webhook delivery.
    """

    def __init__(self, addon: AtlassianAddon) -> None:
        self._addon = addon
        self._log = addon.logger

    def register(self, app: web.Application) -> None:
        mount = self._addon.mount_path
        app.router.add_get(f"{mount}{DESCRIPTOR_PATH}", self._handle_descriptor)
        app.router.add_post(f"{mount}{INSTALLED_PATH}", self._handle_installed)
        app.router.add_post(f"{mount}{UNINSTALLED_PATH}", self._handle_uninstalled)
        app.router.add_post(f"{mount}{WEBHOOK_PATH}/{{event}}", self._handle_webhook)

    # -- Handlers --

    async def _handle_descriptor(self, _request: web.Request) -> web.Response:
        set_log_context(operation="desc")
        # Webhooks registered after the first fetch would never reach Jira.
        self._addon.finalize()
        return web.json_response(self._addon.to_json())

    async def _handle_installed(self, request: web.Request) -> web.Response:
        set_log_context(operation="install")
        payload = await _read_json(request)
        try:
            await self._addon.lifecycle.install(payload)
        except ValidationError:
            self._log.warning("Rejected install: malformed payload")
            return send_error(500, "Received malformed installation payload from Jira")
        except RegistryError:
            self._log.exception("Install failed: registry write error")
            return send_error(500, "Unable to store installation")
        return send_error(200, "Installation completed successfully")

    async def _handle_uninstalled(self, request: web.Request) -> web.Response:
        set_log_context(operation="uninstall")
        payload = await _read_json(request)
        try:
            await self._addon.lifecycle.uninstall(payload)
        except ValidationError:
            self._log.warning("Rejected uninstall: malformed payload")
            return send_error(500, "Received malformed installation payload from Jira")
        except RegistryError:
            self._log.exception("Uninstall failed: registry delete error")
            return send_error(500, "Unable to remove installation")
        return send_error(200, "Uninstall completed successfully")

    async def _authenticate(self, request: web.Request) -> VerifiedToken:
        verifier: AuthenticationVerifier = self._addon.verifier
        token = extract_token(request.headers, request.query)
        verified = await verifier.verify(
            token,
            request.method,
            request.path,
            request.query.items(),
            verify_qsh=not self._addon.skip_qsh_verification,
            context_path=self._addon.context_path,
        )
        request[VERIFIED_TOKEN] = verified
        return verified

    async def _handle_webhook(self, request: web.Request) -> web.Response:  # noqa: PLR0911
        event = request.match_info["event"]
        set_log_context(operation="wh", event=event)
        self._log.info("Webhook request received event=%s", event)

        if request.content_type != "application/json":
            self._log.warning("Webhook rejected: bad content-type event=%s", event)
            return send_error(415, "Content type must be application/json")

        body = await _read_json(request)
        if not isinstance(body, dict):
            self._log.warning("Webhook rejected: body is not a JSON object event=%s", event)
            return send_error(400, "Webhook body must be a JSON object")

        try:
            verified = await self._authenticate(request)
        except AuthenticationError as exc:
            return send_error(exc.reason.status, f"Authentication failed: {exc.reason.value}")
        except RegistryError:
            self._log.exception("Webhook rejected: registry lookup failed")
            return send_error(500, "Unable to verify request")

        set_log_context(client_key=verified.client_key)

        try:
            payload = WebhookPayload.from_dict(
                body, client_key=verified.client_key, fallback_event=event
            )
            await self._addon.dispatcher.dispatch(payload)
        except ValidationError:
            return send_error(400, "Webhook payload has no event name")
        except DispatchError:
            return send_error(404, "Event handler not found")
        except HandlerError:
            # Cause is logged by the dispatcher; never echoed to Jira.
            return send_error(500, "Exception thrown during handling of webhook event")

        return send_error(200, "Event handled successfully")


class AddonServer:
    """Serves one add-on on its own aiohttp site."""

    def __init__(self, addon: AtlassianAddon, config: ServerConfig) -> None:
        self._addon = addon
        self._config = config
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Create the aiohttp app and start listening."""
        app = self._addon.create_app(client_max_size=self._config.max_body_bytes)
        self._runner = web.AppRunner(app, access_log=None)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._config.host, self._config.port)
        await site.start()
        logger.info(
            "Add-on %s listening on %s:%d",
            self._addon.key,
            self._config.host,
            self._config.port,
        )

    async def stop(self) -> None:
        """Shut down the server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
        logger.info("Add-on server stopped")
