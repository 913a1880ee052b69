"""Entry point: python -m jira_addon --config addon.json.

Serves the descriptor and lifecycle endpoints of a configured add-on, which
is enough to install it into a Jira site. Webhook handlers are code and are
registered by embedding `AtlassianAddon` in an application instead.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from jira_addon.addon import AtlassianAddon
from jira_addon.config import AppConfig, load_config
from jira_addon.descriptor import DESCRIPTOR_PATH, INSTALLED_PATH, UNINSTALLED_PATH
from jira_addon.errors import ConfigurationError
from jira_addon.logging_config import setup_logging
from jira_addon.server import AddonServer

logger = logging.getLogger(__name__)

_console = Console()


def _print_summary(addon: AtlassianAddon, config: AppConfig) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Route")
    table.add_column("URL")
    for label, path in (
        ("descriptor", DESCRIPTOR_PATH),
        ("installed", INSTALLED_PATH),
        ("uninstalled", UNINSTALLED_PATH),
    ):
        table.add_row(label, f"{addon.base_url}{path}")
    _console.print(
        Panel(
            table,
            title=f"[bold]{addon.name or addon.key}[/bold]",
            subtitle=f"listening on {config.server.host}:{config.server.port}",
        )
    )


async def _serve(config: AppConfig) -> None:
    addon = AtlassianAddon(config.addon)
    server = AddonServer(addon, config.server)
    await server.start()
    _print_summary(addon, config)
    try:
        await asyncio.Event().wait()
    finally:
        await server.stop()
        await addon.close()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="jira_addon", description=__doc__.splitlines()[0])
    parser.add_argument("--config", type=Path, required=True, help="Path to the JSON config")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-dir", type=Path, default=None, help="Write rotating logs here")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigurationError as exc:
        _console.print(f"[red]{exc}[/red]")
        return 2

    setup_logging(level=config.log_level, verbose=args.verbose, log_dir=args.log_dir)
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_serve(config))
    logger.info("Shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
