"""Process-wide logging for a served add-on.

The ``jira_addon`` logger is the root of every add-on's hierarchy: each
`AtlassianAddon` logs under ``jira_addon.<key>`` and its components under
``jira_addon.<key>.<component>`` (see `addon_logger`). `setup_logging` is
called once by the entry point; library code never installs handlers.
"""

from __future__ import annotations

import atexit
import logging
import queue
from dataclasses import dataclass
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from jira_addon.log_context import ContextFilter

PACKAGE_LOGGER = "jira_addon"
LOG_FILE = "addon.log"
LOG_FILE_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 3

_CONSOLE_FMT = "%(name)s: %(ctx)s%(message)s"
_FILE_FMT = "%(asctime)s %(levelname)-8s %(name)s: %(ctx)s%(message)s"

# Loggers outside the add-on hierarchy that are too chatty at INFO.
_QUIET_LOGGERS = ("aiohttp.access",)


@dataclass
class _FileSink:
    handler: QueueHandler
    listener: QueueListener


_sink: _FileSink | None = None


def addon_logger(key: str) -> logging.Logger:
    """Return the base logger for the add-on identified by *key*."""
    return logging.getLogger(PACKAGE_LOGGER).getChild(key)


def parse_level(level: int | str) -> int:
    """Resolve a numeric level or a level name; unknown names mean INFO."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def shutdown_logging() -> None:
    """Flush and detach the file sink, if one is installed."""
    global _sink  # noqa: PLW0603
    if _sink is None:
        return
    _sink.listener.stop()
    logging.getLogger().removeHandler(_sink.handler)
    _sink.handler.close()
    _sink = None


def _console_handler(level: int, console: Console | None) -> logging.Handler:
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_CONSOLE_FMT))
    return handler


def _file_sink(log_dir: Path) -> _FileSink:
    # Rotation does blocking IO, so records reach the file via a listener thread.
    log_dir.mkdir(parents=True, exist_ok=True)
    target = RotatingFileHandler(
        log_dir / LOG_FILE,
        maxBytes=LOG_FILE_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    target.setFormatter(logging.Formatter(_FILE_FMT))
    records: queue.Queue[logging.LogRecord] = queue.Queue()
    handler = QueueHandler(records)
    listener = QueueListener(records, target)
    listener.start()
    return _FileSink(handler=handler, listener=listener)


def setup_logging(
    level: int | str = logging.INFO,
    verbose: bool = False,
    log_dir: Path | None = None,
    *,
    console: Console | None = None,
) -> None:
    """Install console and optional file handlers on the root logger.

    The console shows records at *level* (DEBUG with *verbose*). The file in
    *log_dir* always receives DEBUG records from the add-on hierarchy. Both
    handlers carry the request context prefix from `ContextFilter`. Calling
    this again replaces the previous handlers.
    """
    global _sink  # noqa: PLW0603
    console_level = logging.DEBUG if verbose else parse_level(level)

    shutdown_logging()
    root = logging.getLogger()
    root.handlers.clear()

    context = ContextFilter()
    handlers: list[logging.Handler] = [_console_handler(console_level, console)]
    if log_dir is not None:
        _sink = _file_sink(log_dir)
        handlers.append(_sink.handler)
        atexit.unregister(shutdown_logging)
        atexit.register(shutdown_logging)
    for handler in handlers:
        handler.addFilter(context)
        root.addHandler(handler)

    root.setLevel(console_level)
    package = logging.getLogger(PACKAGE_LOGGER)
    package.setLevel(logging.DEBUG if log_dir is not None else console_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    package.debug(
        "Logging ready (console=%s, file=%s)",
        logging.getLevelName(console_level),
        log_dir / LOG_FILE if log_dir is not None else "off",
    )
