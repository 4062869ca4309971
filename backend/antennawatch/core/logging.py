"""Logging for antennawatch.

Every component logs through a ``ContextualLogger``: a ``LoggerAdapter`` that
carries a dictionary of dimensions (subscription id, cursor name, component...)
which is attached to every record it emits. Use ``with_context`` to derive a
logger with extra dimensions instead of formatting them into messages.

Local development renders through rich; everywhere else one JSON object is
written per line so log collectors can index the dimensions.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, MutableMapping, Optional, Tuple

from rich.console import Console
from rich.logging import RichHandler

from antennawatch.core.config import settings

ROOT_LOGGER_NAME = "antennawatch"

# Attributes every LogRecord has; anything else arrived through ``extra``
_RESERVED_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """Render records as single-line JSON documents."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a record including its dimensions."""
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_ATTRS:
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ContextualLogger(logging.LoggerAdapter):
    """Logger adapter that attaches dimensions to every record."""

    def __init__(self, logger: logging.Logger, dimensions: Optional[Dict[str, Any]] = None):
        """Initialize the adapter.

        Args:
            logger: Underlying stdlib logger
            dimensions: Key/value pairs attached to every record
        """
        super().__init__(logger, {})
        self.dimensions: Dict[str, Any] = dict(dimensions or {})

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        """Merge the adapter dimensions with any per-call ``extra``."""
        extra = dict(self.dimensions)
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs

    def with_context(self, **dimensions: Any) -> "ContextualLogger":
        """Return a new logger carrying these dimensions on top of the current ones."""
        merged = dict(self.dimensions)
        merged.update(dimensions)
        return ContextualLogger(self.logger, merged)


class LoggerConfigurator:
    """Configures handlers once and hands out contextual loggers."""

    _configured = False

    @classmethod
    def setup(cls, force: bool = False) -> None:
        """Install the handler on the package root logger.

        Args:
            force: Replace previously installed handlers
        """
        if cls._configured and not force:
            return

        root = logging.getLogger(ROOT_LOGGER_NAME)
        for handler in list(root.handlers):
            root.removeHandler(handler)

        if settings.LOCAL_DEVELOPMENT:
            handler: logging.Handler = RichHandler(
                console=Console(stderr=True),
                show_time=True,
                show_path=False,
                rich_tracebacks=True,
            )
            handler.setFormatter(logging.Formatter("%(message)s"))
        else:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(JSONFormatter())

        root.addHandler(handler)
        root.setLevel(getattr(logging, settings.LOG_LEVEL, logging.INFO))
        root.propagate = False
        cls._configured = True

    @classmethod
    def configure_logger(
        cls, name: str, dimensions: Optional[Dict[str, Any]] = None
    ) -> ContextualLogger:
        """Create a contextual logger for a module or operation.

        Args:
            name: Logger name, normally under ``antennawatch.``
            dimensions: Dimensions attached to every record

        Returns:
            ContextualLogger bound to ``name``
        """
        cls.setup()
        return ContextualLogger(logging.getLogger(name), dimensions)


def get_logger(name: str = ROOT_LOGGER_NAME) -> ContextualLogger:
    """Get a contextual logger without dimensions."""
    return LoggerConfigurator.configure_logger(name)


logger = get_logger()
