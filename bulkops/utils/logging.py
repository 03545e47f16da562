"""Logging setup for bulkops.

Every module logs through ``logging.getLogger(__name__)``. Nothing is
configured on import; applications either wire the ``bulkops`` logger
into their own logging setup or call :func:`configure_logging`.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from bulkops.core.config import BulkOpsConfig, config as default_config

LOGGER_NAME = "bulkops"

# Attributes every LogRecord carries; anything else came in through ``extra=``
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys() | {"message", "asctime"}
)


class JsonFormatter(logging.Formatter):
    """Render log records as one JSON object per line.

    Fields passed through ``extra=`` are included as top-level keys.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(
    cfg: Optional[BulkOpsConfig] = None,
    handler: Optional[logging.Handler] = None,
) -> logging.Logger:
    """Attach a handler to the ``bulkops`` logger.

    Calling it again replaces the handler installed by the previous call
    instead of stacking a second one.

    Args:
        cfg: Configuration to read level and format from (defaults to the
            global config)
        handler: Handler to install (defaults to a stderr StreamHandler)

    Returns:
        The configured ``bulkops`` logger
    """
    cfg = cfg or default_config
    logger = logging.getLogger(LOGGER_NAME)

    for existing in list(logger.handlers):
        if getattr(existing, "_bulkops_handler", False):
            logger.removeHandler(existing)

    handler = handler or logging.StreamHandler()
    if cfg.log_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
        )
    handler._bulkops_handler = True  # type: ignore[attr-defined]

    logger.addHandler(handler)
    logger.setLevel(cfg.log_level)
    return logger
