"""bulkops utilities package."""

from bulkops.utils.logging import JsonFormatter, configure_logging

__all__ = ["JsonFormatter", "configure_logging"]
