"""Castellan Logging — structlog configuration and processors."""

from castellan.logging.structlog_adapter import StructlogAdapter, add_error_context, build_processors, get_logger

__all__ = ["StructlogAdapter", "add_error_context", "build_processors", "get_logger"]
