"""Castellan exception hierarchy.

Every error raised by the framework derives from :class:`CastellanException`
and carries a machine-readable ``code`` plus a ``context`` dict, so callers
can branch on codes and log processors can emit the details as fields.

- ConfigurationException: a setting is missing, unreadable, or invalid
- InfrastructureException: registration, activation, and invocation failures
"""

from __future__ import annotations

from typing import Any


class CastellanException(Exception):
    """Root of all Castellan errors.

    Args:
        message: Human-readable description.
        code: Stable error code such as ``"INTERCEPTION_DISPOSED"``.
        context: Extra key-value details (component key, operation, ...).
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.context: dict[str, Any] = context if context is not None else {}

    def to_dict(self) -> dict[str, Any]:
        """Structured form of the error, used by log processors."""
        return {
            "type": type(self).__name__,
            "message": str(self),
            "code": self.code,
            "context": dict(self.context),
        }


class ConfigurationException(CastellanException):
    """A configuration value is missing, malformed, or unsupported."""


class InfrastructureException(CastellanException):
    """Container and interception failures."""
