"""Centralized internal error hierarchy.

These exceptions provide semantic categories for the chat client. Only raise
these at the package boundaries: never surface raw aiohttp / OS errors to
callers of the session; wrap them instead.

Classes:
  InternalError        – Base for all internal errors.
  TransportError       – WebSocket open/write failures (fatal to the session).
  SessionStateError    – An operation was called in the wrong connection phase.
  ConfigurationError   – Missing or invalid configuration values.
"""

from __future__ import annotations

from collections.abc import Mapping


class InternalError(Exception):
    """Base class for all internal application errors with metadata support.

    Attributes:
        data: Dictionary containing arbitrary structured context data.

    Args:
        message: Descriptive error message.
        data: Optional mapping of additional context data.
    """

    data: dict[str, object]

    def __init__(
        self, message: str, *, data: Mapping[str, object] | None = None
    ) -> None:
        super().__init__(message)
        # Copy into a plain dict to avoid unexpected mutations from caller.
        self.data = dict(data) if data else {}


class TransportError(InternalError):
    """Exception raised when the WebSocket transport fails.

    Covers opening the connection and every outbound write. A transport error
    is fatal to the session that raised it; no retry happens internally.

    Attributes:
        operation: The transport operation that failed ('connect', 'send',
            'pong' or 'close').
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        data: Mapping[str, object] | None = None,
    ) -> None:
        super().__init__(message, data=data)
        self.operation = operation


class SessionStateError(InternalError):
    """Exception raised when a session operation is invalid in its current phase."""


class ConfigurationError(InternalError):
    """Exception raised for missing or invalid configuration values.

    The offending field names are available under ``data["fields"]``.
    """


__all__ = [
    "InternalError",
    "TransportError",
    "SessionStateError",
    "ConfigurationError",
]
