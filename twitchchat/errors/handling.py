from __future__ import annotations

import aiohttp

from ..logging_config import log_structured_error
from .internal import (
    ConfigurationError,
    InternalError,
    SessionStateError,
    TransportError,
)


def classify_error(error: BaseException) -> str:
    """Map an exception onto the error category used in structured logs."""
    if isinstance(error, TransportError | aiohttp.ClientError | OSError | ConnectionError):
        return "transport"
    if isinstance(error, SessionStateError):
        return "state"
    if isinstance(error, ConfigurationError):
        return "config"
    if isinstance(error, InternalError):
        return "internal"
    return "unknown"


def log_error(message: str, error: Exception, context: dict = None) -> None:
    """Logs an error message with the associated exception details.

    The exception is classified first so repeated failures of the same kind
    aggregate under one error type. Context attached to an ``InternalError``
    is merged under any explicit ``context``.

    Args:
        message: A descriptive message about the error context.
        error: The exception instance to be logged.
        context: Optional additional context data for debugging.
    """
    merged: dict = {}
    if isinstance(error, InternalError):
        merged.update(error.data)
    if isinstance(error, TransportError) and error.operation:
        merged.setdefault("operation", error.operation)
    if context:
        merged.update(context)

    log_structured_error(
        error_type=classify_error(error),
        message=f"{message}: {str(error)}",
        exception=error,
        context=merged or None,
    )
