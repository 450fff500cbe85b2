"""Error hierarchy and error logging helpers."""

from .internal import (  # noqa: F401
    ConfigurationError,
    InternalError,
    SessionStateError,
    TransportError,
)

__all__ = [
    "InternalError",
    "TransportError",
    "SessionStateError",
    "ConfigurationError",
]
