"""Twitch chat client: IRC-over-WebSocket decoding, dispatch and keepalive."""

from .config import BotConfig  # noqa: F401
from .errors.internal import (  # noqa: F401
    ConfigurationError,
    InternalError,
    SessionStateError,
    TransportError,
)
from .irc import (  # noqa: F401
    ChatSession,
    EventKind,
    Join,
    ListenerRegistry,
    Message,
    Other,
    OutboundSender,
    Part,
    Phase,
    Ping,
    PrivMsg,
    parse_message,
    split_lines,
)

__version__ = "0.1.0"

__all__ = [
    "BotConfig",
    "ChatSession",
    "ConfigurationError",
    "EventKind",
    "InternalError",
    "Join",
    "ListenerRegistry",
    "Message",
    "Other",
    "OutboundSender",
    "Part",
    "Phase",
    "Ping",
    "PrivMsg",
    "SessionStateError",
    "TransportError",
    "parse_message",
    "split_lines",
]
