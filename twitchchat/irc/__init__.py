"""IRC subsystem package.

Contains the line decoder, listener registry, outbound sender and the chat
session state machine for Twitch IRC over WebSocket.
"""

from .models import (  # noqa: F401
    EventKind,
    Join,
    Message,
    Other,
    Part,
    Phase,
    Ping,
    PrivMsg,
    event_kind,
)
from .parser import parse_message, split_lines  # noqa: F401
from .registry import Listener, ListenerRegistry  # noqa: F401
from .sender import OutboundSender  # noqa: F401
from .session import ChatSession  # noqa: F401

__all__ = [
    "ChatSession",
    "EventKind",
    "Join",
    "Listener",
    "ListenerRegistry",
    "Message",
    "Other",
    "OutboundSender",
    "Part",
    "Phase",
    "Ping",
    "PrivMsg",
    "event_kind",
    "parse_message",
    "split_lines",
]
