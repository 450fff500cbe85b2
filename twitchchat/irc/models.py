"""Shared IRC data models: decoded messages, event kinds and session phases."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto


class Phase(Enum):
    DISCONNECTED = auto()
    HANDSHAKING = auto()
    JOINED = auto()
    CLOSING = auto()
    CLOSED = auto()


class EventKind(Enum):
    PRIV_MSG = auto()
    JOIN = auto()
    PART = auto()


@dataclass(frozen=True, slots=True)
class PrivMsg:
    nick: str
    canonical_nick: str
    channel: str
    body: str
    tags: dict[str, str] = field(default_factory=dict)

    def __hash__(self) -> int:
        # tags is a plain dict; hash its items so equal messages hash equal
        return hash(
            (
                self.nick,
                self.canonical_nick,
                self.channel,
                self.body,
                frozenset(self.tags.items()),
            )
        )


@dataclass(frozen=True, slots=True)
class Ping:
    server_name: str


@dataclass(frozen=True, slots=True)
class Join:
    nick: str
    canonical_nick: str
    channel: str


@dataclass(frozen=True, slots=True)
class Part:
    nick: str
    canonical_nick: str
    channel: str


@dataclass(frozen=True, slots=True)
class Other:
    """Any line the decoder does not recognise, kept verbatim."""

    raw: str


Message = PrivMsg | Ping | Join | Part | Other

_EVENT_KINDS: dict[type, EventKind] = {
    PrivMsg: EventKind.PRIV_MSG,
    Join: EventKind.JOIN,
    Part: EventKind.PART,
}


def event_kind(message: Message) -> EventKind | None:
    """Listener list a message fans out to, or None for Ping/Other."""
    return _EVENT_KINDS.get(type(message))
