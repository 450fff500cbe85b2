"""IRC line decoding and outbound line building.

``parse_message`` is total: every input line decodes to exactly one message
and anything that does not match a known grammar comes back as ``Other`` with
the line untouched.
"""

from __future__ import annotations

from ..constants import OAUTH_PREFIX, TWITCH_CAPABILITIES
from .models import Join, Message, Other, Part, Ping, PrivMsg

PING_PREFIX = "PING :"
PRIVMSG_COMMAND = "PRIVMSG #"
MEMBERSHIP_COMMANDS = (("JOIN #", Join), ("PART #", Part))


def parse_message(line: str) -> Message:
    if line.startswith(PING_PREFIX):
        return Ping(server_name=line[len(PING_PREFIX):])

    priv = _parse_privmsg(line)
    if priv is not None:
        return priv

    membership = _parse_membership(line)
    if membership is not None:
        return membership

    return Other(raw=line)


def split_lines(text: str) -> list[str]:
    """Split a frame payload into protocol lines.

    Lines end at ``\\n`` with an optional preceding ``\\r``. A trailing line
    break does not produce an extra empty line.
    """
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def _split_origin(rest: str) -> tuple[str, str, str] | None:
    # ":<nick>!<canonical_nick> <remainder>"
    if not rest.startswith(":"):
        return None
    origin, sep, remainder = rest[1:].partition(" ")
    if not sep:
        return None
    nick, bang, canonical_nick = origin.partition("!")
    if not bang:
        return None
    return nick, canonical_nick, remainder


def _parse_privmsg(line: str) -> PrivMsg | None:
    raw_tags = None
    rest = line
    if rest.startswith("@"):
        raw_tags, sep, rest = rest[1:].partition(" ")
        if not sep:
            return None

    origin = _split_origin(rest)
    if origin is None:
        return None
    nick, canonical_nick, remainder = origin
    if not remainder.startswith(PRIVMSG_COMMAND):
        return None

    channel, sep, body = remainder[len(PRIVMSG_COMMAND):].partition(" :")
    if not sep:
        return None

    return PrivMsg(
        nick=nick,
        canonical_nick=canonical_nick,
        channel=channel,
        body=body,
        tags=_parse_tags(raw_tags) if raw_tags is not None else {},
    )


def _parse_membership(line: str) -> Join | Part | None:
    origin = _split_origin(line)
    if origin is None:
        return None
    nick, canonical_nick, remainder = origin
    for command, message_type in MEMBERSHIP_COMMANDS:
        if remainder.startswith(command):
            return message_type(
                nick=nick,
                canonical_nick=canonical_nick,
                channel=remainder[len(command):],
            )
    return None


def _parse_tags(raw_tags: str) -> dict[str, str]:
    tags: dict[str, str] = {}
    for tag in raw_tags.split(";"):
        if not tag:
            continue
        k, _, v = tag.partition("=")
        tags[k] = v
    return tags


def build_capability_request() -> str:
    return f"CAP REQ :{TWITCH_CAPABILITIES}"


def build_pass(token: str) -> str:
    return f"PASS {OAUTH_PREFIX}{token}"


def build_nick(nick: str) -> str:
    return f"NICK {nick}"


def build_join(channel: str) -> str:
    return f"JOIN #{channel}"


def build_pong(server_name: str) -> str:
    return f"PONG :{server_name}"


def build_privmsg(channel: str, body: str, suffix: str = "!") -> str:
    return f"PRIVMSG #{channel} :{body}{suffix}"
