"""Serialized outbound writes over the chat WebSocket."""

from __future__ import annotations

import asyncio
import logging

import aiohttp

from ..constants import OAUTH_PREFIX, TWITCH_CHAT_SUFFIX
from ..errors.internal import TransportError
from ..logs.logger import logger
from .parser import build_pong, build_privmsg

WEBSOCKET_NOT_CONNECTED_ERROR = "WebSocket not connected"


def _mask_line(line: str) -> str:
    if line.startswith("PASS "):
        return f"PASS {OAUTH_PREFIX}***"
    return line


class OutboundSender:
    """Single-writer handle over the session's WebSocket.

    Every write (text lines, transport pongs and the close frame) takes the
    same lock, so at most one write is in flight no matter how many tasks
    share the sender. Transport failures are raised as ``TransportError``.

    Attributes:
        channel (str): Channel that ``send_chat`` addresses.
        chat_suffix (str): Text appended to every ``send_chat`` body.
        username (str | None): Bot nick, used as the log prefix.
    """

    def __init__(
        self,
        ws: aiohttp.ClientWebSocketResponse,
        channel: str,
        *,
        chat_suffix: str = TWITCH_CHAT_SUFFIX,
        username: str | None = None,
    ) -> None:
        self._ws = ws
        self._lock = asyncio.Lock()
        self._closed = False
        self.channel = channel
        self.chat_suffix = chat_suffix
        self.username = username

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, raw_line: str) -> None:
        """Write one protocol line as a single text frame.

        Raises:
            TransportError: If the sender is closed or the write fails.
        """
        async with self._lock:
            self._ensure_open("send")
            try:
                await self._ws.send_str(raw_line)
            except Exception as e:
                raise TransportError(
                    f"WebSocket send failed: {str(e)}", operation="send"
                ) from e
        logger.log_event(
            "irc",
            "send",
            level=logging.DEBUG,
            user=self.username,
            channel=self.channel,
            line=_mask_line(raw_line),
        )

    async def send_chat(self, body: str) -> None:
        await self.send(build_privmsg(self.channel, body, self.chat_suffix))

    async def send_irc_pong(self, server_name: str) -> None:
        await self.send(build_pong(server_name))

    async def send_pong(self, payload: bytes = b"") -> None:
        """Answer a transport-level ping with the identical payload."""
        async with self._lock:
            self._ensure_open("pong")
            try:
                await self._ws.pong(payload)
            except Exception as e:
                raise TransportError(
                    f"WebSocket pong failed: {str(e)}", operation="pong"
                ) from e

    async def close(self) -> None:
        """Send the close frame. Later calls are no-ops."""
        async with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                await self._ws.close()
            except Exception as e:
                raise TransportError(
                    f"WebSocket close failed: {str(e)}", operation="close"
                ) from e

    def _ensure_open(self, operation: str) -> None:
        if self._closed:
            raise TransportError(WEBSOCKET_NOT_CONNECTED_ERROR, operation=operation)
