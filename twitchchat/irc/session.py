"""Chat session: handshake, frame intake, dispatch and shutdown."""

from __future__ import annotations

import inspect
import logging
from typing import Any

import aiohttp

from ..constants import (
    OAUTH_PREFIX,
    TWITCH_CHAT_SUFFIX,
    TWITCH_IRC_WS_URL,
    TWITCH_ISOLATE_LISTENER_ERRORS,
)
from ..errors.internal import SessionStateError, TransportError
from ..logs.logger import logger
from .models import EventKind, Join, Message, Part, Phase, Ping, PrivMsg, event_kind
from .parser import (
    build_capability_request,
    build_join,
    build_nick,
    build_pass,
    parse_message,
    split_lines,
)
from .registry import Listener, ListenerRegistry
from .sender import OutboundSender


class ChatSession:  # pylint: disable=too-many-instance-attributes
    """One connection to Twitch chat over IRC-on-WebSocket.

    Phases only move forward: DISCONNECTED → HANDSHAKING → JOINED → CLOSING →
    CLOSED. The one exception is a failed handshake, which drops back to
    DISCONNECTED so ``connect`` can be attempted again. ``close`` always wins:
    a session closed while ``connect`` is in flight stays CLOSED.

    Dispatch is sequential: lines are decoded in arrival order and each
    listener is awaited before the next one runs. A listener that never
    returns stalls the session; there are no internal timeouts.

    Attributes:
        url (str): WebSocket endpoint.
        nick (str | None): Bot nickname, set by ``connect``.
        channel (str | None): Joined channel without ``#``, set by ``connect``.
        registry (ListenerRegistry): Listener lists per event kind.
        isolate_listener_errors (bool): Log and skip failing listeners instead
            of ending the session.
    """

    def __init__(
        self,
        http_session: aiohttp.ClientSession | None = None,
        *,
        url: str = TWITCH_IRC_WS_URL,
        chat_suffix: str = TWITCH_CHAT_SUFFIX,
        isolate_listener_errors: bool = TWITCH_ISOLATE_LISTENER_ERRORS,
    ) -> None:
        self.url = url
        self.chat_suffix = chat_suffix
        self.isolate_listener_errors = isolate_listener_errors
        self.nick: str | None = None
        self.channel: str | None = None
        self.registry = ListenerRegistry()
        self._phase = Phase.DISCONNECTED
        self._http = http_session
        self._owns_http = http_session is None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._sender: OutboundSender | None = None
        self._running = False
        self._opening = False
        self._close_requested = False

    async def __aenter__(self) -> ChatSession:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def sender(self) -> OutboundSender:
        if self._phase is not Phase.JOINED or self._sender is None:
            raise SessionStateError(
                f"No sender available in phase {self._phase.name}",
                data={"phase": self._phase.name},
            )
        return self._sender

    def _set_phase(self, new_phase: Phase) -> None:
        if self._phase != new_phase:
            logger.log_event(
                "session",
                "state_change",
                level=logging.DEBUG,
                user=self.nick,
                old_state=self._phase.name,
                new_state=new_phase.name,
            )
            self._phase = new_phase

    def add_listener(self, kind: EventKind, callback: Listener) -> None:
        self.registry.add(kind, callback)

    def add_priv_msg_listener(self, callback: Listener) -> None:
        self.registry.add(EventKind.PRIV_MSG, callback)

    def add_join_listener(self, callback: Listener) -> None:
        self.registry.add(EventKind.JOIN, callback)

    def add_part_listener(self, callback: Listener) -> None:
        self.registry.add(EventKind.PART, callback)

    async def connect(self, token: str, nick: str, channel: str) -> None:
        """Open the WebSocket and send the login handshake.

        The four handshake lines are sent back to back without waiting for
        any server acknowledgement.

        Raises:
            SessionStateError: If the session is not DISCONNECTED.
            TransportError: If opening the socket or any handshake write
                fails. The session is left DISCONNECTED and no later
                handshake line is sent.
            SessionStateError: If close() ends the session while the
                handshake is in progress. The session stays CLOSED.
        """
        if self._phase is not Phase.DISCONNECTED:
            raise SessionStateError(
                f"connect() requires DISCONNECTED, session is {self._phase.name}",
                data={"phase": self._phase.name},
            )
        self.nick = nick
        self.channel = channel
        token = token.removeprefix(OAUTH_PREFIX)

        self._set_phase(Phase.HANDSHAKING)
        logger.log_event("session", "connect_start", user=nick, url=self.url)

        step = "open"
        try:
            self._ws = await self._open()
            self._sender = OutboundSender(
                self._ws, channel, chat_suffix=self.chat_suffix, username=nick
            )
            if self._phase is not Phase.HANDSHAKING:
                raise await self._abandon_handshake(step)
            handshake = (
                ("cap", build_capability_request()),
                ("pass", build_pass(token)),
                ("nick", build_nick(nick)),
                ("join", build_join(channel)),
            )
            for step, line in handshake:
                await self._sender.send(line)
                if self._phase is not Phase.HANDSHAKING:
                    raise await self._abandon_handshake(step)
                logger.log_event(
                    "session", "handshake_sent", level=logging.DEBUG, user=nick, step=step
                )
        except TransportError as e:
            if self._phase is not Phase.HANDSHAKING:
                raise await self._abandon_handshake(step) from e
            logger.log_event(
                "session",
                "connect_failed",
                level=logging.ERROR,
                user=nick,
                step=step,
                error=str(e),
            )
            await self._abort_handshake()
            raise

        self._set_phase(Phase.JOINED)
        logger.log_event("session", "connect_success", user=nick, channel=channel)

    async def _open(self) -> aiohttp.ClientWebSocketResponse:
        if self._http is None:
            self._http = aiohttp.ClientSession()
        self._opening = True
        try:
            # Pings and close frames are answered by the session itself.
            return await self._http.ws_connect(
                self.url, autoping=False, autoclose=False
            )
        except Exception as e:
            raise TransportError(
                f"WebSocket connection failed: {str(e)}",
                operation="connect",
                data={"url": self.url},
            ) from e
        finally:
            self._opening = False

    async def _abort_handshake(self) -> None:
        await self._close_quietly()
        self._sender = None
        self._ws = None
        await self._release_http()
        # close() may have finished the session while the socket was closing
        if self._phase is Phase.HANDSHAKING:
            self._set_phase(Phase.DISCONNECTED)

    async def _abandon_handshake(self, step: str) -> SessionStateError:
        """Release what connect() acquired after close() ended the session."""
        await self._close_quietly()
        await self._release_http()
        logger.log_event(
            "session",
            "connect_aborted",
            level=logging.WARNING,
            user=self.nick,
            step=step,
            phase=self._phase.name,
        )
        return SessionStateError(
            f"Session closed during handshake step {step}",
            data={"phase": self._phase.name, "step": step},
        )

    async def run(self) -> None:
        """Process inbound frames until the transport closes.

        Returns normally after a server close, a read error, or ``close()``.
        A failing outbound write or (unless isolated) a failing listener is
        re-raised once the session has reached CLOSED.

        Raises:
            SessionStateError: If the session is not JOINED or already running.
            TransportError: If a write fails while the session was not asked
                to close.
        """
        if self._phase is not Phase.JOINED:
            raise SessionStateError(
                f"run() requires JOINED, session is {self._phase.name}",
                data={"phase": self._phase.name},
            )
        if self._running:
            raise SessionStateError("run() is already active")
        self._running = True
        logger.log_event("session", "run_start", user=self.nick, channel=self.channel)
        try:
            await self._receive_loop()
        except TransportError as e:
            if not self._close_requested:
                raise
            logger.log_event(
                "session",
                "close_ack_failed",
                level=logging.DEBUG,
                user=self.nick,
                error=str(e),
            )
        finally:
            self._running = False
            await self._shutdown()

    async def _receive_loop(self) -> None:
        while True:
            try:
                frame = await self._ws.receive()
            except Exception as e:  # noqa: BLE001
                logger.log_event(
                    "session",
                    "read_error",
                    level=logging.WARNING,
                    user=self.nick,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                await self._close_quietly()
                return
            if not await self._handle_frame(frame):
                return

    async def _handle_frame(self, frame: aiohttp.WSMessage) -> bool:
        """Handle one transport frame. Returns False when the loop must end."""
        msg_type = frame.type
        if msg_type == aiohttp.WSMsgType.TEXT:
            await self._handle_text(frame.data)
            return True
        if msg_type == aiohttp.WSMsgType.PING:
            await self._sender.send_pong(frame.data or b"")
            logger.log_event(
                "irc", "transport_ping", level=logging.DEBUG, user=self.nick
            )
            return True
        if msg_type == aiohttp.WSMsgType.CLOSE:
            logger.log_event(
                "session",
                "server_close",
                user=self.nick,
                close_code=frame.data,
                close_reason=frame.extra,
            )
            await self._close_quietly()
            return False
        if msg_type in (aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
            return False
        if msg_type == aiohttp.WSMsgType.ERROR:
            logger.log_event(
                "session",
                "read_error",
                level=logging.WARNING,
                user=self.nick,
                error=str(frame.data),
            )
            await self._close_quietly()
            return False
        # PONG, BINARY
        return True

    async def _handle_text(self, text: str) -> None:
        for line in split_lines(text):
            message = parse_message(line)
            logger.log_event(
                "irc", "message", level=logging.DEBUG, user=self.nick, message=message
            )
            await self._dispatch(message)

    async def _dispatch(self, message: Message) -> None:
        if isinstance(message, Ping):
            await self._sender.send_irc_pong(message.server_name)
            logger.log_event(
                "irc",
                "pong",
                level=logging.DEBUG,
                user=self.nick,
                server_name=message.server_name,
            )
            return
        kind = event_kind(message)
        if kind is None:
            return
        self._log_chat_event(message)
        for listener in self.registry.listeners(kind):
            await self._invoke(listener, message)

    async def _invoke(self, listener: Listener, message: Message) -> None:
        try:
            result = listener(message, self._sender)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.log_event(
                "session",
                "listener_error",
                level=logging.ERROR,
                user=self.nick,
                listener=getattr(listener, "__name__", repr(listener)),
                error=str(e),
                error_type=type(e).__name__,
                isolated=self.isolate_listener_errors,
            )
            if not self.isolate_listener_errors:
                raise

    def _log_chat_event(self, message: PrivMsg | Join | Part) -> None:
        if isinstance(message, PrivMsg):
            logger.log_event(
                "irc",
                "privmsg",
                level=logging.DEBUG,
                user=self.nick,
                channel=message.channel,
                author=message.nick,
                body=message.body,
            )
        else:
            logger.log_event(
                "irc",
                "join" if isinstance(message, Join) else "part",
                level=logging.DEBUG,
                user=self.nick,
                channel=message.channel,
                author=message.nick,
            )

    async def send_chat(self, body: str) -> None:
        await self.sender.send_chat(body)

    async def close(self) -> None:
        """Shut the session down from outside.

        While ``run()`` is active this only closes the transport; the pending
        read then returns and ``run()`` finishes the shutdown itself.
        """
        if self._phase is Phase.CLOSED:
            return
        self._close_requested = True
        logger.log_event("session", "close_requested", level=logging.DEBUG, user=self.nick)
        if self._running:
            await self._close_quietly()
            return
        await self._shutdown()

    async def _shutdown(self) -> None:
        if self._phase is Phase.CLOSED:
            return
        self._set_phase(Phase.CLOSING)
        await self._close_quietly()
        await self._release_http()
        self._set_phase(Phase.CLOSED)
        logger.log_event("session", "closed", user=self.nick, channel=self.channel)

    async def _close_quietly(self) -> None:
        if self._sender is None:
            return
        try:
            await self._sender.close()
        except TransportError as e:
            logger.log_event(
                "session",
                "close_ack_failed",
                level=logging.DEBUG,
                user=self.nick,
                error=str(e),
            )

    async def _release_http(self) -> None:
        # Never close the HTTP session under an in-flight ws_connect; connect()
        # releases it once the open returns.
        if not self._owns_http or self._http is None or self._opening:
            return
        http, self._http = self._http, None
        await http.close()
