import asyncio

import aiohttp
import pytest

from tests.fixtures.websocket_fixtures import (
    FakeWebSocket,
    close_frame,
    frame,
    make_http_session,
    text,
)
from twitchchat.errors.internal import SessionStateError, TransportError
from twitchchat.irc import ChatSession, Join, Part, Phase, PrivMsg
from twitchchat.irc import session as session_module

HANDSHAKE = [
    "CAP REQ :twitch.tv/membership twitch.tv/tags",
    "PASS oauth:tok",
    "NICK loigebot",
    "JOIN #loige",
]


async def _joined(ws: FakeWebSocket, **kwargs) -> ChatSession:
    session = ChatSession(make_http_session(ws), url="wss://example.test", **kwargs)
    await session.connect("tok", "loigebot", "loige")
    return session


@pytest.mark.asyncio
async def test_connect_sends_handshake_in_order():
    ws = FakeWebSocket()
    http = make_http_session(ws)
    session = ChatSession(http, url="wss://example.test")
    assert session.phase is Phase.DISCONNECTED

    await session.connect("tok", "loigebot", "loige")

    assert ws.sent == HANDSHAKE
    assert session.phase is Phase.JOINED
    http.ws_connect.assert_awaited_once_with(
        "wss://example.test", autoping=False, autoclose=False
    )


@pytest.mark.asyncio
async def test_connect_does_not_double_oauth_prefix():
    ws = FakeWebSocket()
    session = ChatSession(make_http_session(ws))
    await session.connect("oauth:tok", "loigebot", "loige")
    assert ws.sent[1] == "PASS oauth:tok"


@pytest.mark.asyncio
async def test_connect_failure_at_pass_stays_disconnected():
    ws = FakeWebSocket(fail_prefix="PASS")
    session = ChatSession(make_http_session(ws))

    with pytest.raises(TransportError) as exc_info:
        await session.connect("tok", "loigebot", "loige")

    assert exc_info.value.operation == "send"
    assert session.phase is Phase.DISCONNECTED
    assert ws.sent == [HANDSHAKE[0]]
    assert ws.close_calls == 1


@pytest.mark.asyncio
async def test_connect_open_failure_raises_transport_error():
    http = make_http_session(FakeWebSocket())
    http.ws_connect.side_effect = aiohttp.ClientConnectionError("refused")
    session = ChatSession(http)

    with pytest.raises(TransportError) as exc_info:
        await session.connect("tok", "loigebot", "loige")

    assert exc_info.value.operation == "connect"
    assert session.phase is Phase.DISCONNECTED


@pytest.mark.asyncio
async def test_failed_handshake_can_be_retried():
    ws = FakeWebSocket(fail_prefix="NICK")
    session = ChatSession(make_http_session(ws))
    with pytest.raises(TransportError):
        await session.connect("tok", "loigebot", "loige")

    ws.fail_prefix = None
    ws.sent.clear()
    session._http.ws_connect.return_value = ws  # type: ignore[union-attr]
    await session.connect("tok", "loigebot", "loige")
    assert ws.sent == HANDSHAKE
    assert session.phase is Phase.JOINED


@pytest.mark.asyncio
async def test_connect_twice_rejected():
    session = await _joined(FakeWebSocket())
    with pytest.raises(SessionStateError):
        await session.connect("tok", "loigebot", "loige")


@pytest.mark.asyncio
async def test_run_requires_joined():
    session = ChatSession(make_http_session(FakeWebSocket()))
    with pytest.raises(SessionStateError):
        await session.run()
    with pytest.raises(SessionStateError):
        _ = session.sender


@pytest.mark.asyncio
async def test_irc_ping_answered_without_listeners():
    ws = FakeWebSocket()
    session = await _joined(ws)
    calls: list[object] = []
    session.add_priv_msg_listener(lambda msg, sender: calls.append(msg))
    session.add_join_listener(lambda msg, sender: calls.append(msg))
    session.add_part_listener(lambda msg, sender: calls.append(msg))

    ws.feed(text("PING :tmi.twitch.tv"))
    ws.feed(close_frame())
    await session.run()

    assert ws.sent[len(HANDSHAKE):] == ["PONG :tmi.twitch.tv"]
    assert calls == []
    assert session.phase is Phase.CLOSED


@pytest.mark.asyncio
async def test_two_line_frame_dispatched_in_order():
    ws = FakeWebSocket()
    session = await _joined(ws)
    bodies: list[str] = []

    async def on_msg(msg: PrivMsg, sender) -> None:  # noqa: ARG001
        bodies.append(msg.body)

    session.add_priv_msg_listener(on_msg)
    ws.feed(
        text(
            ":a!a@a.tmi.twitch.tv PRIVMSG #loige :first\r\n"
            ":b!b@b.tmi.twitch.tv PRIVMSG #loige :second\r\n"
        )
    )
    ws.feed(close_frame())
    await session.run()

    assert bodies == ["first", "second"]


@pytest.mark.asyncio
async def test_listeners_run_sequentially_in_registration_order():
    ws = FakeWebSocket()
    session = await _joined(ws)
    events: list[str] = []

    def make(name: str):
        async def listener(msg: PrivMsg, sender) -> None:  # noqa: ARG001
            events.append(f"{name}-start-{msg.body}")
            for _ in range(3):
                await asyncio.sleep(0)
            events.append(f"{name}-end-{msg.body}")

        return listener

    session.add_priv_msg_listener(make("a"))
    session.add_priv_msg_listener(make("b"))
    ws.feed(text(":x!x@x PRIVMSG #loige :1\r\n:x!x@x PRIVMSG #loige :2"))
    ws.feed(close_frame())
    await session.run()

    assert events == [
        "a-start-1", "a-end-1", "b-start-1", "b-end-1",
        "a-start-2", "a-end-2", "b-start-2", "b-end-2",
    ]


@pytest.mark.asyncio
async def test_join_and_part_routed_to_their_listeners():
    ws = FakeWebSocket()
    session = await _joined(ws)
    joins: list[Join] = []
    parts: list[Part] = []
    privs: list[PrivMsg] = []
    session.add_join_listener(lambda msg, sender: joins.append(msg))
    session.add_part_listener(lambda msg, sender: parts.append(msg))
    session.add_priv_msg_listener(lambda msg, sender: privs.append(msg))

    ws.feed(text(":01ella!01ella@01ella.tmi.twitch.tv JOIN #loige"))
    ws.feed(text(":zkeey!zkeey@zkeey.tmi.twitch.tv PART #loige"))
    ws.feed(close_frame())
    await session.run()

    assert [j.nick for j in joins] == ["01ella"]
    assert [p.nick for p in parts] == ["zkeey"]
    assert privs == []


@pytest.mark.asyncio
async def test_other_lines_trigger_nothing():
    ws = FakeWebSocket()
    session = await _joined(ws)
    calls: list[object] = []
    session.add_priv_msg_listener(lambda msg, sender: calls.append(msg))

    ws.feed(text(":tmi.twitch.tv 001 loigebot :Welcome, GLHF!\r\n\r\n"))
    ws.feed(close_frame())
    await session.run()

    assert calls == []
    assert ws.sent == HANDSHAKE


@pytest.mark.asyncio
async def test_listener_replies_through_sender():
    ws = FakeWebSocket()
    session = await _joined(ws)

    async def reply(msg: PrivMsg, sender) -> None:
        await sender.send_chat(f"hi {msg.nick}")

    session.add_priv_msg_listener(reply)
    ws.feed(text(":gambuzzi!gambuzzi@gambuzzi.tmi.twitch.tv PRIVMSG #loige :something"))
    ws.feed(close_frame())
    await session.run()

    assert ws.sent[-1] == "PRIVMSG #loige :hi gambuzzi!"


@pytest.mark.asyncio
async def test_transport_ping_answered_with_same_payload():
    ws = FakeWebSocket()
    session = await _joined(ws)
    ws.feed(frame(aiohttp.WSMsgType.PING, b"keepalive"))
    ws.feed(frame(aiohttp.WSMsgType.PONG, b"ignored"))
    ws.feed(frame(aiohttp.WSMsgType.BINARY, b"\x00"))
    ws.feed(close_frame())
    await session.run()

    assert ws.pongs == [b"keepalive"]
    assert ws.sent == HANDSHAKE


@pytest.mark.asyncio
async def test_server_close_is_acknowledged():
    ws = FakeWebSocket()
    session = await _joined(ws)
    ws.feed(close_frame(1000, "bye"))
    await session.run()

    assert ws.close_calls == 1
    assert session.phase is Phase.CLOSED


@pytest.mark.asyncio
async def test_close_acknowledgement_failure_ignored():
    ws = FakeWebSocket()
    session = await _joined(ws)
    ws.close_error = ConnectionResetError("already gone")
    ws.feed(close_frame())

    await session.run()

    assert session.phase is Phase.CLOSED


@pytest.mark.asyncio
async def test_error_frame_ends_run():
    ws = FakeWebSocket()
    session = await _joined(ws)
    ws.feed(frame(aiohttp.WSMsgType.ERROR, ConnectionResetError("reset")))
    await session.run()

    assert ws.close_calls == 1
    assert session.phase is Phase.CLOSED


@pytest.mark.asyncio
async def test_receive_exception_ends_run():
    ws = FakeWebSocket()
    session = await _joined(ws)
    ws.feed(RuntimeError("socket exploded"))
    await session.run()

    assert ws.close_calls == 1
    assert session.phase is Phase.CLOSED


@pytest.mark.asyncio
async def test_listener_failure_propagates_after_close():
    ws = FakeWebSocket()
    session = await _joined(ws)
    later: list[str] = []

    def bad(msg, sender):  # noqa: ARG001
        raise ValueError("listener bug")

    session.add_priv_msg_listener(bad)
    session.add_priv_msg_listener(lambda msg, sender: later.append(msg.body))
    ws.feed(text(":a!a@a PRIVMSG #loige :x"))

    with pytest.raises(ValueError, match="listener bug"):
        await session.run()

    assert later == []
    assert session.phase is Phase.CLOSED
    assert ws.close_calls == 1


@pytest.mark.asyncio
async def test_isolated_listener_failure_continues():
    ws = FakeWebSocket()
    session = await _joined(ws, isolate_listener_errors=True)
    later: list[str] = []

    async def bad(msg, sender):  # noqa: ARG001
        raise ValueError("listener bug")

    session.add_priv_msg_listener(bad)
    session.add_priv_msg_listener(lambda msg, sender: later.append(msg.body))
    ws.feed(text(":a!a@a PRIVMSG #loige :x\r\n:a!a@a PRIVMSG #loige :y"))
    ws.feed(close_frame())

    await session.run()

    assert later == ["x", "y"]
    assert session.phase is Phase.CLOSED


@pytest.mark.asyncio
async def test_pong_write_failure_raises_after_close():
    ws = FakeWebSocket()
    session = await _joined(ws)
    ws.fail_prefix = "PONG"
    ws.feed(text("PING :tmi.twitch.tv"))

    with pytest.raises(TransportError):
        await session.run()

    assert session.phase is Phase.CLOSED


@pytest.mark.asyncio
async def test_external_close_unblocks_pending_read():
    ws = FakeWebSocket()
    session = await _joined(ws)
    task = asyncio.create_task(session.run())
    await asyncio.sleep(0)
    assert session.phase is Phase.JOINED

    await session.close()
    await asyncio.wait_for(task, timeout=1.0)

    assert session.phase is Phase.CLOSED
    assert ws.close_calls == 1


@pytest.mark.asyncio
async def test_closed_session_cannot_be_reused():
    ws = FakeWebSocket()
    session = await _joined(ws)
    await session.close()
    assert session.phase is Phase.CLOSED

    with pytest.raises(SessionStateError):
        await session.connect("tok", "loigebot", "loige")
    with pytest.raises(SessionStateError):
        await session.run()
    await session.close()


class GatedWebSocket(FakeWebSocket):
    """Holds the first handshake write open until ``release`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.first_sent = asyncio.Event()
        self.release = asyncio.Event()

    async def send_str(self, data: str) -> None:
        await super().send_str(data)
        if len(self.sent) == 1:
            self.first_sent.set()
            await self.release.wait()


@pytest.mark.asyncio
async def test_close_while_opening_stays_closed(monkeypatch):
    ws = FakeWebSocket()
    http = make_http_session(ws)
    opened = asyncio.Event()

    async def gated_ws_connect(*args, **kwargs):  # noqa: ARG001
        await opened.wait()
        return ws

    http.ws_connect.side_effect = gated_ws_connect
    monkeypatch.setattr(session_module.aiohttp, "ClientSession", lambda: http)

    session = ChatSession()
    task = asyncio.create_task(session.connect("tok", "loigebot", "loige"))
    await asyncio.sleep(0)
    assert session.phase is Phase.HANDSHAKING

    await session.close()
    assert session.phase is Phase.CLOSED
    http.close.assert_not_awaited()

    opened.set()
    with pytest.raises(SessionStateError):
        await task

    assert session.phase is Phase.CLOSED
    assert ws.sent == []
    assert ws.close_calls == 1
    http.close.assert_awaited_once()
    with pytest.raises(SessionStateError):
        await session.connect("tok", "loigebot", "loige")


@pytest.mark.asyncio
async def test_close_between_handshake_writes_stays_closed():
    ws = GatedWebSocket()
    session = ChatSession(make_http_session(ws))
    task = asyncio.create_task(session.connect("tok", "loigebot", "loige"))
    await ws.first_sent.wait()

    closer = asyncio.create_task(session.close())
    await asyncio.sleep(0)
    ws.release.set()
    await closer
    with pytest.raises(SessionStateError):
        await task

    assert session.phase is Phase.CLOSED
    assert ws.sent == [HANDSHAKE[0]]
    assert ws.close_calls == 1
    with pytest.raises(SessionStateError):
        await session.connect("tok", "loigebot", "loige")


@pytest.mark.asyncio
async def test_context_manager_closes_session():
    ws = FakeWebSocket()
    async with ChatSession(make_http_session(ws)) as session:
        await session.connect("tok", "loigebot", "loige")
        await session.send_chat("hello")
    assert ws.sent[-1] == "PRIVMSG #loige :hello!"
    assert session.phase is Phase.CLOSED


@pytest.mark.asyncio
async def test_owned_http_session_closed_on_shutdown(monkeypatch):
    ws = FakeWebSocket()
    http = make_http_session(ws)
    monkeypatch.setattr(session_module.aiohttp, "ClientSession", lambda: http)

    session = ChatSession()
    await session.connect("tok", "loigebot", "loige")
    ws.feed(close_frame())
    await session.run()

    http.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_injected_http_session_left_open():
    ws = FakeWebSocket()
    http = make_http_session(ws)
    session = ChatSession(http)
    await session.connect("tok", "loigebot", "loige")
    ws.feed(close_frame())
    await session.run()

    http.close.assert_not_awaited()
