"""
Application wiring for the Twitch chat bot
"""

from __future__ import annotations

import asyncio
import logging
import sys

import aiohttp

from .config import BotConfig
from .errors.handling import log_error
from .errors.internal import ConfigurationError
from .irc import ChatSession, Join, OutboundSender, Part, PrivMsg
from .logging_config import LoggerConfigurator
from .logs.logger import logger


def greeting_listener(greeting: str):
    """Build a PrivMsg listener that answers every chat line with ``greeting``."""

    async def greet(message: PrivMsg, sender: OutboundSender) -> None:
        logger.log_event(
            "irc",
            "greeting",
            level=logging.DEBUG,
            user=sender.username,
            channel=message.channel,
            author=message.nick,
        )
        await sender.send_chat(greeting)

    return greet


def log_membership(message: Join | Part, sender: OutboundSender) -> None:
    logger.log_event(
        "irc",
        "join" if isinstance(message, Join) else "part",
        user=sender.username,
        channel=message.channel,
        author=message.nick,
    )


def build_session(
    config: BotConfig, http_session: aiohttp.ClientSession | None = None
) -> ChatSession:
    session = ChatSession(
        http_session,
        url=config.url,
        chat_suffix=config.chat_suffix,
        isolate_listener_errors=config.isolate_listener_errors,
    )
    session.add_priv_msg_listener(greeting_listener(config.greeting))
    session.add_join_listener(log_membership)
    session.add_part_listener(log_membership)
    logger.log_event(
        "app",
        "listeners_registered",
        level=logging.DEBUG,
        user=config.nick,
        channel=config.channel,
        count=session.registry.count(),
    )
    return session


async def run_bot(
    config: BotConfig, http_session: aiohttp.ClientSession | None = None
) -> None:
    """Connect, process chat until the server closes, then return."""
    session = build_session(config, http_session)
    async with session:
        await session.connect(config.token, config.nick, config.channel)
        await session.run()
    logger.log_event("app", "exit_loop", user=config.nick)


def health_check() -> int:
    logger.log_event("app", "health_check")
    try:
        BotConfig.from_env()
    except ConfigurationError as e:
        logger.log_event("app", "health_failed", level=logging.ERROR, error=str(e))
        return 1
    logger.log_event("app", "health_ok")
    return 0


def cli(argv: list[str] | None = None) -> int:
    """Command line entry point. Returns the process exit code."""
    args = sys.argv[1:] if argv is None else argv
    LoggerConfigurator().configure()

    if args and args[0] == "--health-check":
        return health_check()

    try:
        logger.log_event("app", "start")
        config = BotConfig.from_env()
        asyncio.run(run_bot(config))
    except KeyboardInterrupt:
        logger.log_event("app", "interrupted", level=logging.WARNING)
        return 0
    except Exception as e:
        log_error("Main application error", e)
        return 1
    finally:
        logger.log_event("app", "shutdown")
    return 0
