from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from .constants import (
    OAUTH_PREFIX,
    TWITCH_CHAT_SUFFIX,
    TWITCH_DEFAULT_GREETING,
    TWITCH_IRC_WS_URL,
    TWITCH_ISOLATE_LISTENER_ERRORS,
)
from .errors.internal import ConfigurationError

# BotConfig field -> environment variable
ENV_FIELDS = {
    "token": "TWITCH_TOKEN",
    "nick": "TWITCH_NICK",
    "channel": "TWITCH_CHANNEL",
    "greeting": "TWITCH_GREETING",
    "url": "TWITCH_IRC_WS_URL",
    "chat_suffix": "TWITCH_CHAT_SUFFIX",
    "isolate_listener_errors": "TWITCH_ISOLATE_LISTENER_ERRORS",
}


class BotConfig(BaseModel):
    """Settings for one chat session.

    Attributes:
        token: OAuth access token, stored without the ``oauth:`` prefix.
        nick: Bot nickname (lowercase).
        channel: Channel to join, without ``#`` (lowercase).
        url: IRC-over-WebSocket endpoint.
        chat_suffix: Text appended to every chat message sent.
        isolate_listener_errors: Keep the session alive when a listener fails.
        greeting: Reply sent by the bundled greeting listener.
    """

    token: str = Field(min_length=1)
    nick: str = Field(min_length=1, max_length=25)
    channel: str = Field(min_length=1, max_length=25)
    url: str = TWITCH_IRC_WS_URL
    chat_suffix: str = TWITCH_CHAT_SUFFIX
    isolate_listener_errors: bool = TWITCH_ISOLATE_LISTENER_ERRORS
    greeting: str = TWITCH_DEFAULT_GREETING

    @field_validator("token", mode="before")
    @classmethod
    def strip_oauth_prefix(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().removeprefix(OAUTH_PREFIX)
        return v

    @field_validator("nick", mode="before")
    @classmethod
    def normalize_nick(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("channel", mode="before")
    @classmethod
    def normalize_channel(cls, v: Any) -> Any:
        """Strip whitespace and a leading '#', lowercase."""
        if isinstance(v, str):
            return v.strip().lstrip("#").lower()
        return v

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("ws://", "wss://")):
            raise ValueError("url must be a ws:// or wss:// address")
        return v

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> BotConfig:
        """Validate a plain mapping, wrapping pydantic errors.

        Raises:
            ConfigurationError: With the failing field names in ``data["fields"]``.
        """
        try:
            return cls.model_validate(dict(data))
        except ValidationError as e:
            fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
            raise ConfigurationError(
                f"Invalid configuration for: {', '.join(fields)}",
                data={"fields": fields},
            ) from e

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> BotConfig:
        """Build the configuration from environment variables.

        Every field has an environment variable (see ENV_FIELDS); unset
        variables fall back to the constants module defaults.
        """
        env = os.environ if environ is None else environ
        data: dict[str, Any] = {}
        for field_name, env_name in ENV_FIELDS.items():
            value = env.get(env_name)
            if value is not None:
                data[field_name] = value
        return cls.from_mapping(data)
