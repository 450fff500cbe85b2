"""
Configuration constants for the Twitch chat client

This module contains the protocol literals and tunables used throughout the package.
Each tunable can be overridden by setting an environment variable with the same name.
"""

import os


def _get_env_str(name: str, default: str) -> str:
    """Retrieve a string value from an environment variable.

    Args:
        name: The name of the environment variable to read.
        default: The value to return when the variable is unset.

    Returns:
        The raw environment value, or the default if unavailable.
    """
    value = os.getenv(name)
    if value is not None:
        return value
    return default


def _get_env_bool(name: str, default: bool) -> bool:
    """Retrieve a boolean value from an environment variable.

    Accepts 'true', '1', 'yes' and 'false', '0', 'no' (case-insensitive). Any
    other value prints a warning and returns the default.

    Args:
        name: The name of the environment variable to read.
        default: The default boolean value to return if parsing fails.

    Returns:
        The parsed boolean value from the environment, or the default if unavailable.
    """
    value = os.getenv(name)
    if value is not None:
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no"):
            return False
        print(
            f"Warning: Invalid boolean value for {name}='{value}', using default {default}"
        )
    return default


# Transport endpoint (IRC over WebSocket)
TWITCH_IRC_WS_URL = _get_env_str("TWITCH_IRC_WS_URL", "wss://irc-ws.chat.twitch.tv:443")

# Handshake literals
TWITCH_CAPABILITIES = "twitch.tv/membership twitch.tv/tags"
OAUTH_PREFIX = "oauth:"

# Appended to every body sent through send_chat
TWITCH_CHAT_SUFFIX = _get_env_str("TWITCH_CHAT_SUFFIX", "!")

# Listener failures abort the session unless isolation is switched on
TWITCH_ISOLATE_LISTENER_ERRORS = _get_env_bool("TWITCH_ISOLATE_LISTENER_ERRORS", False)

# Reply used by the bundled greeting listener
TWITCH_DEFAULT_GREETING = "Hello"
