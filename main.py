#!/usr/bin/env python3
"""
Main entry point for the Twitch chat bot

Usage:
    TWITCH_TOKEN=... TWITCH_NICK=... TWITCH_CHANNEL=... python main.py
    python main.py --health-check
"""

import sys

from twitchchat.app import cli

if __name__ == "__main__":
    sys.exit(cli())
