"""
Bot
===
Command parsing, message handling and runtime wiring.
"""

from .commands import (
    ADMIN_COMMANDS,
    Command,
    help_text,
    is_suspicious,
    parse_command,
)
from .handler import InboundMessage, MessageHandler, Reply, Transport
from .runtime import BotRuntime

__all__ = [
    # Commands
    "ADMIN_COMMANDS",
    "Command",
    "help_text",
    "is_suspicious",
    "parse_command",
    # Handler
    "InboundMessage",
    "MessageHandler",
    "Reply",
    "Transport",
    # Runtime
    "BotRuntime",
]
