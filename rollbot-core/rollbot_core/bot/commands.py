"""
Chat Commands
=============
Input filtering and parsing of ``!command`` messages.
"""

import re
from dataclasses import dataclass
from typing import Dict, Optional

MAX_INPUT_LENGTH = 500

SUSPICIOUS_PATTERNS = (
    re.compile(r"[`$()<>;|&]"),
    re.compile(
        r"\b(?:wget|curl|fetch|exec|spawn|system|sh|bash|cmd|powershell|php|node|python"
        r"|ruby|eval|require|child_process|process\.env)\b",
        re.IGNORECASE,
    ),
    re.compile(r"https?://", re.IGNORECASE),
    re.compile(r"(base64|data:text)\s*:", re.IGNORECASE),
)

# Commands that go through admin authorization
ADMIN_COMMANDS = frozenset({
    "!adminpair",
    "!setadmin",
    "!unsetadmin",
    "!listjailed",
    "!unjail",
    "!latency",
    "!logout",
    "!shutdown",
})

# Commands that can be switched off via commands.enabled
TOGGLEABLE = {
    "!ping": "ping",
    "!marco": "marco",
    "!help": "help",
    "!latency": "latency",
    "!logout": "logout",
    "!shutdown": "shutdown",
}

COMMAND_HELP: Dict[str, str] = {
    "ping": "!ping - simple liveness check (replies `pong! 🏓`)",
    "marco": "!marco - cultural reference reply",
    "help": "!help - show this help message",
    "latency": "!latency - (admin) report message latency",
    "logout": "!logout - (admin) log the bot out",
    "shutdown": "!shutdown - (admin) gracefully shutdown the bot",
}

PING_REPLY = "pong! 🏓"
MARCO_REPLY = "polo... or was it Paulo? 🧲🎤"

_COMMAND_RE = re.compile(r"^(![a-z]+)(?:\s+(\S+))?\s*$", re.IGNORECASE)

# Commands that take a single argument
_WITH_ARGUMENT = frozenset({"!adminpair", "!unjail"})


@dataclass(frozen=True)
class Command:
    """Parsed chat command."""
    name: str
    arg: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.name in ADMIN_COMMANDS


def is_suspicious(text: Optional[str]) -> bool:
    """True for overlong text or text that looks like shell, URLs or data blobs."""
    if not text:
        return False
    if len(text) > MAX_INPUT_LENGTH:
        return True
    return any(pattern.search(text) for pattern in SUSPICIOUS_PATTERNS)


def parse_command(
    text: Optional[str],
    enabled: Optional[Dict[str, bool]] = None,
) -> Optional[Command]:
    """
    Parse ``text`` into a Command.

    Returns None for non-commands, unknown commands, disabled commands and
    commands with a missing or unexpected argument. ``!unjail`` without a
    target parses with ``arg=None`` so the caller can answer with usage.
    """
    if not text:
        return None
    match = _COMMAND_RE.match(text.strip())
    if not match:
        return None

    name = match.group(1).lower()
    arg = match.group(2)

    if name not in ADMIN_COMMANDS and name not in TOGGLEABLE:
        return None
    if arg is not None and name not in _WITH_ARGUMENT:
        return None

    key = TOGGLEABLE.get(name)
    if key is not None and enabled is not None and not enabled.get(key, False):
        return None
    return Command(name=name, arg=arg)


def help_text(enabled: Dict[str, bool]) -> str:
    lines = [COMMAND_HELP.get(key, f"!{key}") for key, on in enabled.items() if on]
    return "Available commands:\n" + "\n".join(lines)
