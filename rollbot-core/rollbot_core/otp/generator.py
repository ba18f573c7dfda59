"""
OTP Code Generators
===================
Cryptographically strong code generators, one per ``CodeAlphabet``.
"""

import secrets
from typing import Callable, Dict

from ..errors import ConfigurationError
from .models import CodeAlphabet

# Excludes confusing characters (0, O, 1, l, I)
ALPHANUMERIC_CHARS = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz23456789"

SYLLABLES = ("ra", "ne", "lo", "mi", "sa", "tu", "ve", "ka", "zu", "pi", "on", "el")


def generate_numeric(length: int) -> str:
    """Zero-padded decimal code."""
    return str(secrets.randbelow(10 ** length)).zfill(length)


def generate_alphanumeric(length: int) -> str:
    return "".join(secrets.choice(ALPHANUMERIC_CHARS) for _ in range(length))


def generate_hex(length: int) -> str:
    return secrets.token_hex((length + 1) // 2)[:length]


def generate_pronounceable(length: int) -> str:
    """Token built from a fixed syllable set, truncated to ``length``."""
    out = ""
    while len(out) < length:
        out += secrets.choice(SYLLABLES)
    return out[:length]


GENERATORS: Dict[CodeAlphabet, Callable[[int], str]] = {
    CodeAlphabet.NUMERIC: generate_numeric,
    CodeAlphabet.ALPHANUMERIC: generate_alphanumeric,
    CodeAlphabet.HEX: generate_hex,
    CodeAlphabet.PRONOUNCEABLE: generate_pronounceable,
}


def generate_code(alphabet: CodeAlphabet, length: int) -> str:
    """
    Generate a code of exactly ``length`` characters.

    Args:
        alphabet: Generator family
        length: Number of characters

    Returns:
        Code string

    Raises:
        ConfigurationError: If no generator is registered for ``alphabet``
    """
    if length < 1:
        raise ConfigurationError("OTP length must be positive")
    try:
        generator = GENERATORS[CodeAlphabet.parse(alphabet)]
    except KeyError:
        raise ConfigurationError(f"No generator for alphabet {alphabet!r}")
    return generator(length)
