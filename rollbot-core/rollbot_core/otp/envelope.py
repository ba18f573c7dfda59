"""
Encrypted State Envelope
========================
AES-256-GCM sealing of the OTP store state.

Blob layout (base64 encoded): nonce (12 bytes) | tag (16 bytes) | ciphertext.
A fresh random nonce is used for every write.
"""

import base64
import binascii
import json
import os
import re
from typing import Any, Dict

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..errors import ConfigurationError, PersistenceError

NONCE_SIZE = 12
TAG_SIZE = 16
KEY_HEX_PATTERN = re.compile(r"^[0-9a-fA-F]{64}$")


def parse_key(key_hex: str) -> bytes:
    """
    Decode a 64 hex char (32 byte) key.

    Raises:
        ConfigurationError: If the key has the wrong length or encoding
    """
    if not key_hex or not KEY_HEX_PATTERN.match(key_hex):
        raise ConfigurationError(
            "OTP store key must be 64 hex chars (32 bytes)"
        )
    return bytes.fromhex(key_hex)


def encrypt_state(state: Dict[str, Any], key: bytes) -> str:
    """Serialize ``state`` to JSON and seal it."""
    nonce = os.urandom(NONCE_SIZE)
    plaintext = json.dumps(state, separators=(",", ":")).encode("utf-8")
    sealed = AESGCM(key).encrypt(nonce, plaintext, None)
    ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
    return base64.b64encode(nonce + tag + ciphertext).decode("ascii")


def decrypt_state(blob: str, key: bytes) -> Dict[str, Any]:
    """
    Open a blob produced by ``encrypt_state``.

    Raises:
        PersistenceError: On bad encoding, integrity failure or bad JSON
    """
    try:
        raw = base64.b64decode(blob.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise PersistenceError(f"State blob is not valid base64: {e}")

    if len(raw) < NONCE_SIZE + TAG_SIZE:
        raise PersistenceError("State blob is truncated")

    nonce = raw[:NONCE_SIZE]
    tag = raw[NONCE_SIZE:NONCE_SIZE + TAG_SIZE]
    ciphertext = raw[NONCE_SIZE + TAG_SIZE:]

    try:
        plaintext = AESGCM(key).decrypt(nonce, ciphertext + tag, None)
    except InvalidTag:
        raise PersistenceError("State blob failed integrity check")

    try:
        state = json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise PersistenceError(f"State blob is not valid JSON: {e}")

    if not isinstance(state, dict):
        raise PersistenceError("State blob does not contain an object")
    return state
