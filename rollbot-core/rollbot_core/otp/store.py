"""
Encrypted OTP Store
===================
Per-identity one-time codes with failure tracking, temporary lockout
("jailing") and AES-GCM encrypted persistence.

Behaviour summary:
- Without a valid 64 hex char key the store runs purely in memory and
  ``save``/``load`` return False.
- Every mutating operation runs under one ``asyncio.Lock`` so a verify and a
  generate for the same identity never interleave.
- Durability failures are logged and reported as False; the in-memory
  decision is never affected by them.
"""

import asyncio
import hmac
import os
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import structlog

from ..errors import ConfigurationError, LockoutError, PersistenceError, ValidationError
from ..logging_setup import mask_jid
from .envelope import decrypt_state, encrypt_state, parse_key
from .events import OtpEvent, OtpEventBus, OtpEventType
from .generator import generate_code
from .models import CodeAlphabet, OtpEntry, OtpStoreConfig

logger = structlog.get_logger(__name__)

STATE_FILENAME = "otps.enc"


class EncryptedOtpStore:
    """
    In-process OTP store with encrypted-at-rest persistence.

    Example:
        store = EncryptedOtpStore(OtpStoreConfig(), data_dir="data", key_hex=key)
        await store.load()
        entry = await store.generate("351900000000@s.whatsapp.net")
        ok = await store.verify("351900000000@s.whatsapp.net", entry.code)
    """

    def __init__(
        self,
        config: Optional[OtpStoreConfig] = None,
        data_dir: Union[str, Path] = "data",
        key_hex: Optional[str] = None,
        events: Optional[OtpEventBus] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or OtpStoreConfig()
        self.path = Path(data_dir) / STATE_FILENAME
        self.events = events or OtpEventBus()
        self._clock = clock
        self._key: Optional[bytes] = None
        if key_hex:
            try:
                self._key = parse_key(key_hex)
            except ConfigurationError as e:
                logger.warning(
                    "otp_store_key_invalid",
                    error=e.message,
                    fallback="in-memory",
                )

        self._entries: Dict[str, OtpEntry] = {}
        self._failures: Dict[str, int] = {}
        self._jailed: Dict[str, float] = {}
        self._lock = asyncio.Lock()

    @property
    def persistent(self) -> bool:
        """True when a valid key is configured."""
        return self._key is not None

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _snapshot(self) -> Dict[str, Any]:
        return {
            "otps": {jid: entry.to_dict() for jid, entry in self._entries.items()},
            "failures": dict(self._failures),
            "jailed": dict(self._jailed),
        }

    def _write_blob(self, blob: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(blob, encoding="utf-8")
        os.replace(tmp_path, self.path)

    async def _persist(self) -> bool:
        if self._key is None:
            return False
        try:
            blob = encrypt_state(self._snapshot(), self._key)
            await asyncio.to_thread(self._write_blob, blob)
            return True
        except (OSError, PersistenceError) as e:
            logger.warning("otp_store_save_failed", path=str(self.path), error=str(e))
            return False

    async def save(self) -> bool:
        """Persist the current state. Returns False without a key or on failure."""
        async with self._lock:
            return await self._persist()

    async def load(self) -> bool:
        """
        Replace in-memory state with the persisted state.

        A missing, unreadable, tampered or malformed file is logged and
        leaves the in-memory state untouched.
        """
        if self._key is None:
            return False
        async with self._lock:
            try:
                blob = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
            except FileNotFoundError:
                logger.info("otp_store_file_missing", path=str(self.path))
                return False
            except OSError as e:
                logger.warning("otp_store_load_failed", path=str(self.path), error=str(e))
                return False

            try:
                state = decrypt_state(blob, self._key)
                entries = {
                    str(jid): OtpEntry.from_dict(raw)
                    for jid, raw in (state.get("otps") or {}).items()
                }
                failures = {
                    str(jid): int(count)
                    for jid, count in (state.get("failures") or {}).items()
                }
                jailed = {
                    str(jid): float(until)
                    for jid, until in (state.get("jailed") or {}).items()
                }
            except PersistenceError as e:
                logger.warning("otp_store_load_failed", path=str(self.path), error=e.message)
                return False
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(
                    "otp_store_load_failed",
                    path=str(self.path),
                    error=f"malformed state: {e}",
                )
                return False

            self._entries = entries
            self._failures = failures
            self._jailed = jailed
            logger.info(
                "otp_store_loaded",
                otps=len(entries),
                failures=len(failures),
                jailed=len(jailed),
            )
            return True

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _emit(self, event_type: OtpEventType, jid: str, **data: Any) -> None:
        self.events.emit(OtpEvent(type=event_type, jid=jid, data=data, timestamp=self._clock()))

    def _active_jail(self, jid: str, now: float) -> Optional[float]:
        """Return the jail expiry if ``jid`` is jailed; drop an expired record."""
        until = self._jailed.get(jid)
        if until is None:
            return None
        if until > now:
            return until
        del self._jailed[jid]
        return None

    def _record_failure(self, jid: str, now: float) -> Dict[str, Any]:
        current = self._failures.get(jid, 0) + 1
        # jail on every positive multiple of the threshold
        if current % self.config.jail_threshold == 0:
            until = now + self.config.jail_duration_seconds
            self._jailed[jid] = until
            self._failures[jid] = 0
            return {"jailed": True, "until": until}
        self._failures[jid] = current
        return {"jailed": False, "attempts": current}

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def generate(
        self,
        jid: str,
        alphabet: Optional[Union[CodeAlphabet, str]] = None,
    ) -> OtpEntry:
        """
        Generate and store a code for ``jid``, replacing any previous one.

        Args:
            jid: Identity the code is issued for
            alphabet: Override the configured code alphabet

        Returns:
            The stored OtpEntry

        Raises:
            ValidationError: If ``jid`` is empty
            LockoutError: If ``jid`` is currently jailed
        """
        if not jid:
            raise ValidationError("jid required")
        chosen = CodeAlphabet.parse(alphabet) if alphabet else self.config.alphabet

        async with self._lock:
            now = self._clock()
            until = self._active_jail(jid, now)
            if until is not None:
                self._emit(OtpEventType.ATTEMPT_WHILE_JAILED, jid, until=until)
                raise LockoutError(jid, until)

            code = generate_code(chosen, self.config.length)
            entry = OtpEntry(code=code, expires_at=now + self.config.ttl_seconds)
            self._entries[jid] = entry
            await self._persist()
            self._emit(
                OtpEventType.GENERATED,
                jid,
                code=code,
                expires_at=entry.expires_at,
                alphabet=chosen.value,
            )
            return entry

    async def verify(self, jid: str, code: Optional[str]) -> bool:
        """
        Verify ``code`` for ``jid``.

        A correct code consumes the entry and clears the failure counter. A
        wrong code counts as a failure and may jail the identity.
        """
        async with self._lock:
            now = self._clock()
            until = self._active_jail(jid, now)
            if until is not None:
                self._emit(OtpEventType.VERIFY_BLOCKED, jid, until=until)
                return False

            entry = self._entries.get(jid)
            if entry is None:
                return False

            if entry.is_expired(now):
                del self._entries[jid]
                await self._persist()
                self._emit(OtpEventType.EXPIRED, jid)
                return False

            if code and hmac.compare_digest(entry.code.encode(), str(code).encode()):
                del self._entries[jid]
                self._failures.pop(jid, None)
                await self._persist()
                self._emit(OtpEventType.VERIFIED, jid)
                return True

            details = self._record_failure(jid, now)
            await self._persist()
            if details["jailed"]:
                logger.warning("otp_identity_jailed", jid=mask_jid(jid), until=details["until"])
                self._emit(OtpEventType.JAILED, jid, until=details["until"])
            self._emit(OtpEventType.FAILED, jid, reason="invalid", details=details)
            return False

    async def delete(self, jid: str) -> bool:
        """Remove any stored code for ``jid``. Jail state is kept."""
        async with self._lock:
            ok = self._entries.pop(jid, None) is not None
            if ok:
                await self._persist()
            self._emit(OtpEventType.DELETED, jid, ok=ok)
            return ok

    async def cleanup(self) -> bool:
        """
        Remove expired codes and expired jail records.

        Returns:
            True if any OTP entry was removed
        """
        async with self._lock:
            now = self._clock()
            expired_codes = [jid for jid, entry in self._entries.items() if entry.is_expired(now)]
            expired_jails = [jid for jid, until in self._jailed.items() if until <= now]

            for jid in expired_codes:
                del self._entries[jid]
            for jid in expired_jails:
                del self._jailed[jid]

            if expired_codes or expired_jails:
                await self._persist()
                logger.debug(
                    "otp_store_cleanup",
                    expired_codes=len(expired_codes),
                    expired_jails=len(expired_jails),
                )
            return bool(expired_codes)

    def list_jailed(self) -> Dict[str, float]:
        """Snapshot of ``{jid: until}``."""
        return dict(self._jailed)

    async def unjail(self, jid: str) -> bool:
        """Clear a jail record. Returns False if ``jid`` was not jailed."""
        async with self._lock:
            had = self._jailed.pop(jid, None) is not None
            if had:
                await self._persist()
                self._emit(OtpEventType.UNJAILED, jid)
            return had

    # -------------------------------------------------------------------------
    # Read helpers
    # -------------------------------------------------------------------------

    def get_entry(self, jid: str) -> Optional[OtpEntry]:
        return self._entries.get(jid)

    def failure_count(self, jid: str) -> int:
        return self._failures.get(jid, 0)

    def jailed_until(self, jid: str) -> Optional[float]:
        """Jail expiry for ``jid`` if the jail is still active."""
        until = self._jailed.get(jid)
        if until is None or until <= self._clock():
            return None
        return until

    def is_jailed(self, jid: str) -> bool:
        return self.jailed_until(jid) is not None
