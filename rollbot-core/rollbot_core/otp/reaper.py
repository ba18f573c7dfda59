"""
OTP Reaper
==========
Background task that periodically sweeps expired codes and jails.
"""

import asyncio
from typing import Optional

import structlog

from .store import EncryptedOtpStore

logger = structlog.get_logger(__name__)


class OtpReaper:
    """
    Runs ``store.cleanup()`` every ``interval`` seconds.

    The sweep goes through the store's lock, so it is serialized with
    request-driven operations.
    """

    def __init__(self, store: EncryptedOtpStore, interval: float = 60.0):
        self.store = store
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="otp-reaper")
        logger.info("otp_reaper_started", interval=self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("otp_reaper_stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.store.cleanup()
            except Exception as e:
                logger.warning("otp_reaper_sweep_failed", error=str(e))
