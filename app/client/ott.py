# Rotating attendance QR: fetches a fresh one-time token on a fixed interval
# for the gate kiosk to display, and marks attendance with a scanned one.

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional
from app.client.errors import PortalError, SessionExpired
from app.client.gateway import RequestGateway
from app.core.config import settings

logger = logging.getLogger(__name__)

GENERATE_PATH = "/attendance/generate-qr"
VERIFY_PATH = "/attendance/verify-qr"


@dataclass(frozen=True)
class OneTimeToken:
    value: str
    issued_at: float = field(default_factory=time.time)
    ttl_seconds: int = settings.OTT_TTL_SECONDS


def _noop(*args):
    pass


class OttIssuerClient:
    """
    Owns the issuance cycle and its countdown for one hosting screen.

    start() issues at once and then every interval; each tick of the
    countdown reports the seconds left until the next issuance. stop()
    cancels both tasks together and is safe to call any number of times.
    The server decides whether a token is still valid; nothing here checks.
    """

    def __init__(self, gateway: RequestGateway,
                 on_token: Callable[[OneTimeToken], None] = _noop,
                 on_tick: Callable[[int], None] = _noop,
                 tick_seconds: float = 1.0):
        self._gateway = gateway
        self._on_token = on_token
        self._on_tick = on_tick
        self._tick_seconds = tick_seconds
        self._cycle: Optional[asyncio.Task] = None
        self._countdown: Optional[asyncio.Task] = None
        self._running = False
        self._interval = settings.OTT_REFRESH_INTERVAL_SECONDS
        self.current: Optional[OneTimeToken] = None
        self.seconds_left = 0
        self.issued = 0

    @property
    def running(self) -> bool:
        return self._running

    def start(self, interval_seconds: float = settings.OTT_REFRESH_INTERVAL_SECONDS) -> None:
        if self._running:
            return
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self._interval = interval_seconds
        self._running = True
        self._cycle = asyncio.get_running_loop().create_task(self._run_cycle())
        logger.info(f"OTT rotation started: interval={interval_seconds}s")

    def stop(self) -> None:
        if not self._running:
            return

        # Flip the flag first: a cycle woken in this same tick checks it before issuing
        self._running = False
        for task in (self._cycle, self._countdown):
            if task is not None and not task.done():
                task.cancel()
        self._cycle = None
        self._countdown = None
        logger.info("OTT rotation stopped")

    async def _run_cycle(self) -> None:
        try:
            while self._running:
                await self.issue_once()
                if not self._running:
                    return
                self._restart_countdown()
                await asyncio.sleep(self._interval)
        finally:
            # Ended by something other than stop(): let a later start() begin again
            if self._running and self._cycle is asyncio.current_task():
                logger.error("OTT rotation ended unexpectedly")
                self._running = False
                self._cycle = None
                if self._countdown is not None and not self._countdown.done():
                    self._countdown.cancel()
                self._countdown = None

    async def issue_once(self) -> Optional[OneTimeToken]:
        """
        Requests one token. On failure the previous token stays on screen.
        """
        try:
            body = await self._gateway.get_json(GENERATE_PATH)
        except SessionExpired:
            logger.warning("OTT rotation stopped: session expired")
            self.stop()
            return self.current
        except PortalError as e:
            logger.warning(f"OTT issuance failed, keeping previous token: {e}")
            return self.current

        try:
            token = OneTimeToken(
                value=body["token"],
                ttl_seconds=int(body.get("ttlSeconds", settings.OTT_TTL_SECONDS)),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"OTT issuance returned a malformed body, keeping previous token: {e!r}")
            return self.current

        self.current = token
        self.issued += 1
        logger.debug(f"OTT issued: #{self.issued}")
        try:
            self._on_token(token)
        except Exception:
            logger.exception("OTT display callback failed")
        return token

    def _restart_countdown(self) -> None:
        if self._countdown is not None and not self._countdown.done():
            self._countdown.cancel()
        self._countdown = asyncio.get_running_loop().create_task(self._run_countdown())

    async def _run_countdown(self) -> None:
        self.seconds_left = max(0, round(self._interval))
        self._on_tick(self.seconds_left)
        while self._running and self.seconds_left > 0:
            await asyncio.sleep(self._tick_seconds)
            self.seconds_left -= 1
            self._on_tick(self.seconds_left)


class AttendanceClient:
    def __init__(self, gateway: RequestGateway):
        self._gateway = gateway

    async def mark(self, token: str) -> dict:
        """
        Consumes a scanned attendance token. The server answers with the new
        direction (first scan OUT, then IN).
        """
        result = await self._gateway.post_json(VERIFY_PATH, {"token": token})
        logger.info(f"Attendance marked: mode={result.get('mode')}")
        return result
