"""
Premium status poller - periodic re-verification per signed-in user
"""
import asyncio
import logging
from time import monotonic
from typing import Awaitable, Callable, Dict, Optional

from models.premium import VerificationResult
from database import AsyncSessionLocal
from services.entitlement_service import EntitlementService
from config.settings import settings

logger = logging.getLogger(__name__)

VerifyFunc = Callable[[int], Awaitable[VerificationResult]]


async def verify_with_new_session(user_id: int) -> VerificationResult:
    """Run one verification on its own database session (one per poll tick)."""
    async with AsyncSessionLocal() as db:
        return await EntitlementService(db).verify_premium_status(user_id)


class PremiumStatusPoller:
    """
    Exposes is_premium / is_loading / error for one user.

    start() verifies immediately and then every `interval` seconds. Each tick
    overwrites the previous state. stop() suppresses future ticks only; a
    verification already running is allowed to finish and its result is dropped.
    A poller nobody has touched for `idle_timeout` seconds stops itself.
    """

    def __init__(
        self,
        user_id: int,
        verify: VerifyFunc,
        interval: Optional[float] = None,
        idle_timeout: Optional[float] = None,
        on_expire: Optional[Callable[["PremiumStatusPoller"], None]] = None,
    ):
        self.user_id = user_id
        self.verify = verify
        self.interval = settings.premium_poll_interval_seconds if interval is None else interval
        self.idle_timeout = settings.premium_poll_idle_seconds if idle_timeout is None else idle_timeout
        self.on_expire = on_expire
        self.is_premium = False
        self.is_loading = False
        self.error: Optional[str] = None
        self.last_verified: Optional[str] = None
        self.last_touched = monotonic()
        self._stop_event: Optional[asyncio.Event] = None
        self._ready: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def snapshot(self) -> dict:
        return {
            "is_premium": self.is_premium,
            "is_loading": self.is_loading,
            "error": self.error,
            "last_verified": self.last_verified,
        }

    def touch(self) -> None:
        """Record that the owning session is still around."""
        self.last_touched = monotonic()

    @property
    def idle(self) -> bool:
        return monotonic() - self.last_touched > self.idle_timeout

    def apply(self, result: VerificationResult) -> None:
        self.is_premium = result.is_premium
        self.last_verified = result.last_verified
        self.error = result.error
        self.is_loading = False

    async def tick(self) -> None:
        """One verification. Never raises."""
        self.is_loading = True
        try:
            result = await self.verify(self.user_id)
            if self._stopped:
                return
            self.apply(result)
        except Exception as e:
            logger.error(f"Premium status poll failed for user {self.user_id}: {e}")
            if self._stopped:
                return
            self.is_premium = False
            self.error = str(e) or "Failed to verify premium status"
        finally:
            if not self._stopped:
                self.is_loading = False

    @property
    def _stopped(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()

    async def _run(self, initial: Optional[VerificationResult]) -> None:
        try:
            if initial is not None:
                self.apply(initial)
            else:
                await self.tick()
        finally:
            self._ready.set()

        while True:
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
                return
            except asyncio.TimeoutError:
                if self.idle:
                    logger.info(f"Premium status polling for user {self.user_id} idle, stopping")
                    self.stop()
                    if self.on_expire is not None:
                        self.on_expire(self)
                    return
                await self.tick()

    async def start(self, initial: Optional[VerificationResult] = None) -> None:
        """
        Verify now, then keep verifying in the background until stop().

        The loop task exists before the first verification is awaited, so a
        concurrent caller joins this start instead of launching a second loop.
        `initial` is a verification the caller just ran; it replaces the first tick.
        """
        self.touch()
        if not self.running:
            self._stop_event = asyncio.Event()
            self._ready = asyncio.Event()
            self.is_loading = True
            self._task = asyncio.create_task(self._run(initial))
        elif initial is not None and self._ready.is_set():
            self.apply(initial)
        await self._ready.wait()

    def stop(self) -> None:
        """Suppress future ticks and reset to not-premium / not-loading."""
        if self._stop_event is not None:
            self._stop_event.set()
        self.is_premium = False
        self.is_loading = False
        self.error = None
        self.last_verified = None


class PollerRegistry:
    """One poller per signed-in user id."""

    def __init__(
        self,
        verify: VerifyFunc = verify_with_new_session,
        interval: Optional[float] = None,
        idle_timeout: Optional[float] = None,
    ):
        self.verify = verify
        self.interval = interval
        self.idle_timeout = idle_timeout
        self._pollers: Dict[int, PremiumStatusPoller] = {}

    def get(self, user_id: int) -> Optional[PremiumStatusPoller]:
        return self._pollers.get(user_id)

    async def ensure_started(
        self, user_id: int, initial: Optional[VerificationResult] = None
    ) -> PremiumStatusPoller:
        """Start (or join) the user's poller. No await happens before it is registered."""
        poller = self._pollers.get(user_id)
        if poller is None or not poller.running:
            poller = PremiumStatusPoller(
                user_id,
                self.verify,
                self.interval,
                idle_timeout=self.idle_timeout,
                on_expire=self._forget,
            )
            self._pollers[user_id] = poller
        await poller.start(initial)
        return poller

    def _forget(self, poller: PremiumStatusPoller) -> None:
        if self._pollers.get(poller.user_id) is poller:
            del self._pollers[poller.user_id]

    def stop(self, user_id: int) -> None:
        poller = self._pollers.pop(user_id, None)
        if poller is not None:
            poller.stop()
            logger.info(f"Stopped premium status polling for user {user_id}")

    def stop_all(self) -> None:
        for user_id in list(self._pollers):
            self.stop(user_id)


poller_registry = PollerRegistry()
