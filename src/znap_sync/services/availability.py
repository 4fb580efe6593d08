"""Backend availability probe with a cached result."""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

import httpx

from znap_sync.services.camera_store import utcnow

_logger = logging.getLogger(__name__)


class HealthClient(Protocol):
    """Interface for a lightweight backend health check."""

    async def ping(self) -> dict[str, object]:
        """Return the decoded health payload, raising on transport errors."""


@dataclass(frozen=True)
class AvailabilityStatus:
    """Most recent probe outcome, for display."""

    available: bool
    checked_at: datetime | None
    fresh: bool


@dataclass
class AvailabilityService:
    """Decides whether remote calls should be attempted at all."""

    health_client: HealthClient
    timeout_seconds: float = 2.0
    max_age_seconds: float = 60.0
    monotonic: Callable[[], float] = time.monotonic
    clock: Callable[[], datetime] = utcnow
    _last_result: bool = field(default=False, init=False)
    _checked_monotonic: float | None = field(default=None, init=False)
    _checked_at: datetime | None = field(default=None, init=False)

    async def check(self) -> bool:
        """Probe the backend; every failure counts as unavailable."""
        try:
            payload = await asyncio.wait_for(
                self.health_client.ping(), timeout=self.timeout_seconds
            )
            available = isinstance(payload, dict) and payload.get("status") == "ok"
        except TimeoutError:
            _logger.info("Backend health check timed out")
            available = False
        except (httpx.HTTPError, ValueError) as exc:
            _logger.info("Backend health check failed: %s", exc)
            available = False
        except Exception:
            _logger.exception("Backend health check failed unexpectedly")
            available = False

        if available != self._last_result:
            _logger.info("Backend availability changed: available=%s", available)
        self._last_result = available
        self._checked_monotonic = self.monotonic()
        self._checked_at = self.clock()
        return available

    def should_use_remote(self) -> bool:
        """Return the cached probe result while it is fresh, otherwise False."""
        return self._is_fresh() and self._last_result

    def status(self) -> AvailabilityStatus:
        return AvailabilityStatus(
            available=self._last_result,
            checked_at=self._checked_at,
            fresh=self._is_fresh(),
        )

    async def monitor(self, interval_seconds: float) -> None:
        """Re-probe forever; meant to run as a background task."""
        while True:
            await asyncio.sleep(interval_seconds)
            await self.check()

    def _is_fresh(self) -> bool:
        if self._checked_monotonic is None:
            return False
        return self.monotonic() - self._checked_monotonic < self.max_age_seconds
