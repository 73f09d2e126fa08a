"""Per-client fixed-window rate limiting."""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional

from ..logging import get_logger

UNKNOWN_CLIENT = "unknown"

# Checked in priority order: edge proxy, platform proxy, generic proxy, real IP.
_CLIENT_HEADERS = (
    ("cf-connecting-ip", False),
    ("x-vercel-forwarded-for", True),
    ("x-forwarded-for", True),
    ("x-real-ip", False),
)

logger = get_logger("stores.rate_limit")


@dataclass
class RateLimitRecord:
    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after: int = 0


class FixedWindowRateLimiter:
    """Allows at most `max_requests` per client within each `window_seconds` window.

    Instances are held by the application and injected into handlers. Expired
    records are dropped by a daemon timer so memory tracks active clients only.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        *,
        sweep_interval: Optional[float] = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._records: Dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._stopped = False

    def admit(self, client_id: str) -> RateLimitDecision:
        self._ensure_sweeper()
        now = self._clock()
        with self._lock:
            record = self._records.get(client_id)
            if record is None or now > record.reset_at:
                self._records[client_id] = RateLimitRecord(
                    count=1, reset_at=now + self.window_seconds
                )
                return RateLimitDecision(allowed=True, remaining=self.max_requests - 1)

            if record.count >= self.max_requests:
                retry_after = max(1, math.ceil(record.reset_at - now))
                logger.info("Rate limit exceeded for %s; retry in %ss", client_id, retry_after)
                return RateLimitDecision(allowed=False, remaining=0, retry_after=retry_after)

            record.count += 1
            return RateLimitDecision(
                allowed=True, remaining=self.max_requests - record.count
            )

    def sweep(self) -> int:
        """Drop records whose window has elapsed; return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, record in self._records.items() if now > record.reset_at]
            for key in expired:
                del self._records[key]
        if expired:
            logger.debug("Swept %d expired rate-limit records", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def stop(self) -> None:
        self._stopped = True
        timer = self._timer
        self._timer = None
        if timer is not None:
            timer.cancel()

    def _ensure_sweeper(self) -> None:
        if self.sweep_interval is None or self._timer is not None or self._stopped:
            return
        self._schedule()

    def _schedule(self) -> None:
        timer = threading.Timer(self.sweep_interval, self._run_sweep)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _run_sweep(self) -> None:
        try:
            self.sweep()
        finally:
            if not self._stopped:
                self._schedule()


def client_identifier(headers: Mapping[str, str]) -> str:
    """Derive the client id from the first trusted forwarding header present.

    Clients without any of these headers share the ``unknown`` bucket.
    """
    lowered = {key.lower(): value for key, value in headers.items()}
    for name, comma_separated in _CLIENT_HEADERS:
        value = lowered.get(name)
        if not value:
            continue
        candidate = value.split(",")[0].strip() if comma_separated else value.strip()
        if candidate:
            return candidate
    return UNKNOWN_CLIENT


__all__ = [
    "FixedWindowRateLimiter",
    "RateLimitDecision",
    "RateLimitRecord",
    "UNKNOWN_CLIENT",
    "client_identifier",
]
