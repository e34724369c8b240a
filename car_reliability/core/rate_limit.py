"""
Fixed-window rate limiting for API endpoints.

Two backends share the :class:`RateLimiter` interface:

* :class:`DatabaseRateLimiter` keeps counters in ``rate_limit_counters`` so
  every API instance sees the same window (default).
* :class:`InMemoryRateLimiter` keeps counters in process memory and is only
  correct for a single instance.
"""
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Callable, Dict, Optional, Tuple

from fastapi import Depends, Request
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from car_reliability.core.config import RATE_LIMIT_BACKEND, REPORT_RATE_LIMIT, REPORT_RATE_WINDOW_SECONDS
from car_reliability.core.exceptions import RateLimitExceededError, DatabaseUnavailableError
from car_reliability.db.models.rate_limit import RateLimitCounter
from car_reliability.db.session import SessionLocal

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """Extract client IP address from request."""
    # Check for forwarded IP (from proxy/load balancer)
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # Take the first IP in the chain
        return forwarded.split(",")[0].strip()
    
    # Fallback to direct client IP
    if request.client:
        return request.client.host
    
    return "unknown"


def window_start_for(now: float, window_seconds: int) -> int:
    return int(now // window_seconds) * window_seconds


class RateLimiter(ABC):
    """Counts hits per bucket in fixed windows."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock

    @abstractmethod
    def hit(self, key: str, window_seconds: int) -> int:
        """Record one hit for ``key`` and return the count in the current window."""

    def check(self, key: str, max_requests: int, window_seconds: int) -> None:
        """
        Record a hit and enforce the limit.
        
        Raises:
            RateLimitExceededError: more than ``max_requests`` hits in the window
        """
        count = self.hit(key, window_seconds)
        if count > max_requests:
            logger.warning(f"Rate limit exceeded for {key} ({count} requests in {window_seconds}s)")
            raise RateLimitExceededError(
                f"Rate limit exceeded. Maximum {max_requests} requests per {window_seconds} seconds."
            )
        logger.debug(f"Rate limit check passed for {key} ({count}/{max_requests})")


class InMemoryRateLimiter(RateLimiter):
    """Process-local counters. Not shared between instances."""

    def __init__(self, clock: Callable[[], float] = time.time):
        super().__init__(clock)
        self._counters: Dict[Tuple[str, int], int] = defaultdict(int)
        self._lock = threading.Lock()

    def hit(self, key: str, window_seconds: int) -> int:
        window_start = window_start_for(self.clock(), window_seconds)
        with self._lock:
            # Drop counters from earlier windows
            for stale in [k for k in self._counters if k[0] == key and k[1] < window_start]:
                del self._counters[stale]
            self._counters[(key, window_start)] += 1
            return self._counters[(key, window_start)]

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()


class DatabaseRateLimiter(RateLimiter):
    """
    Counters stored in the ``rate_limit_counters`` table.

    Uses its own session so the counter commits independently of the
    request's unit of work.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal, clock: Callable[[], float] = time.time):
        super().__init__(clock)
        self.session_factory = session_factory

    def hit(self, key: str, window_seconds: int) -> int:
        window_start = window_start_for(self.clock(), window_seconds)
        db = self.session_factory()
        try:
            count = self._increment(db, key, window_start)
            # Older windows for this bucket are no longer needed
            db.query(RateLimitCounter).filter(
                RateLimitCounter.bucket_key == key,
                RateLimitCounter.window_start < window_start,
            ).delete(synchronize_session=False)
            db.commit()
            return count
        except OperationalError as e:
            db.rollback()
            logger.error(f"Rate limit store unavailable: {e}")
            raise DatabaseUnavailableError("Rate limit store unavailable") from e
        finally:
            db.close()

    def _increment(self, db: Session, key: str, window_start: int) -> int:
        updated = db.query(RateLimitCounter).filter(
            RateLimitCounter.bucket_key == key,
            RateLimitCounter.window_start == window_start,
        ).update({RateLimitCounter.hits: RateLimitCounter.hits + 1}, synchronize_session=False)

        if not updated:
            try:
                with db.begin_nested():
                    db.add(RateLimitCounter(bucket_key=key, window_start=window_start, hits=1))
                return 1
            except IntegrityError:
                # Another instance created the row first
                db.query(RateLimitCounter).filter(
                    RateLimitCounter.bucket_key == key,
                    RateLimitCounter.window_start == window_start,
                ).update({RateLimitCounter.hits: RateLimitCounter.hits + 1}, synchronize_session=False)

        counter = db.query(RateLimitCounter).filter(
            RateLimitCounter.bucket_key == key,
            RateLimitCounter.window_start == window_start,
        ).one()
        return counter.hits


_rate_limiter: Optional[RateLimiter] = None


def build_rate_limiter(backend: str = RATE_LIMIT_BACKEND) -> RateLimiter:
    if backend == "memory":
        return InMemoryRateLimiter()
    if backend != "database":
        logger.warning(f"Unknown RATE_LIMIT_BACKEND={backend!r}, using database")
    return DatabaseRateLimiter()


def get_rate_limiter() -> RateLimiter:
    """FastAPI dependency returning the configured limiter."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = build_rate_limiter()
        logger.info(f"Rate limiter initialized: {type(_rate_limiter).__name__}")
    return _rate_limiter


def enforce_report_rate_limit(request: Request, limiter: RateLimiter = Depends(get_rate_limiter)) -> None:
    """Per-client-address limit for report generation."""
    limiter.check(f"report:{get_client_ip(request)}", REPORT_RATE_LIMIT, REPORT_RATE_WINDOW_SECONDS)
