"""Fixed-window rate limiter backed by the rate_limit_windows table.

The check-and-increment is one conditional UPDATE executed inside a single
transaction, so two concurrent requests for the same (subject, endpoint)
can never both take the last slot.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy import and_, case, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.rate_limit import RateLimitWindow


logger = logging.getLogger(__name__)

_INSERT_RETRIES = 3


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    degraded: bool = False

    @property
    def retry_after(self) -> int:
        """Whole seconds until the current window closes."""
        return max(0, int(self.reset_at - time.time() + 0.999))


class RateLimiter:
    """
    Admit or deny requests per (subject_key, endpoint) within a time window.

    Args:
        session_factory: Factory producing sessions independent of the request's
            own session, so counter commits never mix with handler writes
        time_provider: Injectable clock (epoch seconds) for deterministic tests
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        time_provider: Optional[Callable[[], float]] = None,
    ) -> None:
        self._session_factory = session_factory
        self._time_provider = time_provider or time.time

    async def admit(
        self,
        subject_key: str,
        endpoint: str,
        limit: int,
        window_seconds: int,
    ) -> RateLimitDecision:
        """
        Count one request and decide whether it is admitted.

        Fails open: if the ledger cannot be reached the request is admitted
        and the decision is flagged ``degraded``.
        """
        now = self._time_provider()
        try:
            count, window_start, allowed = await self._increment(subject_key, endpoint, limit, window_seconds, now)
        except SQLAlchemyError as exc:
            logger.warning(
                "rate_limit_degraded subject=%s endpoint=%s error=%s",
                subject_key,
                endpoint,
                exc.__class__.__name__,
            )
            return RateLimitDecision(
                allowed=True,
                limit=limit,
                remaining=limit,
                reset_at=now + window_seconds,
                degraded=True,
            )

        decision = RateLimitDecision(
            allowed=allowed,
            limit=limit,
            remaining=max(0, limit - count),
            reset_at=window_start + window_seconds,
        )
        if not allowed:
            logger.info("rate_limited subject=%s endpoint=%s limit=%s", subject_key, endpoint, limit)
        return decision

    async def _increment(
        self,
        subject_key: str,
        endpoint: str,
        limit: int,
        window_seconds: int,
        now: float,
    ) -> tuple[int, float, bool]:
        # Returns (count after this request, window start, admitted).
        expired = RateLimitWindow.window_start <= now - window_seconds
        stmt = (
            update(RateLimitWindow)
            .where(
                and_(
                    RateLimitWindow.subject_key == subject_key,
                    RateLimitWindow.endpoint == endpoint,
                    or_(expired, RateLimitWindow.count < limit),
                )
            )
            .values(
                count=case((expired, 1), else_=RateLimitWindow.count + 1),
                window_start=case((expired, now), else_=RateLimitWindow.window_start),
            )
            .execution_options(synchronize_session=False)
        )
        lookup = select(RateLimitWindow.count, RateLimitWindow.window_start).where(
            RateLimitWindow.subject_key == subject_key,
            RateLimitWindow.endpoint == endpoint,
        )

        attempt = 0
        while True:
            attempt += 1
            async with self._session_factory() as session:
                try:
                    async with session.begin():
                        result = await session.execute(stmt)
                        row = (await session.execute(lookup)).first()
                        if row is not None:
                            count, window_start = row
                            # rowcount 0 with an existing row means the live window is full.
                            return int(count), float(window_start), bool(result.rowcount)
                        if limit <= 0:
                            return 0, now, False
                        session.add(
                            RateLimitWindow(
                                subject_key=subject_key,
                                endpoint=endpoint,
                                count=1,
                                window_start=now,
                            )
                        )
                    return 1, now, True
                except IntegrityError:
                    # Another request created the row first; retry through the UPDATE path.
                    if attempt >= _INSERT_RETRIES:
                        raise
