"""Trial status write-back.

evaluate() never trusts the trial flags stored on a profile, but other
readers of the profile store do, so fresh values are written back after
an evaluation.  Two rules keep this cheap:

  1. Skip the write when storage already holds the recomputed values
     (trial_status_delta() returns None).
  2. Write at most once per (user, session).  A WritebackGuard records
     that a session already wrote; later evaluations in that session
     skip straight past.

The guard only saves writes.  Values are deterministic for a given
`now`, so if two instances race past the guard the second write is
redundant, not harmful (last write wins).

GUARD BACKENDS
---------------
  InMemoryWritebackGuard: per-process markers, for tests and local dev.
    Markers expire after the same TTL as the Redis keys.
  RedisWritebackGuard: SET NX EX, shared by every API instance; the
    marker expires so long-lived sessions write again eventually.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime
from typing import Protocol, runtime_checkable

from redis.exceptions import RedisError

from suite_access.core.config import SETTINGS
from suite_access.core.metrics import TRIAL_WRITEBACKS
from suite_access.db.redis import redis_pool
from suite_access.models.profile import UserProfile
from suite_access.repos.profile_repo import ProfileRepo
from suite_access.services.entitlements import TrialStatusDelta, trial_status_delta

logger = logging.getLogger(__name__)


@runtime_checkable
class WritebackGuard(Protocol):
    async def claim(self, user_id: str, session_id: str) -> bool:
        """Mark (user, session) as written. False if it already was."""
        ...

    async def release(self, user_id: str, session_id: str) -> None:
        """Drop the marker so a failed write can be retried."""
        ...


class InMemoryWritebackGuard:
    """Per-process markers with the same expiry behaviour as the Redis keys."""

    def __init__(
        self, ttl_seconds: int, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        # (user_id, session_id) -> expiry on self._clock
        self._claimed: dict[tuple[str, str], float] = {}

    def _prune(self, now: float) -> None:
        expired = [key for key, exp in self._claimed.items() if exp <= now]
        for key in expired:
            del self._claimed[key]

    async def claim(self, user_id: str, session_id: str) -> bool:
        now = self._clock()
        self._prune(now)
        key = (user_id, session_id)
        if key in self._claimed:
            return False
        self._claimed[key] = now + self._ttl
        return True

    async def release(self, user_id: str, session_id: str) -> None:
        self._claimed.pop((user_id, session_id), None)


class RedisWritebackGuard:
    _PREFIX = "trial-writeback:"

    def __init__(self, redis_client, ttl_seconds: int) -> None:
        self._redis = redis_client
        self._ttl = ttl_seconds

    def _key(self, user_id: str, session_id: str) -> str:
        return f"{self._PREFIX}{user_id}:{session_id}"

    async def claim(self, user_id: str, session_id: str) -> bool:
        try:
            # SET NX is atomic: exactly one concurrent caller gets True.
            won = await self._redis.set(
                self._key(user_id, session_id), "1", nx=True, ex=self._ttl
            )
        except RedisError:
            logger.warning(
                "Write-back guard unavailable, writing unguarded: user=%s", user_id
            )
            return True
        return bool(won)

    async def release(self, user_id: str, session_id: str) -> None:
        try:
            await self._redis.delete(self._key(user_id, session_id))
        except RedisError:
            logger.warning("Could not release write-back guard: user=%s", user_id)


class TrialStatusWriter:
    def __init__(self, profile_repo: ProfileRepo, guard: WritebackGuard) -> None:
        self._profiles = profile_repo
        self._guard = guard

    async def sync(
        self, profile: UserProfile, now: datetime, *, session_id: str
    ) -> TrialStatusDelta | None:
        """Persist recomputed trial fields for profile if needed.

        Returns the delta that was written, or None when nothing was.
        Storage failures are logged and swallowed: the caller already has
        the correct capabilities, only the cached copy stays stale.
        """
        delta = trial_status_delta(profile, now)
        if delta is None:
            TRIAL_WRITEBACKS.labels(result="unchanged").inc()
            return None

        if not await self._guard.claim(profile.user_id, session_id):
            TRIAL_WRITEBACKS.labels(result="skipped").inc()
            return None

        try:
            self._profiles.update_trial_fields(profile.user_id, delta)
        except Exception:
            logger.exception("Trial write-back failed: user=%s", profile.user_id)
            await self._guard.release(profile.user_id, session_id)
            TRIAL_WRITEBACKS.labels(result="failed").inc()
            return None

        logger.info(
            "Trial fields written: user=%s active=%s days=%d status=%s",
            profile.user_id,
            delta.is_trial_active,
            delta.trial_days_remaining,
            delta.subscription_status,
        )
        TRIAL_WRITEBACKS.labels(result="written").inc()
        return delta


# ---------------------------------------------------------------------------
# Module-level singleton, conditional on Redis availability
# ---------------------------------------------------------------------------

if redis_pool is not None:
    writeback_guard: WritebackGuard = RedisWritebackGuard(
        redis_pool, SETTINGS.writeback_guard_ttl_seconds
    )
else:
    writeback_guard = InMemoryWritebackGuard(SETTINGS.writeback_guard_ttl_seconds)
