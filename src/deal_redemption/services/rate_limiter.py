"""Sliding-window rate limiting for PIN verification attempts."""

from __future__ import annotations

import logging
import math
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from threading import Lock
from typing import Any, Final

import redis

from deal_redemption.core.settings import settings
from deal_redemption.db.time import as_utc
from deal_redemption.models.verification_attempt import OUTCOME_RATE_LIMITED
from deal_redemption.services.audit import AttemptRecord, AuditSink

logger = logging.getLogger(__name__)

_HOUR_SECONDS: Final[int] = 3_600
_DAY_SECONDS: Final[int] = 86_400
_REDIS_WATCH_RETRIES: Final[int] = 5


@dataclass(frozen=True)
class RateLimitDecision:
    """Whether an attempt may proceed, and how long to wait if not."""

    allowed: bool
    retry_after: int = 0


class RateLimiter:
    """Caps verification attempts per (user, deal) and per (source IP, deal).

    Both keys must have room in the rolling hour and the rolling day. Only
    allowed attempts take a slot, so a caller hammering a full window does not
    extend their own lockout.
    """

    def __init__(
        self,
        redis_client: Any | None = None,
        *,
        per_hour: int | None = None,
        per_day: int | None = None,
    ) -> None:
        self._redis = redis_client
        self.per_hour = settings.rate_limit_per_hour if per_hour is None else per_hour
        self.per_day = settings.rate_limit_per_day if per_day is None else per_day

    def check_and_record(
        self,
        user_id: int,
        deal_id: int,
        source_ip: str,
        now: datetime,
        *,
        audit: AuditSink | None = None,
        claim_id: int | None = None,
        submitted_code: str = "",
        user_agent: str | None = None,
    ) -> RateLimitDecision:
        """Admit and count an attempt, or deny it with a retry hint.

        A denial is written to `audit` as a rate-limited attempt. An allowed
        attempt is left for the caller to audit once its outcome is known.
        """
        moment = as_utc(now)
        keys = _window_keys(user_id, deal_id, source_ip)
        decision = self._check_redis(keys, moment.timestamp())
        if decision is None:
            decision = self._check_local(keys, moment.timestamp())

        if decision.allowed:
            logger.debug("Verification attempt admitted for user %s deal %s", user_id, deal_id)
            return decision

        logger.warning(
            "Verification attempts rate limited for user %s deal %s (retry after %ss)",
            user_id,
            deal_id,
            decision.retry_after,
        )
        if audit is not None:
            audit.record_verification_attempt(
                AttemptRecord(
                    customer_id=user_id,
                    deal_id=deal_id,
                    source_ip=source_ip,
                    submitted_code=submitted_code,
                    outcome=OUTCOME_RATE_LIMITED,
                    attempted_at=moment,
                    claim_id=claim_id,
                    user_agent=user_agent,
                )
            )
        return decision

    def sweep(self, now: datetime) -> int:
        """Drop in-process timestamps older than a day; returns keys removed."""
        with _WINDOW_LOCK:
            return _sweep_locked(as_utc(now).timestamp())

    def _evaluate(self, windows: list[list[float]], now_ts: float) -> RateLimitDecision:
        retry_after = 0.0
        for stamps in windows:
            in_day = sorted(stamp for stamp in stamps if stamp > now_ts - _DAY_SECONDS)
            in_hour = [stamp for stamp in in_day if stamp > now_ts - _HOUR_SECONDS]
            if len(in_hour) >= self.per_hour:
                # The slot frees when the oldest attempt that fills the ceiling ages out.
                oldest = in_hour[len(in_hour) - self.per_hour]
                retry_after = max(retry_after, oldest + _HOUR_SECONDS - now_ts)
            if len(in_day) >= self.per_day:
                oldest = in_day[len(in_day) - self.per_day]
                retry_after = max(retry_after, oldest + _DAY_SECONDS - now_ts)
        if retry_after > 0:
            return RateLimitDecision(allowed=False, retry_after=max(1, math.ceil(retry_after)))
        return RateLimitDecision(allowed=True)

    def _check_local(self, keys: list[str], now_ts: float) -> RateLimitDecision:
        global _last_sweep_ts
        with _WINDOW_LOCK:
            if now_ts - _last_sweep_ts >= _SWEEP_INTERVAL_SECONDS:
                _sweep_locked(now_ts)
                _last_sweep_ts = now_ts
            decision = self._evaluate([_WINDOWS.get(key, []) for key in keys], now_ts)
            if decision.allowed:
                for key in keys:
                    _WINDOWS[key].append(now_ts)
        return decision

    def _check_redis(self, keys: list[str], now_ts: float) -> RateLimitDecision | None:
        """Evaluate against Redis sorted sets; None means fall back to memory.

        The read runs under WATCH and the trim and add run in MULTI/EXEC, so a
        concurrent writer on either key aborts this transaction and it is retried
        against the fresh window.
        """
        if self._redis is None:
            return None
        floor = now_ts - _DAY_SECONDS
        try:
            for _ in range(_REDIS_WATCH_RETRIES):
                with self._redis.pipeline() as pipe:
                    try:
                        pipe.watch(*keys)
                        windows = [
                            [
                                float(score)
                                for _, score in pipe.zrangebyscore(
                                    key, f"({floor}", "+inf", withscores=True
                                )
                            ]
                            for key in keys
                        ]
                        decision = self._evaluate(windows, now_ts)
                        pipe.multi()
                        for key in keys:
                            pipe.zremrangebyscore(key, "-inf", floor)
                            if decision.allowed:
                                pipe.zadd(key, {f"{now_ts:.6f}:{uuid.uuid4().hex}": now_ts})
                                pipe.expire(key, _DAY_SECONDS)
                        pipe.execute()
                        return decision
                    except redis.WatchError:
                        logger.debug("Rate-limit window changed during check; retrying")
            logger.warning("Rate-limit windows stayed contended; refusing attempt")
            return RateLimitDecision(allowed=False, retry_after=1)
        except redis.RedisError:
            logger.warning("Redis unavailable for rate limiting; using in-process windows", exc_info=True)
            self._redis = None
            return None


def _window_keys(user_id: int, deal_id: int, source_ip: str) -> list[str]:
    return [
        f"ratelimit:user:{user_id}:deal:{deal_id}",
        f"ratelimit:ip:{source_ip}:deal:{deal_id}",
    ]


def _sweep_locked(now_ts: float) -> int:
    cutoff = now_ts - _DAY_SECONDS
    removed = 0
    for key in list(_WINDOWS):
        kept = [stamp for stamp in _WINDOWS[key] if stamp > cutoff]
        if kept:
            _WINDOWS[key] = kept
        else:
            del _WINDOWS[key]
            removed += 1
    return removed


def reset_local_windows() -> None:
    """Forget every in-process window."""
    global _last_sweep_ts
    with _WINDOW_LOCK:
        _WINDOWS.clear()
        _last_sweep_ts = float("-inf")


_WINDOWS: dict[str, list[float]] = defaultdict(list)
_WINDOW_LOCK = Lock()
# In-process windows are swept at most this often, from inside attempt checks.
_SWEEP_INTERVAL_SECONDS: Final[int] = 600
_last_sweep_ts = float("-inf")


@lru_cache(maxsize=1)
def get_rate_limiter() -> RateLimiter:
    """Return the process-wide rate limiter, backed by Redis when configured."""
    client = redis.Redis.from_url(settings.redis_url) if settings.redis_url else None
    return RateLimiter(client)
