from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
import time
from typing import Iterator, Optional

from redis import Redis

from app.core.config import settings
from app.monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()

_POLL_INTERVAL_S = 0.05


def _lock_key(course_id: str) -> str:
    return f"scheduling:lock:course:{course_id}:schedule"


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if not settings.redis_url:
        return None
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        try:
            client = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            client.ping()
        except Exception as exc:
            logger.warning("course_lock_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


def acquire_course_lock(
    course_id: str, ttl_s: Optional[int] = None, wait_s: Optional[float] = None
) -> bool:
    """
    Try to take the cross-process schedule mutex for a course.

    Returns True when the lock is held or when Redis is unavailable; the
    database transaction still guarantees no overlap in that case.
    """
    client = _get_sync_redis()
    if client is None:
        prometheus_metrics.record_course_lock("acquire", "redis_unavailable")
        return True

    ttl = ttl_s or settings.course_lock_ttl_seconds
    deadline = time.monotonic() + (
        settings.course_lock_wait_seconds if wait_s is None else wait_s
    )
    try:
        while True:
            if client.set(_lock_key(course_id), str(time.time()), nx=True, ex=ttl):
                prometheus_metrics.record_course_lock("acquire", "success")
                return True
            if time.monotonic() >= deadline:
                prometheus_metrics.record_course_lock("acquire", "blocked")
                return False
            time.sleep(_POLL_INTERVAL_S)
    except Exception as exc:
        prometheus_metrics.record_course_lock("acquire", "error")
        logger.warning(
            "course_lock_acquire_failed",
            extra={
                "course_id": course_id,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )
        return True


def release_course_lock(course_id: str) -> None:
    client = _get_sync_redis()
    if client is None:
        return
    try:
        deleted = client.delete(_lock_key(course_id))
        if deleted:
            prometheus_metrics.record_course_lock("release", "success")
        else:
            prometheus_metrics.record_course_lock("release", "not_found")
    except Exception as exc:
        prometheus_metrics.record_course_lock("release", "error")
        logger.warning(
            "course_lock_release_failed",
            extra={
                "course_id": course_id,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )


@contextmanager
def course_schedule_lock(
    course_id: str, ttl_s: Optional[int] = None, wait_s: Optional[float] = None
) -> Iterator[bool]:
    acquired = acquire_course_lock(course_id, ttl_s=ttl_s, wait_s=wait_s)
    try:
        yield acquired
    finally:
        if acquired:
            release_course_lock(course_id)
