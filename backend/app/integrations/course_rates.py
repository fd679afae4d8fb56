"""Course catalog lookups for appointment hourly rates."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
import logging
from typing import Any, Mapping, Optional, Protocol

import httpx

logger = logging.getLogger(__name__)


class CourseRateProvider(Protocol):
    def get_hourly_rate(self, course_id: str) -> Optional[Decimal]:
        """Hourly appointment rate, or None when the course is not bookable."""
        ...


class CourseCatalogError(RuntimeError):
    """Raised when the course catalog cannot be queried."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _positive_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        rate = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return rate if rate > 0 else None


class StaticCourseRateProvider:
    """Rates from a fixed mapping, typically ``settings.course_hourly_rates``."""

    def __init__(self, rates: Mapping[str, Any]) -> None:
        self._rates = {str(k): v for k, v in rates.items()}

    def get_hourly_rate(self, course_id: str) -> Optional[Decimal]:
        return _positive_decimal(self._rates.get(course_id))


class CatalogCourseRateProvider:
    """Thin client for the course catalog service."""

    def __init__(
        self,
        *,
        base_url: str,
        timeout: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def get_hourly_rate(self, course_id: str) -> Optional[Decimal]:
        url = f"{self._base_url}/courses/{course_id}/appointment-rate"
        try:
            with httpx.Client(
                timeout=self._timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            ) as client:
                response = client.get(url)
        except httpx.HTTPError as exc:
            logger.error("Course catalog request failed for %s: %s", course_id, exc)
            raise CourseCatalogError(f"Course catalog unavailable: {exc}") from exc

        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            logger.error(
                "Course catalog error %s for course %s", response.status_code, course_id
            )
            raise CourseCatalogError(
                f"Course catalog returned {response.status_code}",
                status_code=response.status_code,
            )

        payload = response.json()
        if not isinstance(payload, dict):
            return None
        return _positive_decimal(payload.get("hourly_rate"))
