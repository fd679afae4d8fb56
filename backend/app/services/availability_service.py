# backend/app/services/availability_service.py
"""
Availability Calculator.

Derives bookable slots for a course from business hours and the live
appointment store. Nothing here writes; results are never cached because
a slot shown as free must reflect the store at the time of the request.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.exceptions import ServiceException, ValidationException
from ..core.timezone_utils import ensure_utc, to_business_time, utc_now
from ..domain.business_hours import BusinessHours
from ..domain.slots import (
    REASON_IN_PAST,
    REASON_INSIDE_LEAD_TIME,
    REASON_OUTSIDE_BUSINESS_HOURS,
    REASON_OVERLAPS_EXISTING,
    AvailabilitySlot,
    compute_price,
    intervals_overlap,
)
from ..integrations.course_rates import CourseCatalogError, CourseRateProvider
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class AvailabilityService(BaseService):
    def __init__(
        self,
        db: Session,
        rate_provider: CourseRateProvider,
        *,
        business_hours: Optional[BusinessHours] = None,
        config: Optional[Settings] = None,
    ):
        super().__init__(db)
        self.config = config or default_settings
        self.rate_provider = rate_provider
        self.business_hours = business_hours or BusinessHours.from_settings(self.config)
        self.repository = RepositoryFactory.create_appointment_repository(db)

    # Rates and validation

    def get_hourly_rate(self, course_id: str) -> Optional[Decimal]:
        try:
            return self.rate_provider.get_hourly_rate(course_id)
        except CourseCatalogError as exc:
            raise ServiceException(
                "Course catalog is temporarily unavailable", code="CATALOG_UNAVAILABLE"
            ) from exc

    def validate_duration(self, duration_minutes: int) -> None:
        if duration_minutes not in self.config.allowed_durations:
            raise ValidationException(
                f"Duration must be one of {self.config.allowed_durations} minutes",
                code="INVALID_DURATION",
                details={
                    "duration_minutes": duration_minutes,
                    "allowed_durations": self.config.allowed_durations,
                },
            )

    def _validate_range(self, start_date: date, end_date: date) -> None:
        if start_date > end_date:
            raise ValidationException(
                "start_date must be on or before end_date", code="INVALID_DATE_RANGE"
            )
        span = (end_date - start_date).days + 1
        if span > self.config.availability_max_range_days:
            raise ValidationException(
                f"Date range cannot exceed {self.config.availability_max_range_days} days",
                code="INVALID_DATE_RANGE",
                details={"days": span},
            )

    # Slot computation

    def _unavailable_reason(
        self,
        start: datetime,
        end: datetime,
        now: datetime,
        busy: Iterable[Tuple[datetime, datetime]],
    ) -> Optional[str]:
        if start <= now:
            return REASON_IN_PAST
        if start < now + timedelta(minutes=self.config.booking_min_lead_minutes):
            return REASON_INSIDE_LEAD_TIME
        for busy_start, busy_end in busy:
            if intervals_overlap(start, end, busy_start, busy_end):
                return REASON_OVERLAPS_EXISTING
        return None

    def _busy_intervals(
        self,
        course_id: str,
        range_start: datetime,
        range_end: datetime,
        exclude_appointment_id: Optional[str] = None,
    ) -> List[Tuple[datetime, datetime]]:
        exclude = [exclude_appointment_id] if exclude_appointment_id else None
        return [
            (a.scheduled_at, a.ends_at)
            for a in self.repository.get_overlapping(
                course_id, range_start, range_end, exclude_ids=exclude
            )
        ]

    def _candidate_slots(
        self, start_date: date, end_date: date, duration_minutes: int
    ) -> List[Tuple[datetime, datetime]]:
        candidates: List[Tuple[datetime, datetime]] = []
        current = start_date
        while current <= end_date:
            candidates.extend(self.business_hours.iter_slot_starts(current, duration_minutes))
            current += timedelta(days=1)
        return candidates

    @BaseService.measure_operation("get_available_slots")
    def get_available_slots(
        self,
        course_id: str,
        start_date: date,
        end_date: date,
        duration_minutes: int,
        *,
        now: Optional[datetime] = None,
        exclude_appointment_id: Optional[str] = None,
    ) -> List[AvailabilitySlot]:
        """
        Slots for every business window in ``[start_date, end_date]`` (local dates).

        Unavailable slots are returned with ``available=False`` and a reason so
        clients can render them greyed out. Courses without a rate have no slots.
        """
        self.validate_duration(duration_minutes)
        self._validate_range(start_date, end_date)

        rate = self.get_hourly_rate(course_id)
        if rate is None:
            logger.info(f"Course {course_id} has no appointment rate; returning no slots")
            return []

        candidates = self._candidate_slots(start_date, end_date, duration_minutes)
        if not candidates:
            return []

        now = ensure_utc(now) if now is not None else utc_now()
        busy = self._busy_intervals(
            course_id, candidates[0][0], candidates[-1][1], exclude_appointment_id
        )
        price = compute_price(rate, duration_minutes)

        slots = []
        for start, end in candidates:
            reason = self._unavailable_reason(start, end, now, busy)
            slots.append(
                AvailabilitySlot(
                    start=start, end=end, available=reason is None, price=price, reason=reason
                )
            )
        slots.sort(key=lambda s: s.start)
        return slots

    def check_slot(
        self,
        course_id: str,
        start: datetime,
        duration_minutes: int,
        *,
        now: Optional[datetime] = None,
        exclude_appointment_id: Optional[str] = None,
    ) -> Optional[str]:
        """
        Reason the given slot cannot be booked right now, or None if it can.

        Reads the store through the caller's session, so inside a transaction
        the answer reflects rows written earlier in that transaction.
        """
        start = ensure_utc(start)
        end = start + timedelta(minutes=duration_minutes)
        now = ensure_utc(now) if now is not None else utc_now()

        if start <= now:
            return REASON_IN_PAST
        if not self.business_hours.contains(start, end):
            return REASON_OUTSIDE_BUSINESS_HOURS
        busy = self._busy_intervals(course_id, start, end, exclude_appointment_id)
        return self._unavailable_reason(start, end, now, busy)

    @BaseService.measure_operation("get_availability_map")
    def get_availability_map(
        self,
        course_id: str,
        dates: Sequence[date],
        duration_minutes: int,
        *,
        now: Optional[datetime] = None,
    ) -> Dict[date, bool]:
        """Whether each requested local date has at least one available slot."""
        self.validate_duration(duration_minutes)
        if not dates:
            return {}
        unique_dates = sorted(set(dates))
        self._validate_range(unique_dates[0], unique_dates[-1])

        slots = self.get_available_slots(
            course_id, unique_dates[0], unique_dates[-1], duration_minutes, now=now
        )
        tz = self.business_hours.timezone
        open_dates = {to_business_time(s.start, tz).date() for s in slots if s.available}
        return {d: d in open_dates for d in unique_dates}

    def price_for(self, course_id: str, duration_minutes: int) -> Optional[Decimal]:
        rate = self.get_hourly_rate(course_id)
        if rate is None:
            return None
        return compute_price(rate, duration_minutes)
