"""AvailabilityService: slot generation, lead time, overlap and pricing."""

from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from app.core.exceptions import ServiceException, ValidationException
from app.domain.slots import (
    REASON_IN_PAST,
    REASON_INSIDE_LEAD_TIME,
    REASON_OUTSIDE_BUSINESS_HOURS,
    REASON_OVERLAPS_EXISTING,
)
from app.integrations.course_rates import CourseCatalogError
from app.services.availability_service import AvailabilityService
from support import (
    COURSE_ID,
    MONDAY,
    NOW,
    OTHER_COURSE_ID,
    SATURDAY,
    TUESDAY,
    UNPRICED_COURSE_ID,
    local_slot,
)


class TestGetAvailableSlots:
    def test_full_free_day(self, availability_service):
        slots = availability_service.get_available_slots(COURSE_ID, MONDAY, MONDAY, 60, now=NOW)
        assert len(slots) == 8
        assert all(s.available for s in slots)
        assert all(s.price == Decimal("80.00") for s in slots)
        assert [s.start for s in slots] == sorted(s.start for s in slots)

    def test_range_skips_closed_days(self, availability_service):
        slots = availability_service.get_available_slots(
            COURSE_ID, MONDAY, SATURDAY, 120, now=NOW
        )
        # Monday to Friday, four 120-minute slots each
        assert len(slots) == 20

    def test_booked_slot_is_marked_unavailable(self, availability_service, checkout):
        checkout(local_slot(MONDAY, 10), duration=90)
        slots = availability_service.get_available_slots(COURSE_ID, MONDAY, MONDAY, 60, now=NOW)
        by_start = {s.start: s for s in slots}
        assert by_start[local_slot(MONDAY, 10)].reason == REASON_OVERLAPS_EXISTING
        assert by_start[local_slot(MONDAY, 11)].reason == REASON_OVERLAPS_EXISTING
        assert by_start[local_slot(MONDAY, 9)].available
        assert by_start[local_slot(MONDAY, 12)].available

    def test_other_course_bookings_do_not_block(self, availability_service, checkout):
        checkout(local_slot(MONDAY, 10), course_id=OTHER_COURSE_ID)
        slots = availability_service.get_available_slots(COURSE_ID, MONDAY, MONDAY, 60, now=NOW)
        assert all(s.available for s in slots)

    def test_cancelled_appointments_free_the_slot(
        self, availability_service, confirmed_appointment, reschedule_engine
    ):
        reschedule_engine.cancel(
            confirmed_appointment.id, confirmed_appointment.student_id, now=NOW
        )
        slots = availability_service.get_available_slots(COURSE_ID, MONDAY, MONDAY, 60, now=NOW)
        assert all(s.available for s in slots)

    def test_past_and_lead_time(self, availability_service):
        now = local_slot(MONDAY, 10, 30)
        slots = availability_service.get_available_slots(COURSE_ID, MONDAY, MONDAY, 60, now=now)
        by_start = {s.start: s for s in slots}
        assert by_start[local_slot(MONDAY, 9)].reason == REASON_IN_PAST
        assert by_start[local_slot(MONDAY, 10)].reason == REASON_IN_PAST
        assert by_start[local_slot(MONDAY, 11)].reason == REASON_INSIDE_LEAD_TIME
        assert by_start[local_slot(MONDAY, 12)].available

    def test_excluding_an_appointment_frees_its_slot(self, availability_service, checkout):
        result = checkout(local_slot(MONDAY, 10))
        slots = availability_service.get_available_slots(
            COURSE_ID,
            MONDAY,
            MONDAY,
            60,
            now=NOW,
            exclude_appointment_id=result.appointment_ids[0],
        )
        assert all(s.available for s in slots)

    def test_unpriced_course_has_no_slots(self, availability_service):
        assert (
            availability_service.get_available_slots(
                UNPRICED_COURSE_ID, MONDAY, MONDAY, 60, now=NOW
            )
            == []
        )

    def test_invalid_duration(self, availability_service):
        with pytest.raises(ValidationException) as exc_info:
            availability_service.get_available_slots(COURSE_ID, MONDAY, MONDAY, 45, now=NOW)
        assert exc_info.value.code == "INVALID_DURATION"

    def test_inverted_range(self, availability_service):
        with pytest.raises(ValidationException) as exc_info:
            availability_service.get_available_slots(COURSE_ID, TUESDAY, MONDAY, 60, now=NOW)
        assert exc_info.value.code == "INVALID_DATE_RANGE"

    def test_range_too_long(self, availability_service):
        with pytest.raises(ValidationException):
            availability_service.get_available_slots(
                COURSE_ID, MONDAY, MONDAY + timedelta(days=40), 60, now=NOW
            )

    def test_catalog_failure_is_a_service_error(self, db, test_settings):
        provider = MagicMock()
        provider.get_hourly_rate.side_effect = CourseCatalogError("down")
        service = AvailabilityService(db, provider, config=test_settings)
        with pytest.raises(ServiceException) as exc_info:
            service.get_available_slots(COURSE_ID, MONDAY, MONDAY, 60, now=NOW)
        assert exc_info.value.code == "CATALOG_UNAVAILABLE"


class TestCheckSlot:
    def test_free_slot(self, availability_service):
        assert availability_service.check_slot(
            COURSE_ID, local_slot(MONDAY, 9), 60, now=NOW
        ) is None

    def test_off_grid_start_inside_hours_is_allowed(self, availability_service):
        start = local_slot(MONDAY, 9, 15)
        assert availability_service.check_slot(COURSE_ID, start, 60, now=NOW) is None

    def test_outside_business_hours(self, availability_service):
        start = local_slot(MONDAY, 16, 30)
        assert (
            availability_service.check_slot(COURSE_ID, start, 60, now=NOW)
            == REASON_OUTSIDE_BUSINESS_HOURS
        )

    def test_weekend(self, availability_service):
        start = local_slot(SATURDAY, 10)
        assert (
            availability_service.check_slot(COURSE_ID, start, 60, now=NOW)
            == REASON_OUTSIDE_BUSINESS_HOURS
        )

    def test_in_past_wins_over_hours(self, availability_service):
        start = local_slot(date(2029, 12, 29), 3)
        assert availability_service.check_slot(COURSE_ID, start, 60, now=NOW) == REASON_IN_PAST

    def test_overlap(self, availability_service, checkout):
        checkout(local_slot(MONDAY, 10))
        start = local_slot(MONDAY, 10, 30)
        assert (
            availability_service.check_slot(COURSE_ID, start, 60, now=NOW)
            == REASON_OVERLAPS_EXISTING
        )


class TestAvailabilityMap:
    def test_open_and_closed_dates(self, availability_service):
        result = availability_service.get_availability_map(
            COURSE_ID, [SATURDAY, MONDAY, TUESDAY], 60, now=NOW
        )
        assert result == {MONDAY: True, TUESDAY: True, SATURDAY: False}

    def test_fully_booked_date_is_false(self, availability_service, checkout):
        starts = [local_slot(MONDAY, h) for h in range(9, 17)]
        checkout(*starts)
        result = availability_service.get_availability_map(
            COURSE_ID, [MONDAY, TUESDAY], 60, now=NOW
        )
        assert result == {MONDAY: False, TUESDAY: True}

    def test_empty_dates(self, availability_service):
        assert availability_service.get_availability_map(COURSE_ID, [], 60, now=NOW) == {}


def test_price_for(availability_service):
    assert availability_service.price_for(COURSE_ID, 90) == Decimal("120.00")
    assert availability_service.price_for(UNPRICED_COURSE_ID, 90) is None
