"""Business hours windows, DST handling and slot grids."""

from datetime import date, datetime, timedelta, timezone

import pytz

from app.core.config import Settings
from app.domain.business_hours import BusinessHours
from support import MONDAY, SATURDAY, local_slot


def _hours(**overrides) -> BusinessHours:
    return BusinessHours.from_settings(Settings(_env_file=None, **overrides))


class TestWindows:
    def test_weekday_has_default_window(self):
        hours = _hours()
        windows = hours.utc_windows_for(MONDAY)
        assert windows == [
            (
                datetime(2030, 1, 7, 14, 0, tzinfo=timezone.utc),
                datetime(2030, 1, 7, 22, 0, tzinfo=timezone.utc),
            )
        ]

    def test_weekend_is_closed(self):
        assert _hours().windows_for(SATURDAY) == ()

    def test_closed_date_overrides_weekday(self):
        hours = _hours(closed_dates=[MONDAY])
        assert hours.windows_for(MONDAY) == ()
        assert hours.iter_slot_starts(MONDAY, 60) == []

    def test_weekday_names_are_accepted(self):
        hours = _hours(business_hours={"saturday": ["10:00-12:00"]})
        assert len(hours.windows_for(SATURDAY)) == 1
        assert hours.windows_for(MONDAY) == ()

    def test_summer_window_follows_dst(self):
        """Same wall-clock hours map to a UTC-4 offset in July."""
        july_monday = date(2030, 7, 1)
        (start, end), = _hours().utc_windows_for(july_monday)
        assert start == datetime(2030, 7, 1, 13, 0, tzinfo=timezone.utc)
        assert end == datetime(2030, 7, 1, 21, 0, tzinfo=timezone.utc)


class TestSlotGrid:
    def test_sixty_minute_grid(self):
        slots = _hours().iter_slot_starts(MONDAY, 60)
        assert len(slots) == 8
        assert slots[0][0] == local_slot(MONDAY, 9)
        assert slots[-1][1] == local_slot(MONDAY, 17)

    def test_ninety_minute_slots_must_end_inside_window(self):
        slots = _hours().iter_slot_starts(MONDAY, 90)
        starts = [s for s, _ in slots]
        assert starts == [
            local_slot(MONDAY, 9),
            local_slot(MONDAY, 10, 30),
            local_slot(MONDAY, 12),
            local_slot(MONDAY, 13, 30),
            local_slot(MONDAY, 15),
        ]

    def test_split_windows_each_produce_slots(self):
        hours = _hours(business_hours={"0": ["09:00-11:00", "13:00-14:00"]})
        slots = hours.iter_slot_starts(MONDAY, 60)
        assert [s for s, _ in slots] == [
            local_slot(MONDAY, 9),
            local_slot(MONDAY, 10),
            local_slot(MONDAY, 13),
        ]


class TestContains:
    def test_inside_window(self):
        start = local_slot(MONDAY, 15, 30)
        assert _hours().contains(start, start + timedelta(minutes=90))

    def test_crossing_closing_time(self):
        start = local_slot(MONDAY, 16)
        assert not _hours().contains(start, start + timedelta(minutes=90))

    def test_crossing_gap_between_windows(self):
        hours = _hours(business_hours={"0": ["09:00-11:00", "11:30-14:00"]})
        start = local_slot(MONDAY, 10, 30)
        assert not hours.contains(start, start + timedelta(minutes=60))

    def test_timezone_is_pytz(self):
        assert _hours().timezone == pytz.timezone("America/Toronto")
