"""
Weekly business hours for appointment scheduling.

Windows are wall-clock ranges in the business timezone. Conversions to UTC
happen per date so DST transitions shift the UTC instants, not the local hours.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

import pytz

from app.core.config import Settings, parse_time_range, settings as default_settings
from app.core.timezone_utils import ensure_utc, localize_business_time, to_business_time

TimeWindow = Tuple[time, time]


@dataclass(frozen=True)
class BusinessHours:
    timezone: pytz.BaseTzInfo
    weekly: Mapping[int, Tuple[TimeWindow, ...]]
    closed_dates: FrozenSet[date] = field(default_factory=frozenset)

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "BusinessHours":
        config = config or default_settings
        weekly: Dict[int, Tuple[TimeWindow, ...]] = {}
        for weekday, ranges in config.business_hours.items():
            windows = sorted(parse_time_range(raw) for raw in ranges)
            weekly[int(weekday)] = tuple(windows)
        return cls(
            timezone=pytz.timezone(config.scheduling_timezone),
            weekly=weekly,
            closed_dates=frozenset(config.closed_dates),
        )

    def windows_for(self, local_date: date) -> Sequence[TimeWindow]:
        """Local windows open on ``local_date`` (empty when closed)."""
        if local_date in self.closed_dates:
            return ()
        return self.weekly.get(local_date.weekday(), ())

    def utc_windows_for(self, local_date: date) -> List[Tuple[datetime, datetime]]:
        return [
            (
                localize_business_time(local_date, start, self.timezone),
                localize_business_time(local_date, end, self.timezone),
            )
            for start, end in self.windows_for(local_date)
        ]

    def contains(self, start: datetime, end: datetime) -> bool:
        """True when ``[start, end)`` lies entirely inside one open window."""
        start_local = to_business_time(start, self.timezone)
        for window_start, window_end in self.utc_windows_for(start_local.date()):
            if window_start <= ensure_utc(start) and ensure_utc(end) <= window_end:
                return True
        return False

    def iter_slot_starts(
        self, local_date: date, duration_minutes: int
    ) -> List[Tuple[datetime, datetime]]:
        """
        Slot boundaries for one local date.

        Starts are aligned to the duration from the beginning of each window
        and a slot is kept only if it ends inside its window.
        """
        step = timedelta(minutes=duration_minutes)
        slots: List[Tuple[datetime, datetime]] = []
        for window_start, window_end in self.utc_windows_for(local_date):
            cursor = window_start
            while cursor + step <= window_end:
                slots.append((cursor, cursor + step))
                cursor += step
        return slots
