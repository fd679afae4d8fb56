"""Value objects and interval helpers shared by the scheduling services."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence, Tuple

from app.core.timezone_utils import ensure_utc

CENT = Decimal("0.01")

# Unavailability reasons
REASON_IN_PAST = "in_past"
REASON_INSIDE_LEAD_TIME = "inside_lead_time"
REASON_OUTSIDE_BUSINESS_HOURS = "outside_business_hours"
REASON_OVERLAPS_EXISTING = "overlaps_existing"


@dataclass(frozen=True)
class SlotRequest:
    """A slot a student wants to book."""

    start: datetime
    duration_minutes: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", ensure_utc(self.start))

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)


@dataclass(frozen=True)
class AvailabilitySlot:
    start: datetime
    end: datetime
    available: bool
    price: Decimal
    reason: Optional[str] = None


def intervals_overlap(
    start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime
) -> bool:
    """Half-open interval overlap; touching intervals do not overlap."""
    return start_a < end_b and start_b < end_a


def find_overlapping_pair(slots: Sequence[SlotRequest]) -> Optional[Tuple[int, int]]:
    """Return the indexes of the first pair of overlapping slots, if any."""
    ordered = sorted(range(len(slots)), key=lambda i: slots[i].start)
    for prev, current in zip(ordered, ordered[1:]):
        if intervals_overlap(
            slots[prev].start, slots[prev].end, slots[current].start, slots[current].end
        ):
            return min(prev, current), max(prev, current)
    return None


def compute_price(hourly_rate: Decimal, duration_minutes: int) -> Decimal:
    """Price of one slot: ``rate * minutes / 60`` rounded half-up to cents."""
    raw = Decimal(hourly_rate) * Decimal(duration_minutes) / Decimal(60)
    return raw.quantize(CENT, rounding=ROUND_HALF_UP)
