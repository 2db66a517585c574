"""5-minute time slot keys in Singapore time (UTC+8).

A slot key is an integer ``YYYYMMDDHHmm`` whose minute is a multiple of 5. It
is the snapshot identifier and the only cache key.
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta, timezone

from rainarea.errors import InvalidSlotParameter, SlotNotYetPublished

SLOT_MINUTES = 5
SLOT_TZ = timezone(timedelta(hours=8), name="SGT")
SLOT_FORMAT = "%Y%m%d%H%M"


def _utc_now() -> datetime:
    return datetime.now(UTC)


def floor_to_slot(dt: datetime) -> datetime:
    """Floor a datetime to the enclosing 5-minute boundary in UTC+8."""
    local = dt.astimezone(SLOT_TZ)
    return local.replace(
        minute=local.minute - local.minute % SLOT_MINUTES, second=0, microsecond=0
    )


def datetime_to_slot(dt: datetime) -> int:
    return int(floor_to_slot(dt).strftime(SLOT_FORMAT))


def slot_to_datetime(slot: int) -> datetime:
    """Convert a slot key back to an aware UTC+8 datetime."""
    return datetime.strptime(f"{slot:012d}", SLOT_FORMAT).replace(tzinfo=SLOT_TZ)


def shift_slot(slot: int, minutes: int) -> int:
    """Move an existing slot key by ``minutes`` and floor the result."""
    return datetime_to_slot(slot_to_datetime(slot) + timedelta(minutes=minutes))


class TimeSlotResolver:
    """Computes slot keys from an injectable clock."""

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self._clock = clock or _utc_now

    def current_slot(self) -> int:
        """Slot key for "now"."""
        return datetime_to_slot(self._clock())

    def shifted_slot(self, step_minutes: int) -> int:
        """Slot key for "now" moved by ``step_minutes`` (negative is earlier)."""
        return datetime_to_slot(self._clock() + timedelta(minutes=step_minutes))

    def parse_slot(self, value: str | int) -> int:
        """Validate an explicit slot parameter.

        The value must be a 12-digit ``YYYYMMDDHHmm`` calendar time on a
        5-minute boundary that is not later than the current slot.
        """
        text = str(value).strip()
        if len(text) != 12 or not (text.isascii() and text.isdigit()):
            raise InvalidSlotParameter(f"Invalid dt: {value!r} (expected YYYYMMDDHHmm)")
        try:
            dt = datetime.strptime(text, SLOT_FORMAT)
        except ValueError:
            raise InvalidSlotParameter(f"Invalid dt: {value!r} is not a calendar time") from None
        if dt.minute % SLOT_MINUTES:
            raise InvalidSlotParameter(
                f"Invalid dt: {value!r} is not on a {SLOT_MINUTES}-minute boundary"
            )
        slot = int(text)
        if slot > self.current_slot():
            raise SlotNotYetPublished(f"Invalid dt: {value!r} is in the future")
        return slot
