"""Tests for 5-minute slot keys."""

from datetime import UTC, datetime
from functools import reduce

import pytest

from rainarea.errors import InvalidSlotParameter, SlotNotYetPublished
from rainarea.services.timeslot import (
    TimeSlotResolver,
    shift_slot,
    slot_to_datetime,
)


def _resolver_at(*args) -> TimeSlotResolver:
    now = datetime(*args, tzinfo=UTC)
    return TimeSlotResolver(clock=lambda: now)


class TestCurrentSlot:
    """Test current and shifted slot computation."""

    def test_current_slot_is_utc_plus_8_floored(self):
        """04:02 UTC is 12:02 in Singapore, floored to 12:00."""
        assert _resolver_at(2024, 12, 15, 4, 2, 30).current_slot() == 202412151200

    def test_exact_boundary_is_kept(self):
        """A time already on a boundary maps to itself."""
        assert _resolver_at(2024, 12, 15, 4, 5).current_slot() == 202412151205

    def test_date_rolls_over_in_local_time(self):
        """16:07 UTC on New Year's Eve is already 00:05 on Jan 1 in UTC+8."""
        assert _resolver_at(2024, 12, 31, 16, 7, 59).current_slot() == 202501010005

    def test_minute_component_is_multiple_of_five(self):
        """Every minute of an hour floors to a 5-minute boundary."""
        for minute in range(60):
            slot = _resolver_at(2024, 6, 1, 2, minute).current_slot()
            assert (slot % 100) % 5 == 0
            assert slot % 100 == minute - minute % 5

    def test_shifted_slot_moves_back(self):
        """A -5 minute shift from 12:02 lands in the 11:55 slot."""
        assert _resolver_at(2024, 12, 15, 4, 2).shifted_slot(-5) == 202412151155

    def test_shifted_slot_moves_forward(self):
        """Positive offsets move forward."""
        assert _resolver_at(2024, 12, 15, 4, 2).shifted_slot(10) == 202412151210


class TestShiftSlot:
    """Test slot arithmetic on existing keys."""

    def test_shift_across_midnight(self):
        """Stepping back from midnight goes to the previous day."""
        assert shift_slot(202501010000, -5) == 202412312355

    def test_shift_across_month_end(self):
        """Stepping forward past the last slot of February."""
        assert shift_slot(202402292355, 5) == 202403010000

    @pytest.mark.parametrize("slot", [202412151200, 202501010005, 202403010010, 202312312355])
    @pytest.mark.parametrize("steps", [1, 3, 12, 300])
    def test_repeated_steps_equal_single_shift(self, slot, steps):
        """N shifts of -5 minutes equal one shift of -5N minutes."""
        stepped = reduce(lambda s, _: shift_slot(s, -5), range(steps), slot)
        assert stepped == shift_slot(slot, -5 * steps)

    def test_slot_to_datetime_is_utc_plus_8(self):
        """Slot keys round-trip through aware datetimes."""
        dt = slot_to_datetime(202412151200)
        assert dt.utcoffset().total_seconds() == 8 * 3600
        assert dt.astimezone(UTC) == datetime(2024, 12, 15, 4, 0, tzinfo=UTC)


class TestParseSlot:
    """Test explicit slot parameter validation."""

    def test_valid_slot(self, resolver):
        """A past boundary slot is accepted as an int."""
        assert resolver.parse_slot("202412151155") == 202412151155

    def test_current_slot_is_valid(self, resolver):
        """The current slot itself may be requested."""
        assert resolver.parse_slot("202412151200") == 202412151200

    @pytest.mark.parametrize(
        "value",
        [
            "",
            "20241215120",
            "2024121512000",
            "abcdefghijkl",
            "202412151203",
            "202413151200",
            "202402301200",
            "202412152500",
        ],
    )
    def test_malformed_slots_rejected(self, resolver, value):
        """Malformed, off-boundary or impossible dates raise InvalidSlotParameter."""
        with pytest.raises(InvalidSlotParameter):
            resolver.parse_slot(value)

    def test_future_slot_rejected(self, resolver):
        """Slots after the current one cannot exist yet."""
        with pytest.raises(SlotNotYetPublished, match="future") as exc_info:
            resolver.parse_slot("202412151205")
        assert isinstance(exc_info.value, InvalidSlotParameter)

    def test_future_slot_is_not_cacheable(self):
        """A future slot becomes valid within minutes, so its 400 must not be cached."""
        assert SlotNotYetPublished.status_code == 400
        assert SlotNotYetPublished.cacheable is False

    def test_invalid_slot_is_cacheable(self):
        """Invalid parameters map to a cacheable 400."""
        assert InvalidSlotParameter.status_code == 400
        assert InvalidSlotParameter.cacheable is True
