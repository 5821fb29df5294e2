"""Tests for the invariants the domain models enforce."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from playscanner.models import CourtSlot, SlotAvailability
from tests.mocks.models import make_slot


def _slot_fields(**overrides) -> dict:
    fields = make_slot().model_dump()
    fields.update(overrides)
    return fields


class TestCourtSlot:
    def test_valid_slot(self):
        slot = CourtSlot(**_slot_fields())
        assert (slot.end_time - slot.start_time).total_seconds() == slot.duration * 60

    @pytest.mark.parametrize("shift", [timedelta(0), timedelta(minutes=-30)])
    def test_end_must_be_after_start(self, shift):
        start = make_slot().start_time
        with pytest.raises(ValidationError, match="end_time must be after start_time"):
            CourtSlot(**_slot_fields(end_time=start + shift))

    def test_duration_must_match_window(self):
        with pytest.raises(ValidationError, match="does not match"):
            CourtSlot(**_slot_fields(duration=90))

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError):
            CourtSlot(**_slot_fields(price=-1))

    def test_times_are_normalized_to_utc(self):
        start = datetime(2030, 6, 1, 18, 0, tzinfo=timezone(timedelta(hours=1)))
        slot = CourtSlot(
            **_slot_fields(start_time=start, end_time=start + timedelta(minutes=60))
        )
        assert slot.start_time == datetime(2030, 6, 1, 17, 0, tzinfo=timezone.utc)
        assert slot.start_time.utcoffset() == timedelta(0)

    def test_camel_case_over_the_wire(self):
        data = make_slot().model_dump(by_alias=True)
        assert "startTime" in data
        assert "bookingUrl" in data
        assert CourtSlot.model_validate(data) == make_slot()


class TestSlotAvailability:
    def test_spots_within_total(self):
        availability = SlotAvailability(spots_available=2, total_spots=4)
        assert availability.spots_available == 2

    def test_spots_cannot_exceed_total(self):
        with pytest.raises(ValidationError, match="cannot exceed"):
            SlotAvailability(spots_available=5, total_spots=4)

    def test_slot_rejects_overbooked_availability(self):
        with pytest.raises(ValidationError):
            CourtSlot(**_slot_fields(availability={"spots_available": 3, "total_spots": 2}))
