"""Unit tests for API display helpers."""

from datetime import date

from bossraid.raids.display import (
    calculate_days_remaining,
    calculate_hp_percentage,
    calculate_progress_percentage,
    mask_rider_id,
)


class TestHpPercentage:
    def test_full_hp(self):
        assert calculate_hp_percentage(1000, 1000) == 100.0

    def test_half_hp(self):
        assert calculate_hp_percentage(500, 1000) == 50.0

    def test_defeated(self):
        assert calculate_hp_percentage(0, 1000) == 0.0

    def test_clamped(self):
        assert calculate_hp_percentage(1500, 1000) == 100.0
        assert calculate_hp_percentage(-5, 1000) == 0.0

    def test_zero_max_hp(self):
        assert calculate_hp_percentage(0, 0) == 0.0


class TestProgressPercentage:
    def test_one_decimal(self):
        assert calculate_progress_percentage(2000, 3000) == 33.3

    def test_untouched(self):
        assert calculate_progress_percentage(3000, 3000) == 0.0


class TestDaysRemaining:
    def test_future(self):
        assert calculate_days_remaining(date(2024, 3, 31), today=date(2024, 3, 21)) == 10

    def test_last_day(self):
        assert calculate_days_remaining(date(2024, 3, 31), today=date(2024, 3, 31)) == 0

    def test_past(self):
        assert calculate_days_remaining(date(2024, 3, 31), today=date(2024, 4, 2)) == -2


class TestMaskRiderId:
    def test_masks_digits(self):
        assert mask_rider_id("BC123456") == "BC12****"

    def test_short_ids_untouched(self):
        assert mask_rider_id("BC1") == "BC1"
        assert mask_rider_id("") == ""
