"""Display helpers shared by the raid API responses."""

from __future__ import annotations

from datetime import date, datetime, timezone


def calculate_hp_percentage(current_hp: int, max_hp: int) -> float:
    """Remaining HP as 0-100."""
    if max_hp <= 0:
        return 0.0
    return max(0.0, min(100.0, current_hp / max_hp * 100))


def calculate_progress_percentage(current_hp: int, max_hp: int) -> float:
    """Damage dealt as a percentage of max HP, one decimal."""
    if max_hp <= 0:
        return 0.0
    return round((max_hp - current_hp) / max_hp * 100, 1)


def calculate_days_remaining(end_date: date, today: date | None = None) -> int:
    """Whole days until end_date (D-day). Negative once past."""
    if today is None:
        today = datetime.now(timezone.utc).date()
    return (end_date - today).days


def mask_rider_id(rider_id: str) -> str:
    """BC123456 -> BC12****"""
    if not rider_id or len(rider_id) < 6:
        return rider_id
    return rider_id[:4] + "*" * (len(rider_id) - 4)
