"""Raid status machine and enumerations.

State progression: active -> completed (boss defeated) or active -> failed.
Both end states are terminal.
"""

from __future__ import annotations

from enum import Enum


class RaidStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


class BossType(str, Enum):
    FIRE = "fire"
    WATER = "water"
    EARTH = "earth"
    WIND = "wind"


class RewardType(str, Enum):
    REAL = "real"
    VIRTUAL = "virtual"
    BADGE = "badge"


VALID_TRANSITIONS: dict[str, list[str]] = {
    RaidStatus.ACTIVE.value: [RaidStatus.COMPLETED.value, RaidStatus.FAILED.value],
    RaidStatus.COMPLETED.value: [],
    RaidStatus.FAILED.value: [],
}

# Statuses whose rankings are still rebuilt and queryable.
RANKED_STATUSES = (RaidStatus.ACTIVE.value, RaidStatus.COMPLETED.value)


def validate_transition(current_status: str, target_status: str) -> None:
    """Validate a state transition. Raises ValueError if invalid."""
    valid = VALID_TRANSITIONS.get(current_status, [])
    if target_status not in valid:
        raise ValueError(
            f"Invalid transition: {current_status} -> {target_status}. "
            f"Valid transitions: {valid}"
        )


def next_status(current_status: str, new_hp: int) -> str:
    """Status after an HP write: a defeated active boss completes the raid."""
    if new_hp == 0 and current_status == RaidStatus.ACTIVE.value:
        validate_transition(current_status, RaidStatus.COMPLETED.value)
        return RaidStatus.COMPLETED.value
    return current_status
