"""Deterministic damage formula: no I/O.

damage = floor(deliveries * 10 * weather_bonus * raid_buff)

Rain and surge do not stack: either one (or both) doubles the base.
"""

from __future__ import annotations

import math
from typing import NamedTuple

BASE_DAMAGE_PER_DELIVERY = 10
WEATHER_BONUS_MULTIPLIER = 2.0


class Damage(NamedTuple):
    base_damage: int
    bonus_multiplier: float  # weather bonus * raid buff
    total_damage: int


def compute_damage(
    delivery_count: int,
    is_rainy: bool = False,
    has_surge: bool = False,
    buff_multiplier: float = 1.0,
) -> Damage:
    """Compute damage for one rider-day.

    Never raises; inputs are validated at ingestion. Negative counts
    are treated as zero so total_damage is always a non-negative int.
    """
    base_damage = max(0, delivery_count) * BASE_DAMAGE_PER_DELIVERY
    weather_bonus = WEATHER_BONUS_MULTIPLIER if (is_rainy or has_surge) else 1.0
    effective_multiplier = weather_bonus * buff_multiplier
    total_damage = max(0, math.floor(base_damage * effective_multiplier))
    return Damage(base_damage, effective_multiplier, total_damage)
