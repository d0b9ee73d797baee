"""Unit tests for the damage formula."""

from bossraid.raids.damage import BASE_DAMAGE_PER_DELIVERY, compute_damage


class TestComputeDamage:
    """floor(deliveries * 10 * weather_bonus * raid_buff)."""

    def test_plain_day(self):
        damage = compute_damage(5)
        assert damage.base_damage == 50
        assert damage.bonus_multiplier == 1.0
        assert damage.total_damage == 50

    def test_rain_with_raid_buff(self):
        """5 deliveries, rainy, buff 1.5 → 50 base, 3.0 multiplier, 150 damage."""
        damage = compute_damage(5, is_rainy=True, buff_multiplier=1.5)
        assert damage.base_damage == 50
        assert damage.bonus_multiplier == 3.0
        assert damage.total_damage == 150

    def test_surge_doubles(self):
        assert compute_damage(3, has_surge=True).total_damage == 60

    def test_rain_and_surge_do_not_stack(self):
        both = compute_damage(4, is_rainy=True, has_surge=True)
        rain_only = compute_damage(4, is_rainy=True)
        assert both == rain_only
        assert both.total_damage == 80

    def test_fractional_result_is_floored(self):
        """7 * 10 * 1.25 = 87.5 → 87."""
        damage = compute_damage(7, buff_multiplier=1.25)
        assert damage.total_damage == 87
        assert isinstance(damage.total_damage, int)

    def test_zero_deliveries(self):
        damage = compute_damage(0, is_rainy=True, buff_multiplier=2.0)
        assert damage.base_damage == 0
        assert damage.total_damage == 0

    def test_negative_count_treated_as_zero(self):
        assert compute_damage(-3).total_damage == 0

    def test_base_damage_constant(self):
        assert compute_damage(1).base_damage == BASE_DAMAGE_PER_DELIVERY

    def test_deterministic(self):
        assert compute_damage(12, True, False, 1.3) == compute_damage(12, True, False, 1.3)

    def test_non_decreasing_in_delivery_count(self):
        for buff in (1.0, 1.3, 2.5):
            totals = [compute_damage(n, is_rainy=True, buff_multiplier=buff).total_damage for n in range(50)]
            assert totals == sorted(totals)
