"""
Tests for Energy Rewards

Point formula, floor and cap, chakra activation points and the
theme -> chakra mapping.
"""
import pytest

from services.energy_rewards import (
    CHAKRA_NAMES,
    THEME_TO_CHAKRAS,
    Reward,
    chakra_activation_points,
    chakra_name,
    chakras_for_themes,
    is_valid_chakra_index,
    map_to_reward,
    reflection_points,
)
from services.reflection_scoring import EmotionalAnalysis, THEME_PATTERNS, analyze


class TestReflectionPoints:
    """floor + floor(depth * 25 + awareness * 20), capped"""

    def test_zero_scores_earn_the_floor(self):
        assert reflection_points(0.0, 0.0) == 5

    def test_formula(self):
        # 5 + floor(0.5 * 25 + 0.5 * 20) = 5 + floor(22.5) = 27
        assert reflection_points(0.5, 0.5) == 27

    def test_maximum_scores(self):
        # 5 + 45 = 50, exactly the cap
        assert reflection_points(1.0, 1.0) == 50

    def test_cap(self):
        assert reflection_points(1.0, 1.0, floor=20, cap=50) == 50

    def test_custom_floor(self):
        assert reflection_points(0.0, 0.0, floor=10) == 10

    @pytest.mark.parametrize("low,high", [
        ((0.1, 0.1), (0.2, 0.1)),
        ((0.1, 0.1), (0.1, 0.2)),
        ((0.3, 0.7), (0.9, 0.7)),
        ((0.0, 0.0), (1.0, 1.0)),
        ((0.44, 0.31), (0.44, 0.31)),
    ])
    def test_monotonic(self, low, high):
        assert reflection_points(*high) >= reflection_points(*low)

    def test_never_negative(self):
        assert reflection_points(-1.0, -1.0) >= 0


class TestChakraPoints:
    """Direct activation: 10 + index * 5"""

    @pytest.mark.parametrize("index,points", [(0, 10), (2, 20), (6, 40)])
    def test_activation_points(self, index, points):
        assert chakra_activation_points(index) == points

    def test_names(self):
        assert chakra_name(0) == "Root"
        assert chakra_name(3) == "Heart"
        assert chakra_name(6) == "Crown"
        assert len(CHAKRA_NAMES) == 7

    @pytest.mark.parametrize("value,valid", [
        (0, True), (6, True), (-1, False), (7, False), ("2", False), (2.0, False), (True, False), (None, False),
    ])
    def test_valid_index(self, value, valid):
        assert is_valid_chakra_index(value) is valid


class TestThemeMapping:
    """Themes activate chakras in order, without duplicates"""

    def test_every_theme_is_mapped(self):
        assert set(THEME_PATTERNS) == set(THEME_TO_CHAKRAS)

    def test_order_and_dedup(self):
        assert chakras_for_themes(["calm", "connect", "love", "spirit"]) == (4, 6, 3)

    def test_unknown_theme_ignored(self):
        assert chakras_for_themes(["nonsense"]) == ()

    def test_all_indices_valid(self):
        for indices in THEME_TO_CHAKRAS.values():
            assert all(is_valid_chakra_index(i) for i in indices)


class TestMapToReward:
    def test_calm_reflection(self):
        analysis = analyze("I feel calm and connected to my energy today, noticing a deep sense of awareness")
        reward = map_to_reward(analysis)

        assert reward.points >= 5
        assert reward.activated_chakras == (4, 6, 3, 2, 5)

    def test_no_themes_no_chakras(self):
        reward = map_to_reward(EmotionalAnalysis(emotional_depth=0.2, self_awareness=0.0))
        assert reward == Reward(points=10, activated_chakras=())

    def test_cap_override(self):
        analysis = EmotionalAnalysis(emotional_depth=1.0, self_awareness=1.0, themes=("joy",))
        assert map_to_reward(analysis, cap=30) == Reward(points=30, activated_chakras=(1,))
