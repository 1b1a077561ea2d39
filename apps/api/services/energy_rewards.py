"""
Energy Rewards

Maps an EmotionalAnalysis to an energy-point award and the chakras the
reflection activates.

Chakra indices:
    0 Root, 1 Sacral, 2 Solar Plexus, 3 Heart, 4 Throat, 5 Third Eye, 6 Crown

Points:
    floor + floor(depth * 25 + self_awareness * 20), capped

Monotonic in both scores, never negative. The floor is the minimum reward for
any reflection that passed length validation; the cap bounds what a single
submission can earn.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from services.reflection_scoring import EmotionalAnalysis

CHAKRA_COUNT = 7

CHAKRA_NAMES = [
    "Root",
    "Sacral",
    "Solar Plexus",
    "Heart",
    "Throat",
    "Third Eye",
    "Crown",
]

DEPTH_WEIGHT = 25
AWARENESS_WEIGHT = 20
DEFAULT_POINTS_FLOOR = 5
DEFAULT_POINTS_CAP = 50

# Theme label -> chakra indices, in activation order
THEME_TO_CHAKRAS: Dict[str, List[int]] = {
    "grounded": [0],
    "fear": [0],
    "creativity": [1],
    "joy": [1],
    "power": [2],
    "energy": [2],
    "anger": [2],
    "love": [3],
    "connect": [3],
    "gratitude": [3],
    "healing": [3, 0],
    "sadness": [3],
    "expression": [4],
    "calm": [4, 6],
    "aware": [5],
    "wisdom": [5],
    "spirit": [6],
}


@dataclass(frozen=True)
class Reward:
    points: int
    activated_chakras: Tuple[int, ...]


def is_valid_chakra_index(chakra_index) -> bool:
    return isinstance(chakra_index, int) and not isinstance(chakra_index, bool) and 0 <= chakra_index < CHAKRA_COUNT


def chakra_name(chakra_index: int) -> str:
    return CHAKRA_NAMES[chakra_index]


def chakra_activation_points(chakra_index: int) -> int:
    """Points for activating a chakra directly, without a reflection."""
    return 10 + chakra_index * 5


def reflection_points(
    emotional_depth: float,
    self_awareness: float,
    floor: int = DEFAULT_POINTS_FLOOR,
    cap: int = DEFAULT_POINTS_CAP,
) -> int:
    earned = math.floor(emotional_depth * DEPTH_WEIGHT + self_awareness * AWARENESS_WEIGHT)
    return max(0, min(floor + max(earned, 0), cap))


def chakras_for_themes(themes) -> Tuple[int, ...]:
    activated: List[int] = []
    for theme in themes:
        for index in THEME_TO_CHAKRAS.get(theme, []):
            if index not in activated:
                activated.append(index)
    return tuple(activated)


def map_to_reward(
    analysis: EmotionalAnalysis,
    floor: Optional[int] = None,
    cap: Optional[int] = None,
) -> Reward:
    """Points and activated chakras for one analyzed reflection."""
    return Reward(
        points=reflection_points(
            analysis.emotional_depth,
            analysis.self_awareness,
            floor=DEFAULT_POINTS_FLOOR if floor is None else floor,
            cap=DEFAULT_POINTS_CAP if cap is None else cap,
        ),
        activated_chakras=chakras_for_themes(analysis.themes),
    )
