"""
WORDMAP GEOMETRY - Angles, Footprints and Distances

Pure functions, no state. The layout engine is built on these three
measurements:

- sector_angle(category): where a category's ray points
- estimate_footprint(word): how much room a word needs along that ray
- distance(a, b): how far apart two nodes are

Sector angles are computed once at import into SECTOR_ANGLES so that the
same category always yields the identical float.
"""
import math
from typing import Dict, Tuple, TYPE_CHECKING

from core.ontology import WordCategory, WORD_CATEGORIES, CategoryLike, to_category
from core.schemas import MindMapNode

if TYPE_CHECKING:
    from core.layout import LayoutConfig


SECTOR_ANGLES: Dict[WordCategory, float] = {
    category: (index * 2 * math.pi) / len(WORD_CATEGORIES)
    for index, category in enumerate(WORD_CATEGORIES)
}


def sector_angle(category: CategoryLike) -> float:
    """
    Angle in radians, in [0, 2*pi), of the ray a category occupies.

    Raises:
        ValueError: If the category is unknown
    """
    return SECTOR_ANGLES[to_category(category)]


def estimate_footprint(word: str, layout: "LayoutConfig") -> float:
    """Estimated rendered width of a word, used only for spacing."""
    return max(layout.min_width, len(word) * layout.char_width + layout.padding)


def distance(a: MindMapNode, b: MindMapNode) -> float:
    """Euclidean distance between two nodes."""
    return math.hypot(a.x - b.x, a.y - b.y)


def point_on_ray(origin: MindMapNode, angle: float, dist: float) -> Tuple[float, float]:
    """Coordinates `dist` away from `origin` along `angle`."""
    return (
        origin.x + dist * math.cos(angle),
        origin.y + dist * math.sin(angle),
    )
