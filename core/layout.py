"""
WORDMAP LAYOUT ENGINE - Deterministic Radial Placement

Assigns non-overlapping coordinates to words along their category's ray
and closes gaps after a removal.

Placement rule (shared by every function here):
    first sibling          -> base_distance
    each following sibling -> previous distance
                              + previous footprint / 2
                              + boundary_gap
                              + new footprint / 2

Because every step adds a positive amount, distances along one ray are
strictly increasing in insertion order and neighbouring words never overlap.

Functions never mutate their inputs. Nodes are frozen; a moved node is a
new MindMapNode produced with MindMapNode.moved_to().
"""
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from core.ontology import CategoryLike, to_category
from core.schemas import MindMapNode
from core.geometry import sector_angle, estimate_footprint, distance, point_on_ray


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class LayoutConfig:
    """Spacing constants, in canvas pixels."""
    base_distance: float = 250.0   # Distance of the first sibling from its parent
    boundary_gap: float = 80.0     # Gap between neighbouring footprints
    char_width: float = 12.0       # Estimated width per character
    padding: float = 32.0          # Horizontal padding inside a node
    min_width: float = 100.0       # Narrowest footprint


DEFAULT_LAYOUT = LayoutConfig()


# Placement result: (word, x, y)
Placement = Tuple[str, float, float]


def _step(prev_word: str, next_word: str, layout: LayoutConfig) -> float:
    """Distance added between two consecutive words on the same ray."""
    return (
        estimate_footprint(prev_word, layout) / 2
        + layout.boundary_gap
        + estimate_footprint(next_word, layout) / 2
    )


def _farthest(siblings: Iterable[MindMapNode], parent: MindMapNode) -> Tuple[MindMapNode, float]:
    """Sibling farthest from the parent and its distance. First one wins ties."""
    best = None
    best_dist = -1.0
    for node in siblings:
        d = distance(node, parent)
        if d > best_dist:
            best, best_dist = node, d
    return best, best_dist


def next_distance(
    parent: MindMapNode,
    existing_siblings: Sequence[MindMapNode],
    new_word: str,
    layout: LayoutConfig = DEFAULT_LAYOUT,
) -> float:
    """Distance from the parent at which `new_word` would be placed."""
    if not existing_siblings:
        return layout.base_distance
    farthest, farthest_dist = _farthest(existing_siblings, parent)
    return farthest_dist + _step(farthest.word, new_word, layout)


# =============================================================================
# PLACEMENT
# =============================================================================

def place_one(
    parent: MindMapNode,
    category: CategoryLike,
    existing_siblings: Sequence[MindMapNode],
    new_word: str,
    layout: LayoutConfig = DEFAULT_LAYOUT,
) -> Tuple[float, float]:
    """
    Coordinates for a single new word in a (parent, category) group.

    Args:
        parent: The node the new word hangs off
        category: The sector the word belongs to
        existing_siblings: Nodes already in the same (parent, category) group
        new_word: The word being placed
        layout: Spacing constants

    Returns:
        (x, y) on the category ray, beyond the farthest existing sibling
    """
    angle = sector_angle(category)
    dist = next_distance(parent, existing_siblings, new_word, layout)
    return point_on_ray(parent, angle, dist)


def place_batch(
    parent: MindMapNode,
    category: CategoryLike,
    words: Sequence[str],
    layout: LayoutConfig = DEFAULT_LAYOUT,
    existing_siblings: Sequence[MindMapNode] = (),
) -> List[Placement]:
    """
    Place a sequence of words along one ray in a single pass.

    Equivalent to calling place_one() for each word in turn (feeding every
    placed word back in as a sibling), but O(n): the running distance is
    carried forward instead of re-scanning the group for each word.

    When the group is empty the first word sits at base_distance; otherwise
    it continues after the farthest existing sibling.
    """
    if not words:
        return []

    angle = sector_angle(category)
    current = next_distance(parent, existing_siblings, words[0], layout)

    placements: List[Placement] = []
    for index, word in enumerate(words):
        x, y = point_on_ray(parent, angle, current)
        placements.append((word, x, y))
        if index < len(words) - 1:
            current += _step(word, words[index + 1], layout)
    return placements


# =============================================================================
# RE-LAYOUT
# =============================================================================

def recompute_after_removal(
    nodes: Sequence[MindMapNode],
    category: CategoryLike,
    parent: MindMapNode,
    layout: LayoutConfig = DEFAULT_LAYOUT,
) -> List[MindMapNode]:
    """
    Re-lay a (parent, category) group so it is contiguous from base_distance.

    Surviving siblings keep their relative order, taken from their current
    distance to the parent (ties keep sequence order). Every node outside
    the group is returned as the identical object.

    Args:
        nodes: The full node sequence, after the removal
        category: The category of the group to close up
        parent: The group's parent node

    Returns:
        A new list in the same order as `nodes`
    """
    tag = to_category(category).value
    group = [
        n for n in nodes
        if n.parent_id == parent.id and n.category == tag
    ]
    if not group:
        return list(nodes)

    # sorted() is stable, so equal distances keep sequence order
    ordered = sorted(group, key=lambda n: distance(n, parent))
    placements = place_batch(parent, tag, [n.word for n in ordered], layout)

    moved = {
        node.id: node.moved_to(x, y)
        for node, (_, x, y) in zip(ordered, placements)
    }
    return [moved.get(n.id, n) for n in nodes]
