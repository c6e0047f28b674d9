"""
WORDMAP GRAPH INVARIANTS - The Shape Checks

This module enforces the physics of a mind map. A node sequence that
violates them is rejected BEFORE it becomes the live graph (on load, or
when MindMapDB is rebuilt from a snapshot).

Invariants Implemented:
1. Single Center: exactly one node has is_center, with no parent/category
2. Unique IDs: no two nodes share an id
3. Parent Resolution: every non-center parent_id names an existing node
4. Tree Shape: the parent relation has no cycles (checked with rustworkx)
5. Categories: every non-center node carries one of the nine tags
6. Group Uniqueness: words are unique case-insensitively per (parent, category)
7. Capacity: node count never exceeds the ceiling
8. Ray Layout (WARNING): siblings sit on their sector ray, beyond
   base_distance, strictly farther in sequence order

Design Philosophy:
- Structural violations are errors; layout drift is a warning, since a
  saved map may have been laid out with other spacing constants
- Checks are O(V) apart from the rustworkx acyclicity test, O(V+E)
"""
import math
import rustworkx as rx
from typing import List, Tuple, Dict, Any, Optional, Sequence
from dataclasses import dataclass, field
from collections import defaultdict
from enum import Enum

from core.ontology import validate_category
from core.schemas import MindMapNode
from core.geometry import sector_angle, distance


# =============================================================================
# INVARIANT RESULTS
# =============================================================================

class InvariantSeverity(Enum):
    """Severity levels for invariant violations."""
    ERROR = "error"      # Graph must not be accepted
    WARNING = "warning"  # Should be investigated


@dataclass
class InvariantViolation:
    """A specific invariant violation."""
    invariant: str           # Name of the invariant
    severity: InvariantSeverity
    message: str
    nodes_involved: List[str] = field(default_factory=list)


@dataclass
class InvariantReport:
    """Complete invariant validation report."""
    valid: bool
    violations: List[InvariantViolation]
    metrics: Dict[str, Any]

    @property
    def errors(self) -> List[InvariantViolation]:
        return [v for v in self.violations if v.severity == InvariantSeverity.ERROR]

    @property
    def warnings(self) -> List[InvariantViolation]:
        return [v for v in self.violations if v.severity == InvariantSeverity.WARNING]

    def summary(self) -> str:
        """One line per error, for exception messages."""
        return "; ".join(v.message for v in self.errors)


Check = Tuple[bool, Optional[InvariantViolation]]

_ANGLE_TOLERANCE = 1e-6
_DISTANCE_TOLERANCE = 1e-6


def _error(invariant: str, message: str, nodes: Optional[List[str]] = None) -> Check:
    return False, InvariantViolation(
        invariant=invariant,
        severity=InvariantSeverity.ERROR,
        message=message,
        nodes_involved=nodes or [],
    )


def build_parent_graph(nodes: Sequence[MindMapNode]) -> Tuple[rx.PyDiGraph, Dict[str, int]]:
    """
    Build a parent -> child rustworkx graph from a node sequence.

    Nodes whose parent is missing are added without an edge; callers check
    parent resolution separately.
    """
    graph = rx.PyDiGraph()
    node_map: Dict[str, int] = {}
    for node in nodes:
        if node.id not in node_map:
            node_map[node.id] = graph.add_node(node)
    for node in nodes:
        if node.parent_id is not None and node.parent_id in node_map:
            graph.add_edge(node_map[node.parent_id], node_map[node.id], None)
    return graph, node_map


# =============================================================================
# TREE INVARIANTS
# =============================================================================

class TreeInvariants:
    """
    Validators over a mind map's node sequence.

    All methods are static and return (is_valid, violation or None).
    """

    @staticmethod
    def validate_unique_ids(nodes: Sequence[MindMapNode]) -> Check:
        seen = set()
        dupes = []
        for node in nodes:
            if node.id in seen:
                dupes.append(node.id)
            seen.add(node.id)
        if dupes:
            return _error("unique_ids", f"Duplicate node ids: {sorted(set(dupes))}", dupes)
        return True, None

    @staticmethod
    def validate_single_center(nodes: Sequence[MindMapNode]) -> Check:
        centers = [n for n in nodes if n.is_center]
        if len(centers) != 1:
            return _error(
                "single_center",
                f"Expected exactly one center node, found {len(centers)}",
                [n.id for n in centers],
            )
        center = centers[0]
        if center.parent_id is not None or center.category is not None:
            return _error(
                "single_center",
                f"Center node {center.id} must have no parent and no category",
                [center.id],
            )
        return True, None

    @staticmethod
    def validate_words(nodes: Sequence[MindMapNode]) -> Check:
        blank = [n.id for n in nodes if not n.word.strip()]
        if blank:
            return _error("non_empty_word", f"Nodes with empty words: {blank}", blank)
        return True, None

    @staticmethod
    def validate_parents(nodes: Sequence[MindMapNode]) -> Check:
        ids = {n.id for n in nodes}
        orphans = [
            n.id for n in nodes
            if not n.is_center and (n.parent_id is None or n.parent_id not in ids)
        ]
        if orphans:
            return _error("parent_resolution", f"Nodes with missing parents: {orphans}", orphans)
        return True, None

    @staticmethod
    def validate_categories(nodes: Sequence[MindMapNode]) -> Check:
        bad = [
            n.id for n in nodes
            if not n.is_center and (n.category is None or not validate_category(n.category))
        ]
        if bad:
            return _error("category", f"Nodes with missing or unknown category: {bad}", bad)
        return True, None

    @staticmethod
    def validate_acyclic(nodes: Sequence[MindMapNode]) -> Check:
        """
        The parent relation must be a tree.

        Uses rustworkx's is_directed_acyclic_graph for an O(V+E) check;
        a self-referencing parent is a self-loop and fails it too.
        """
        graph, _ = build_parent_graph(nodes)
        if rx.is_directed_acyclic_graph(graph):
            return True, None
        involved = [n.id for n in nodes if n.parent_id == n.id]
        return _error("tree_shape", "Parent references form a cycle", involved)

    @staticmethod
    def validate_group_uniqueness(nodes: Sequence[MindMapNode]) -> Check:
        seen: Dict[Tuple[Optional[str], Optional[str], str], str] = {}
        dupes = []
        for node in nodes:
            if node.is_center:
                continue
            key = (node.parent_id, node.category, node.word_key)
            if key in seen:
                dupes.append(node.id)
            else:
                seen[key] = node.id
        if dupes:
            return _error(
                "group_uniqueness",
                f"Duplicate words within a (parent, category) group: {dupes}",
                dupes,
            )
        return True, None

    @staticmethod
    def validate_capacity(nodes: Sequence[MindMapNode], max_total_nodes: Optional[int]) -> Check:
        if max_total_nodes is not None and len(nodes) > max_total_nodes:
            return _error(
                "capacity",
                f"{len(nodes)} nodes exceed the ceiling of {max_total_nodes}",
            )
        return True, None

    @staticmethod
    def validate_ray_layout(nodes: Sequence[MindMapNode], base_distance: float) -> Check:
        """
        Siblings lie on their category ray, at or beyond base_distance,
        strictly farther from the parent in sequence order.
        """
        by_id = {n.id: n for n in nodes}
        groups: Dict[Tuple[str, str], List[MindMapNode]] = defaultdict(list)
        for node in nodes:
            if node.is_center or node.parent_id not in by_id or not validate_category(node.category or ""):
                continue
            groups[(node.parent_id, node.category)].append(node)

        drifted: List[str] = []
        for (parent_id, category), siblings in groups.items():
            parent = by_id[parent_id]
            angle = sector_angle(category)
            previous = -math.inf
            for node in siblings:
                d = distance(node, parent)
                if d < base_distance - _DISTANCE_TOLERANCE or d <= previous + _DISTANCE_TOLERANCE:
                    drifted.append(node.id)
                else:
                    node_angle = math.atan2(node.y - parent.y, node.x - parent.x) % (2 * math.pi)
                    delta = abs(node_angle - angle)
                    if min(delta, 2 * math.pi - delta) > _ANGLE_TOLERANCE:
                        drifted.append(node.id)
                previous = d

        if drifted:
            return False, InvariantViolation(
                invariant="ray_layout",
                severity=InvariantSeverity.WARNING,
                message=f"Nodes off their sector ray or out of order: {drifted}",
                nodes_involved=drifted,
            )
        return True, None

    @staticmethod
    def validate_all(
        nodes: Sequence[MindMapNode],
        max_total_nodes: Optional[int] = None,
        base_distance: Optional[float] = None,
    ) -> InvariantReport:
        """
        Run every check and collect the results.

        Args:
            nodes: The node sequence to validate
            max_total_nodes: Ceiling to enforce, or None to skip
            base_distance: Enables the ray layout warning check when given

        Returns:
            InvariantReport; valid is False if any ERROR was found
        """
        violations: List[InvariantViolation] = []

        if not nodes:
            violations.append(InvariantViolation(
                invariant="single_center",
                severity=InvariantSeverity.ERROR,
                message="A mind map needs at least its center node",
            ))
            return InvariantReport(valid=False, violations=violations, metrics={"node_count": 0})

        checks = [
            TreeInvariants.validate_unique_ids(nodes),
            TreeInvariants.validate_single_center(nodes),
            TreeInvariants.validate_words(nodes),
            TreeInvariants.validate_parents(nodes),
            TreeInvariants.validate_categories(nodes),
            TreeInvariants.validate_acyclic(nodes),
            TreeInvariants.validate_group_uniqueness(nodes),
            TreeInvariants.validate_capacity(nodes, max_total_nodes),
        ]
        if base_distance is not None:
            checks.append(TreeInvariants.validate_ray_layout(nodes, base_distance))

        for _, violation in checks:
            if violation:
                violations.append(violation)

        is_valid = all(v.severity != InvariantSeverity.ERROR for v in violations)
        return InvariantReport(
            valid=is_valid,
            violations=violations,
            metrics=get_tree_metrics(nodes),
        )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def validate_nodes(nodes: Sequence[MindMapNode], **kwargs) -> InvariantReport:
    """Convenience function to validate a node sequence."""
    return TreeInvariants.validate_all(nodes, **kwargs)


def is_valid_tree(nodes: Sequence[MindMapNode]) -> bool:
    """Quick structural check (no capacity or layout checks)."""
    return validate_nodes(nodes).valid


def get_tree_metrics(nodes: Sequence[MindMapNode]) -> Dict[str, Any]:
    """Basic counts without full validation."""
    groups = {n.group_key for n in nodes if not n.is_center}
    graph, _ = build_parent_graph(nodes)
    return {
        "node_count": len(nodes),
        "group_count": len(groups),
        "edge_count": graph.num_edges(),
        "is_tree": rx.is_directed_acyclic_graph(graph),
    }
