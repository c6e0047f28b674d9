"""
WORDMAP GRAPH DATABASE - The Mind Map Store

The canonical id -> node mapping for one mind map. Every structural edit
goes through here so the invariants hold after each call:
- exactly one center node
- every parent reference resolves (the parent relation is a tree)
- words unique case-insensitively within a (parent, category) group
- node count never above the ceiling

Architecture (The Bridge Pattern):
  Python Layer (Business Logic)
  - Uses string UUIDs and an insertion-ordered dict of frozen nodes
  - Calls: db.add_node("joyful", center_id, "synonyms")

  Bridge Layer (This File)
  - _node_map: Dict[str, int]  (UUID -> Index)
  - _inv_map: Dict[int, str]   (Index -> UUID)

  Rust Layer (rustworkx.PyDiGraph)
  - parent -> child edges
  - rx.descendants() for subtree deletion

The store mutates in place and is cheap to rebuild: MindMapDB.from_nodes()
turns a history snapshot back into a live store, and snapshot() hands out
an immutable tuple. HistoryManager commits wrap exactly that round trip.

Thread Safety:
    NOT thread-safe. The engine is driven from a single event loop.
"""
import logging

import rustworkx as rx
from typing import Dict, List, Optional, Sequence, Tuple, Iterator

from core.ontology import (
    CategoryLike,
    DEFAULT_MAX_TOTAL_NODES,
    to_category,
)
from core.schemas import MindMapNode, normalize_word
from core.layout import LayoutConfig, DEFAULT_LAYOUT, place_one, place_batch, recompute_after_removal
from core.graph_invariants import validate_nodes

logger = logging.getLogger(__name__)


# A snapshot is an immutable, ordered node sequence
Snapshot = Tuple[MindMapNode, ...]


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================

class GraphError(Exception):
    """Base exception for mind map operations."""
    pass


class InvalidGraphStateError(GraphError):
    """Raised when a node sequence fails the invariant checks."""
    def __init__(self, message: str, violations: Optional[List[str]] = None):
        self.violations = violations or []
        super().__init__(message)


class NodeNotFoundError(InvalidGraphStateError):
    """Raised when a node UUID is not in the graph."""
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node not found: {node_id}")


class CapacityExceededError(GraphError):
    """Raised when an operation would push the graph past its ceiling."""
    def __init__(self, limit: int, current: int, requested: int = 1):
        self.limit = limit
        self.current = current
        self.requested = requested
        super().__init__(
            f"Node limit reached: {current} + {requested} would exceed the maximum of {limit}"
        )


class DuplicateWordError(GraphError):
    """Raised when a word already exists in its (parent, category) group."""
    def __init__(self, word: str, parent_id: str, category: str):
        self.word = word
        self.parent_id = parent_id
        self.category = category
        super().__init__(f"Word already exists in {category} of {parent_id}: {word!r}")


class CannotDeleteCenterError(GraphError):
    """Raised when attempting to remove the center node."""
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Cannot delete the center node: {node_id}")


# =============================================================================
# MIND MAP DATABASE (The Graph Store)
# =============================================================================

class MindMapDB:
    """
    In-memory mind map backed by rustworkx.

    All public methods accept/return string UUIDs; the translation to/from
    integer indices is handled internally. Node order is insertion order.

    Usage:
        db = MindMapDB.create("happy")

        # Add a word
        joyful_id = db.add_node("joyful", db.center.id, "synonyms")

        # Add several at once (all or nothing against the ceiling)
        ids = db.batch_add(db.center.id, "antonyms", ["sad", "gloomy"])

        # Remove a word; its group closes up
        db.delete_node(joyful_id)

        frozen = db.snapshot()
    """

    def __init__(
        self,
        max_total_nodes: int = DEFAULT_MAX_TOTAL_NODES,
        layout: LayoutConfig = DEFAULT_LAYOUT,
    ):
        """
        Initialize an empty store. Use create() or from_nodes() to get one
        that satisfies the single-center invariant.

        Args:
            max_total_nodes: Ceiling on the total node count
            layout: Spacing constants for placement
        """
        self.max_total_nodes = max_total_nodes
        self.layout = layout

        # Core storage: Rust-native directed graph, edges parent -> child
        self._graph: rx.PyDiGraph = rx.PyDiGraph()

        # The Bridge: bidirectional UUID <-> index mapping
        self._node_map: Dict[str, int] = {}
        self._inv_map: Dict[int, str] = {}

        # Canonical ordered sequence
        self._nodes: Dict[str, MindMapNode] = {}
        self._center_id: Optional[str] = None

    # =========================================================================
    # CONSTRUCTORS
    # =========================================================================

    @classmethod
    def create(
        cls,
        center_word: str,
        max_total_nodes: int = DEFAULT_MAX_TOTAL_NODES,
        layout: LayoutConfig = DEFAULT_LAYOUT,
    ) -> "MindMapDB":
        """Fresh mind map containing only its center node at the origin."""
        if not center_word or not center_word.strip():
            raise ValueError("Center word must not be empty")
        db = cls(max_total_nodes=max_total_nodes, layout=layout)
        db._insert(MindMapNode.center(center_word))
        return db

    @classmethod
    def from_nodes(
        cls,
        nodes: Sequence[MindMapNode],
        max_total_nodes: int = DEFAULT_MAX_TOTAL_NODES,
        layout: LayoutConfig = DEFAULT_LAYOUT,
    ) -> "MindMapDB":
        """
        Rebuild a store from a node sequence (a snapshot or a loaded map).

        Raises:
            InvalidGraphStateError: If the sequence breaks any structural invariant
        """
        report = validate_nodes(nodes, max_total_nodes=max_total_nodes, base_distance=layout.base_distance)
        if not report.valid:
            raise InvalidGraphStateError(
                f"Invalid mind map: {report.summary()}",
                violations=[v.message for v in report.errors],
            )
        for warning in report.warnings:
            logger.warning(f"Loaded mind map has layout drift: {warning.message}")

        db = cls(max_total_nodes=max_total_nodes, layout=layout)
        for node in nodes:
            db._insert(node, link=False)
        # Parents may follow their children in a loaded sequence
        for node in nodes:
            if node.parent_id is not None:
                db._graph.add_edge(db._node_map[node.parent_id], db._node_map[node.id], None)
        return db

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def node_count(self) -> int:
        """Number of nodes in the mind map."""
        return len(self._nodes)

    @property
    def remaining_capacity(self) -> int:
        return max(0, self.max_total_nodes - self.node_count)

    @property
    def center(self) -> MindMapNode:
        """The root node."""
        if self._center_id is None:
            raise InvalidGraphStateError("Mind map has no center node")
        return self._nodes[self._center_id]

    # =========================================================================
    # READS
    # =========================================================================

    def get_node(self, node_id: str) -> MindMapNode:
        """
        Retrieve a node by its UUID.

        Raises:
            NodeNotFoundError: If node doesn't exist
        """
        if node_id not in self._nodes:
            raise NodeNotFoundError(node_id)
        return self._nodes[node_id]

    def has_node(self, node_id: str) -> bool:
        """Check if a node exists."""
        return node_id in self._nodes

    def get_all_nodes(self) -> List[MindMapNode]:
        """All nodes in insertion order."""
        return list(self._nodes.values())

    def get_children(self, node_id: str) -> List[MindMapNode]:
        """Direct children of a node, in insertion order."""
        if node_id not in self._node_map:
            raise NodeNotFoundError(node_id)
        return [n for n in self._nodes.values() if n.parent_id == node_id]

    def get_group(self, parent_id: str, category: CategoryLike) -> List[MindMapNode]:
        """Siblings in one (parent, category) group, in insertion order."""
        tag = to_category(category).value
        return [
            n for n in self._nodes.values()
            if n.parent_id == parent_id and n.category == tag
        ]

    def group_words(self, parent_id: str, category: CategoryLike) -> List[str]:
        """Words already present in a (parent, category) group."""
        return [n.word for n in self.get_group(parent_id, category)]

    def has_word(self, parent_id: str, category: CategoryLike, word: str) -> bool:
        """Case-insensitive membership test within a group."""
        key = normalize_word(word)
        return any(n.word_key == key for n in self.get_group(parent_id, category))

    def get_descendants(self, node_id: str) -> List[MindMapNode]:
        """All nodes below a node, in insertion order."""
        if node_id not in self._node_map:
            raise NodeNotFoundError(node_id)
        indices = rx.descendants(self._graph, self._node_map[node_id])
        ids = {self._inv_map[i] for i in indices}
        return [n for n in self._nodes.values() if n.id in ids]

    def snapshot(self) -> Snapshot:
        """Immutable view of the current node sequence."""
        return tuple(self._nodes.values())

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def add_node(self, word: str, parent_id: str, category: CategoryLike) -> str:
        """
        Add one word under a parent, in a category's sector.

        Args:
            word: The word to add (stripped; must not be blank)
            parent_id: UUID of the parent node
            category: Sector to place the word in

        Returns:
            The new node's UUID

        Raises:
            CapacityExceededError: If the graph is already at its ceiling
            NodeNotFoundError: If the parent doesn't exist
            DuplicateWordError: If the group already holds the word (any case)
            ValueError: If the word is blank or the category unknown
        """
        word = word.strip() if word else ""
        if not word:
            raise ValueError("Word must not be empty")
        tag = to_category(category).value

        if self.node_count >= self.max_total_nodes:
            raise CapacityExceededError(self.max_total_nodes, self.node_count)

        parent = self.get_node(parent_id)
        siblings = self.get_group(parent_id, tag)

        key = normalize_word(word)
        if any(n.word_key == key for n in siblings):
            raise DuplicateWordError(word, parent_id, tag)

        x, y = place_one(parent, tag, siblings, word, self.layout)
        node = MindMapNode.create(word=word, x=x, y=y, parent_id=parent_id, category=tag)
        self._insert(node)
        return node.id

    def batch_add(self, parent_id: str, category: CategoryLike, words: Sequence[str]) -> List[str]:
        """
        Add several words to one group in a single placement pass.

        Words already in the group, repeated within `words`, or blank are
        dropped first. The remaining batch is applied entirely or not at all.

        Returns:
            UUIDs of the created nodes (may be fewer than len(words), or empty)

        Raises:
            CapacityExceededError: If the filtered batch does not fit; nothing is added
            NodeNotFoundError: If the parent doesn't exist
        """
        tag = to_category(category).value
        parent = self.get_node(parent_id)
        siblings = self.get_group(parent_id, tag)

        seen = {n.word_key for n in siblings}
        fresh: List[str] = []
        for raw in words:
            word = raw.strip() if raw else ""
            key = normalize_word(word)
            if not word or key in seen:
                continue
            seen.add(key)
            fresh.append(word)

        if not fresh:
            return []

        if self.node_count + len(fresh) > self.max_total_nodes:
            raise CapacityExceededError(self.max_total_nodes, self.node_count, len(fresh))

        created: List[str] = []
        for word, x, y in place_batch(parent, tag, fresh, self.layout, existing_siblings=siblings):
            node = MindMapNode.create(word=word, x=x, y=y, parent_id=parent_id, category=tag)
            self._insert(node)
            created.append(node.id)
        return created

    def delete_node(self, node_id: str) -> List[str]:
        """
        Remove a node together with its subtree, then close up its group.

        Only the deleted node's (parent, category) group is re-laid out;
        every other surviving node keeps its exact coordinates.

        Returns:
            UUIDs of every removed node, the target first

        Raises:
            CannotDeleteCenterError: If the target is the center
            NodeNotFoundError: If node doesn't exist
        """
        target = self.get_node(node_id)
        if target.is_center:
            raise CannotDeleteCenterError(node_id)

        removed = [target.id] + [n.id for n in self.get_descendants(node_id)]
        for rid in removed:
            self._remove(rid)

        parent = self._nodes.get(target.parent_id) if target.parent_id else None
        if parent is not None and target.category is not None:
            survivors = self.get_group(parent.id, target.category)
            if survivors:
                for node in recompute_after_removal(survivors, target.category, parent, self.layout):
                    self._replace(node)
        return removed

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _insert(self, node: MindMapNode, link: bool = True) -> None:
        idx = self._graph.add_node(node)
        self._node_map[node.id] = idx
        self._inv_map[idx] = node.id
        self._nodes[node.id] = node
        if node.is_center:
            self._center_id = node.id
        elif link and node.parent_id in self._node_map:
            self._graph.add_edge(self._node_map[node.parent_id], idx, None)

    def _replace(self, node: MindMapNode) -> None:
        idx = self._node_map[node.id]
        self._graph[idx] = node
        self._nodes[node.id] = node

    def _remove(self, node_id: str) -> None:
        idx = self._node_map.pop(node_id)
        del self._inv_map[idx]
        del self._nodes[node_id]
        self._graph.remove_node(idx)

    def __len__(self) -> int:
        return self.node_count

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    def __iter__(self) -> Iterator[MindMapNode]:
        return iter(list(self._nodes.values()))

    def __repr__(self) -> str:
        center = self._nodes.get(self._center_id).word if self._center_id else None
        return f"MindMapDB(center={center!r}, nodes={self.node_count}, max={self.max_total_nodes})"
