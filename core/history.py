"""
WORDMAP HISTORY - Linear Undo/Redo over Graph Snapshots

States [S0, S1, ..., Sk] plus a cursor i, 0 <= i <= k.

    commit(mutator)  S' = mutator(S[i]); drop S[i+1..k]; push S'; i += 1
    undo()           i -= 1 unless i == 0
    redo()           i += 1 unless i == k
    reset_to(nodes)  [nodes], i = 0

Snapshot storage is value-based: every pushed snapshot is a tuple of
freshly copied frozen nodes, so no two snapshots share a node object and
nothing done to a live MindMapDB can reach back into history.

The stack is bounded by max_depth. When a commit overflows it, the oldest
snapshots are dropped and the cursor moves with them.
"""
import logging
from typing import Callable, Iterable, List, Sequence

from core.ontology import DEFAULT_HISTORY_MAX_DEPTH
from core.schemas import MindMapNode
from core.graph_db import Snapshot

logger = logging.getLogger(__name__)


Mutator = Callable[[Snapshot], Sequence[MindMapNode]]


def freeze(nodes: Iterable[MindMapNode]) -> Snapshot:
    """Independent immutable copy of a node sequence."""
    return tuple(node.copy() for node in nodes)


class HistoryManager:
    """
    Linear undo/redo stack.

    Usage:
        history = HistoryManager(db.snapshot())

        def add_word(nodes):
            db = MindMapDB.from_nodes(nodes)
            db.add_node("joyful", db.center.id, "synonyms")
            return db.snapshot()

        history.commit(add_word)
        history.undo()      # back to the center-only graph
        history.redo()      # joyful again
    """

    def __init__(
        self,
        initial: Sequence[MindMapNode] = (),
        max_depth: int = DEFAULT_HISTORY_MAX_DEPTH,
    ):
        if max_depth < 1:
            raise ValueError(f"max_depth must be at least 1, got {max_depth}")
        self.max_depth = max_depth
        self._stack: List[Snapshot] = [freeze(initial)]
        self._index = 0

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def index(self) -> int:
        return self._index

    @property
    def length(self) -> int:
        return len(self._stack)

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._stack) - 1

    def current(self) -> Snapshot:
        """The snapshot at the cursor. O(1)."""
        return self._stack[self._index]

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def commit(self, mutator: Mutator) -> Snapshot:
        """
        Apply `mutator` to the current snapshot and push the result.

        Any redo states beyond the cursor are discarded. If the mutator
        raises, nothing changes and the exception propagates.

        Returns:
            The newly current snapshot
        """
        new_state = freeze(mutator(self.current()))

        del self._stack[self._index + 1:]
        self._stack.append(new_state)
        self._index += 1

        overflow = len(self._stack) - self.max_depth
        if overflow > 0:
            del self._stack[:overflow]
            self._index -= overflow
            logger.debug(f"History trimmed by {overflow} snapshot(s) (max_depth={self.max_depth})")

        return new_state

    def undo(self) -> Snapshot:
        """Step back one snapshot. No-op at the oldest."""
        if self._index > 0:
            self._index -= 1
        return self.current()

    def redo(self) -> Snapshot:
        """Step forward one snapshot. No-op at the newest."""
        if self._index < len(self._stack) - 1:
            self._index += 1
        return self.current()

    def reset_to(self, nodes: Sequence[MindMapNode]) -> Snapshot:
        """Discard the whole stack and start over from `nodes`."""
        self._stack = [freeze(nodes)]
        self._index = 0
        return self.current()

    def clear(self) -> Snapshot:
        """Forget every other snapshot, keeping the current one."""
        current = self.current()
        self._stack = [current]
        self._index = 0
        return current

    def __len__(self) -> int:
        return len(self._stack)

    def __repr__(self) -> str:
        return f"HistoryManager(index={self._index}, length={len(self._stack)}, max_depth={self.max_depth})"
