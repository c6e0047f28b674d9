"""
WORDMAP EDITOR - The Mind Map Facade

The one object a UI holds. It owns the history and everything derived from
it; there is no module-level mind map state.

Every mutation follows the same path:

    history.commit(mutator)
        mutator(current snapshot)
            -> MindMapDB.from_nodes(snapshot)   rebuild + validate
            -> db.<operation>(...)              may raise; history untouched
            -> db.snapshot()                    becomes the new current state
    mutation_logger.log_*(...)                  only after the commit

Graph identity:
    graph_id  new for every create_center()/load()
    epoch     bumped whenever the graph is replaced or a generation is
              cancelled; an in-flight generation that sees a different
              epoch when it resumes is dropped as STALE

Usage:
    editor = MindMapEditor(generator=my_generator)
    editor.create_center("happy")
    editor.add_node("joyful", editor.center.id, "synonyms")

    outcome = await editor.generate_nodes(editor.center.id, "antonyms")
    editor.undo()       # removes the whole generated batch
"""
import logging
from typing import Any, Callable, List, Optional, Sequence, Tuple

from core.ontology import CategoryLike, to_category
from core.schemas import MindMap, MindMapNode, generate_id, normalize_word
from core.graph_db import MindMapDB, Snapshot, InvalidGraphStateError
from core.history import HistoryManager
from agents.generation import (
    GenerationOrchestrator,
    GenerationOutcome,
    UsageReporter,
    WordGenerator,
)
from agents.word_generator import LLMWordGenerator
from infrastructure.config import EngineConfig, get_config
from infrastructure.logger import MutationLogger, MutationType, get_logger
from infrastructure.metrics import get_collector
from infrastructure.persistence import JsonFileStore, MindMapStore, PersistenceError

logger = logging.getLogger(__name__)


class _NothingToCommit(Exception):
    """Aborts a history commit whose operation changed nothing."""
    pass


class MindMapEditor:
    """Undoable editing session over a single mind map."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        generator: Optional[WordGenerator] = None,
        reporter: Optional[UsageReporter] = None,
        store: Optional[MindMapStore] = None,
        mutation_logger: Optional[MutationLogger] = None,
    ):
        self.config = config or get_config()
        self.mutation_logger = mutation_logger or get_logger(self.config.logging)

        self._generator = generator
        self._reporter = reporter
        self._store = store
        self._orchestrator: Optional[GenerationOrchestrator] = None

        self.history = HistoryManager(max_depth=self.config.history_max_depth)
        self._db: Optional[MindMapDB] = None
        self._graph_id: Optional[str] = None
        self._mind_map_id: Optional[str] = None
        self._created_at: Optional[str] = None
        self._epoch = 0

    # =========================================================================
    # READ-ONLY STATE
    # =========================================================================

    @property
    def nodes(self) -> Snapshot:
        """The current snapshot."""
        return self.history.current()

    @property
    def center(self) -> MindMapNode:
        return self._require_db().center

    @property
    def node_count(self) -> int:
        return len(self.history.current())

    @property
    def max_total_nodes(self) -> int:
        return self.config.max_total_nodes

    @property
    def graph_id(self) -> Optional[str]:
        return self._graph_id

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def mind_map_id(self) -> Optional[str]:
        return self._mind_map_id

    @property
    def history_index(self) -> int:
        return self.history.index

    @property
    def history_length(self) -> int:
        return self.history.length

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    @property
    def orchestrator(self) -> GenerationOrchestrator:
        """Built on first use so that a generator-less editor never touches the LLM."""
        if self._orchestrator is None:
            generator = self._generator
            if generator is None:
                generator = LLMWordGenerator.from_config(self.config)
            reporter = self._reporter
            if reporter is None:
                reporter = get_collector()
            self._orchestrator = GenerationOrchestrator(
                generator,
                reporter=reporter,
                max_words_per_generation=self.config.max_words_per_generation,
            )
        return self._orchestrator

    @property
    def store(self) -> MindMapStore:
        if self._store is None:
            self._store = JsonFileStore()
        return self._store

    def get_node(self, node_id: str) -> MindMapNode:
        return self._require_db().get_node(node_id)

    def has_node(self, node_id: str) -> bool:
        return self._db is not None and self._db.has_node(node_id)

    def group_words(self, parent_id: str, category: CategoryLike) -> List[str]:
        return self._require_db().group_words(parent_id, category)

    def flashcard_words(self) -> List[str]:
        """Non-center words in node order, without case-insensitive repeats."""
        seen = set()
        words: List[str] = []
        for node in self.history.current():
            if node.is_center:
                continue
            key = normalize_word(node.word)
            if key in seen:
                continue
            seen.add(key)
            words.append(node.word)
        return words

    # =========================================================================
    # GRAPH LIFECYCLE
    # =========================================================================

    def create_center(self, word: str) -> Snapshot:
        """Start a fresh mind map around `word`. Clears history."""
        db = MindMapDB.create(word, self.config.max_total_nodes, self.config.layout)
        self._replace_graph(db, graph_id=generate_id(), mind_map_id=None)
        logger.info(f"Created mind map around {db.center.word!r} (graph {self._graph_id})")
        self.mutation_logger.log_node_created(
            self._graph_id, db.center.id, db.center.word, None, None, node_count=db.node_count
        )
        return self.nodes

    def reset_history(self, nodes: Optional[Sequence[MindMapNode]] = None) -> Snapshot:
        """
        Restart history from `nodes` (or from the current snapshot).

        Raises:
            InvalidGraphStateError: If `nodes` is not a valid mind map
        """
        db = self._build_db(self.history.current() if nodes is None else nodes)
        created_at = self._created_at
        self._replace_graph(db, graph_id=self._graph_id or generate_id(), mind_map_id=self._mind_map_id)
        self._created_at = created_at
        self.mutation_logger.log_history_moved(
            self._graph_id, MutationType.HISTORY_RESET, self.history.index, node_count=db.node_count
        )
        return self.nodes

    def load(self, mind_map_id: str) -> Snapshot:
        """
        Replace the current graph with a stored mind map.

        Raises:
            PersistenceError: If no mind map has this id, or it cannot be read
            InvalidGraphStateError: If its nodes break the invariants; the
                editor stays on its previous graph
        """
        mind_map = self.store.load(mind_map_id)
        if mind_map is None:
            raise PersistenceError(f"Mind map not found: {mind_map_id}")

        db = self._build_db(mind_map.nodes)
        self._replace_graph(db, graph_id=generate_id(), mind_map_id=mind_map.id or mind_map_id)
        self._created_at = mind_map.created_at
        logger.info(f"Loaded mind map {self._mind_map_id} ({db.node_count} nodes)")
        self.mutation_logger.log_graph_persisted(
            self._graph_id, MutationType.GRAPH_LOADED, node_count=db.node_count
        )
        return self.nodes

    def save(self) -> MindMap:
        """Persist the current snapshot; the first save assigns the id."""
        self._require_db()
        record = MindMap.from_nodes(list(self.history.current()), mind_map_id=self._mind_map_id or "")
        if self._created_at:
            record.created_at = self._created_at
        saved = self.store.save(record)
        self._mind_map_id = saved.id
        self._created_at = saved.created_at
        self.mutation_logger.log_graph_persisted(
            self._graph_id, MutationType.GRAPH_SAVED, node_count=len(saved.nodes)
        )
        return saved

    def saved_ids(self) -> List[str]:
        """Ids of every mind map in the store."""
        return self.store.list_ids()

    def delete_saved(self, mind_map_id: str) -> bool:
        """
        Remove a stored mind map. The open graph is untouched; if it was
        loaded from (or saved as) this id, the next save creates a new record.
        """
        deleted = self.store.delete(mind_map_id)
        if deleted and mind_map_id == self._mind_map_id:
            self._mind_map_id = None
            self._created_at = None
        return deleted

    def _replace_graph(self, db: MindMapDB, graph_id: str, mind_map_id: Optional[str]) -> None:
        if self._graph_id is not None and self._orchestrator is not None:
            self._orchestrator.cancel(self._graph_id)
        self.history.reset_to(db.snapshot())
        self._db = db
        self._graph_id = graph_id
        self._mind_map_id = mind_map_id
        self._created_at = None
        self._epoch += 1

    # =========================================================================
    # EDITS
    # =========================================================================

    def add_node(self, word: str, parent_id: str, category: CategoryLike) -> Snapshot:
        """
        Add one word to a parent's category sector.

        Raises:
            CapacityExceededError, NodeNotFoundError, DuplicateWordError, ValueError
        """
        tag = to_category(category).value
        snapshot, node_id = self._commit(lambda db: db.add_node(word, parent_id, tag))
        node = self._db.get_node(node_id)
        logger.info(f"Added {node.word!r} to {tag} ({self.node_count} nodes)")
        self.mutation_logger.log_node_created(
            self._graph_id, node.id, node.word, tag, parent_id, node_count=self.node_count
        )
        return snapshot

    def delete_node(self, node_id: str) -> Snapshot:
        """
        Remove a node and its subtree; its group closes up.

        Raises:
            CannotDeleteCenterError, NodeNotFoundError
        """
        before = {n.id: (n.x, n.y) for n in self.history.current()}
        snapshot, removed = self._commit(lambda db: db.delete_node(node_id))
        logger.info(f"Deleted {len(removed)} node(s) starting at {node_id} ({self.node_count} nodes)")
        self.mutation_logger.log_node_deleted(self._graph_id, node_id, removed, node_count=self.node_count)

        moved = [n.id for n in snapshot if before.get(n.id) != (n.x, n.y)]
        if moved:
            self.mutation_logger.log_nodes_repositioned(self._graph_id, moved)
        return snapshot

    def apply_batch(self, parent_id: str, category: CategoryLike, words: Sequence[str]) -> List[str]:
        """
        Add a batch of words as one history entry.

        Returns:
            Created node ids; an empty result commits nothing
        """
        tag = to_category(category).value
        if not words:
            return []
        _, created = self._commit(
            lambda db: db.batch_add(parent_id, tag, words),
            skip_if=lambda ids: not ids,
        )
        if created:
            self.mutation_logger.log_batch_created(
                self._graph_id, created, tag, parent_id, node_count=self.node_count
            )
        return created

    async def generate_nodes(self, parent_id: str, category: CategoryLike) -> GenerationOutcome:
        """Ask the word generator for new words; see GenerationOrchestrator.run()."""
        self._require_db()
        return await self.orchestrator.run(self, parent_id, category)

    def cancel_generation(self) -> None:
        """Drop any in-flight generation for the current graph."""
        self._epoch += 1
        if self._graph_id is not None and self._orchestrator is not None:
            self._orchestrator.cancel(self._graph_id)

    # =========================================================================
    # HISTORY
    # =========================================================================

    def undo(self) -> Snapshot:
        if not self.history.can_undo:
            return self.nodes
        snapshot = self.history.undo()
        self._db = self._build_db(snapshot)
        self.mutation_logger.log_history_moved(
            self._graph_id, MutationType.HISTORY_UNDO, self.history.index, node_count=len(snapshot)
        )
        return snapshot

    def redo(self) -> Snapshot:
        if not self.history.can_redo:
            return self.nodes
        snapshot = self.history.redo()
        self._db = self._build_db(snapshot)
        self.mutation_logger.log_history_moved(
            self._graph_id, MutationType.HISTORY_REDO, self.history.index, node_count=len(snapshot)
        )
        return snapshot

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _build_db(self, nodes: Sequence[MindMapNode]) -> MindMapDB:
        return MindMapDB.from_nodes(nodes, self.config.max_total_nodes, self.config.layout)

    def _require_db(self) -> MindMapDB:
        if self._db is None:
            raise InvalidGraphStateError("No mind map: call create_center() or load() first")
        return self._db

    def _commit(
        self,
        operation: Callable[[MindMapDB], Any],
        skip_if: Optional[Callable[[Any], bool]] = None,
    ) -> Tuple[Snapshot, Any]:
        """
        Run `operation` on a fresh store built from the current snapshot and
        commit the result. Nothing is committed when the operation raises or
        when `skip_if(result)` is true.
        """
        self._require_db()
        built = {}

        def mutator(nodes: Snapshot) -> Snapshot:
            db = self._build_db(nodes)
            result = operation(db)
            built["db"], built["result"] = db, result
            if skip_if is not None and skip_if(result):
                raise _NothingToCommit()
            return db.snapshot()

        try:
            snapshot = self.history.commit(mutator)
        except _NothingToCommit:
            return self.nodes, built["result"]

        self._db = built["db"]
        return snapshot, built["result"]

    def __repr__(self) -> str:
        return (
            f"MindMapEditor(graph={self._graph_id}, nodes={self.node_count}, "
            f"history={self.history.index + 1}/{self.history.length})"
        )
