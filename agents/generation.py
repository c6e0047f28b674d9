"""
WORDMAP GENERATION - Expansion Orchestrator

Turns "expand this node in this category" into at most one history commit.

State machine (per graph id):

    IDLE --run()--> REQUESTING --words--> SUCCEEDED
                        |
                        +--error--------> FAILED

Only one request may be REQUESTING per graph. The generator call is the
single await point, so everything before it runs against the graph as it
was when the request started and everything after it re-reads the live
graph:

1. BUSY              another request for this graph is in flight (not queued)
2. CAPACITY_EXCEEDED the graph is already at its ceiling; generator not called
3. FAILED            the generator raised; nothing changes
4. STALE             the graph was replaced or the request cancelled while
                     waiting; the response is dropped
5. EMPTY             nothing new survived deduplication; success, no commit
6. SUCCESS           one commit holding the whole batch; usage is metered

Outcomes are values. Callers that prefer exceptions call
outcome.raise_for_status().
"""
import logging
from enum import Enum
from typing import Awaitable, Dict, List, Optional, Protocol, Sequence, runtime_checkable

import msgspec

from core.ontology import CategoryLike, DEFAULT_MAX_WORDS_PER_GENERATION, to_category
from core.schemas import GenerationResponse, TokenUsage, normalize_word
from core.graph_db import CapacityExceededError, GraphError

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class GenerationError(Exception):
    """Base exception for word generation."""
    pass


class GenerationFailedError(GenerationError):
    """Raised when the word generator could not produce a result."""
    pass


class GenerationBusyError(GenerationError):
    """Raised when a generation is already in flight for the same graph."""
    pass


# =============================================================================
# COLLABORATORS
# =============================================================================

@runtime_checkable
class WordGenerator(Protocol):
    """Anything that can propose related words."""

    def generate(
        self,
        root_word: str,
        category: str,
        existing_words: Sequence[str],
    ) -> Awaitable[GenerationResponse]:
        ...


@runtime_checkable
class UsageReporter(Protocol):
    """Receives usage after a successful, non-empty expansion."""

    def report(self, usage: TokenUsage) -> None:
        ...


# =============================================================================
# STATES AND OUTCOMES
# =============================================================================

class GenerationState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class GenerationStatus(str, Enum):
    SUCCESS = "success"
    EMPTY = "empty"
    FAILED = "failed"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    BUSY = "busy"
    STALE = "stale"


class GenerationOutcome(msgspec.Struct, kw_only=True, frozen=True):
    """Result of one GenerationOrchestrator.run() call."""
    status: GenerationStatus
    graph_id: Optional[str] = None
    parent_id: Optional[str] = None
    category: Optional[str] = None
    node_ids: List[str] = msgspec.field(default_factory=list)
    words: List[str] = msgspec.field(default_factory=list)
    usage: Optional[TokenUsage] = None
    truncated: bool = False
    error: Optional[str] = None
    limit: Optional[int] = None                # Ceiling, set on CAPACITY_EXCEEDED
    node_count: Optional[int] = None           # Graph size when the outcome was decided

    @property
    def ok(self) -> bool:
        """SUCCESS and EMPTY are both successful generations."""
        return self.status in (GenerationStatus.SUCCESS, GenerationStatus.EMPTY)

    @property
    def committed(self) -> bool:
        return self.status == GenerationStatus.SUCCESS

    def raise_for_status(self) -> "GenerationOutcome":
        """
        Convert a failure outcome into its exception. STALE is not an error:
        the caller asked for a graph that no longer exists.

        Raises:
            CapacityExceededError: CAPACITY_EXCEEDED
            GenerationFailedError: FAILED
            GenerationBusyError: BUSY
        """
        if self.status == GenerationStatus.CAPACITY_EXCEEDED:
            raise CapacityExceededError(self.limit or 0, self.node_count or 0)
        if self.status == GenerationStatus.FAILED:
            raise GenerationFailedError(self.error or "Word generation failed")
        if self.status == GenerationStatus.BUSY:
            raise GenerationBusyError(self.error or "A generation is already running for this mind map")
        return self


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class GenerationOrchestrator:
    """
    Runs expansions against a MindMapEditor.

    The editor supplies identity (graph_id, epoch), reads (get_node,
    has_node, group_words, node_count, max_total_nodes) and a single write,
    apply_batch(), which commits one history entry.

    Usage:
        orchestrator = GenerationOrchestrator(generator, reporter=collector)
        outcome = await orchestrator.run(editor, center_id, "synonyms")
        if outcome.committed:
            editor.undo()   # removes the whole batch
    """

    def __init__(
        self,
        generator: WordGenerator,
        reporter: Optional[UsageReporter] = None,
        max_words_per_generation: int = DEFAULT_MAX_WORDS_PER_GENERATION,
    ):
        self.generator = generator
        self.reporter = reporter
        self.max_words_per_generation = max_words_per_generation

        self._states: Dict[str, GenerationState] = {}
        self._inflight: Dict[str, object] = {}

    # =========================================================================
    # STATE
    # =========================================================================

    def state(self, graph_id: str) -> GenerationState:
        return self._states.get(graph_id, GenerationState.IDLE)

    def is_busy(self, graph_id: str) -> bool:
        return graph_id in self._inflight

    def cancel(self, graph_id: str) -> None:
        """Forget the in-flight request for a graph so a new one may start."""
        if self._inflight.pop(graph_id, None) is not None:
            self._states[graph_id] = GenerationState.IDLE
            logger.info(f"Generation cancelled for graph {graph_id}")

    def _finish(self, graph_id: str, token: object, state: GenerationState) -> None:
        # A cancelled request must not clobber the state of a newer one
        if self._inflight.get(graph_id) is token:
            del self._inflight[graph_id]
            self._states[graph_id] = state

    # =========================================================================
    # RUN
    # =========================================================================

    async def run(self, editor, parent_id: str, category: CategoryLike) -> GenerationOutcome:
        """
        Expand `parent_id` in `category`.

        Raises:
            NodeNotFoundError: If the parent is not in the current graph
            ValueError: If the category is unknown
            InvalidGraphStateError: If the editor holds no graph
        """
        tag = to_category(category).value
        graph_id = editor.graph_id
        parent = editor.get_node(parent_id)

        def outcome(status: GenerationStatus, **fields) -> GenerationOutcome:
            return GenerationOutcome(
                status=status, graph_id=graph_id, parent_id=parent_id, category=tag, **fields
            )

        if self.is_busy(graph_id):
            logger.info(f"Generation for {parent.word!r}/{tag} rejected: graph {graph_id} busy")
            return outcome(GenerationStatus.BUSY, error="A generation is already running for this mind map")

        if editor.node_count >= editor.max_total_nodes:
            logger.info(f"Generation for {parent.word!r}/{tag} rejected: ceiling {editor.max_total_nodes} reached")
            return outcome(
                GenerationStatus.CAPACITY_EXCEEDED,
                error=f"Node limit reached: maximum of {editor.max_total_nodes} nodes",
                limit=editor.max_total_nodes,
                node_count=editor.node_count,
            )

        token = object()
        epoch = editor.epoch
        self._inflight[graph_id] = token
        self._states[graph_id] = GenerationState.REQUESTING
        final_state = GenerationState.FAILED

        try:
            existing = editor.group_words(parent_id, tag)
            try:
                response = await self.generator.generate(parent.word, tag, existing)
            except Exception as e:
                logger.warning(f"Generation failed for {parent.word!r}/{tag}: {e}")
                return outcome(GenerationStatus.FAILED, error=str(e) or type(e).__name__)

            malformed = self._malformed(response)
            if malformed:
                logger.warning(f"Malformed generation response for {parent.word!r}/{tag}: {malformed}")
                return outcome(GenerationStatus.FAILED, error=f"Malformed response: {malformed}")

            if (
                editor.graph_id != graph_id
                or editor.epoch != epoch
                or self._inflight.get(graph_id) is not token
                or not editor.has_node(parent_id)
            ):
                logger.info(f"Dropping stale generation response for {parent.word!r}/{tag}")
                final_state = GenerationState.IDLE
                return outcome(GenerationStatus.STALE, usage=response.usage)

            words = self._select(response.words, editor.group_words(parent_id, tag))
            remaining = max(0, editor.max_total_nodes - editor.node_count)
            truncated = False
            if len(words) > remaining:
                if remaining == 0:
                    return outcome(
                        GenerationStatus.CAPACITY_EXCEEDED,
                        usage=response.usage,
                        error=f"Node limit reached: maximum of {editor.max_total_nodes} nodes",
                        limit=editor.max_total_nodes,
                        node_count=editor.node_count,
                    )
                words = words[:remaining]
                truncated = True

            if not words:
                final_state = GenerationState.SUCCEEDED
                logger.info(f"Generation for {parent.word!r}/{tag} produced no new words")
                return outcome(GenerationStatus.EMPTY, usage=response.usage)

            try:
                node_ids = editor.apply_batch(parent_id, tag, words)
            except GraphError as e:
                logger.warning(f"Applying generated words failed for {parent.word!r}/{tag}: {e}")
                return outcome(GenerationStatus.FAILED, usage=response.usage, error=str(e))

            final_state = GenerationState.SUCCEEDED
            logger.info(
                f"Generated {len(node_ids)} {tag} for {parent.word!r}"
                + (" (truncated to fit)" if truncated else "")
            )
            self._report(response.usage)
            return outcome(
                GenerationStatus.SUCCESS,
                node_ids=node_ids,
                words=words,
                usage=response.usage,
                truncated=truncated,
                node_count=editor.node_count,
            )
        finally:
            self._finish(graph_id, token, final_state)

    @staticmethod
    def _malformed(response: object) -> Optional[str]:
        """Describe what is wrong with a generator reply, or None if it is usable."""
        if not isinstance(response, GenerationResponse):
            return f"expected GenerationResponse, got {type(response).__name__}"
        if not isinstance(response.words, list):
            return f"words must be a list, got {type(response.words).__name__}"
        bad = [w for w in response.words if not isinstance(w, str)]
        if bad:
            return f"non-string words {bad!r}"
        if response.usage is not None and not isinstance(response.usage, TokenUsage):
            return f"usage must be TokenUsage, got {type(response.usage).__name__}"
        return None

    def _select(self, candidates: Sequence[str], live_words: Sequence[str]) -> List[str]:
        """Strip, drop blanks and words already present, cap to the per-call maximum."""
        seen = {normalize_word(w) for w in live_words}
        selected: List[str] = []
        for raw in candidates:
            word = raw.strip() if raw else ""
            key = normalize_word(word)
            if not word or key in seen:
                continue
            seen.add(key)
            selected.append(word)
            if len(selected) >= self.max_words_per_generation:
                break
        return selected

    def _report(self, usage: Optional[TokenUsage]) -> None:
        if usage is None or self.reporter is None:
            return
        try:
            self.reporter.report(usage)
        except Exception as e:
            logger.warning(f"Usage reporting failed (ignored): {e}")
