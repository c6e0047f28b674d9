"""
WORDMAP MUTATION LOGGER - The Edit Journal

Records every committed mind map mutation with a timestamp and sequence
number, for debugging and playback of an editing session.

Architecture:
- MutationLogger: Core logging interface, one per process via get_logger()
- EventJournal: Bounded in-memory journal, queried by node, graph or type
- JournalFile: Optional newline-delimited JSON journal, one file per UTC day

Usage:
    logger = get_logger()
    logger.log_node_created(graph_id, node_id, "joyful", "synonyms", parent_id)
    logger.log_history_moved(graph_id, MutationType.HISTORY_UNDO, index=3)

    for event in logger.get_recent_events(20):
        print(f"{event.sequence}: {event.mutation_type} {event.word or ''}")

Design:
- The editor calls this after a commit succeeds, never before
- File logging is off unless configured
- Subscriber failures are reported to the module logger and never reach
  the editor
"""
import msgspec
from typing import Optional, List, Callable
from datetime import datetime, timezone
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from collections import deque
import itertools
import logging
import threading
import io

module_logger = logging.getLogger(__name__)


# =============================================================================
# EVENT TYPES
# =============================================================================

class MutationType(str, Enum):
    """Types of mind map mutations for event tracking."""
    NODE_CREATED = "NODE_CREATED"
    NODE_DELETED = "NODE_DELETED"
    NODES_REPOSITIONED = "NODES_REPOSITIONED"
    BATCH_CREATED = "BATCH_CREATED"
    HISTORY_UNDO = "HISTORY_UNDO"
    HISTORY_REDO = "HISTORY_REDO"
    HISTORY_RESET = "HISTORY_RESET"
    GRAPH_LOADED = "GRAPH_LOADED"
    GRAPH_SAVED = "GRAPH_SAVED"


class MutationEvent(msgspec.Struct, kw_only=True):
    """Individual mutation event."""
    timestamp: str
    sequence: int
    mutation_type: str                  # MutationType value
    graph_id: Optional[str] = None
    node_id: Optional[str] = None
    node_ids: List[str] = msgspec.field(default_factory=list)
    word: Optional[str] = None
    category: Optional[str] = None
    parent_id: Optional[str] = None
    history_index: Optional[int] = None
    node_count: int = 0

    def touches(self, node_id: str) -> bool:
        """True if the event names node_id as its target or among its batch."""
        return self.node_id == node_id or node_id in self.node_ids


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class LoggerConfig:
    """Configuration for the mutation logger."""
    enable_file_log: bool = False       # Enable file-based logging
    log_path: Optional[Path] = None     # Directory for journal files
    buffer_size: int = 10000            # Events kept in memory

    def __post_init__(self):
        if self.log_path is None:
            self.log_path = Path("./workspace/logs")


# =============================================================================
# IN-MEMORY JOURNAL
# =============================================================================

class EventJournal:
    """
    Bounded, thread-safe journal of recent events.

    The oldest events fall off once max_size is reached. Queries return
    events in sequence order.
    """

    def __init__(self, max_size: int = 10000):
        self._events: deque[MutationEvent] = deque(maxlen=max_size)
        self._lock = threading.RLock()

    def record(self, event: MutationEvent) -> None:
        with self._lock:
            self._events.append(event)

    def tail(self, n: int) -> List[MutationEvent]:
        """The last n events (fewer if the journal is shorter)."""
        if n <= 0:
            return []
        with self._lock:
            return list(self._events)[-n:]

    def select(
        self,
        node_id: Optional[str] = None,
        graph_id: Optional[str] = None,
        mutation_type: Optional[str] = None,
    ) -> List[MutationEvent]:
        """Events matching every filter given; None means "any"."""
        with self._lock:
            events = list(self._events)
        if node_id is not None:
            events = [e for e in events if e.touches(node_id)]
        if graph_id is not None:
            events = [e for e in events if e.graph_id == graph_id]
        if mutation_type is not None:
            events = [e for e in events if e.mutation_type == mutation_type]
        return events

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


# =============================================================================
# JOURNAL FILES
# =============================================================================

def _utc_day() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


class JournalFile:
    """
    Appends events to <directory>/mutations_<YYYY-MM-DD>.jsonl.

    The handle follows the UTC day: the first write after midnight closes
    yesterday's file and opens today's.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._handle: Optional[io.TextIOWrapper] = None
        self._day: Optional[str] = None
        self._lock = threading.Lock()
        self._encoder = msgspec.json.Encoder()

    def path_for(self, day: str) -> Path:
        return self.directory / f"mutations_{day}.jsonl"

    def append(self, event: MutationEvent) -> None:
        line = self._encoder.encode(event) + b"\n"
        with self._lock:
            day = _utc_day()
            if self._day != day:
                if self._handle:
                    self._handle.close()
                self._handle = open(self.path_for(day), "a", encoding="utf-8")
                self._day = day
            self._handle.write(line.decode("utf-8"))
            self._handle.flush()

    def read_day(self, day: str) -> List[MutationEvent]:
        """Events journaled on a UTC day; corrupt lines are skipped with a warning."""
        path = self.path_for(day)
        if not path.exists():
            return []

        decoder = msgspec.json.Decoder(type=MutationEvent)
        events = []
        with open(path, "rb") as f:
            for lineno, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    events.append(decoder.decode(line))
                except msgspec.DecodeError:
                    module_logger.warning(f"Skipping corrupt journal line {path.name}:{lineno}")
        return events

    def close(self) -> None:
        with self._lock:
            if self._handle:
                self._handle.close()
                self._handle = None
                self._day = None


# =============================================================================
# MUTATION LOGGER (Main Interface)
# =============================================================================

class MutationLogger:
    """
    Main logging interface for mind map mutations.

    Every event goes to:
    - The in-memory journal (always)
    - The journal file (configurable)
    - Subscribers (callbacks)
    """

    def __init__(self, config: Optional[LoggerConfig] = None):
        self.config = config or LoggerConfig()

        self._journal = EventJournal(self.config.buffer_size)
        self._sequence = itertools.count(1)
        self._sequence_lock = threading.Lock()
        self._file: Optional[JournalFile] = None

        if self.config.enable_file_log and self.config.log_path:
            self._file = JournalFile(self.config.log_path)

        self._subscribers: List[Callable[[MutationEvent], None]] = []

    @property
    def journal_file(self) -> Optional[JournalFile]:
        return self._file

    def _emit(self, mutation_type: MutationType, **fields) -> MutationEvent:
        """Build an event and send it to all destinations."""
        with self._sequence_lock:
            sequence = next(self._sequence)
        event = MutationEvent(
            timestamp=datetime.now(timezone.utc).isoformat(),
            sequence=sequence,
            mutation_type=mutation_type.value,
            **fields,
        )

        self._journal.record(event)

        if self._file:
            self._file.append(event)

        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception as e:
                module_logger.warning(f"Mutation subscriber error: {e}")

        return event

    # =========================================================================
    # LOGGING METHODS
    # =========================================================================

    def log_node_created(
        self,
        graph_id: str,
        node_id: str,
        word: str,
        category: Optional[str],
        parent_id: Optional[str],
        node_count: int = 0,
    ) -> MutationEvent:
        """Log a single node creation."""
        return self._emit(
            MutationType.NODE_CREATED,
            graph_id=graph_id,
            node_id=node_id,
            word=word,
            category=category,
            parent_id=parent_id,
            node_count=node_count,
        )

    def log_batch_created(
        self,
        graph_id: str,
        node_ids: List[str],
        category: str,
        parent_id: str,
        node_count: int = 0,
    ) -> MutationEvent:
        """Log a generated batch committed as one history entry."""
        return self._emit(
            MutationType.BATCH_CREATED,
            graph_id=graph_id,
            node_ids=list(node_ids),
            category=category,
            parent_id=parent_id,
            node_count=node_count,
        )

    def log_node_deleted(
        self,
        graph_id: str,
        node_id: str,
        removed_ids: List[str],
        node_count: int = 0,
    ) -> MutationEvent:
        """Log a deletion (the target plus any removed subtree)."""
        return self._emit(
            MutationType.NODE_DELETED,
            graph_id=graph_id,
            node_id=node_id,
            node_ids=list(removed_ids),
            node_count=node_count,
        )

    def log_nodes_repositioned(self, graph_id: str, node_ids: List[str]) -> MutationEvent:
        """Log nodes moved by a re-layout."""
        return self._emit(
            MutationType.NODES_REPOSITIONED,
            graph_id=graph_id,
            node_ids=list(node_ids),
        )

    def log_history_moved(
        self,
        graph_id: str,
        mutation_type: MutationType,
        index: int,
        node_count: int = 0,
    ) -> MutationEvent:
        """Log an undo, redo or reset."""
        return self._emit(
            mutation_type,
            graph_id=graph_id,
            history_index=index,
            node_count=node_count,
        )

    def log_graph_persisted(
        self,
        graph_id: str,
        mutation_type: MutationType,
        node_count: int = 0,
    ) -> MutationEvent:
        """Log a load or save boundary crossing."""
        return self._emit(mutation_type, graph_id=graph_id, node_count=node_count)

    # =========================================================================
    # QUERY METHODS
    # =========================================================================

    def get_recent_events(self, n: int = 100) -> List[MutationEvent]:
        """Get the n most recent events."""
        return self._journal.tail(n)

    def get_events_for_node(self, node_id: str) -> List[MutationEvent]:
        """Events that created, deleted or moved a node."""
        return self._journal.select(node_id=node_id)

    def get_events_for_graph(self, graph_id: str) -> List[MutationEvent]:
        return self._journal.select(graph_id=graph_id)

    def get_events_by_type(self, mutation_type: str) -> List[MutationEvent]:
        return self._journal.select(mutation_type=mutation_type)

    # =========================================================================
    # SUBSCRIPTION
    # =========================================================================

    def subscribe(self, callback: Callable[[MutationEvent], None]) -> None:
        """Subscribe to mutation events."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[MutationEvent], None]) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def close(self) -> None:
        """Close the journal file, if any."""
        if self._file:
            self._file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


# =============================================================================
# PROCESS-WIDE LOGGER
# =============================================================================

_global_logger: Optional[MutationLogger] = None


def get_logger(config: Optional[LoggerConfig] = None) -> MutationLogger:
    """
    Get or create the process-wide logger.

    config only applies when the logger is first created; later calls
    share the existing instance so every editor journals into one place.
    """
    global _global_logger
    if _global_logger is None:
        _global_logger = MutationLogger(config)
    return _global_logger


def reset_logger() -> None:
    """Close and drop the process-wide logger (for testing)."""
    global _global_logger
    if _global_logger:
        _global_logger.close()
    _global_logger = None
