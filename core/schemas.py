"""
WORDMAP SCHEMAS - The Grammar of the System

If ontology.py is the Dictionary (defining the words we can use),
schemas.py is the Grammar (defining how we structure records).

This module defines the data structures that flow through the engine:
- MindMapNode: One word placed on the plane
- MindMap: The persisted record (name + node sequence)
- TokenUsage / GenerationResponse: What the word generator hands back
- RankedWord / RankedWordList: The JSON contract the LLM must satisfy
- Serialization helpers for persistence

Design Principles:
1. STRICT TYPING: msgspec.Struct with no silent type coercion
2. VALUE SEMANTICS: MindMapNode is frozen; moving a node produces a new one
3. KW_ONLY: Enforce keyword arguments to prevent positional mix-ups
4. IMMUTABLE IDS: Node IDs are set once and never change
5. WIRE COMPATIBILITY: camelCase field names on the wire (parentId, isCenter)
"""
import msgspec
from typing import Optional, Dict, Any, List, Tuple
from datetime import datetime, timezone
import uuid

from core.ontology import CategoryLike, to_category


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def now_utc() -> str:
    """Fast UTC timestamp as ISO8601 string."""
    return datetime.now(timezone.utc).isoformat()


def generate_id() -> str:
    """Generate a new UUID hex string for node/mind map IDs."""
    return uuid.uuid4().hex


def normalize_word(word: str) -> str:
    """Key used for case-insensitive duplicate checks."""
    return word.strip().casefold()


# =============================================================================
# MIND MAP NODE (The Core Graph Payload)
# =============================================================================

class MindMapNode(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """
    A single word on the mind map.

    This is stored directly in rx.PyDiGraph.add_node() by MindMapDB and is
    the element type of every history snapshot. Because it is frozen and
    holds only primitives, a tuple of nodes is a complete value copy of a
    graph state.

    Architecture Notes:
    - `id`: Business UUID (string), NOT the rustworkx integer index
    - `x`, `y`: Only the layout engine produces new coordinates
    - `parent_id` / `category`: None only for the center node
    """
    # === Identity ===
    id: str
    word: str

    # === Position ===
    x: float = 0.0
    y: float = 0.0

    # === Structure ===
    parent_id: Optional[str] = None
    category: Optional[str] = None             # WordCategory.value
    is_center: bool = False

    @property
    def group_key(self) -> Tuple[Optional[str], Optional[str]]:
        """The (parent_id, category) pair that defines this node's sibling group."""
        return (self.parent_id, self.category)

    @property
    def word_key(self) -> str:
        return normalize_word(self.word)

    def moved_to(self, x: float, y: float) -> "MindMapNode":
        """Return a copy of this node at new coordinates."""
        return msgspec.structs.replace(self, x=x, y=y)

    def copy(self) -> "MindMapNode":
        """Return an independent copy with identical fields."""
        return msgspec.structs.replace(self)

    @classmethod
    def create(
        cls,
        word: str,
        x: float = 0.0,
        y: float = 0.0,
        parent_id: Optional[str] = None,
        category: Optional[CategoryLike] = None,
        is_center: bool = False,
        id: Optional[str] = None,
    ) -> "MindMapNode":
        """Factory method to create a new node with optional custom ID."""
        return cls(
            id=id or generate_id(),
            word=word.strip(),
            x=float(x),
            y=float(y),
            parent_id=parent_id,
            category=to_category(category).value if category is not None else None,
            is_center=is_center,
        )

    @classmethod
    def center(cls, word: str, x: float = 0.0, y: float = 0.0) -> "MindMapNode":
        """Create the root node of a new mind map."""
        return cls.create(word=word, x=x, y=y, is_center=True)


# =============================================================================
# PERSISTED MIND MAP
# =============================================================================

class MindMap(msgspec.Struct, kw_only=True, frozen=False, rename="camel"):
    """
    A mind map as handed to and received from the persistence collaborator.

    The engine never writes this implicitly; MindMapEditor.save() builds one
    from the current snapshot and MindMapEditor.load() replaces the graph
    with its nodes.
    """
    id: str = ""
    name: str = "Untitled Mind Map"
    nodes: List[MindMapNode] = msgspec.field(default_factory=list)
    created_at: str = msgspec.field(default_factory=now_utc)
    updated_at: str = msgspec.field(default_factory=now_utc)

    @classmethod
    def from_nodes(cls, nodes: List[MindMapNode], mind_map_id: str = "") -> "MindMap":
        """Build a record whose name is the center word."""
        center = next((n for n in nodes if n.is_center), None)
        name = center.word if center else "Untitled Mind Map"
        return cls(id=mind_map_id, name=name, nodes=list(nodes))


# =============================================================================
# GENERATION RECORDS
# =============================================================================

class TokenUsage(msgspec.Struct, kw_only=True, frozen=True):
    """
    Usage metadata returned by the word generator.

    Forwarded unchanged to the metering collaborator after a successful,
    non-empty generation.
    """
    input_tokens: int = 0
    output_tokens: int = 0
    tokens_charged: float = 0.0                # Billing units, not model tokens
    model: Optional[str] = None
    extra: Dict[str, Any] = msgspec.field(default_factory=dict)

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class GenerationResponse(msgspec.Struct, kw_only=True, frozen=True):
    """What a WordGenerator returns: zero or more words and optional usage."""
    words: List[str] = msgspec.field(default_factory=list)
    usage: Optional[TokenUsage] = None


class RankedWord(msgspec.Struct, kw_only=True):
    """One candidate word as scored by the LLM."""
    word: str
    similarity: float
    usage: float = 0.0


class RankedWordList(msgspec.Struct, kw_only=True):
    """The JSON object the LLM must emit for a word-generation request."""
    words: List[RankedWord] = msgspec.field(default_factory=list)


# =============================================================================
# SERIALIZATION (High-Performance)
# =============================================================================

# Pre-compiled encoders/decoders, reused across the application

_encoder = msgspec.json.Encoder()
_node_decoder = msgspec.json.Decoder(type=MindMapNode)
_node_list_decoder = msgspec.json.Decoder(type=List[MindMapNode])
_mind_map_decoder = msgspec.json.Decoder(type=MindMap)


def serialize_node(node: MindMapNode) -> bytes:
    """Serialize a MindMapNode to JSON bytes."""
    return _encoder.encode(node)


def deserialize_node(data: bytes) -> MindMapNode:
    """Deserialize JSON bytes to a MindMapNode."""
    return _node_decoder.decode(data)


def serialize_nodes(nodes: List[MindMapNode]) -> bytes:
    """Serialize a node sequence to JSON bytes."""
    return _encoder.encode(list(nodes))


def deserialize_nodes(data: bytes) -> List[MindMapNode]:
    """Deserialize JSON bytes to a list of MindMapNode."""
    return _node_list_decoder.decode(data)


def serialize_mind_map(mind_map: MindMap) -> bytes:
    """Serialize a MindMap record to JSON bytes."""
    return _encoder.encode(mind_map)


def deserialize_mind_map(data: bytes) -> MindMap:
    """Deserialize JSON bytes to a MindMap record."""
    return _mind_map_decoder.decode(data)
