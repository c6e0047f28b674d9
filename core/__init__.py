"""
WORDMAP CORE - Central exports for the mind map engine.

This module provides access to:
- The vocabulary (WordCategory) and node records (MindMapNode, MindMap)
- The graph store (MindMapDB) and its typed errors
- The layout engine and the undo/redo history
"""

from core.ontology import WordCategory, WORD_CATEGORIES, to_category
from core.schemas import MindMapNode, MindMap, TokenUsage, GenerationResponse
from core.layout import LayoutConfig, place_one, place_batch, recompute_after_removal
from core.graph_db import (
    MindMapDB,
    Snapshot,
    GraphError,
    InvalidGraphStateError,
    NodeNotFoundError,
    CapacityExceededError,
    DuplicateWordError,
    CannotDeleteCenterError,
)
from core.history import HistoryManager

__all__ = [
    # Vocabulary
    "WordCategory",
    "WORD_CATEGORIES",
    "to_category",
    # Records
    "MindMapNode",
    "MindMap",
    "TokenUsage",
    "GenerationResponse",
    # Layout
    "LayoutConfig",
    "place_one",
    "place_batch",
    "recompute_after_removal",
    # Store
    "MindMapDB",
    "Snapshot",
    "GraphError",
    "InvalidGraphStateError",
    "NodeNotFoundError",
    "CapacityExceededError",
    "DuplicateWordError",
    "CannotDeleteCenterError",
    # History
    "HistoryManager",
]
