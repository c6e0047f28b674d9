# Agents layer - word generation and the editing facade

from agents.generation import (
    GenerationOrchestrator,
    GenerationOutcome,
    GenerationState,
    GenerationStatus,
    GenerationError,
    GenerationFailedError,
    GenerationBusyError,
    WordGenerator,
    UsageReporter,
)
from agents.word_generator import LLMWordGenerator, rank_words
from agents.editor import MindMapEditor

__all__ = [
    # Orchestration
    "GenerationOrchestrator",
    "GenerationOutcome",
    "GenerationState",
    "GenerationStatus",
    # Errors
    "GenerationError",
    "GenerationFailedError",
    "GenerationBusyError",
    # Collaborators
    "WordGenerator",
    "UsageReporter",
    "LLMWordGenerator",
    "rank_words",
    # Facade
    "MindMapEditor",
]
