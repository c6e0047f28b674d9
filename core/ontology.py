"""
WORDMAP ONTOLOGY - The Dictionary of the System

If schemas.py is the Grammar (how we structure records),
ontology.py is the Dictionary (the words we can use).

This module defines:
- WordCategory: the closed set of lexical-relation tags
- WORD_CATEGORIES: the fixed order that drives sector angles
- Category descriptions used when prompting for new words
- Default limits for the engine

Key Principle: the ORDER of WORD_CATEGORIES is part of the saved layout.
Every category owns the sector at index * 2*pi / len(WORD_CATEGORIES), so
inserting or reordering a tag moves every sector of every saved mind map.
"""
from typing import Dict, Tuple, Union
from enum import Enum


# =============================================================================
# ENUMS (The Vocabulary)
# =============================================================================

class WordCategory(str, Enum):
    """Lexical relations a child word can have to its parent."""
    DERIVATIVES = "derivatives"        # Word forms (noun, verb, adjective, adverb)
    SYNONYMS = "synonyms"              # Can substitute the parent word
    ANTONYMS = "antonyms"              # Opposite meaning
    COLLOCATIONS = "collocations"      # Common combinations
    IDIOMS = "idioms"                  # Idiomatic expressions containing the word
    ROOT = "root"                      # Etymological roots
    PREFIX = "prefix"                  # Words sharing the prefix
    SUFFIX = "suffix"                  # Words sharing the suffix
    TOPIC_RELATED = "topic-related"    # Same semantic field, not substitutable


# Fixed order for angle computation. Do not reorder.
WORD_CATEGORIES: Tuple[WordCategory, ...] = (
    WordCategory.DERIVATIVES,
    WordCategory.SYNONYMS,
    WordCategory.ANTONYMS,
    WordCategory.COLLOCATIONS,
    WordCategory.IDIOMS,
    WordCategory.ROOT,
    WordCategory.PREFIX,
    WordCategory.SUFFIX,
    WordCategory.TOPIC_RELATED,
)

CategoryLike = Union[WordCategory, str]


# =============================================================================
# LIMITS
# =============================================================================

DEFAULT_MAX_TOTAL_NODES = 60
DEFAULT_MAX_WORDS_PER_GENERATION = 7
DEFAULT_HISTORY_MAX_DEPTH = 100


# =============================================================================
# CATEGORY DESCRIPTIONS (prompt vocabulary)
# =============================================================================

CATEGORY_DESCRIPTIONS: Dict[WordCategory, str] = {
    WordCategory.DERIVATIVES: "word forms and derivatives (noun, verb, adjective, adverb forms)",
    WordCategory.SYNONYMS: "words with similar meanings (can be used interchangeably)",
    WordCategory.ANTONYMS: "words with opposite meanings",
    WordCategory.COLLOCATIONS: (
        "common word combinations - for verbs: preposition partners (intransitive) "
        "or typical objects (transitive); for nouns: common adjectives and verbs "
        "that take this noun as object"
    ),
    WordCategory.IDIOMS: "idiomatic expressions and phrases",
    WordCategory.ROOT: "root words and etymological origins",
    WordCategory.PREFIX: "words with the same prefix",
    WordCategory.SUFFIX: "words with the same suffix",
    WordCategory.TOPIC_RELATED: (
        "related words from the same topic or semantic field (NOT synonyms, but "
        "words commonly discussed together in the same context)"
    ),
}


# =============================================================================
# HELPERS
# =============================================================================

def to_category(value: CategoryLike) -> WordCategory:
    """
    Coerce a tag or enum member to a WordCategory.

    Raises:
        ValueError: If the value is not one of the nine tags
    """
    if isinstance(value, WordCategory):
        return value
    try:
        return WordCategory(value)
    except ValueError:
        valid = ", ".join(c.value for c in WORD_CATEGORIES)
        raise ValueError(f"Unknown word category: {value!r} (expected one of: {valid})")


def category_index(value: CategoryLike) -> int:
    """Position of a category in the fixed sector order."""
    return WORD_CATEGORIES.index(to_category(value))


def validate_category(value: str) -> bool:
    """Check if a string is a valid WordCategory value."""
    return value in {c.value for c in WordCategory}
