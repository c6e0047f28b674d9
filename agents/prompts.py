"""
WORDMAP INTELLIGENCE - Word Generation Prompts

Builds the system and user prompts for one expansion request: "give me up
to N <category> words for <root word>, avoiding the ones already on the map".

The JSON output contract (RankedWordList) is appended to the system prompt
by StructuredLLM, so the prompts here only describe the task and the
scoring rules.
"""
from typing import Dict, Optional, Sequence

from core.ontology import (
    WordCategory,
    CategoryLike,
    CATEGORY_DESCRIPTIONS,
    DEFAULT_MAX_WORDS_PER_GENERATION,
    to_category,
)


# =============================================================================
# SYSTEM PROMPT
# =============================================================================

WORD_GENERATOR_SYSTEM_PROMPT = """You are a vocabulary expert helping students learn English words.

Keep two categories strictly apart:
- SYNONYMS can SUBSTITUTE the target word in a sentence without changing its meaning.
- TOPIC-RELATED words belong to the same semantic field but CANNOT substitute the target word.

Use the substitution test whenever a word could belong to either.

Only return words that genuinely exist and genuinely fit the category.
If a category has no appropriate words for the target, return an empty list."""


# =============================================================================
# PER-CATEGORY GUIDANCE
# =============================================================================

CATEGORY_EXAMPLES: Dict[WordCategory, str] = {
    WordCategory.DERIVATIVES: 'For "happy": happiness, happily, happier, happiest, unhappy',
    WordCategory.SYNONYMS: (
        'For "happy": joyful, cheerful, content, pleased, delighted (each CAN replace "happy"). '
        'For "sad": unhappy, miserable, sorrowful, dejected, gloomy'
    ),
    WordCategory.ANTONYMS: 'For "happy": sad, unhappy, miserable, depressed, gloomy',
    WordCategory.COLLOCATIONS: (
        'For "make" (transitive verb): make a decision, make progress, make sense. '
        'For "look" (intransitive verb): look at, look for, look after. '
        'For "decision" (noun): make a decision, tough decision, final decision'
    ),
    WordCategory.IDIOMS: 'For "happy": happy as a clam, happy camper, happy medium, trigger happy',
    WordCategory.ROOT: 'For "dictionary": diction, dictate, dictator, predict, verdict',
    WordCategory.PREFIX: 'For "unhappy": unable, uncertain, unfair, unkind, unusual',
    WordCategory.SUFFIX: 'For "happiness": kindness, sadness, darkness, weakness, fitness',
    WordCategory.TOPIC_RELATED: (
        'For "happy": emotion, mood, feeling, smile, laughter (none can replace "happy"). '
        'For "computer": keyboard, mouse, monitor, technology, internet'
    ),
}


def _category_rules(category: WordCategory, word: str) -> str:
    if category is WordCategory.IDIOMS:
        return (
            f'Every idiom MUST contain the word "{word}". '
            "If no such idiom exists, return an empty list."
        )
    if category is WordCategory.DERIVATIVES:
        return (
            "Only include attested forms found in major learner dictionaries "
            "(Oxford, Cambridge, Merriam-Webster, Collins, Longman). "
            "Never invent rare spellings. Prefer common inflections and standard "
            "affixes such as -ness, -ly and -able. Exclude anything you are unsure of."
        )
    if category is WordCategory.SYNONYMS:
        return (
            f'Substitution test: "I feel {word}" -> "I feel <candidate>" must still make sense. '
            "Words that only describe the same theme are NOT synonyms."
        )
    if category is WordCategory.TOPIC_RELATED:
        return (
            f'Only include words that CANNOT replace "{word}" in a sentence but are '
            "discussed together with it. Anything that passes the substitution test is a synonym."
        )
    if category is WordCategory.COLLOCATIONS:
        return (
            f'If "{word}" is an intransitive verb, give preposition combinations; '
            "if transitive, give typical objects. "
            "If it is a noun, give adjective + noun and verb + noun combinations."
        )
    return ""


# =============================================================================
# USER PROMPT
# =============================================================================

def build_word_prompt(
    word: str,
    category: CategoryLike,
    existing_words: Optional[Sequence[str]] = None,
    max_words: int = DEFAULT_MAX_WORDS_PER_GENERATION,
    min_similarity: float = 0.4,
    tie_margin: float = 0.05,
) -> str:
    """
    Build the user prompt for one expansion.

    Args:
        word: The parent node's word
        category: Which relation to generate
        existing_words: Words already in the target group, to be avoided
        max_words: Upper bound on returned words
        min_similarity: Items scored below this are to be left out
        tie_margin: Similarity gap under which usage decides the order
    """
    category = to_category(category)
    description = CATEGORY_DESCRIPTIONS[category]

    parts = [
        f'Task: Generate {description} for the word "{word}".',
        "",
        f"Example: {CATEGORY_EXAMPLES[category]}",
    ]

    rules = _category_rules(category, word)
    if rules:
        parts += ["", f"IMPORTANT: {rules}"]

    if existing_words:
        listed = ", ".join(f'"{w}"' for w in existing_words)
        parts += ["", f"Already on the map (do NOT repeat): {listed}"]

    parts += [
        "",
        "Instructions:",
        f"- Return at most {max_words} words; fewer accurate words beat forced ones.",
        f'- Do not include "{word}" itself.',
        f"- If \"{word}\" has no meaningful {category.value} relationship, return an empty list.",
        "",
        "Score every candidate between 0 and 1:",
        '- "similarity": how well it matches the target word within this category',
        '- "usage": how common it is in contemporary English',
        "",
        "Ranking:",
        "1. Higher similarity first.",
        f"2. When similarities differ by less than {tie_margin}, higher usage first.",
        f"3. Leave out anything with similarity below {min_similarity}.",
    ]
    return "\n".join(parts)
