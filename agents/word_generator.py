"""
WORDMAP WORD GENERATOR - LLM-backed WordGenerator

Asks the model for scored candidates (RankedWordList), then ranks and
filters them locally so a sloppy model cannot break the ordering rules:

1. keep items with similarity >= min_similarity (scores clamped to [0, 1])
2. strip words, drop blanks, the root word itself and repeats
3. order by similarity; when two similarities differ by less than
   tie_margin, the more common word (higher usage) goes first
4. keep the first max_words

Every successful call reports TokenUsage with tokens_charged set to the
configured per-expansion price. The orchestrator only forwards it to
metering when the expansion actually added words.
"""
import functools
import logging
from typing import List, Optional, Sequence

import msgspec

from core.llm import StructuredLLM, LLMError, get_llm
from core.ontology import CategoryLike, to_category
from core.schemas import GenerationResponse, RankedWord, RankedWordList, normalize_word
from agents.generation import GenerationFailedError
from agents.prompts import WORD_GENERATOR_SYSTEM_PROMPT, build_word_prompt
from infrastructure.config import EngineConfig, GenerationConfig

logger = logging.getLogger(__name__)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def rank_words(
    items: Sequence[RankedWord],
    root_word: str = "",
    min_similarity: float = 0.4,
    tie_margin: float = 0.05,
    max_words: Optional[int] = None,
) -> List[str]:
    """Filter and order scored candidates. Pure; see the module docstring."""
    root_key = normalize_word(root_word)
    seen = set()
    kept: List[RankedWord] = []
    for item in items:
        word = item.word.strip()
        key = normalize_word(word)
        if not word or key == root_key or key in seen:
            continue
        if item.similarity < min_similarity:
            continue
        seen.add(key)
        kept.append(RankedWord(word=word, similarity=_clamp(item.similarity), usage=_clamp(item.usage)))

    def compare(a: RankedWord, b: RankedWord) -> int:
        if abs(b.similarity - a.similarity) > tie_margin:
            return -1 if a.similarity > b.similarity else 1
        if a.usage == b.usage:
            return 0
        return -1 if a.usage > b.usage else 1

    kept.sort(key=functools.cmp_to_key(compare))
    words = [item.word for item in kept]
    return words[:max_words] if max_words is not None else words


class LLMWordGenerator:
    """
    Default WordGenerator: one StructuredLLM call per expansion.

    Usage:
        generator = LLMWordGenerator.from_config(get_config())
        response = await generator.generate("happy", "synonyms", ["joyful"])
        response.words    # ["cheerful", "content", ...]
    """

    def __init__(
        self,
        llm: Optional[StructuredLLM] = None,
        config: Optional[GenerationConfig] = None,
    ):
        self.llm = llm or get_llm()
        self.config = config or GenerationConfig()

    @classmethod
    def from_config(cls, config: EngineConfig) -> "LLMWordGenerator":
        llm = StructuredLLM(
            model=config.llm.model,
            temperature=config.llm.temperature,
            max_tokens=config.llm.max_tokens,
            max_attempts=config.llm.max_attempts,
        )
        return cls(llm=llm, config=config.generation)

    async def generate(
        self,
        root_word: str,
        category: CategoryLike,
        existing_words: Sequence[str] = (),
    ) -> GenerationResponse:
        """
        Propose up to max_words_per_generation new words.

        Raises:
            GenerationFailedError: If the model call or its validation fails
        """
        tag = to_category(category)
        prompt = build_word_prompt(
            root_word,
            tag,
            existing_words=existing_words,
            max_words=self.config.max_words_per_generation,
            min_similarity=self.config.min_similarity,
            tie_margin=self.config.tie_margin,
        )

        try:
            result, usage = await self.llm.generate(
                system_prompt=WORD_GENERATOR_SYSTEM_PROMPT,
                user_prompt=prompt,
                schema=RankedWordList,
            )
        except LLMError as e:
            raise GenerationFailedError(f"Failed to generate {tag.value} for {root_word!r}: {e}") from e

        words = rank_words(
            result.words,
            root_word=root_word,
            min_similarity=self.config.min_similarity,
            tie_margin=self.config.tie_margin,
            max_words=self.config.max_words_per_generation,
        )
        logger.info(f"LLM proposed {len(words)} {tag.value} for {root_word!r}")

        usage = msgspec.structs.replace(usage, tokens_charged=self.config.tokens_per_expansion)
        return GenerationResponse(words=words, usage=usage)
