"""
Pytest configuration and shared fixtures for the WordMap test suite.
"""
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


class FakeWordGenerator:
    """
    Scriptable WordGenerator.

    Set `words`, `usage` or `error` before a call. Set `gate` to an
    asyncio.Event to hold the call at its await point until the test
    releases it.
    """

    def __init__(self, words: Optional[List[str]] = None):
        from core.schemas import TokenUsage

        self.words: List[str] = list(words or [])
        self.usage = TokenUsage(input_tokens=120, output_tokens=40, tokens_charged=0.5, model="fake")
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[tuple] = []

    async def generate(self, root_word, category, existing_words):
        from core.schemas import GenerationResponse

        self.calls.append((root_word, category, list(existing_words)))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return GenerationResponse(words=list(self.words), usage=self.usage)


@pytest.fixture(autouse=True)
def reset_global_state():
    """Reset global singletons before each test to ensure isolation."""
    from core.llm import reset_llm
    from infrastructure.config import reset_config
    from infrastructure.logger import reset_logger
    from infrastructure.metrics import reset_collector

    reset_config()
    reset_llm()
    reset_logger()
    reset_collector()

    yield

    reset_config()
    reset_llm()
    reset_logger()
    reset_collector()


@pytest.fixture
def layout():
    """Default spacing constants."""
    from core.layout import LayoutConfig
    return LayoutConfig()


@pytest.fixture
def fresh_db():
    """A mind map holding only the center word 'happy'."""
    from core.graph_db import MindMapDB
    return MindMapDB.create("happy")


@pytest.fixture
def db_with_synonyms(fresh_db):
    """'happy' with three short synonyms at 250, 430 and 610."""
    center_id = fresh_db.center.id
    ids = [fresh_db.add_node(word, center_id, "synonyms") for word in ("glad", "merry", "jolly")]
    return fresh_db, ids


@pytest.fixture
def fake_generator():
    return FakeWordGenerator(["cheerful", "content", "pleased"])


@pytest.fixture
def collector():
    from infrastructure.metrics import MeteringCollector
    return MeteringCollector()


@pytest.fixture
def mutation_logger():
    from infrastructure.logger import MutationLogger
    return MutationLogger()


@pytest.fixture
def store(tmp_path):
    from infrastructure.persistence import JsonFileStore
    return JsonFileStore(tmp_path / "mind_maps")


@pytest.fixture
def engine_config():
    from infrastructure.config import EngineConfig
    return EngineConfig()


@pytest.fixture
def editor(engine_config, fake_generator, collector, store, mutation_logger):
    """An editor around 'happy' wired to in-memory collaborators."""
    from agents.editor import MindMapEditor

    ed = MindMapEditor(
        config=engine_config,
        generator=fake_generator,
        reporter=collector,
        store=store,
        mutation_logger=mutation_logger,
    )
    ed.create_center("happy")
    return ed
