"""
Unit tests for agents/generation.py - GenerationOrchestrator

The editor fixture is wired to a FakeWordGenerator (see conftest.py).
"""
import asyncio

import pytest

from agents.editor import MindMapEditor
from agents.generation import (
    GenerationOrchestrator,
    GenerationOutcome,
    GenerationStatus,
    GenerationState,
    GenerationFailedError,
    GenerationBusyError,
    WordGenerator,
    UsageReporter,
)
from core.graph_db import CapacityExceededError, NodeNotFoundError
from core.schemas import GenerationResponse
from infrastructure.config import EngineConfig
from infrastructure.logger import MutationType


async def _settle():
    # Let a started task reach its await point
    for _ in range(3):
        await asyncio.sleep(0)


# =============================================================================
# SUCCESS AND EMPTY
# =============================================================================

@pytest.mark.asyncio
async def test_success_commits_one_history_entry(editor, fake_generator, collector):
    center = editor.center
    outcome = await editor.generate_nodes(center.id, "synonyms")

    assert outcome.status == GenerationStatus.SUCCESS
    assert outcome.ok and outcome.committed
    assert outcome.words == ["cheerful", "content", "pleased"]
    assert len(outcome.node_ids) == 3
    assert editor.node_count == 4
    assert editor.history_index == 1
    assert fake_generator.calls == [("happy", "synonyms", [])]

    editor.undo()
    assert editor.node_count == 1

    assert len(collector) == 1
    assert collector.get_summary()["tokens_charged"] == 0.5


@pytest.mark.asyncio
async def test_existing_words_are_passed_and_deduplicated(editor, fake_generator):
    center_id = editor.center.id
    editor.add_node("Content", center_id, "synonyms")
    fake_generator.words = ["content", "cheerful", "Cheerful", "  ", "glad"]

    outcome = await editor.generate_nodes(center_id, "synonyms")

    assert fake_generator.calls[0][2] == ["Content"]
    assert outcome.words == ["cheerful", "glad"]
    assert editor.group_words(center_id, "synonyms") == ["Content", "cheerful", "glad"]


@pytest.mark.asyncio
async def test_caps_to_max_words_per_generation(editor, fake_generator):
    fake_generator.words = [f"word{i}" for i in range(10)]
    outcome = await editor.generate_nodes(editor.center.id, "idioms")
    assert len(outcome.node_ids) == 7
    assert not outcome.truncated


@pytest.mark.asyncio
async def test_empty_outcome_is_success_without_commit(editor, fake_generator, collector):
    fake_generator.words = []
    outcome = await editor.generate_nodes(editor.center.id, "prefix")

    assert outcome.status == GenerationStatus.EMPTY
    assert outcome.ok and not outcome.committed
    assert editor.history_length == 1
    assert len(collector) == 0
    assert editor.orchestrator.state(editor.graph_id) == GenerationState.SUCCEEDED


@pytest.mark.asyncio
async def test_only_duplicates_is_empty(editor, fake_generator):
    center_id = editor.center.id
    editor.add_node("cheerful", center_id, "synonyms")
    fake_generator.words = ["Cheerful"]
    outcome = await editor.generate_nodes(center_id, "synonyms")
    assert outcome.status == GenerationStatus.EMPTY
    assert editor.history_length == 2


@pytest.mark.asyncio
async def test_batch_is_logged_once(editor, mutation_logger):
    outcome = await editor.generate_nodes(editor.center.id, "antonyms")
    events = mutation_logger.get_events_by_type(MutationType.BATCH_CREATED.value)
    assert len(events) == 1
    assert events[0].node_ids == outcome.node_ids


# =============================================================================
# FAILURES
# =============================================================================

@pytest.mark.asyncio
async def test_generator_failure(editor, fake_generator, collector):
    fake_generator.error = RuntimeError("model unavailable")
    before = editor.nodes

    outcome = await editor.generate_nodes(editor.center.id, "synonyms")

    assert outcome.status == GenerationStatus.FAILED
    assert not outcome.ok
    assert "model unavailable" in outcome.error
    assert editor.nodes is before
    assert editor.history_length == 1
    assert len(collector) == 0
    assert editor.orchestrator.state(editor.graph_id) == GenerationState.FAILED

    with pytest.raises(GenerationFailedError):
        outcome.raise_for_status()


@pytest.mark.asyncio
async def test_capacity_exceeded_skips_generator(fake_generator, collector, store, mutation_logger):
    editor = MindMapEditor(
        config=EngineConfig(max_total_nodes=2),
        generator=fake_generator,
        reporter=collector,
        store=store,
        mutation_logger=mutation_logger,
    )
    editor.create_center("happy")
    editor.add_node("glad", editor.center.id, "synonyms")

    outcome = await editor.generate_nodes(editor.center.id, "antonyms")

    assert outcome.status == GenerationStatus.CAPACITY_EXCEEDED
    assert fake_generator.calls == []
    with pytest.raises(CapacityExceededError) as exc:
        outcome.raise_for_status()
    assert exc.value.limit == 2


@pytest.mark.asyncio
async def test_partial_acceptance_near_ceiling(fake_generator, collector, store, mutation_logger):
    editor = MindMapEditor(
        config=EngineConfig(max_total_nodes=3),
        generator=fake_generator,
        reporter=collector,
        store=store,
        mutation_logger=mutation_logger,
    )
    editor.create_center("happy")

    outcome = await editor.generate_nodes(editor.center.id, "synonyms")

    assert outcome.status == GenerationStatus.SUCCESS
    assert outcome.truncated
    assert outcome.words == ["cheerful", "content"]
    assert editor.node_count == 3


@pytest.mark.asyncio
async def test_reporter_failure_does_not_roll_back(editor, fake_generator):
    class BrokenReporter:
        def report(self, usage):
            raise IOError("metering down")

    editor.orchestrator.reporter = BrokenReporter()
    outcome = await editor.generate_nodes(editor.center.id, "synonyms")

    assert outcome.status == GenerationStatus.SUCCESS
    assert editor.node_count == 4


class ReplyGenerator:
    """Returns a fixed reply, whatever its shape."""

    def __init__(self, reply):
        self.reply = reply

    async def generate(self, root_word, category, existing_words):
        return self.reply


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "reply, detail",
    [
        (None, "NoneType"),
        (GenerationResponse(words=["ok", 42]), "non-string"),
    ],
)
async def test_malformed_reply_is_failed(editor, collector, reply, detail):
    editor.orchestrator.generator = ReplyGenerator(reply)
    before = editor.nodes

    outcome = await editor.generate_nodes(editor.center.id, "synonyms")

    assert outcome.status == GenerationStatus.FAILED
    assert detail in outcome.error
    assert editor.nodes is before
    assert editor.history_length == 1
    assert len(collector) == 0
    assert not editor.orchestrator.is_busy(editor.graph_id)


@pytest.mark.asyncio
async def test_unknown_parent_raises(editor):
    with pytest.raises(NodeNotFoundError):
        await editor.generate_nodes("missing", "synonyms")


# =============================================================================
# CONCURRENCY
# =============================================================================

@pytest.mark.asyncio
async def test_second_request_is_busy(editor, fake_generator):
    fake_generator.gate = asyncio.Event()
    center_id = editor.center.id

    first = asyncio.create_task(editor.generate_nodes(center_id, "synonyms"))
    await _settle()
    assert editor.orchestrator.state(editor.graph_id) == GenerationState.REQUESTING

    second = await editor.generate_nodes(center_id, "antonyms")
    assert second.status == GenerationStatus.BUSY
    with pytest.raises(GenerationBusyError):
        second.raise_for_status()

    fake_generator.gate.set()
    assert (await first).status == GenerationStatus.SUCCESS
    assert len(fake_generator.calls) == 1


@pytest.mark.asyncio
async def test_reads_during_request_see_last_commit(editor, fake_generator):
    fake_generator.gate = asyncio.Event()
    task = asyncio.create_task(editor.generate_nodes(editor.center.id, "synonyms"))
    await _settle()

    assert editor.node_count == 1
    fake_generator.gate.set()
    await task
    assert editor.node_count == 4


@pytest.mark.asyncio
async def test_new_center_makes_response_stale(editor, fake_generator, collector):
    fake_generator.gate = asyncio.Event()
    task = asyncio.create_task(editor.generate_nodes(editor.center.id, "synonyms"))
    await _settle()

    editor.create_center("sad")
    fake_generator.gate.set()
    outcome = await task

    assert outcome.status == GenerationStatus.STALE
    assert outcome.ok is False
    assert [n.word for n in editor.nodes] == ["sad"]
    assert len(collector) == 0
    outcome.raise_for_status()


@pytest.mark.asyncio
async def test_cancel_generation(editor, fake_generator):
    fake_generator.gate = asyncio.Event()
    center_id = editor.center.id
    task = asyncio.create_task(editor.generate_nodes(center_id, "synonyms"))
    await _settle()

    editor.cancel_generation()
    assert not editor.orchestrator.is_busy(editor.graph_id)

    fake_generator.gate.set()
    assert (await task).status == GenerationStatus.STALE
    assert editor.node_count == 1


@pytest.mark.asyncio
async def test_user_edit_during_request_is_respected(editor, fake_generator):
    fake_generator.gate = asyncio.Event()
    center_id = editor.center.id
    task = asyncio.create_task(editor.generate_nodes(center_id, "synonyms"))
    await _settle()

    editor.add_node("CONTENT", center_id, "synonyms")
    fake_generator.gate.set()
    outcome = await task

    assert outcome.status == GenerationStatus.SUCCESS
    assert outcome.words == ["cheerful", "pleased"]
    assert editor.group_words(center_id, "synonyms") == ["CONTENT", "cheerful", "pleased"]
    assert editor.history_length == 3


@pytest.mark.asyncio
async def test_ceiling_reached_during_request(fake_generator, collector, store, mutation_logger):
    editor = MindMapEditor(
        config=EngineConfig(max_total_nodes=2),
        generator=fake_generator,
        reporter=collector,
        store=store,
        mutation_logger=mutation_logger,
    )
    editor.create_center("happy")
    fake_generator.gate = asyncio.Event()
    task = asyncio.create_task(editor.generate_nodes(editor.center.id, "synonyms"))
    await _settle()

    editor.add_node("glad", editor.center.id, "antonyms")
    fake_generator.gate.set()
    outcome = await task

    assert outcome.status == GenerationStatus.CAPACITY_EXCEEDED
    assert editor.node_count == 2


# =============================================================================
# PROTOCOLS AND OUTCOMES
# =============================================================================

def test_protocols_are_structural(fake_generator, collector):
    assert isinstance(fake_generator, WordGenerator)
    assert isinstance(collector, UsageReporter)


def test_success_outcome_raise_for_status_returns_self():
    outcome = GenerationOutcome(status=GenerationStatus.SUCCESS)
    assert outcome.raise_for_status() is outcome


def test_orchestrator_cancel_without_request(fake_generator):
    orchestrator = GenerationOrchestrator(fake_generator)
    orchestrator.cancel("g1")
    assert orchestrator.state("g1") == GenerationState.IDLE
