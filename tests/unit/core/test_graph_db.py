"""
Unit tests for core/graph_db.py - MindMapDB

Tests the mind map store including:
- Center creation and rebuilding from snapshots
- Single adds (capacity, duplicates, missing parents)
- Batch adds (all-or-nothing against the ceiling)
- Deletion with subtree cascade and group re-layout
"""
import logging
import math

import pytest

from core.graph_db import (
    MindMapDB,
    CapacityExceededError,
    DuplicateWordError,
    CannotDeleteCenterError,
    NodeNotFoundError,
    InvalidGraphStateError,
    GraphError,
)
from core.geometry import distance
from core.schemas import MindMapNode


# =============================================================================
# CONSTRUCTION
# =============================================================================

def test_create_has_single_center_at_origin(fresh_db):
    center = fresh_db.center
    assert fresh_db.node_count == 1
    assert center.is_center
    assert center.word == "happy"
    assert (center.x, center.y) == (0.0, 0.0)
    assert center.parent_id is None and center.category is None


def test_create_rejects_blank_word():
    with pytest.raises(ValueError):
        MindMapDB.create("   ")


def test_from_nodes_round_trip(db_with_synonyms):
    db, ids = db_with_synonyms
    rebuilt = MindMapDB.from_nodes(db.snapshot())
    assert rebuilt.snapshot() == db.snapshot()
    assert [n.id for n in rebuilt.get_children(db.center.id)] == ids


def test_from_nodes_accepts_child_before_parent(fresh_db):
    center = fresh_db.center
    child_id = fresh_db.add_node("glad", center.id, "synonyms")
    grandchild_id = fresh_db.add_node("gladly", child_id, "derivatives")

    nodes = list(reversed(fresh_db.snapshot()))
    rebuilt = MindMapDB.from_nodes(nodes)

    assert [n.id for n in rebuilt.get_descendants(center.id)] == [grandchild_id, child_id]


def test_from_nodes_warns_about_off_ray_node(caplog):
    center = MindMapNode.center("happy")
    drifted = MindMapNode.create("glad", x=5, y=5, parent_id=center.id, category="synonyms")

    with caplog.at_level(logging.WARNING, logger="core.graph_db"):
        db = MindMapDB.from_nodes([center, drifted])

    assert db.node_count == 2
    assert any(drifted.id in r.getMessage() for r in caplog.records)


def test_from_nodes_is_quiet_for_laid_out_map(db_with_synonyms, caplog):
    db, _ = db_with_synonyms
    with caplog.at_level(logging.WARNING, logger="core.graph_db"):
        MindMapDB.from_nodes(db.snapshot())
    assert caplog.records == []


def test_from_nodes_rejects_two_centers():
    nodes = [MindMapNode.center("happy"), MindMapNode.center("sad")]
    with pytest.raises(InvalidGraphStateError) as exc:
        MindMapDB.from_nodes(nodes)
    assert exc.value.violations


def test_from_nodes_rejects_dangling_parent():
    center = MindMapNode.center("happy")
    orphan = MindMapNode.create("glad", x=250, parent_id="missing", category="synonyms")
    with pytest.raises(InvalidGraphStateError):
        MindMapDB.from_nodes([center, orphan])


def test_from_nodes_rejects_over_ceiling(db_with_synonyms):
    db, _ = db_with_synonyms
    with pytest.raises(InvalidGraphStateError):
        MindMapDB.from_nodes(db.snapshot(), max_total_nodes=3)


# =============================================================================
# ADD NODE
# =============================================================================

def test_add_node_places_on_ray(fresh_db):
    node_id = fresh_db.add_node("  joyful ", fresh_db.center.id, "synonyms")
    node = fresh_db.get_node(node_id)
    assert node.word == "joyful"
    assert node.category == "synonyms"
    assert node.parent_id == fresh_db.center.id
    assert distance(node, fresh_db.center) == pytest.approx(250)


def test_scenario_a_duplicate_word_rejected(fresh_db):
    center_id = fresh_db.center.id
    fresh_db.add_node("joyful", center_id, "synonyms")
    before = fresh_db.snapshot()

    with pytest.raises(DuplicateWordError):
        fresh_db.add_node("Joyful", center_id, "synonyms")

    assert fresh_db.node_count == 2
    assert fresh_db.snapshot() == before


def test_same_word_allowed_in_other_group(fresh_db):
    center_id = fresh_db.center.id
    fresh_db.add_node("content", center_id, "synonyms")
    fresh_db.add_node("content", center_id, "topic-related")
    assert fresh_db.node_count == 3


def test_add_node_capacity():
    db = MindMapDB.create("happy", max_total_nodes=2)
    db.add_node("glad", db.center.id, "synonyms")
    with pytest.raises(CapacityExceededError) as exc:
        db.add_node("merry", db.center.id, "synonyms")
    assert exc.value.limit == 2
    assert db.node_count == 2


def test_add_node_missing_parent(fresh_db):
    with pytest.raises(NodeNotFoundError) as exc:
        fresh_db.add_node("glad", "nope", "synonyms")
    assert isinstance(exc.value, InvalidGraphStateError)
    assert isinstance(exc.value, GraphError)


def test_add_node_blank_word_and_bad_category(fresh_db):
    with pytest.raises(ValueError):
        fresh_db.add_node("  ", fresh_db.center.id, "synonyms")
    with pytest.raises(ValueError):
        fresh_db.add_node("glad", fresh_db.center.id, "rhymes")
    assert fresh_db.node_count == 1


def test_siblings_strictly_increase(db_with_synonyms):
    db, ids = db_with_synonyms
    dists = [distance(db.get_node(i), db.center) for i in ids]
    assert dists == [pytest.approx(250), pytest.approx(430), pytest.approx(610)]


# =============================================================================
# BATCH ADD
# =============================================================================

def test_scenario_b_batch_over_ceiling_adds_nothing():
    db = MindMapDB.create("happy", max_total_nodes=3)
    db.add_node("glad", db.center.id, "synonyms")
    db.add_node("sad", db.center.id, "antonyms")

    with pytest.raises(CapacityExceededError) as exc:
        db.batch_add(db.center.id, "idioms", ["a", "b"])

    assert exc.value.requested == 2
    assert db.node_count == 3


def test_batch_add_filters_duplicates_and_blanks(db_with_synonyms):
    db, _ = db_with_synonyms
    created = db.batch_add(db.center.id, "synonyms", ["GLAD", "cheery", " ", "cheery", "Cheery", "sunny"])
    words = [db.get_node(i).word for i in created]
    assert words == ["cheery", "sunny"]


def test_batch_add_continues_after_existing(db_with_synonyms):
    db, _ = db_with_synonyms
    (new_id,) = db.batch_add(db.center.id, "synonyms", ["sunny"])
    assert distance(db.get_node(new_id), db.center) == pytest.approx(790)


def test_batch_add_capacity_counts_filtered_words():
    db = MindMapDB.create("happy", max_total_nodes=3)
    db.add_node("glad", db.center.id, "synonyms")
    created = db.batch_add(db.center.id, "synonyms", ["glad", "merry"])
    assert len(created) == 1


def test_batch_add_nothing_new(db_with_synonyms):
    db, _ = db_with_synonyms
    assert db.batch_add(db.center.id, "synonyms", ["glad", "Merry"]) == []


# =============================================================================
# DELETE NODE
# =============================================================================

def test_scenario_c_delete_middle_closes_gap(db_with_synonyms):
    db, (first, middle, last) = db_with_synonyms
    removed = db.delete_node(middle)

    assert removed == [middle]
    assert distance(db.get_node(first), db.center) == pytest.approx(250)
    assert distance(db.get_node(last), db.center) == pytest.approx(430)


def test_delete_leaves_other_groups_untouched(db_with_synonyms):
    db, ids = db_with_synonyms
    sad = db.get_node(db.add_node("sad", db.center.id, "antonyms"))
    db.delete_node(ids[0])
    assert db.get_node(sad.id) == sad


def test_delete_cascades_to_subtree(db_with_synonyms):
    db, (first, middle, _) = db_with_synonyms
    child = db.add_node("gladly", first, "derivatives")
    grandchild = db.add_node("gladness", child, "synonyms")

    removed = db.delete_node(first)

    assert removed[0] == first
    assert set(removed) == {first, child, grandchild}
    assert db.node_count == 3
    for node in db:
        assert node.parent_id is None or db.has_node(node.parent_id)


def test_delete_center_rejected(fresh_db):
    with pytest.raises(CannotDeleteCenterError):
        fresh_db.delete_node(fresh_db.center.id)
    assert fresh_db.node_count == 1


def test_delete_unknown(fresh_db):
    with pytest.raises(NodeNotFoundError):
        fresh_db.delete_node("nope")


# =============================================================================
# READS
# =============================================================================

def test_group_reads(db_with_synonyms):
    db, ids = db_with_synonyms
    assert db.group_words(db.center.id, "synonyms") == ["glad", "merry", "jolly"]
    assert db.has_word(db.center.id, "synonyms", "MERRY")
    assert not db.has_word(db.center.id, "antonyms", "merry")
    assert ids[0] in db
    assert len(db) == 4
    assert db.remaining_capacity == 56


def test_snapshot_is_immutable(db_with_synonyms):
    db, _ = db_with_synonyms
    snap = db.snapshot()
    db.add_node("sunny", db.center.id, "synonyms")
    assert isinstance(snap, tuple)
    assert len(snap) == 4
    with pytest.raises(AttributeError):
        snap[0].word = "sad"


def test_ray_angle_matches_category(fresh_db):
    node = fresh_db.get_node(fresh_db.add_node("sad", fresh_db.center.id, "antonyms"))
    assert math.atan2(node.y, node.x) == pytest.approx(2 * (2 * math.pi / 9))
