"""
Unit tests for core/schemas.py - records and JSON serialization.
"""
import msgspec
import pytest

from core.schemas import (
    MindMapNode,
    MindMap,
    TokenUsage,
    RankedWordList,
    normalize_word,
    serialize_node,
    deserialize_node,
    serialize_mind_map,
    deserialize_mind_map,
    deserialize_nodes,
)


def test_create_strips_and_coerces_category():
    node = MindMapNode.create("  glad ", x=1, y=2, parent_id="p", category="synonyms")
    assert node.word == "glad"
    assert node.category == "synonyms"
    assert isinstance(node.x, float)
    assert len(node.id) == 32


def test_create_with_explicit_id():
    assert MindMapNode.create("glad", id="abc").id == "abc"


def test_create_rejects_unknown_keywords():
    with pytest.raises(TypeError):
        MindMapNode.create("glad", colour="red")


def test_create_rejects_unknown_category():
    with pytest.raises(ValueError):
        MindMapNode.create("glad", category="rhymes")


def test_nodes_are_frozen_and_hashable_by_value():
    node = MindMapNode.center("happy")
    with pytest.raises(AttributeError):
        node.x = 5
    moved = node.moved_to(5, 6)
    assert (moved.x, moved.y) == (5, 6)
    assert node.x == 0
    assert node.copy() == node


def test_keys():
    node = MindMapNode.create("Glad", parent_id="p", category="synonyms")
    assert node.group_key == ("p", "synonyms")
    assert node.word_key == "glad"
    assert normalize_word("  STRASSE ") == "strasse"


def test_node_json_uses_camel_case():
    node = MindMapNode.create("glad", parent_id="p", category="synonyms")
    raw = msgspec.json.decode(serialize_node(node))
    assert raw["parentId"] == "p"
    assert raw["isCenter"] is False
    assert deserialize_node(serialize_node(node)) == node


def test_decode_client_payload():
    payload = b'[{"id":"c","word":"happy","x":0,"y":0,"isCenter":true},' \
              b'{"id":"n","word":"glad","x":250,"y":0,"parentId":"c","category":"synonyms"}]'
    nodes = deserialize_nodes(payload)
    assert nodes[0].is_center
    assert nodes[1].parent_id == "c"


def test_mind_map_from_nodes_names_after_center(db_with_synonyms):
    db, _ = db_with_synonyms
    record = MindMap.from_nodes(list(db.snapshot()), mind_map_id="m1")
    assert record.name == "happy"
    assert record.id == "m1"

    restored = deserialize_mind_map(serialize_mind_map(record))
    assert restored.nodes == record.nodes
    assert "createdAt" in msgspec.json.decode(serialize_mind_map(record))


def test_mind_map_without_center_is_untitled():
    assert MindMap.from_nodes([]).name == "Untitled Mind Map"


def test_token_usage_total():
    usage = TokenUsage(input_tokens=10, output_tokens=5, tokens_charged=0.5)
    assert usage.total_tokens == 15


def test_ranked_word_list_validation():
    decoded = msgspec.json.decode(b'{"words":[{"word":"glad","similarity":0.9}]}', type=RankedWordList)
    assert decoded.words[0].usage == 0.0
    with pytest.raises(msgspec.ValidationError):
        msgspec.json.decode(b'{"words":[{"word":"glad"}]}', type=RankedWordList)
