"""
Unit tests for core/geometry.py and the category vocabulary it depends on.
"""
import math

import pytest

from core.geometry import sector_angle, estimate_footprint, distance, point_on_ray, SECTOR_ANGLES
from core.ontology import WordCategory, WORD_CATEGORIES, to_category, category_index, validate_category
from core.schemas import MindMapNode


# =============================================================================
# SECTOR ANGLES
# =============================================================================

def test_category_order_is_fixed():
    assert [c.value for c in WORD_CATEGORIES] == [
        "derivatives", "synonyms", "antonyms", "collocations", "idioms",
        "root", "prefix", "suffix", "topic-related",
    ]


@pytest.mark.parametrize("index,category", list(enumerate(WORD_CATEGORIES)))
def test_sector_angle_is_index_times_ninth_of_circle(index, category):
    assert sector_angle(category) == pytest.approx(index * 2 * math.pi / 9)


def test_sector_angle_accepts_tag_strings_and_is_identical():
    assert sector_angle("synonyms") is SECTOR_ANGLES[WordCategory.SYNONYMS]
    assert sector_angle("synonyms") == sector_angle(WordCategory.SYNONYMS)


def test_sector_angle_unknown_category():
    with pytest.raises(ValueError):
        sector_angle("rhymes")


def test_to_category_helpers():
    assert to_category("topic-related") is WordCategory.TOPIC_RELATED
    assert category_index("antonyms") == 2
    assert validate_category("idioms")
    assert not validate_category("Idioms")


# =============================================================================
# FOOTPRINT AND DISTANCE
# =============================================================================

def test_footprint_has_a_minimum(layout):
    # 4 * 12 + 32 = 80 -> clamped to min_width
    assert estimate_footprint("glad", layout) == 100


def test_footprint_grows_with_length(layout):
    # 10 * 12 + 32
    assert estimate_footprint("delightful", layout) == 152


def test_distance_and_point_on_ray():
    origin = MindMapNode.center("happy", x=10, y=-5)
    x, y = point_on_ray(origin, math.pi / 2, 250)
    assert x == pytest.approx(10)
    assert y == pytest.approx(245)

    other = MindMapNode.create("glad", x=x, y=y)
    assert distance(origin, other) == pytest.approx(250)
