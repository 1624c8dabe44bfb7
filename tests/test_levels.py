import pytest

from levels import LevelCatalog, get_catalog
from shared.models import Difficulty, LevelDefinition, ShapeKind


def test_catalog_has_24_ordered_levels():
    levels = get_catalog().get_levels()
    assert len(levels) == 24
    assert [level.id for level in levels] == list(range(1, 25))

def test_first_and_last_levels():
    catalog = get_catalog()
    first = catalog.get_level(1)
    assert first.name == "First Steps"
    assert (first.grid_size, first.time_limit_seconds, first.target_score) == (3, 90, 50)
    assert first.shape_types == {ShapeKind.CIRCLE, ShapeKind.SQUARE}

    last = catalog.get_level(24)
    assert last.difficulty is Difficulty.EXPERT
    assert last.shape_types == frozenset(ShapeKind)
    assert last.time_limit_seconds == 30

def test_unknown_level_is_none():
    assert get_catalog().get_level(0) is None
    assert get_catalog().get_level(25) is None

def test_next_level():
    catalog = get_catalog()
    assert catalog.get_next_level(1).id == 2
    assert catalog.get_next_level(24) is None

def test_levels_by_difficulty():
    catalog = get_catalog()
    assert len(catalog.get_levels_by_difficulty(Difficulty.EASY)) == 6
    assert len(catalog.get_levels_by_difficulty(Difficulty.MEDIUM)) == 8
    assert len(catalog.get_levels_by_difficulty(Difficulty.HARD)) == 6
    assert len(catalog.get_levels_by_difficulty(Difficulty.EXPERT)) == 4

def test_catalog_is_read_only_copy():
    catalog = get_catalog()
    catalog.get_levels().clear()
    assert len(catalog) == 24

def test_duplicate_ids_rejected():
    level = LevelDefinition(id=1, grid_size=2, time_limit_seconds=10, target_score=0,
                            shape_types={ShapeKind.CIRCLE})
    with pytest.raises(ValueError):
        LevelCatalog([level, level])

def test_custom_catalog_skips_gaps():
    levels = [
        LevelDefinition(id=level_id, grid_size=2, time_limit_seconds=10, target_score=0,
                        shape_types={ShapeKind.CIRCLE})
        for level_id in (5, 1, 9)
    ]
    catalog = LevelCatalog(levels)
    assert [level.id for level in catalog.get_levels()] == [1, 5, 9]
    assert catalog.get_next_level(5).id == 9
