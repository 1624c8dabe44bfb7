import random

import pytest

from database import ProgressDatabase
from puzzle import BoardGenerator, HintController, PuzzleSession
from shared.models import LevelDefinition, ShapeKind


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class RecordingStore:
    def __init__(self):
        self.completed = []
        self.unlocks = 0

    def complete_level(self, level_id, score):
        self.completed.append((level_id, score))

    def unlock_next_level(self):
        self.unlocks += 1


@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def store():
    return RecordingStore()

@pytest.fixture
def circle_level():
    return LevelDefinition(id=1, grid_size=2, time_limit_seconds=60, target_score=0,
                           shape_types={ShapeKind.CIRCLE})

@pytest.fixture
def mixed_level():
    return LevelDefinition(id=2, grid_size=4, time_limit_seconds=30, target_score=0,
                           shape_types={ShapeKind.SQUARE, ShapeKind.TRIANGLE, ShapeKind.HEXAGON})

@pytest.fixture
def make_session(store, clock):
    def factory(level, seed=7, **kwargs):
        kwargs.setdefault("progress_store", store)
        return PuzzleSession(
            level,
            generator=BoardGenerator(random.Random(seed)),
            hints=HintController(time_source=clock),
            **kwargs
        )
    return factory

@pytest.fixture
def progress_db(tmp_path):
    db = ProgressDatabase(str(tmp_path / "progress.db"))
    yield db
    db.close()


def align(shapes, rotation=0.0):
    """Put shapes in a known rotation so tests can match them on purpose."""
    for shape in shapes:
        shape.rotation_degrees = rotation


def pairs_by_kind(board):
    """Group unmatched shapes of a board into same-kind pairs."""
    by_kind = {}
    for shape in board.unmatched_shapes():
        by_kind.setdefault(shape.kind, []).append(shape)
    pairs = []
    for shapes in by_kind.values():
        pairs.extend(zip(shapes[0::2], shapes[1::2]))
    return pairs
