"""
Shared data models for the puzzle engine, the progress store and the host.
This ensures consistency in data structures across components.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional
import time


class ShapeKind(str, Enum):
    """The closed set of shapes a board can be built from."""
    CIRCLE = "circle"
    TRIANGLE = "triangle"
    SQUARE = "square"
    DIAMOND = "diamond"
    PENTAGON = "pentagon"
    HEXAGON = "hexagon"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    EXPERT = "expert"


@dataclass(frozen=True)
class Position:
    """A 0-based grid cell."""
    row: int
    col: int


@dataclass(frozen=True)
class LevelDefinition:
    """
    Immutable parameters for one level.

    Raises ValueError on construction when the parameters could not
    produce a playable board.
    """
    id: int
    grid_size: int
    time_limit_seconds: int
    target_score: int
    shape_types: FrozenSet[ShapeKind]
    name: str = ""
    description: str = ""
    difficulty: Difficulty = Difficulty.EASY

    def __post_init__(self):
        # Accept any iterable of kinds, store it frozen
        object.__setattr__(self, "shape_types", frozenset(self.shape_types))

        if self.id < 1:
            raise ValueError(f"Level id must be at least 1, got {self.id}")
        if self.grid_size < 2:
            raise ValueError(f"Grid size must be at least 2, got {self.grid_size}")
        if self.time_limit_seconds <= 0:
            raise ValueError("Time limit must be positive")
        if self.target_score < 0:
            raise ValueError("Target score cannot be negative")
        if not self.shape_types:
            raise ValueError("A level needs at least one shape type")

    @property
    def cell_count(self) -> int:
        return self.grid_size * self.grid_size

    @property
    def pair_count(self) -> int:
        return self.cell_count // 2


@dataclass
class LevelResult:
    """A completed level, as recorded by the progress store."""
    level_id: int
    score: int
    completed_at: float = field(default_factory=time.time)
    id: Optional[int] = None

    @classmethod
    def from_dict(cls, data):
        """Create a LevelResult object from a dictionary."""
        return cls(
            level_id=data.get('level_id', 0),
            score=data.get('score', 0),
            completed_at=data.get('completed_at', 0.0),
            id=data.get('id')
        )

    def to_dict(self):
        """Convert the LevelResult object to a dictionary."""
        return {
            'level_id': self.level_id,
            'score': self.score,
            'completed_at': self.completed_at,
            'id': self.id
        }
