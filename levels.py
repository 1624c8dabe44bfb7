"""
Static level catalog.
Levels are ordered by id and never change while the process runs.
"""
from typing import List, Optional

from shared.models import Difficulty, LevelDefinition, ShapeKind


C, T, S, D, P = (ShapeKind.CIRCLE, ShapeKind.TRIANGLE, ShapeKind.SQUARE,
                 ShapeKind.DIAMOND, ShapeKind.PENTAGON)
ALL_SHAPES = frozenset(ShapeKind)

# (id, name, description, grid size, time limit, target score, shapes, difficulty)
LEVEL_TABLE = [
    (1, "First Steps", "Learn the basics", 3, 90, 50, {C, S}, Difficulty.EASY),
    (2, "Shape Shifter", "More shapes to match", 3, 80, 100, {C, S, T}, Difficulty.EASY),
    (3, "Quick Match", "Speed things up", 3, 70, 150, {C, S, T}, Difficulty.EASY),
    (4, "Pattern Play", "Find the patterns", 4, 75, 200, {C, S, T}, Difficulty.EASY),
    (5, "Diamond Intro", "New shape appears", 4, 70, 250, {C, S, T, D}, Difficulty.EASY),
    (6, "Easy Master", "Complete basics", 4, 65, 300, {C, S, T, D}, Difficulty.EASY),
    (7, "Pentagon Power", "Five sides challenge", 4, 60, 350, {C, T, D, P}, Difficulty.MEDIUM),
    (8, "Time Pressure", "Beat the clock", 5, 55, 400, {S, D, P}, Difficulty.MEDIUM),
    (9, "Shape Variety", "All shapes available", 5, 60, 450, ALL_SHAPES, Difficulty.MEDIUM),
    (10, "Hexagon Hunt", "Six-sided challenge", 5, 50, 500, ALL_SHAPES, Difficulty.MEDIUM),
    (11, "Quick Thinking", "Faster decisions", 5, 45, 550, ALL_SHAPES, Difficulty.MEDIUM),
    (12, "Rotation Master", "Complex rotations", 5, 50, 600, ALL_SHAPES, Difficulty.MEDIUM),
    (13, "Grid Expansion", "Bigger playground", 6, 60, 650, ALL_SHAPES, Difficulty.MEDIUM),
    (14, "Medium Master", "Peak performance", 6, 55, 700, ALL_SHAPES, Difficulty.MEDIUM),
    (15, "Speed Demon", "Ultimate speed test", 6, 45, 750, ALL_SHAPES, Difficulty.HARD),
    (16, "Chaos Theory", "Pure chaos", 6, 40, 800, ALL_SHAPES, Difficulty.HARD),
    (17, "Memory Challenge", "Remember everything", 6, 50, 850, ALL_SHAPES, Difficulty.HARD),
    (18, "Precision Strike", "No mistakes allowed", 6, 45, 900, ALL_SHAPES, Difficulty.HARD),
    (19, "Time Crunch", "Extreme pressure", 6, 35, 950, ALL_SHAPES, Difficulty.HARD),
    (20, "Hard Master", "Conquer the hard", 6, 40, 1000, ALL_SHAPES, Difficulty.HARD),
    (21, "Elite Challenge", "For experts only", 6, 50, 1100, ALL_SHAPES, Difficulty.EXPERT),
    (22, "Grand Master", "Supreme difficulty", 6, 40, 1200, ALL_SHAPES, Difficulty.EXPERT),
    (23, "Impossible Task", "Nearly impossible", 6, 35, 1300, ALL_SHAPES, Difficulty.EXPERT),
    (24, "The Ultimate", "Can you beat this?", 6, 30, 1500, ALL_SHAPES, Difficulty.EXPERT),
]


class LevelCatalog:
    """Ordered, read-only collection of level definitions."""

    def __init__(self, levels):
        self._levels = tuple(sorted(levels, key=lambda level: level.id))
        self._by_id = {level.id: level for level in self._levels}
        if len(self._by_id) != len(self._levels):
            raise ValueError("Level ids must be unique")

    @classmethod
    def from_table(cls, table=LEVEL_TABLE):
        return cls(
            LevelDefinition(
                id=level_id,
                name=name,
                description=description,
                grid_size=grid_size,
                time_limit_seconds=time_limit,
                target_score=target_score,
                shape_types=shapes,
                difficulty=difficulty,
            )
            for level_id, name, description, grid_size, time_limit, target_score, shapes, difficulty
            in table
        )

    def get_levels(self) -> List[LevelDefinition]:
        return list(self._levels)

    def get_level(self, level_id) -> Optional[LevelDefinition]:
        return self._by_id.get(level_id)

    def get_next_level(self, level_id) -> Optional[LevelDefinition]:
        """Return the first level that follows level_id, or None for the last one."""
        for level in self._levels:
            if level.id > level_id:
                return level
        return None

    def get_levels_by_difficulty(self, difficulty: Difficulty) -> List[LevelDefinition]:
        return [level for level in self._levels if level.difficulty is difficulty]

    def __len__(self):
        return len(self._levels)


# Singleton instance for use throughout the application
catalog = LevelCatalog.from_table()

def get_catalog() -> LevelCatalog:
    """Get the level catalog."""
    return catalog
