import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from shared.models import LevelDefinition, Position


INITIAL_HINTS = 3
HINT_DURATION = 1.0  # seconds of wall-clock, not game time
ROTATION_TOLERANCE = 5.0
ROTATION_STEP = 90
FULL_TURN = 360.0

BASE_POINTS = 10
MOVE_BONUS_CAP = 50
COMBO_MULTIPLIER = 5


class ShapeInstance:
    """
    A single rotated shape placed on the board.
    Only the rotation and the matched flag change after the board is built.
    """

    def __init__(self, shape_id, kind, rotation_degrees, position):
        """
        Initialize a new shape.

        Args:
            shape_id: Identifier, unique within one board
            kind: The ShapeKind drawn for this cell
            rotation_degrees: Starting rotation in [0, 360)
            position: The Position this shape occupies
        """
        self.shape_id = shape_id
        self.kind = kind
        self.rotation_degrees = rotation_degrees
        self.position = position
        self.matched = False

    def rotate(self, step=ROTATION_STEP):
        """Turn the shape by one step; a full turn snaps back to exactly 0."""
        self.rotation_degrees += step
        if self.rotation_degrees >= FULL_TURN:
            self.rotation_degrees = 0.0

    def match(self):
        """Mark the shape as matched."""
        self.matched = True

    def __str__(self):
        status = "matched" if self.matched else f"{self.rotation_degrees:.0f}deg"
        return f"Shape({self.kind.value}, {status})"

    def __repr__(self):
        return (f"ShapeInstance(shape_id={self.shape_id}, kind={self.kind}, "
                f"rotation_degrees={self.rotation_degrees}, position={self.position}, "
                f"matched={self.matched})")


class Board:
    """
    The shapes placed on the grid for one attempt.
    When the grid has an odd number of cells exactly one cell stays empty.
    """

    def __init__(self, grid_size, shapes):
        self.grid_size = grid_size
        self.shapes: List[ShapeInstance] = list(shapes)
        self._by_id = {shape.shape_id: shape for shape in self.shapes}
        self._by_position = {shape.position: shape for shape in self.shapes}

    def get_shape(self, shape_id) -> Optional[ShapeInstance]:
        """Return the shape with the given id, or None if it is not on this board."""
        return self._by_id.get(shape_id)

    def get_shape_at(self, row, col) -> Optional[ShapeInstance]:
        """
        Get the shape at the specified position.

        Args:
            row: Row index
            col: Column index

        Returns:
            Shape at the position or None if the cell is empty or out of bounds
        """
        return self._by_position.get(Position(row, col))

    def empty_positions(self) -> List[Position]:
        return [
            Position(row, col)
            for row in range(self.grid_size)
            for col in range(self.grid_size)
            if Position(row, col) not in self._by_position
        ]

    def unmatched_shapes(self) -> List[ShapeInstance]:
        return [shape for shape in self.shapes if not shape.matched]

    def is_cleared(self) -> bool:
        """Check if every shape on the board has been matched."""
        return all(shape.matched for shape in self.shapes)

    def __len__(self):
        return len(self.shapes)

    def __iter__(self) -> Iterator[ShapeInstance]:
        return iter(self.shapes)

    def __str__(self) -> str:
        result = []
        for row in range(self.grid_size):
            row_cells = []
            for col in range(self.grid_size):
                shape = self.get_shape_at(row, col)
                if shape is None:
                    row_cells.append(".")
                elif shape.matched:
                    row_cells.append("M")
                else:
                    row_cells.append(shape.kind.value[0].upper())
            result.append(" ".join(row_cells))
        return "\n".join(result)


class BoardGenerator:
    """Builds a fresh, pairing-consistent board for a level."""

    def __init__(self, rng=None):
        """
        Args:
            rng: random.Random-like source; a private unseeded one by default
        """
        self.rng = rng or random.Random()

    def generate(self, level: LevelDefinition) -> Board:
        positions = [
            Position(row, col)
            for row in range(level.grid_size)
            for col in range(level.grid_size)
        ]
        self.rng.shuffle(positions)

        # Sort the kinds so a seeded rng gives the same board every run
        kinds = sorted(level.shape_types, key=lambda kind: kind.value)
        pool = []
        for _ in range(level.pair_count):
            kind = self.rng.choice(kinds)
            pool.append(kind)
            pool.append(kind)
        self.rng.shuffle(pool)

        shapes = [
            ShapeInstance(
                shape_id=index,
                kind=kind,
                rotation_degrees=self.rng.random() * FULL_TURN,
                position=positions[index],
            )
            for index, kind in enumerate(pool)
        ]
        return Board(level.grid_size, shapes)


def rotation_distance(a: float, b: float) -> float:
    """Circular distance in degrees between two rotations in [0, 360)."""
    diff = abs(a - b) % FULL_TURN
    return min(diff, FULL_TURN - diff)


def is_match(a: ShapeInstance, b: ShapeInstance, tolerance=ROTATION_TOLERANCE) -> bool:
    """
    Two different shapes match when they are the same kind and their
    rotations differ by less than the tolerance, across the 0/360 seam.
    """
    if a.shape_id == b.shape_id:
        return False
    if a.kind != b.kind:
        return False
    return rotation_distance(a.rotation_degrees, b.rotation_degrees) < tolerance


class Phase(Enum):
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (Phase.COMPLETED, Phase.FAILED)


@dataclass
class SessionState:
    """Everything that changes during one attempt at a level."""
    level: LevelDefinition
    board: Board
    score: int = 0
    moves_count: int = 0
    matched_pairs: int = 0
    combo_streak: int = 0
    hints_remaining: int = INITIAL_HINTS
    time_remaining_seconds: int = 0
    selected: Optional[int] = None
    phase: Phase = Phase.READY


@dataclass(frozen=True)
class MatchAward:
    points: int
    new_combo: int


class ScoringEngine:
    """Points and combo bookkeeping for match attempts."""

    def __init__(self, base_points=BASE_POINTS, move_bonus_cap=MOVE_BONUS_CAP,
                 combo_multiplier=COMBO_MULTIPLIER):
        self.base_points = base_points
        self.move_bonus_cap = move_bonus_cap
        self.combo_multiplier = combo_multiplier

    def on_match(self, state: SessionState) -> MatchAward:
        """
        Compute the award for a confirmed match.

        Expects moves_count to already include the current attempt.

        Args:
            state: The session state at the instant of the match

        Returns:
            MatchAward with the points earned and the combo after this match
        """
        new_combo = state.combo_streak + 1
        time_bonus = state.time_remaining_seconds
        move_bonus = max(0, self.move_bonus_cap - state.moves_count)
        combo_bonus = new_combo * self.combo_multiplier
        return MatchAward(
            points=self.base_points + time_bonus + move_bonus + combo_bonus,
            new_combo=new_combo,
        )

    def on_miss(self, state: SessionState) -> MatchAward:
        """A failed attempt costs nothing but the combo; the score is left as it is."""
        return MatchAward(points=0, new_combo=0)


class HintController:
    """
    Depletable hint resource with a short-lived highlight.

    The highlight is a deadline on the time source rather than a timer, so it
    clears on its own schedule whatever the session does in the meantime.
    """

    def __init__(self, duration=HINT_DURATION, time_source=time.monotonic):
        self.duration = duration
        self.time_source = time_source
        self.highlight_until: Optional[float] = None
        self._targets: Tuple[int, ...] = ()

    def use_hint(self, state: SessionState) -> bool:
        """
        Spend one hint and start the highlight.

        Returns:
            True if a hint was spent, False if the call was ignored
        """
        if state.phase is not Phase.PLAYING or state.hints_remaining <= 0:
            return False

        state.hints_remaining -= 1
        self._targets = self.pick_targets(state.board)
        self.highlight_until = self.time_source() + self.duration
        return True

    @staticmethod
    def pick_targets(board: Board) -> Tuple[int, ...]:
        """The first unmatched shape in board order and the next unmatched one of its kind."""
        unmatched = board.unmatched_shapes()
        for index, first in enumerate(unmatched):
            for second in unmatched[index + 1:]:
                if second.kind == first.kind:
                    return (first.shape_id, second.shape_id)
        return ()

    @property
    def is_highlighting(self) -> bool:
        if self.highlight_until is None:
            return False
        return self.time_source() < self.highlight_until

    @property
    def targets(self) -> Tuple[int, ...]:
        return self._targets if self.is_highlighting else ()

    def clear(self) -> None:
        self.highlight_until = None
        self._targets = ()


class PuzzleSession:
    """
    Main session class that orchestrates one level attempt.

    Every player action is a silent no-op outside the phase it belongs to,
    and for ids that are not on the current board.
    """

    def __init__(self, level, progress_store=None, catalog=None, generator=None,
                 scoring=None, hints=None, initial_hints=INITIAL_HINTS):
        """
        Initialize a new session in the Ready phase.

        Args:
            level: The LevelDefinition to play
            progress_store: Object with complete_level(level_id, score) and
                unlock_next_level(), called once when the level is completed
            catalog: Level catalog used to decide whether a next level exists
            generator: BoardGenerator (inject a seeded one for repeatable boards)
            scoring: ScoringEngine
            hints: HintController
            initial_hints: Hint allotment restored on every reset
        """
        self.level = level
        self.progress_store = progress_store
        self.catalog = catalog
        self.generator = generator or BoardGenerator()
        self.scoring = scoring or ScoringEngine()
        self.hints = hints or HintController()
        self.initial_hints = initial_hints
        self.state = self._new_state()

    def _new_state(self) -> SessionState:
        return SessionState(
            level=self.level,
            board=self.generator.generate(self.level),
            hints_remaining=self.initial_hints,
            time_remaining_seconds=self.level.time_limit_seconds,
        )

    @property
    def phase(self) -> Phase:
        return self.state.phase

    @property
    def board(self) -> Board:
        return self.state.board

    @property
    def hint_active(self) -> bool:
        return self.hints.is_highlighting

    @property
    def hint_targets(self) -> Tuple[int, ...]:
        return self.hints.targets

    # Phase transitions

    def start(self) -> bool:
        if self.state.phase is not Phase.READY:
            return False
        self.state.phase = Phase.PLAYING
        return True

    def pause(self) -> bool:
        if self.state.phase is not Phase.PLAYING:
            return False
        self.state.phase = Phase.PAUSED
        return True

    def resume(self) -> bool:
        if self.state.phase is not Phase.PAUSED:
            return False
        self.state.phase = Phase.PLAYING
        return True

    def reset(self) -> None:
        """Start a new attempt: fresh board, zeroed counters, full hints and time."""
        self.hints.clear()
        self.state = self._new_state()

    def tick(self) -> None:
        """Advance the countdown by one second; expiry fails the attempt."""
        if self.state.phase is not Phase.PLAYING:
            return
        if self.state.time_remaining_seconds > 0:
            self.state.time_remaining_seconds -= 1
        if self.state.time_remaining_seconds == 0:
            self._end(success=False)

    # Player actions

    def select_shape(self, shape_id) -> bool:
        """
        Select a shape, or attempt a match against the one already selected.

        Selecting the selected shape again deselects it at no cost.

        Returns:
            True if the selection was processed, False if it was ignored
        """
        state = self.state
        if state.phase is not Phase.PLAYING:
            return False
        shape = state.board.get_shape(shape_id)
        if shape is None or shape.matched:
            return False

        if state.selected is None:
            state.selected = shape_id
            return True
        if state.selected == shape_id:
            state.selected = None
            return True

        first = state.board.get_shape(state.selected)
        state.selected = None
        self._attempt_match(first, shape)
        return True

    def rotate_shape(self, shape_id) -> bool:
        if self.state.phase is not Phase.PLAYING:
            return False
        shape = self.state.board.get_shape(shape_id)
        if shape is None or shape.matched:
            return False
        shape.rotate()
        self.state.moves_count += 1
        return True

    def use_hint(self) -> bool:
        return self.hints.use_hint(self.state)

    def _attempt_match(self, first: ShapeInstance, second: ShapeInstance) -> None:
        state = self.state
        state.moves_count += 1

        if not is_match(first, second):
            state.combo_streak = self.scoring.on_miss(state).new_combo
            return

        award = self.scoring.on_match(state)
        first.match()
        second.match()
        state.combo_streak = award.new_combo
        state.score += award.points
        state.matched_pairs += 1
        self._check_completion()

    def _check_completion(self) -> None:
        # A cleared board below target stays in play until the clock runs out
        if self.state.board.is_cleared() and self.state.score >= self.level.target_score:
            self._end(success=True)

    def _end(self, success: bool) -> None:
        self.state.phase = Phase.COMPLETED if success else Phase.FAILED
        self.state.selected = None
        if not success or self.progress_store is None:
            return

        self.progress_store.complete_level(self.level.id, self.state.score)
        if self.catalog is None or self.catalog.get_next_level(self.level.id) is not None:
            self.progress_store.unlock_next_level()

    def get_board_state(self):
        """
        Get the current state of the board as a 2D array.

        Returns:
            2D array of shape ids, "M" for matched shapes and None for the empty cell
        """
        board_state = []
        for row in range(self.board.grid_size):
            row_state = []
            for col in range(self.board.grid_size):
                shape = self.board.get_shape_at(row, col)
                if shape is None:
                    row_state.append(None)
                elif shape.matched:
                    row_state.append("M")
                else:
                    row_state.append(shape.shape_id)
            board_state.append(row_state)
        return board_state

    def __str__(self):
        state = self.state
        return (f"Level {self.level.id} [{state.phase.value}] "
                f"Score={state.score} Moves={state.moves_count} "
                f"Combo={state.combo_streak} Hints={state.hints_remaining} "
                f"Time={state.time_remaining_seconds}s\n{state.board}")
