# core.py
# Stateless rules engine for a 2048 game: tiles carry their per-turn history
# (static / moved / merged / spawned) so a renderer can animate each move.

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple, Union
import logging
import random

logger = logging.getLogger(__name__)

RandomSource = Callable[[], float]


class Direction(Enum):
    """Represents the possible move directions."""
    LEFT = "left"
    RIGHT = "right"
    UP = "up"
    DOWN = "down"


class GameStatus(Enum):
    """Represents the current progress state of the game."""
    PLAYING = "playing"
    WON = "won"
    CONTINUE = "continue"  # Won, acknowledged, still playing
    OVER = "over"


TERMINAL_STATUSES = (GameStatus.WON, GameStatus.OVER)


# --- Configuration ---

MAX_GRID_SIZE = 16


def _is_power_of_two(value: int) -> bool:
    return value > 0 and value & (value - 1) == 0


@dataclass(frozen=True)
class GameConfig:
    """
    Board and rule settings for one game variant.
    Args:
        grid_size (int): The dimension N of the N x N board.
        tiles_to_spawn_per_move (int): Tiles added after every effective move.
        win_value (int): Tile value that wins the game.
        start_tiles (int): Tiles spawned on a fresh board.
    Raises:
        ValueError: If any setting is out of range.
    """
    grid_size: int = 4
    tiles_to_spawn_per_move: int = 2
    win_value: int = 2048
    start_tiles: int = 2

    def __post_init__(self):
        if not isinstance(self.grid_size, int) or not 2 <= self.grid_size <= MAX_GRID_SIZE:
            raise ValueError(f"Board size must be an integer between 2 and {MAX_GRID_SIZE}.")
        if self.tiles_to_spawn_per_move < 1:
            raise ValueError("At least one tile must spawn per move.")
        if self.win_value < 4 or not _is_power_of_two(self.win_value):
            raise ValueError("Win value must be a power of two of at least 4.")
        if not 0 <= self.start_tiles <= self.total_tiles:
            raise ValueError("Start tiles must fit on the board.")

    @property
    def total_tiles(self) -> int:
        return self.grid_size * self.grid_size


CONFIG = GameConfig()


def create_seeded_random(seed: int) -> RandomSource:
    """Returns a deterministic source of floats in [0, 1) for the given seed."""
    return random.Random(seed).random


# --- Data Model ---

@dataclass(frozen=True)
class Position:
    row: int
    col: int


@dataclass(frozen=True)
class StaticState:
    """Tile did not move this turn."""


@dataclass(frozen=True)
class MovedState:
    """Tile slid without merging; `from_` is where it stood before the move."""
    from_: Position


@dataclass(frozen=True)
class MergedState:
    """
    Tile produced by combining two tiles this turn.
    `value` is the value of each source tile before the merge, so the
    merged tile's own value is always twice this one.
    """
    from1: Position
    from2: Position
    value: int


@dataclass(frozen=True)
class SpawnedState:
    """Tile created this turn."""


TileState = Union[StaticState, MovedState, MergedState, SpawnedState]

STATIC = StaticState()
SPAWNED = SpawnedState()


@dataclass(frozen=True)
class Tile:
    position: Position
    value: int
    state: TileState = STATIC

    def as_static(self) -> "Tile":
        return replace(self, state=STATIC)

    def as_moved(self) -> "Tile":
        return replace(self, state=MovedState(from_=self.position))

    def merged_with(self, other: "Tile") -> "Tile":
        """Combines this tile with `other`; the result keeps this tile's position until resynced."""
        return Tile(
            position=self.position,
            value=self.value * 2,
            state=MergedState(from1=self.position, from2=other.position, value=self.value),
        )

    @property
    def is_static(self) -> bool:
        return isinstance(self.state, StaticState)

    @property
    def is_merged(self) -> bool:
        return isinstance(self.state, MergedState)


def spawned_tile(position: Position, value: int) -> Tile:
    return Tile(position=position, value=value, state=SPAWNED)


Tiles = Tuple[Tile, ...]
Matrix = List[List[Optional[Tile]]]


def total_score(score_deltas: Sequence[int]) -> int:
    """Sums the per-move score contributions."""
    return sum(score_deltas)


@dataclass(frozen=True)
class Model:
    """
    Complete game state as held by the caller.
    Every operation in this module returns a new Model; none is mutated.
    """
    tiles: Tiles = ()
    score_deltas: Tuple[int, ...] = ()
    game_status: GameStatus = GameStatus.PLAYING
    best_score: int = 0

    @property
    def score(self) -> int:
        return total_score(self.score_deltas)


# --- Board Matrix Projection ---

def tiles_to_matrix(tiles: Sequence[Tile], config: GameConfig = CONFIG) -> Matrix:
    """
    Places each tile in a dense N x N grid at its position.
    Args:
        tiles (Sequence[Tile]): Sparse tile list.
        config (GameConfig): Supplies the board size.
    Returns:
        Matrix: Rows of optional tiles. Tiles outside the board are ignored;
                if two tiles claim one cell the later one wins.
    """
    n = config.grid_size
    matrix: Matrix = [[None] * n for _ in range(n)]
    for tile in tiles:
        row, col = tile.position.row, tile.position.col
        if 0 <= row < n and 0 <= col < n:
            matrix[row][col] = tile
    return matrix


def matrix_to_positioned_tiles(matrix: Matrix) -> List[Tile]:
    """
    Flattens a grid back to a tile list in row-major order, rewriting every
    tile's position to the cell it occupies.
    """
    tiles = []
    for r_idx, row in enumerate(matrix):
        for c_idx, tile in enumerate(row):
            if tile is not None:
                tiles.append(replace(tile, position=Position(r_idx, c_idx)))
    return tiles


def transpose(matrix: Matrix) -> Matrix:
    """Swaps rows and columns."""
    return [list(row) for row in zip(*matrix)]


def reverse_rows(matrix: Matrix) -> Matrix:
    """Reverses each row."""
    return [row[::-1] for row in matrix]


# --- Directional Slide/Merge Engine ---

def slide_and_merge_row_left(row: Sequence[Optional[Tile]]) -> List[Optional[Tile]]:
    """
    Slides a single row towards index 0, merging equal neighbours pairwise.
    A tile produced by a merge never merges again in the same move, so
    [2, 2, 2, 2] becomes [4, 4, _, _].
    Args:
        row (Sequence[Optional[Tile]]): The row, empty cells as None.
    Returns:
        List[Optional[Tile]]: The new row of the same length. Tiles keep their
                              pre-move position until the board is resynced.
    """
    written: List[Tile] = []
    for index, tile in enumerate(row):
        if tile is None:
            continue
        last = written[-1] if written else None
        if last is not None and not last.is_merged and last.value == tile.value:
            written[-1] = last.merged_with(tile)
        elif index == len(written):
            written.append(tile.as_static())
        else:
            written.append(tile.as_moved())
    return written + [None] * (len(row) - len(written))


def _slide_left(matrix: Matrix) -> Matrix:
    return [slide_and_merge_row_left(row) for row in matrix]


def slide_and_merge_matrix(matrix: Matrix, direction: Direction) -> Matrix:
    """
    Slides a whole grid in the given direction by reducing every direction
    to a left slide between a transform and its inverse.
    Raises:
        ValueError: If an invalid direction is specified.
    """
    if direction == Direction.LEFT:
        return _slide_left(matrix)
    elif direction == Direction.RIGHT:
        return reverse_rows(_slide_left(reverse_rows(matrix)))
    elif direction == Direction.UP:
        return transpose(_slide_left(transpose(matrix)))
    elif direction == Direction.DOWN:
        return transpose(reverse_rows(_slide_left(reverse_rows(transpose(matrix)))))
    raise ValueError(f"Invalid direction: {direction!r}")


def slide_and_merge_tiles(tiles: Sequence[Tile], direction: Direction,
                          config: GameConfig = CONFIG) -> List[Tile]:
    """
    Processes a slide on a sparse tile list.
    Args:
        tiles (Sequence[Tile]): The current tiles.
        direction (Direction): The direction to move.
        config (GameConfig): Supplies the board size.
    Returns:
        List[Tile]: The tiles after the slide, tagged static / moved / merged,
                    positions synchronised to the resulting board.
    """
    matrix = tiles_to_matrix(tiles, config)
    return matrix_to_positioned_tiles(slide_and_merge_matrix(matrix, direction))


# --- Spawn Generator ---

def empty_positions(tiles: Sequence[Tile], config: GameConfig = CONFIG) -> List[Position]:
    """Get the unoccupied positions of the board in row-major order."""
    matrix = tiles_to_matrix(tiles, config)
    n = config.grid_size
    return [Position(r, c) for r in range(n) for c in range(n) if matrix[r][c] is None]


def spawn_random_tiles(tiles: Sequence[Tile], count: int, random_source: RandomSource,
                       config: GameConfig = CONFIG) -> List[Tile]:
    """
    Adds up to `count` new tiles (90% chance of 2, 10% chance of 4) on empty cells.
    Each spawn draws twice from `random_source`: once for the cell, once
    for the value. Stops early, without drawing, once the board is full.
    Args:
        tiles (Sequence[Tile]): The tiles already on the board.
        count (int): How many tiles to add.
        random_source (RandomSource): Returns floats in [0, 1).
        config (GameConfig): Supplies the board size.
    Returns:
        List[Tile]: The original tiles followed by the spawned ones.
    """
    candidates = empty_positions(tiles, config)
    new_tiles = list(tiles)
    for _ in range(count):
        if not candidates:
            break
        position = candidates.pop(int(random_source() * len(candidates)))
        value = 2 if random_source() < 0.9 else 4
        new_tiles.append(spawned_tile(position, value))
    return new_tiles


# --- Game Status Evaluator ---

def has_winning_tile(tiles: Sequence[Tile], config: GameConfig = CONFIG) -> bool:
    return any(tile.value >= config.win_value for tile in tiles)


def no_moves_left(tiles: Sequence[Tile], config: GameConfig = CONFIG) -> bool:
    """
    Check if the game is over: the board is full and no two orthogonal
    neighbours share a value.
    """
    if len(tiles) < config.total_tiles:
        return False

    matrix = tiles_to_matrix(tiles, config)
    n = config.grid_size
    for r in range(n):
        for c in range(n):
            tile = matrix[r][c]
            if tile is None:
                return False
            right = matrix[r][c + 1] if c + 1 < n else None
            below = matrix[r + 1][c] if r + 1 < n else None
            if right is not None and right.value == tile.value:
                return False
            if below is not None and below.value == tile.value:
                return False
    return True


def score_from_tiles(tiles: Sequence[Tile]) -> int:
    """Score gained by a move: the value of every tile merged during it."""
    return sum(tile.value for tile in tiles if tile.is_merged)


# --- Model Helpers ---

INITIAL_MODEL = Model(
    tiles=(
        Tile(Position(0, 0), 2),
        Tile(Position(0, 2), 4),
        Tile(Position(1, 1), 2),
        Tile(Position(2, 3), 8),
        Tile(Position(3, 2), 2),
    ),
)


def new_game(random_source: RandomSource, best_score: int = 0,
             config: GameConfig = CONFIG) -> Model:
    """
    Initializes a new game with `config.start_tiles` random tiles.
    The best score of a previous session carries over.
    """
    tiles = spawn_random_tiles((), config.start_tiles, random_source, config)
    return Model(tiles=tuple(tiles), best_score=best_score)


def continue_game(model: Model) -> Model:
    """Acknowledges a win so play can go on; other statuses are left alone."""
    if model.game_status == GameStatus.WON:
        return replace(model, game_status=GameStatus.CONTINUE)
    return model


def prepare_move(model: Model) -> Optional[Model]:
    """
    Resets every tile to static before the next move is computed.
    Returns None if the game is won or over.
    """
    if model.game_status in TERMINAL_STATUSES:
        return None
    return replace(model, tiles=tuple(tile.as_static() for tile in model.tiles))


# --- Core Game Move Processing ---

def move(model: Model, direction: Direction, random_source: RandomSource,
         config: GameConfig = CONFIG) -> Optional[Model]:
    """
    Computes the game state after one move.
    Args:
        model (Model): The state before the move.
        direction (Direction): The direction to move.
        random_source (RandomSource): Source used for spawning new tiles.
        config (GameConfig): Board and rule settings.
    Returns:
        Optional[Model]: The new state, or None if the move was rejected
                         (game won or over) or changed nothing.
    Raises:
        ValueError: If an invalid direction is specified.
    """
    if model.game_status in TERMINAL_STATUSES:
        logger.debug("Move %s rejected, game is %s", direction, model.game_status.value)
        return None

    moved = slide_and_merge_tiles(model.tiles, direction, config)
    if all(tile.is_static for tile in moved):
        # Only a full, locked board ends the game here; a board with an
        # empty cell is merely blocked in this direction.
        if no_moves_left(model.tiles, config):
            logger.debug("No moves left, game over")
            return replace(model, game_status=GameStatus.OVER)
        logger.debug("Move %s changed nothing", direction)
        return None

    score_deltas = model.score_deltas + (score_from_tiles(moved),)
    best_score = max(model.best_score, total_score(score_deltas))

    # Win check first, no spawn on the winning move
    if model.game_status == GameStatus.PLAYING and has_winning_tile(moved, config):
        logger.debug("Winning tile reached")
        return replace(
            model,
            tiles=tuple(moved),
            score_deltas=score_deltas,
            best_score=best_score,
            game_status=GameStatus.WON,
        )

    spawned = spawn_random_tiles(moved, config.tiles_to_spawn_per_move, random_source, config)
    game_status = model.game_status
    if no_moves_left(spawned, config):
        logger.debug("Board locked after spawn, game over")
        game_status = GameStatus.OVER

    return replace(
        model,
        tiles=tuple(spawned),
        score_deltas=score_deltas,
        best_score=best_score,
        game_status=game_status,
    )


# --- Scenario Boards ---

def create_test_win_model(model: Model) -> Model:
    """Two 1024 tiles side by side: one move left wins."""
    return replace(
        model,
        tiles=(Tile(Position(0, 0), 1024), Tile(Position(0, 1), 1024)),
        score_deltas=(),
        game_status=GameStatus.PLAYING,
    )


def create_test_game_over_model(model: Model, config: GameConfig = CONFIG) -> Model:
    """A full 2/4 checkerboard: any move ends the game."""
    n = config.grid_size
    tiles = tuple(
        Tile(Position(r, c), 2 if (r + c) % 2 == 0 else 4)
        for r in range(n) for c in range(n)
    )
    return replace(model, tiles=tiles, score_deltas=(), game_status=GameStatus.PLAYING)


def create_all_test_tiles_model(model: Model, config: GameConfig = CONFIG) -> Model:
    """Every tile value from 2 to 4096 laid out row-major, as far as the board allows."""
    n = config.grid_size
    values = [2 ** exponent for exponent in range(1, 13)][:config.total_tiles]
    tiles = tuple(
        Tile(Position(index // n, index % n), value)
        for index, value in enumerate(values)
    )
    return replace(model, tiles=tiles, score_deltas=(), game_status=GameStatus.PLAYING)
