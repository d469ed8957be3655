"""Slide / merge engine tests"""
import pytest

from core import (
    CONFIG,
    Direction,
    GameConfig,
    MergedState,
    MovedState,
    Position,
    StaticState,
    Tile,
    matrix_to_positioned_tiles,
    reverse_rows,
    slide_and_merge_matrix,
    slide_and_merge_row_left,
    slide_and_merge_tiles,
    tiles_to_matrix,
    transpose,
)


def make_row(values, row=0):
    """Builds a row of tiles from values, None for an empty cell."""
    return [None if v is None else Tile(Position(row, col), v) for col, v in enumerate(values)]


def values_of(row):
    return [None if tile is None else tile.value for tile in row]


class TestSlideRowLeft:
    """Single row slide and merge"""

    def test_merge_across_gap(self):
        result = slide_and_merge_row_left(make_row([2, None, None, 2]))

        assert result[1:] == [None, None, None]
        merged = result[0]
        assert merged.value == 4
        assert merged.state == MergedState(from1=Position(0, 0), from2=Position(0, 3), value=2)

    def test_three_equal_tiles(self):
        result = slide_and_merge_row_left(make_row([2, 2, 2, None]))

        assert values_of(result) == [4, 2, None, None]
        assert result[0].state == MergedState(Position(0, 0), Position(0, 1), 2)
        assert result[1].state == MovedState(from_=Position(0, 2))

    def test_four_equal_tiles_merge_pairwise(self):
        result = slide_and_merge_row_left(make_row([2, 2, 2, 2]))

        assert values_of(result) == [4, 4, None, None]
        assert all(isinstance(tile.state, MergedState) for tile in result[:2])
        assert result[1].state == MergedState(Position(0, 2), Position(0, 3), 2)

    def test_merge_result_does_not_merge_again(self):
        result = slide_and_merge_row_left(make_row([4, 4, 8, None]))

        assert values_of(result) == [8, 8, None, None]
        assert isinstance(result[0].state, MergedState)
        assert result[1].state == MovedState(from_=Position(0, 2))

    def test_merge_after_static_tile(self):
        result = slide_and_merge_row_left(make_row([4, 2, 2, None]))

        assert values_of(result) == [4, 4, None, None]
        assert isinstance(result[0].state, StaticState)
        assert result[1].state == MergedState(Position(0, 1), Position(0, 2), 2)

    def test_packed_row_is_static(self):
        result = slide_and_merge_row_left(make_row([2, 4, None, None]))

        assert values_of(result) == [2, 4, None, None]
        assert all(isinstance(tile.state, StaticState) for tile in result[:2])

    def test_slide_without_merge(self):
        result = slide_and_merge_row_left(make_row([None, 2, None, 4]))

        assert values_of(result) == [2, 4, None, None]
        assert result[0].state == MovedState(from_=Position(0, 1))
        assert result[1].state == MovedState(from_=Position(0, 3))

    def test_empty_row(self):
        assert slide_and_merge_row_left([None] * 4) == [None] * 4

    def test_stale_states_are_replaced(self):
        row = [Tile(Position(0, 0), 4, MergedState(Position(0, 0), Position(0, 1), 2)), None, None, None]

        result = slide_and_merge_row_left(row)

        assert isinstance(result[0].state, StaticState)


class TestMatrixOps:
    """Matrix projection and transforms"""

    def test_tiles_to_matrix(self):
        tiles = [Tile(Position(0, 1), 2), Tile(Position(3, 3), 8)]
        matrix = tiles_to_matrix(tiles)

        assert len(matrix) == CONFIG.grid_size
        assert matrix[0][1].value == 2
        assert matrix[3][3].value == 8
        assert sum(tile is not None for row in matrix for tile in row) == 2

    def test_tiles_off_board_are_ignored(self):
        matrix = tiles_to_matrix([Tile(Position(4, 0), 2), Tile(Position(-1, 2), 2)])

        assert all(tile is None for row in matrix for tile in row)

    def test_positions_are_resynced(self):
        stale = Tile(Position(3, 3), 2)
        matrix = [[None, stale], [None, None]]

        assert matrix_to_positioned_tiles(matrix) == [Tile(Position(0, 1), 2)]

    def test_transforms_are_involutions(self):
        matrix = tiles_to_matrix([Tile(Position(0, 1), 2), Tile(Position(2, 3), 4), Tile(Position(3, 0), 8)])

        assert transpose(transpose(matrix)) == matrix
        assert reverse_rows(reverse_rows(matrix)) == matrix

    def test_invalid_direction(self):
        with pytest.raises(ValueError):
            slide_and_merge_matrix(tiles_to_matrix([]), "left")


class TestDirections:
    """Whole board slides in each direction"""

    @pytest.mark.parametrize("direction, expected", [
        (Direction.LEFT, Position(1, 0)),
        (Direction.RIGHT, Position(1, 3)),
        (Direction.UP, Position(0, 1)),
        (Direction.DOWN, Position(3, 1)),
    ])
    def test_single_tile(self, direction, expected):
        result = slide_and_merge_tiles([Tile(Position(1, 1), 2)], direction)

        assert result == [Tile(expected, 2, MovedState(from_=Position(1, 1)))]

    def test_merge_down(self):
        tiles = [Tile(Position(0, 2), 2), Tile(Position(2, 2), 2)]

        result = slide_and_merge_tiles(tiles, Direction.DOWN)

        assert len(result) == 1
        assert result[0].position == Position(3, 2)
        assert result[0].value == 4
        # the tile nearer the bottom edge absorbs the other one
        assert result[0].state == MergedState(Position(2, 2), Position(0, 2), 2)

    def test_merge_right(self):
        tiles = [Tile(Position(2, 0), 8), Tile(Position(2, 1), 8), Tile(Position(2, 2), 8)]

        result = slide_and_merge_tiles(tiles, Direction.RIGHT)

        assert [(t.position, t.value) for t in result] == [(Position(2, 2), 8), (Position(2, 3), 16)]
        assert result[0].state == MovedState(from_=Position(2, 0))
        assert result[1].state == MergedState(Position(2, 2), Position(2, 1), 8)

    def test_up_on_larger_board(self):
        config = GameConfig(grid_size=5)
        tiles = [Tile(Position(4, 4), 2), Tile(Position(2, 4), 2), Tile(Position(0, 0), 4)]

        result = slide_and_merge_tiles(tiles, Direction.UP, config)

        assert [(t.position, t.value) for t in result] == [(Position(0, 0), 4), (Position(0, 4), 4)]
        assert isinstance(result[0].state, StaticState)

    def test_result_stays_on_board(self):
        tiles = [Tile(Position(r, c), 2 ** (1 + (r * 4 + c) % 3)) for r in range(4) for c in range(4) if (r + c) % 3]
        for direction in Direction:
            for tile in slide_and_merge_tiles(tiles, direction):
                assert 0 <= tile.position.row < 4
                assert 0 <= tile.position.col < 4
