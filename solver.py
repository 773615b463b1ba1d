"""Backtracking Sudoku solver.

Cells are filled in row-major order, trying 1-9 in ascending order, so the
first solution found is always the same one for a given board.
"""
from __future__ import annotations

import logging
import numbers
from typing import TYPE_CHECKING, List, Optional, Sequence, Set, Tuple

from sudoku_detector import PipelineError

if TYPE_CHECKING:
    from cell_segmenter import ObservedBoard

logger = logging.getLogger(__name__)

Grid = List[List[int]]
Cell = Tuple[int, int]

DIGITS = frozenset(range(1, 10))


class Unsolvable(PipelineError):
    pass


class TooFewGivens(PipelineError):
    pass


def box_index(row: int, col: int) -> int:
    return (row // 3) * 3 + col // 3


def normalize_grid(board: Sequence[Sequence[int]]) -> Optional[Grid]:
    """Copy ``board`` into plain ints, or None if it is not a 9x9 grid of 0-9."""
    if len(board) != 9:
        return None
    grid: Grid = []
    for row in board:
        if len(row) != 9:
            return None
        values = []
        for value in row:
            if isinstance(value, bool) or not isinstance(value, numbers.Integral):
                return None
            value = int(value)
            if not 0 <= value <= 9:
                return None
            values.append(value)
        grid.append(values)
    return grid


def is_solved_grid(board: Sequence[Sequence[int]]) -> bool:
    """True when every row, column and box holds 1-9 exactly once."""
    grid = normalize_grid(board)
    if grid is None:
        return False
    for i in range(9):
        if set(grid[i]) != DIGITS:
            return False
        if {grid[r][i] for r in range(9)} != DIGITS:
            return False
        if {grid[r][c] for r in range(9) for c in range(9) if box_index(r, c) == i} != DIGITS:
            return False
    return True


class _Houses:
    """Digits already used in each row, column and box."""

    def __init__(self) -> None:
        self.rows: List[Set[int]] = [set() for _ in range(9)]
        self.cols: List[Set[int]] = [set() for _ in range(9)]
        self.boxes: List[Set[int]] = [set() for _ in range(9)]

    def allows(self, row: int, col: int, value: int) -> bool:
        return (
            value not in self.rows[row]
            and value not in self.cols[col]
            and value not in self.boxes[box_index(row, col)]
        )

    def place(self, row: int, col: int, value: int) -> None:
        self.rows[row].add(value)
        self.cols[col].add(value)
        self.boxes[box_index(row, col)].add(value)

    def clear(self, row: int, col: int, value: int) -> None:
        self.rows[row].discard(value)
        self.cols[col].discard(value)
        self.boxes[box_index(row, col)].discard(value)


class SudokuSolver:
    """Depth-first search over the blank cells of a board.

    ``last_status`` is one of ``idle``, ``solved``, ``invalid`` (out-of-range
    values or a repeated digit in the givens), ``unsolved`` (search
    exhausted) or ``timeout`` (``max_backtracks`` placements reached).
    """

    def __init__(self, max_backtracks: Optional[int] = None) -> None:
        self.max_backtracks = max_backtracks
        self.placements = 0
        self.last_status: str = "idle"

    def solve_board(self, board: Sequence[Sequence[int]]) -> Optional[Grid]:
        """Return a solved copy of ``board``, or None. The input is never modified."""
        self.placements = 0
        self.last_status = "idle"

        grid = normalize_grid(board)
        houses = self._givens(grid) if grid is not None else None
        if grid is None or houses is None:
            self.last_status = "invalid"
            return None

        blanks = [(r, c) for r in range(9) for c in range(9) if grid[r][c] == 0]
        try:
            found = self._search(grid, houses, blanks, 0)
        except _Cutoff:
            self.last_status = "timeout"
            return None
        if not found:
            self.last_status = "unsolved"
            return None
        self.last_status = "solved"
        logger.debug("Filled %d blanks after %d placements", len(blanks), self.placements)
        return grid

    def solve(self, board: Grid) -> bool:
        """Fill ``board`` in place; on failure it is left as given."""
        solved = self.solve_board(board)
        if solved is None:
            return False
        for row in range(9):
            board[row][:] = solved[row]
        return True

    def solve_observed(self, board: "ObservedBoard", min_givens: int = 0) -> Grid:
        """Solve a board read off a frame, raising instead of returning None.

        Raises ``UnreadableCells`` while any cell is unknown, ``TooFewGivens``
        below ``min_givens`` read digits and ``Unsolvable`` when the search
        fails for any reason.
        """
        grid = board.grid
        if board.given_count < min_givens:
            raise TooFewGivens(f"only {board.given_count} digits read, need {min_givens}")
        solution = self.solve_board(grid)
        if solution is None:
            raise Unsolvable(f"solver gave up ({self.last_status})")
        return solution

    @staticmethod
    def _givens(grid: Grid) -> Optional[_Houses]:
        houses = _Houses()
        for row in range(9):
            for col in range(9):
                value = grid[row][col]
                if not value:
                    continue
                if not houses.allows(row, col, value):
                    logger.debug("Digit %d repeated around (%d, %d)", value, row, col)
                    return None
                houses.place(row, col, value)
        return houses

    def _search(self, grid: Grid, houses: _Houses, blanks: List[Cell], index: int) -> bool:
        if index == len(blanks):
            return True
        row, col = blanks[index]
        for value in range(1, 10):
            if self.max_backtracks is not None and self.placements >= self.max_backtracks:
                raise _Cutoff()
            if not houses.allows(row, col, value):
                continue
            grid[row][col] = value
            houses.place(row, col, value)
            self.placements += 1
            if self._search(grid, houses, blanks, index + 1):
                return True
            houses.clear(row, col, value)
            grid[row][col] = 0
        return False


class _Cutoff(Exception):
    pass
