import numpy as np
import pytest
import cv2

from conftest import PUZZLE, SOLUTION
from geometry import Point
from overlay import DrawInstruction, build_lattice, cell_anchor, compose_overlay, render_instructions
from sudoku_detector import CornerSet

SQUARE = CornerSet(Point(0, 0), Point(450, 0), Point(0, 450), Point(450, 450))
ALL_EMPTY = [[True] * 9 for _ in range(9)]


def test_lattice_of_square_board():
    lattice = build_lattice(SQUARE)

    assert len(lattice) == 8 and all(len(row) == 8 for row in lattice)
    for i in range(8):
        for j in range(8):
            assert lattice[i][j].x == pytest.approx(50 * (j + 1))
            assert lattice[i][j].y == pytest.approx(50 * (i + 1))


@pytest.mark.parametrize(
    "row,col,expected",
    [
        (0, 0, (50, 50)),
        (7, 7, (400, 400)),
        (3, 8, (450, 200)),  # last column
        (8, 2, (150, 450)),  # last row
        (7, 8, (450, 400)),  # above the bottom-right cell
        (8, 7, (400, 450)),  # left of the bottom-right cell
        (8, 8, (450, 450)),  # bottom-right cell
    ],
)
def test_cell_anchor_is_bottom_right_corner(row, col, expected):
    anchor = cell_anchor(build_lattice(SQUARE), row, col)

    assert anchor.as_pixel() == expected


def test_overlay_positions_for_every_cell():
    instructions = compose_overlay(SQUARE, ALL_EMPTY, SOLUTION)

    assert len(instructions) == 81
    for instruction in instructions:
        r, c = instruction.row, instruction.col
        assert instruction.digit == SOLUTION[r][c]
        assert instruction.position == (50 * (c + 1) - 26, 50 * (r + 1) - 6)


def test_overlay_skips_filled_cells():
    mask = [[value == 0 for value in row] for row in PUZZLE]

    instructions = compose_overlay(SQUARE, mask, SOLUTION)

    assert len(instructions) == 64
    assert all(PUZZLE[i.row][i.col] == 0 for i in instructions)
    cells = [(i.row, i.col) for i in instructions]
    assert cells == sorted(cells)


def test_overlay_ignores_non_digits_in_solution():
    solution = [row[:] for row in SOLUTION]
    solution[0][0] = 0

    instructions = compose_overlay(SQUARE, ALL_EMPTY, solution)

    assert (0, 0) not in {(i.row, i.col) for i in instructions}
    assert len(instructions) == 80


def test_text_offset_is_applied():
    instructions = compose_overlay(SQUARE, ALL_EMPTY, SOLUTION, text_offset=(0, 0))

    assert instructions[0] == DrawInstruction(digit=SOLUTION[0][0], position=(50, 50), row=0, col=0)


def test_skewed_board_lattice_stays_inside_outline():
    corners = CornerSet(Point(120, 80), Point(520, 110), Point(90, 470), Point(540, 500))
    outline = np.array([[120, 80], [520, 110], [540, 500], [90, 470]], dtype="float32")

    lattice = build_lattice(corners)

    for row in lattice:
        for point in row:
            assert cv2.pointPolygonTest(outline, (point.x, point.y), False) > 0


def test_missing_intersection_skips_dependent_cells():
    lattice = build_lattice(SQUARE)
    lattice[7][6] = None

    assert cell_anchor(lattice, 7, 6) is None
    assert cell_anchor(lattice, 7, 8) is None
    assert cell_anchor(lattice, 8, 6) is None
    assert cell_anchor(lattice, 8, 7) is not None


def test_render_paints_digits():
    frame = np.zeros((460, 460, 3), dtype="uint8")
    instructions = compose_overlay(SQUARE, ALL_EMPTY, SOLUTION)

    rendered = render_instructions(frame, instructions)

    assert rendered is frame
    assert cv2.countNonZero(cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)) > 0
