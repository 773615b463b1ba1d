"""Back-map solved digits onto the original frame and render them."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np
from matplotlib import colormaps

from geometry import Line, Point, find_intersection, subdivide
from sudoku_detector import CornerSet

GRID_SIZE = 9
LAST = GRID_SIZE - 1

# Soft-green palette indexed by digit
_DIGIT_COLORS = (colormaps["Greens"](np.linspace(0.35, 0.95, 10))[:, :3] * 255).astype("uint8")

Lattice = List[List[Optional[Point]]]


@dataclass(frozen=True)
class DrawInstruction:
    digit: int
    position: Tuple[int, int]
    row: int
    col: int


def build_lattice(corners: CornerSet) -> Lattice:
    """Intersect the interior grid lines of the board as seen in the frame.

    Entry ``[i][j]`` is the bottom-right corner of cell ``(i, j)`` for
    ``i, j`` in 0..7, or None where the two lines are parallel.
    """
    top_left, top_right, bottom_left, bottom_right = corners.points()
    top = subdivide(top_left, top_right, GRID_SIZE)
    bottom = subdivide(bottom_left, bottom_right, GRID_SIZE)
    left = subdivide(top_left, bottom_left, GRID_SIZE)
    right = subdivide(top_right, bottom_right, GRID_SIZE)

    vertical = [Line(top[i], bottom[i]) for i in range(1, GRID_SIZE)]
    horizontal = [Line(left[i], right[i]) for i in range(1, GRID_SIZE)]
    return [[find_intersection(h, v) for v in vertical] for h in horizontal]


def cell_anchor(lattice: Lattice, row: int, col: int) -> Optional[Point]:
    """Bottom-right corner of a cell in frame coordinates.

    Cells in the last row or column have no intersection of their own; they
    reuse the nearest one and step across by the neighbouring cell pitch.
    """
    anchor_row = min(row, LAST - 1)
    anchor_col = min(col, LAST - 1)
    anchor = lattice[anchor_row][anchor_col]
    if anchor is None:
        return None

    dx = dy = 0.0
    if col == LAST:
        previous = lattice[anchor_row][anchor_col - 1]
        if previous is None:
            return None
        dx += anchor.x - previous.x
        dy += anchor.y - previous.y
    if row == LAST:
        previous = lattice[anchor_row - 1][anchor_col]
        if previous is None:
            return None
        dx += anchor.x - previous.x
        dy += anchor.y - previous.y
    return anchor.offset(dx, dy)


def compose_overlay(
    corners: CornerSet,
    empty_mask: Sequence[Sequence[bool]],
    solution: Sequence[Sequence[int]],
    text_offset: Tuple[int, int] = (-26, -6),
) -> List[DrawInstruction]:
    """Draw instructions, in row-major order, for solved digits in empty cells."""
    lattice = build_lattice(corners)
    instructions: List[DrawInstruction] = []
    for row in range(GRID_SIZE):
        for col in range(GRID_SIZE):
            if not empty_mask[row][col]:
                continue
            digit = solution[row][col]
            if not 1 <= digit <= 9:
                continue
            anchor = cell_anchor(lattice, row, col)
            if anchor is None:
                continue
            position = anchor.offset(*text_offset).as_pixel()
            instructions.append(DrawInstruction(digit=digit, position=position, row=row, col=col))
    return instructions


def render_instructions(
    frame: np.ndarray,
    instructions: Sequence[DrawInstruction],
    font_scale: float = 0.9,
    thickness: int = 2,
) -> np.ndarray:
    """Paint the digits onto ``frame`` in place and return it."""
    for instruction in instructions:
        color = tuple(int(channel) for channel in _DIGIT_COLORS[instruction.digit][::-1])
        cv2.putText(
            frame,
            str(instruction.digit),
            instruction.position,
            cv2.FONT_HERSHEY_SIMPLEX,
            font_scale,
            color,
            thickness,
            cv2.LINE_AA,
        )
    return frame
