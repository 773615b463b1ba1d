# tests/conftest.py
import sys
from itertools import cycle
from pathlib import Path
from typing import List, Optional

import cv2
import numpy as np
import pytest

# Add project root to sys.path so the top-level modules import in tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cell_segmenter import DigitClassifier  # noqa: E402

# 17-clue puzzle with a unique solution
PUZZLE = [
    [0, 0, 0, 0, 0, 0, 0, 8, 0],
    [6, 0, 0, 0, 0, 0, 0, 0, 0],
    [0, 9, 0, 0, 0, 0, 0, 0, 0],
    [0, 0, 0, 0, 7, 0, 6, 0, 4],
    [0, 0, 5, 0, 0, 0, 3, 0, 0],
    [0, 0, 8, 0, 2, 0, 0, 0, 0],
    [3, 0, 0, 6, 0, 0, 9, 0, 0],
    [0, 7, 0, 8, 0, 0, 0, 0, 0],
    [0, 0, 0, 5, 0, 1, 0, 0, 0],
]

SOLUTION = [
    [1, 2, 3, 4, 5, 6, 7, 8, 9],
    [6, 5, 4, 7, 8, 9, 2, 3, 1],
    [8, 9, 7, 2, 1, 3, 5, 4, 6],
    [2, 3, 9, 1, 7, 8, 6, 5, 4],
    [7, 1, 5, 9, 6, 4, 3, 2, 8],
    [4, 6, 8, 3, 2, 5, 1, 9, 7],
    [3, 8, 2, 6, 4, 7, 9, 1, 5],
    [5, 7, 1, 8, 9, 2, 4, 6, 3],
    [9, 4, 6, 5, 3, 1, 8, 7, 2],
]

CELL = 50
FONT = cv2.FONT_HERSHEY_SIMPLEX


class ScriptedClassifier(DigitClassifier):
    """Answers with a fixed digit sequence, repeating it once exhausted."""

    def __init__(self, digits: List[Optional[int]]) -> None:
        self._digits = cycle(digits)
        self.calls = 0
        self.patch_shapes = []

    def classify(self, patch: np.ndarray) -> Optional[int]:
        self.calls += 1
        self.patch_shapes.append(patch.shape)
        return next(self._digits)


def givens(grid: List[List[int]]) -> List[int]:
    return [value for row in grid for value in row if value]


def render_board(grid: List[List[int]], cell: int = CELL) -> np.ndarray:
    """Head-on grayscale board: dark rulings and digits on white."""
    size = cell * 9
    image = np.full((size, size), 255, dtype="uint8")
    for i in range(10):
        pos = min(i * cell, size - 1)
        thickness = 4 if i % 3 == 0 else 2
        cv2.line(image, (pos, 0), (pos, size - 1), 0, thickness)
        cv2.line(image, (0, pos), (size - 1, pos), 0, thickness)
    for row in range(9):
        for col in range(9):
            value = grid[row][col]
            if not value:
                continue
            text = str(value)
            (text_w, text_h), _ = cv2.getTextSize(text, FONT, 1.2, 3)
            x = col * cell + (cell - text_w) // 2
            y = row * cell + (cell + text_h) // 2
            cv2.putText(image, text, (x, y), FONT, 1.2, 0, 3, cv2.LINE_AA)
    return image


def render_frame(grid: List[List[int]], margin: int = 75) -> np.ndarray:
    """Place a rendered board on a white BGR camera-sized frame."""
    board = render_board(grid)
    size = board.shape[0] + 2 * margin
    frame = np.full((size, size, 3), 255, dtype="uint8")
    frame[margin : margin + board.shape[0], margin : margin + board.shape[1]] = cv2.cvtColor(
        board, cv2.COLOR_GRAY2BGR
    )
    return frame


@pytest.fixture
def puzzle():
    return [row[:] for row in PUZZLE]


@pytest.fixture
def solution():
    return [row[:] for row in SOLUTION]


@pytest.fixture
def scripted_classifier():
    return ScriptedClassifier(givens(PUZZLE))


@pytest.fixture
def board_image():
    return render_board(PUZZLE)


@pytest.fixture
def board_frame():
    return render_frame(PUZZLE)
