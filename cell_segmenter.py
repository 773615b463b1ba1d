"""Grid line removal, 9x9 cell split and per-cell occupancy/classification."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, auto
from typing import List, Optional, Tuple

import cv2
import numpy as np

from config import PipelineConfig
from sudoku_detector import PipelineError

logger = logging.getLogger(__name__)

GRID_SIZE = 9

Grid = List[List[int]]
Mask = List[List[bool]]


class UnreadableCells(PipelineError):
    pass


class CellKind(Enum):
    BLANK = auto()
    DIGIT = auto()
    UNKNOWN = auto()


@dataclass(frozen=True)
class CellReading:
    kind: CellKind
    digit: int = 0

    @classmethod
    def blank(cls) -> "CellReading":
        return cls(CellKind.BLANK)

    @classmethod
    def unknown(cls) -> "CellReading":
        return cls(CellKind.UNKNOWN)

    @classmethod
    def of(cls, digit: int) -> "CellReading":
        if not 1 <= digit <= 9:
            raise ValueError(f"digit out of range: {digit}")
        return cls(CellKind.DIGIT, digit)


class DigitClassifier(ABC):
    """
    Contract for digit recognition on a single cell patch.

    ``classify`` receives a square grayscale patch with bright ink on a dark
    background and returns 1-9 for a digit, 0 for "no digit", or None when
    the digit cannot be determined.
    """

    @abstractmethod
    def classify(self, patch: np.ndarray) -> Optional[int]:
        pass


@dataclass
class ObservedBoard:
    readings: List[List[CellReading]]

    @classmethod
    def from_grid(cls, grid: Grid) -> "ObservedBoard":
        return cls(
            [
                [CellReading.of(value) if value else CellReading.blank() for value in row]
                for row in grid
            ]
        )

    @property
    def empty_mask(self) -> Mask:
        return [[reading.kind is CellKind.BLANK for reading in row] for row in self.readings]

    @property
    def unknown_cells(self) -> List[Tuple[int, int]]:
        return [
            (row, col)
            for row, readings in enumerate(self.readings)
            for col, reading in enumerate(readings)
            if reading.kind is CellKind.UNKNOWN
        ]

    @property
    def given_count(self) -> int:
        return sum(reading.kind is CellKind.DIGIT for row in self.readings for reading in row)

    @property
    def grid(self) -> Grid:
        """Integer grid with 0 for blanks; refuses boards with unreadable cells."""
        unknown = self.unknown_cells
        if unknown:
            raise UnreadableCells(f"{len(unknown)} cell(s) could not be read: {unknown}")
        return [[reading.digit for reading in row] for row in self.readings]

    @property
    def signature(self) -> Tuple[Tuple[CellReading, ...], ...]:
        return tuple(tuple(row) for row in self.readings)


def binarize(image: np.ndarray, block_size: int, offset: int) -> np.ndarray:
    """Mean adaptive threshold, inverted so ink is bright."""
    thresh = cv2.adaptiveThreshold(
        image,
        255,
        cv2.ADAPTIVE_THRESH_MEAN_C,
        cv2.THRESH_BINARY,
        block_size,
        offset,
    )
    return cv2.bitwise_not(thresh)


def remove_grid_lines(binary: np.ndarray, config: PipelineConfig) -> int:
    """Paint over long straight segments in place; returns how many were erased."""
    lines = cv2.HoughLinesP(
        binary,
        config.hough_rho,
        np.pi / 180 * config.hough_theta_degrees,
        config.hough_votes,
        minLineLength=config.hough_min_line_length,
        maxLineGap=config.hough_max_line_gap,
    )
    if lines is None:
        return 0
    segments = np.asarray(lines).reshape(-1, 4)
    for x1, y1, x2, y2 in segments:
        cv2.line(binary, (int(x1), int(y1)), (int(x2), int(y2)), 0, config.line_erase_thickness)
    return len(segments)


def split_into_cells(image: np.ndarray) -> List[List[np.ndarray]]:
    """Divide the rectified board into 81 equal cells, dropping remainder pixels."""
    grid: List[List[np.ndarray]] = []
    h, w = image.shape[:2]
    cell_h = h // GRID_SIZE
    cell_w = w // GRID_SIZE

    for y in range(GRID_SIZE):
        row = []
        for x in range(GRID_SIZE):
            start_y = y * cell_h
            end_y = (y + 1) * cell_h
            start_x = x * cell_w
            end_x = (x + 1) * cell_w
            row.append(image[start_y:end_y, start_x:end_x])
        grid.append(row)
    return grid


def read_cell(
    cell: np.ndarray,
    classifier: Optional[DigitClassifier],
    config: PipelineConfig,
) -> CellReading:
    if cv2.countNonZero(cell) <= config.occupancy_threshold:
        return CellReading.blank()
    if classifier is None:
        return CellReading.unknown()

    patch = cv2.resize(cell, (config.patch_size, config.patch_size))
    try:
        value = classifier.classify(patch)
        if value is None:
            return CellReading.unknown()
        value = int(value)
    except Exception:
        logger.warning("Digit classifier failed on a cell", exc_info=True)
        return CellReading.unknown()

    if value == 0:
        return CellReading.blank()
    if 1 <= value <= 9:
        return CellReading.of(value)
    logger.debug("Classifier returned out-of-range value %d", value)
    return CellReading.unknown()


class CellSegmenter:
    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        classifier: Optional[DigitClassifier] = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.classifier = classifier

    def clean(self, rectified: np.ndarray) -> np.ndarray:
        binary = binarize(rectified, self.config.threshold_block_size, self.config.threshold_offset)
        erased = remove_grid_lines(binary, self.config)
        logger.debug("Erased %d grid line segments", erased)
        return binary

    def segment(self, rectified: np.ndarray) -> ObservedBoard:
        cleaned = self.clean(rectified)
        readings = [
            [read_cell(cell, self.classifier, self.config) for cell in row]
            for row in split_into_cells(cleaned)
        ]
        return ObservedBoard(readings)
