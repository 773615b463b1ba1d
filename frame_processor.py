"""Per-frame pipeline driver and the session that keeps the last solution."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import cv2
import numpy as np

from cell_segmenter import CellSegmenter, DigitClassifier, Grid, Mask, ObservedBoard, UnreadableCells
from config import PipelineConfig
from overlay import DrawInstruction, compose_overlay
from solver import SudokuSolver, TooFewGivens, Unsolvable
from sudoku_detector import (
    CornerSet,
    DegenerateWarp,
    InvalidCorners,
    NoBoardDetected,
    PipelineError,
    SudokuDetector,
)

logger = logging.getLogger(__name__)


class FrameStatus(Enum):
    SOLVED = "solved"
    CACHED = "cached"
    NO_BOARD = "no_board"
    INVALID_CORNERS = "invalid_corners"
    DEGENERATE_WARP = "degenerate_warp"
    UNREADABLE_CELLS = "unreadable_cells"
    TOO_FEW_GIVENS = "too_few_givens"
    UNSOLVABLE = "unsolvable"
    MALFORMED_FRAME = "malformed_frame"


_ERROR_STATUS = (
    (NoBoardDetected, FrameStatus.NO_BOARD),
    (InvalidCorners, FrameStatus.INVALID_CORNERS),
    (DegenerateWarp, FrameStatus.DEGENERATE_WARP),
    (UnreadableCells, FrameStatus.UNREADABLE_CELLS),
    (TooFewGivens, FrameStatus.TOO_FEW_GIVENS),
    (Unsolvable, FrameStatus.UNSOLVABLE),
)


def status_for(error: PipelineError) -> FrameStatus:
    for error_type, status in _ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return FrameStatus.NO_BOARD


@dataclass
class SolverSession:
    """Last good solve, kept across frames so the overlay does not flicker.

    Only a new successful solve replaces it; nothing clears it.
    """

    last_solution: Optional[Grid] = None
    last_empty_mask: Optional[Mask] = None
    last_corners: Optional[CornerSet] = None
    last_signature: Optional[tuple] = None

    @property
    def has_solution(self) -> bool:
        return self.last_solution is not None and self.last_empty_mask is not None

    def store(self, solution: Grid, empty_mask: Mask, signature: tuple) -> None:
        self.last_solution = [list(row) for row in solution]
        self.last_empty_mask = [list(row) for row in empty_mask]
        self.last_signature = signature


@dataclass
class FrameResult:
    status: FrameStatus
    corners: CornerSet = field(default_factory=CornerSet.empty)
    board: Optional[ObservedBoard] = None
    solution: Optional[Grid] = None
    instructions: List[DrawInstruction] = field(default_factory=list)
    used_cache: bool = False
    rectified: Optional[np.ndarray] = None


class FrameProcessor:
    """Pushes one frame at a time through detect, warp, read, solve and back-map."""

    def __init__(
        self,
        classifier: Optional[DigitClassifier] = None,
        config: Optional[PipelineConfig] = None,
        session: Optional[SolverSession] = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.detector = SudokuDetector(self.config)
        self.segmenter = CellSegmenter(self.config, classifier)
        self.solver = SudokuSolver(self.config.max_backtracks)
        self.session = session or SolverSession()

    def process(self, frame: np.ndarray) -> FrameResult:
        result = FrameResult(status=FrameStatus.NO_BOARD)
        if frame is None or frame.size == 0:
            result.status = FrameStatus.MALFORMED_FRAME
            return result

        try:
            self._run_stages(frame, result)
        except PipelineError as exc:
            result.status = status_for(exc)
            logger.debug("Frame stopped (%s): %s", result.status.value, exc)
        except cv2.error as exc:
            result.status = FrameStatus.MALFORMED_FRAME
            logger.warning("OpenCV rejected frame: %s", exc)
            return result

        result.instructions = self._overlay(result)
        return result

    def _run_stages(self, frame: np.ndarray, result: FrameResult) -> None:
        edges = self.detector.preprocess(frame)
        corners = self.detector.locate_corners(frame, edges)
        result.corners = corners
        self.session.last_corners = corners

        warp = self.detector.warp(frame, corners)
        result.rectified = warp.warped

        board = self.segmenter.segment(warp.warped)
        result.board = board

        signature = board.signature
        if self.session.has_solution and signature == self.session.last_signature:
            result.solution = [list(row) for row in self.session.last_solution]
            result.status = FrameStatus.CACHED
            return

        solution = self.solver.solve_observed(board, self.config.min_givens)

        self.session.store(solution, board.empty_mask, signature)
        result.solution = solution
        result.status = FrameStatus.SOLVED
        logger.info("Solved board with %d givens", board.given_count)

    def _overlay(self, result: FrameResult) -> List[DrawInstruction]:
        session = self.session
        if not session.has_solution:
            return []

        corners = result.corners if result.corners.is_valid else session.last_corners
        if corners is None or not corners.is_valid:
            return []
        empty_mask = result.board.empty_mask if result.board is not None else session.last_empty_mask

        result.used_cache = result.status is not FrameStatus.SOLVED
        return compose_overlay(corners, empty_mask, session.last_solution, self.config.text_offset)
