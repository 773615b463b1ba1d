"""Sudoku board detection: edge map, outer quadrilateral, corner order and warp."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import cv2
import imutils
import numpy as np

from config import PipelineConfig
from geometry import Point

logger = logging.getLogger(__name__)

MARKER_COLOR = (255, 0, 0)


class PipelineError(ValueError):
    """A frame stage produced a result the next stage cannot use."""


class NoBoardDetected(PipelineError):
    pass


class InvalidCorners(PipelineError):
    pass


class DegenerateWarp(PipelineError):
    pass


@dataclass(frozen=True)
class CornerSet:
    top_left: Optional[Point] = None
    top_right: Optional[Point] = None
    bottom_left: Optional[Point] = None
    bottom_right: Optional[Point] = None

    @classmethod
    def empty(cls) -> "CornerSet":
        return cls()

    @property
    def is_valid(self) -> bool:
        return all(point is not None for point in self.slots())

    def slots(self) -> Tuple[Optional[Point], ...]:
        return (self.top_left, self.top_right, self.bottom_left, self.bottom_right)

    def points(self) -> List[Point]:
        """Return the corners as TL, TR, BL, BR. Raises on an invalid set."""
        if not self.is_valid:
            raise InvalidCorners("corner set has unfilled slots")
        return list(self.slots())  # type: ignore[arg-type]

    def as_array(self) -> np.ndarray:
        return np.array([[p.x, p.y] for p in self.points()], dtype="float32")


@dataclass
class WarpResult:
    warped: np.ndarray
    matrix: np.ndarray
    size: Tuple[int, int]


def to_gray(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return image
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def find_board_contour(edges: np.ndarray, min_area: float) -> Optional[np.ndarray]:
    """Return the largest external contour above ``min_area``.

    Ties keep the first contour found.
    """
    contours = cv2.findContours(edges.copy(), cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_NONE)
    contours = imutils.grab_contours(contours)

    best: Optional[np.ndarray] = None
    best_area = 0.0
    for contour in contours:
        area = cv2.contourArea(contour)
        if area <= min_area:
            continue
        if area > best_area:
            best = contour
            best_area = area
    return best


def approximate_polygon(contour: np.ndarray, epsilon_ratio: float) -> np.ndarray:
    source = contour.astype("float32")
    approx = cv2.approxPolyDP(source, epsilon_ratio * cv2.arcLength(source, True), True)
    return approx.reshape(-1, 2)


def locate_quadrilateral(edges: np.ndarray, config: PipelineConfig) -> Optional[np.ndarray]:
    """Find the four vertices of the board outline in an edge map, if any."""
    contour = find_board_contour(edges, config.min_contour_area)
    if contour is None:
        logger.debug("No contour above %.0f area units", config.min_contour_area)
        return None
    polygon = approximate_polygon(contour, config.poly_epsilon_ratio)
    if len(polygon) != 4:
        logger.debug("Largest contour simplifies to %d vertices", len(polygon))
        return None
    return polygon


def _center_of_mass(vertices: np.ndarray, polygon_order: bool) -> Optional[Tuple[int, int]]:
    """Integer-truncated area centroid of the polygon through ``vertices``.

    With ``polygon_order`` the vertices are taken as the outline order, as
    approxPolyDP returns them. Otherwise they are first sorted by angle around
    their mean, which gives a convex outline regardless of how they were
    listed but can move the centroid of a non-convex quadrilateral.
    """
    if not polygon_order:
        mean = vertices.mean(axis=0)
        angles = np.arctan2(vertices[:, 1] - mean[1], vertices[:, 0] - mean[0])
        vertices = vertices[np.argsort(angles, kind="stable")]
    polygon = vertices.reshape(-1, 1, 2)
    moments = cv2.moments(polygon)
    if abs(moments["m00"]) < 1e-9:
        return None
    return int(moments["m10"] / moments["m00"]), int(moments["m01"] / moments["m00"])


def sort_corners(vertices: Sequence[Sequence[float]], polygon_order: bool = False) -> CornerSet:
    """Label four vertices by their side of the polygon's center of mass.

    Pass ``polygon_order=True`` when the vertices already trace the outline.

    A vertex landing in an already filled quadrant replaces the earlier one;
    a vertex on either center axis is not placed at all.
    """
    points = np.asarray(vertices, dtype="float32").reshape(-1, 2)
    if len(points) != 4:
        return CornerSet.empty()
    center = _center_of_mass(points, polygon_order)
    if center is None:
        return CornerSet.empty()
    center_x, center_y = center

    slots: List[Optional[Point]] = [None, None, None, None]
    for x, y in points:
        if x < center_x and y < center_y:
            index = 0
        elif x > center_x and y < center_y:
            index = 1
        elif x < center_x and y > center_y:
            index = 2
        elif x > center_x and y > center_y:
            index = 3
        else:
            continue
        if slots[index] is not None:
            logger.debug("Corner quadrant %d hit twice, keeping (%.1f, %.1f)", index, x, y)
        slots[index] = Point(float(x), float(y))
    return CornerSet(*slots)


def warp_board(frame: np.ndarray, corners: CornerSet, min_size: int = 1) -> WarpResult:
    """Rectify the board into an axis-aligned single-channel image."""
    top_left, top_right, bottom_left, _ = corners.points()
    width = top_right.x - top_left.x
    height = bottom_left.y - top_right.y
    if width < min_size or height < min_size:
        raise DegenerateWarp(f"target size {width:.1f}x{height:.1f} is too small")

    dst = np.array(
        [
            [0, 0],
            [width, 0],
            [0, height],
            [width, height],
        ],
        dtype="float32",
    )
    try:
        matrix = cv2.getPerspectiveTransform(corners.as_array(), dst)
    except cv2.error as exc:
        raise DegenerateWarp(str(exc)) from exc
    if not np.isfinite(matrix).all() or abs(np.linalg.det(matrix)) < 1e-12:
        raise DegenerateWarp("perspective transform is singular")

    size = (int(width), int(height))
    warped = cv2.warpPerspective(frame, matrix, size)
    return WarpResult(warped=to_gray(warped), matrix=matrix, size=(size[1], size[0]))


class SudokuDetector:
    def __init__(self, config: Optional[PipelineConfig] = None) -> None:
        self.config = config or PipelineConfig()

    def preprocess(self, frame: np.ndarray) -> np.ndarray:
        cfg = self.config
        blurred = cv2.GaussianBlur(frame, (cfg.blur_kernel, cfg.blur_kernel), cfg.blur_sigma)
        gray = to_gray(blurred)
        edges = cv2.Canny(gray, cfg.canny_low, cfg.canny_high)
        return cv2.dilate(edges, None, iterations=cfg.dilate_iterations)

    def locate_corners(self, frame: np.ndarray, edges: Optional[np.ndarray] = None) -> CornerSet:
        """Find and label the board corners, marking them on ``frame``.

        Raises NoBoardDetected or InvalidCorners; the frame is only marked
        once a quadrilateral has been found.
        """
        if edges is None:
            edges = self.preprocess(frame)
        vertices = locate_quadrilateral(edges, self.config)
        if vertices is None:
            raise NoBoardDetected("Sudoku grid not detected")

        corners = sort_corners(vertices, polygon_order=True)
        if self.config.mark_corners:
            self.mark_corners(frame, corners)
        if not corners.is_valid:
            raise InvalidCorners("could not assign every corner")
        return corners

    def mark_corners(self, frame: np.ndarray, corners: CornerSet) -> None:
        for point in corners.slots():
            if point is None:
                continue
            cv2.drawMarker(
                frame,
                point.as_pixel(),
                MARKER_COLOR,
                cv2.MARKER_CROSS,
                self.config.marker_size,
                self.config.marker_thickness,
            )

    def warp(self, frame: np.ndarray, corners: CornerSet) -> WarpResult:
        return warp_board(frame, corners, self.config.min_warp_size)
