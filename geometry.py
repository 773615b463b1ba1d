"""Points, lines, line intersection and integer line walks."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

PARALLEL_EPSILON = 1e-9


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def as_pixel(self) -> Tuple[int, int]:
        return int(round(self.x)), int(round(self.y))

    def offset(self, dx: float, dy: float) -> "Point":
        return Point(self.x + dx, self.y + dy)


@dataclass(frozen=True)
class Line:
    start: Point
    end: Point


def find_intersection(first: Line, second: Line) -> Optional[Point]:
    """Intersect two infinite lines, or return None when they are parallel."""
    a1 = first.end.y - first.start.y
    b1 = first.start.x - first.end.x
    c1 = a1 * first.start.x + b1 * first.start.y

    a2 = second.end.y - second.start.y
    b2 = second.start.x - second.end.x
    c2 = a2 * second.start.x + b2 * second.start.y

    delta = a1 * b2 - a2 * b1
    if abs(delta) < PARALLEL_EPSILON:
        return None
    return Point((b2 * c1 - b1 * c2) / delta, (a1 * c2 - a2 * c1) / delta)


def line_walk(start: Point, end: Point) -> List[Tuple[int, int]]:
    """Bresenham walk over every pixel from start to end, both inclusive."""
    x0, y0 = start.as_pixel()
    x1, y1 = end.as_pixel()
    dx = abs(x1 - x0)
    dy = -abs(y1 - y0)
    step_x = 1 if x0 < x1 else -1
    step_y = 1 if y0 < y1 else -1
    err = dx + dy

    pixels: List[Tuple[int, int]] = []
    while True:
        pixels.append((x0, y0))
        if x0 == x1 and y0 == y1:
            break
        doubled = 2 * err
        if doubled >= dy:
            err += dy
            x0 += step_x
        if doubled <= dx:
            err += dx
            y0 += step_y
    return pixels


def subdivide(start: Point, end: Point, parts: int) -> List[Point]:
    """Split the pixel walk from start to end into ``parts`` equal steps.

    Returns ``parts + 1`` points, each taken from the walk itself so the
    subdivision stays on the pixel grid.
    """
    if parts < 1:
        raise ValueError("parts must be positive")
    pixels = line_walk(start, end)
    last = len(pixels) - 1
    points: List[Point] = []
    for k in range(parts + 1):
        x, y = pixels[int(round(k * last / parts))]
        points.append(Point(float(x), float(y)))
    return points
