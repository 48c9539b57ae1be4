"""
Coordinate helpers for normalized page regions.

Two coordinate systems meet here:
- screen / normalized space: origin top-left, Y grows downward, values 0..1
- PDF user space: origin bottom-left, Y grows upward, units are points

Only `visual_to_user` converts between them. It also follows the page's
/Rotate and the offset of its visible box.
"""
from __future__ import annotations

from typing import NamedTuple, Optional, Tuple


NormRect = Tuple[float, float, float, float]  # left, top, width, height
Matrix = Tuple[float, float, float, float, float, float]


class Point(NamedTuple):
    x: float
    y: float


class PdfRect(NamedTuple):
    """Rectangle in PDF points, (x, y) is the bottom-left corner."""
    x: float
    y: float
    width: float
    height: float


def normalize_selection(
    x1: float,
    y1: float,
    x2: float,
    y2: float,
    container_width: float,
    container_height: float,
) -> NormRect:
    """
    Turn two drag corners (container pixels) into a normalized rectangle.

    Corners may arrive in any order; the result always has non-negative size.
    """
    if container_width <= 0 or container_height <= 0:
        raise ValueError(
            f"container size must be positive, got {container_width}x{container_height}"
        )

    left = min(x1, x2) / container_width
    top = min(y1, y2) / container_height
    right = max(x1, x2) / container_width
    bottom = max(y1, y2) / container_height

    return left, top, right - left, bottom - top


def clamp_point(point: Point, width: float, height: float) -> Point:
    """Clamp a pointer position to the container bounds."""
    return Point(
        max(0.0, min(point.x, width)),
        max(0.0, min(point.y, height)),
    )


def visual_to_user(
    x: float,
    y: float,
    page_width: float,
    page_height: float,
    rotation: int = 0,
    origin: Tuple[float, float] = (0.0, 0.0),
) -> Tuple[float, float]:
    """
    Map a point on the displayed page into PDF user space.

    (x, y) is in points from the visual top-left corner, Y down. The displayed
    page is the visible box turned `rotation` degrees clockwise, sized
    page_width x page_height after the turn. `origin` is the bottom-left
    corner of the visible box in user space.
    """
    x0, y0 = origin
    rot = rotation % 360

    if rot == 0:
        return x0 + x, y0 + page_height - y
    elif rot == 90:
        # visual left edge is the unrotated bottom, visual top the unrotated left
        return x0 + y, y0 + x
    elif rot == 180:
        return x0 + page_width - x, y0 + y
    elif rot == 270:
        return x0 + page_height - y, y0 + page_width - x

    raise ValueError(f"page rotation must be a multiple of 90, got {rotation}")


def to_pdf_rect(
    left: float,
    top: float,
    width: float,
    height: float,
    page_width: float,
    page_height: float,
    rotation: int = 0,
    origin: Tuple[float, float] = (0.0, 0.0),
) -> PdfRect:
    """
    Convert a normalized top-left rectangle into PDF points.

    `top` is measured from the visual top of the page, PDF drawing starts at
    the bottom-left, hence y = H - top*H - height*H on an unrotated page with
    its box at 0,0. Rotated pages swap and mirror axes; see visual_to_user.
    """
    ax, ay = visual_to_user(
        left * page_width, top * page_height, page_width, page_height, rotation, origin
    )
    bx, by = visual_to_user(
        (left + width) * page_width, (top + height) * page_height,
        page_width, page_height, rotation, origin,
    )
    return PdfRect(min(ax, bx), min(ay, by), abs(bx - ax), abs(by - ay))


def to_pdf_matrix(
    left: float,
    top: float,
    width: float,
    height: float,
    page_width: float,
    page_height: float,
    rotation: int = 0,
    origin: Tuple[float, float] = (0.0, 0.0),
) -> Matrix:
    """
    (a, b, c, d, e, f) placing the unit square on the normalized rectangle so
    that image content reads upright on the displayed page.
    """
    x = left * page_width
    y = top * page_height
    w = width * page_width
    h = height * page_height

    # unit square corners: (0,0) visual bottom-left, (1,0) bottom-right, (0,1) top-left
    ex, ey = visual_to_user(x, y + h, page_width, page_height, rotation, origin)
    rx, ry = visual_to_user(x + w, y + h, page_width, page_height, rotation, origin)
    ux, uy = visual_to_user(x, y, page_width, page_height, rotation, origin)
    return (rx - ex, ry - ey, ux - ex, uy - ey, ex, ey)


def region_out_of_bounds(left: float, top: float, width: float, height: float) -> bool:
    """True when any part of the rectangle falls outside the unit square."""
    # Same tolerance as the mark validators for float round-off from the client.
    tol = 1e-3
    return (
        left < -tol
        or top < -tol
        or width <= 0
        or height <= 0
        or left + width > 1 + tol
        or top + height > 1 + tol
    )


def fit_to_page(left: float, top: float, width: float, height: float) -> Optional[NormRect]:
    """
    Intersect a normalized rectangle with the page.

    Returns None when nothing with positive area is left.
    """
    x0 = max(0.0, left)
    y0 = max(0.0, top)
    x1 = min(1.0, left + width)
    y1 = min(1.0, top + height)

    if x1 <= x0 or y1 <= y0:
        return None
    return x0, y0, x1 - x0, y1 - y0


def center_rect_at(x: float, y: float, width: float, height: float) -> NormRect:
    """
    Normalized rectangle of the given size centered on (x, y).

    The rectangle is shifted back onto the page when it would stick out;
    it is never resized. A rectangle larger than the page is pinned at 0.
    """
    left = x - width / 2
    top = y - height / 2

    left = max(0.0, min(left, 1.0 - width))
    top = max(0.0, min(top, 1.0 - height))
    return left, top, width, height
