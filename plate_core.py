"""
plate_core.py

Dot packing, classification and compositing for Ishihara-style plates.

A plate is built in three passes over a shared random source:

  1. :func:`pack` scatters non-overlapping disks over a ``width x height``
     canvas until they cover a target fraction of its area.
  2. :func:`classify` labels each disk INSIDE or OUTSIDE by sampling an
     opacity mask at the disk center (zero opacity = inside).
  3. :func:`composite` paints the labelled disks onto a white canvas with
     colors drawn from the palette of each label.

Typical usage:
    rng = np.random.default_rng(7)
    disks = pack(w, h, rng)
    labels = classify(disks, mask)
    rgb = composite(w, h, labels, rng)
"""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]

# =========================
# Configurable constants
# =========================
# Disk sizes (px)
MAX_RADIUS = 6.9
MIN_RADIUS = 3.0
GAP = 1.0                       # minimum clearance between neighbouring disks

# Stop once disks cover this fraction of the canvas
COVERAGE_RATIO = 0.57

# Consecutive rejected candidates before giving up on the coverage goal
MAX_REJECTIONS = 200_000

# Drawing
BACKGROUND_RGB: RGB = (255, 255, 255)
DRAW_FILLED_THICKNESS = -1
DRAW_LINE_TYPE = cv2.LINE_8     # no anti-aliasing: pixels stay on the palette


# =========================
# Errors
# =========================
class PlateError(Exception):
    """Base class for plate generation failures."""


class ConfigurationError(PlateError, ValueError):
    """Raised for malformed inputs before any packing work starts."""


class PackingUnreachable(PlateError, RuntimeError):
    """Raised when the coverage goal cannot be met within the rejection cap."""

    def __init__(self, msg: str, disks: int, coverage: float):
        super().__init__(msg)
        self.disks = disks
        self.coverage = coverage


def ensure_bool(cond: bool, msg: str):
    if not cond:
        raise ConfigurationError(msg)


# =========================
# Geometry
# =========================
@dataclass(frozen=True)
class Point:
    x: int
    y: int

    def distance(self, other: Point) -> float:
        return math.hypot(other.x - self.x, other.y - self.y)

    def __str__(self) -> str:
        return f"({self.x}, {self.y})"


@dataclass(frozen=True)
class Disk:
    center: Point
    radius: float

    @property
    def area(self) -> float:
        return math.pi * self.radius ** 2

    def clearance(self, other: Disk) -> float:
        """Free space between the rims of two disks (negative if they overlap)."""
        return self.center.distance(other.center) - self.radius - other.radius

    def __str__(self) -> str:
        return f"{self.center}, {self.radius}"


def covered_area(disks: Iterable[Disk]) -> float:
    return sum(d.area for d in disks)


# =========================
# Palette / colorizer
# =========================
class Classification(Enum):
    INSIDE = "inside"
    OUTSIDE = "outside"


def parse_color(value) -> RGB:
    """
    Coerce a color spec to an (R, G, B) tuple of ints.

    Accepts ``"#rrggbb"``, ``"(r, g, b)"`` / ``"r,g,b"`` strings and
    3-element lists or tuples.
    """
    if isinstance(value, str):
        s = value.strip()
        if s.startswith("#"):
            digits = s[1:]
            if len(digits) != 6:
                raise ValueError(f"Bad color: {value}")
            try:
                return tuple(int(digits[i:i + 2], 16) for i in (0, 2, 4))
            except ValueError:
                raise ValueError(f"Bad color: {value}") from None
        parts = [p.strip() for p in s.strip("()[]").split(",")]
        if len(parts) != 3:
            raise ValueError(f"Bad color: {value}")
        try:
            rgb = tuple(int(p) for p in parts)
        except ValueError:
            raise ValueError(f"Bad color: {value}") from None
    elif isinstance(value, (list, tuple)) and len(value) == 3:
        rgb = tuple(int(v) for v in value)
    else:
        raise ValueError(f"Bad color: {value}")
    if any(v < 0 or v > 255 for v in rgb):
        raise ValueError(f"Color channel out of range: {value}")
    return rgb


@dataclass(frozen=True)
class Palette:
    name: str
    inside: Tuple[RGB, ...]
    outside: Tuple[RGB, ...]

    @classmethod
    def from_specs(cls, name: str, inside: Sequence, outside: Sequence) -> Palette:
        inside_rgb = tuple(parse_color(c) for c in inside)
        outside_rgb = tuple(parse_color(c) for c in outside)
        ensure_bool(len(inside_rgb) >= 1 and len(outside_rgb) >= 1,
                    f"Palette '{name}' needs at least one inside and one outside color.")
        return cls(name, inside_rgb, outside_rgb)

    def colors(self, classification: Classification) -> Tuple[RGB, ...]:
        if classification is Classification.INSIDE:
            return self.inside
        if classification is Classification.OUTSIDE:
            return self.outside
        raise TypeError(f"Expected a Classification, got {classification!r}")

    def all_colors(self) -> set:
        return set(self.inside) | set(self.outside)


# Red, red, orange, yellow, light red, light red, tan
RED_GREEN_INSIDE = ["#cf5f47", "#cf5f47", "#fd9500", "#ffd500", "#ee8568", "#ee8568", "#eebd7a"]
# Dark green, green, light green
RED_GREEN_OUTSIDE = ["#5a8a50", "#a2ab5a", "#c9cc7d"]

RED_GREEN = Palette.from_specs("red_green", RED_GREEN_INSIDE, RED_GREEN_OUTSIDE)

PALETTES: Dict[str, Palette] = {RED_GREEN.name: RED_GREEN}


def get_palette(name: str) -> Palette:
    try:
        return PALETTES[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown palette '{name}' (available: {sorted(PALETTES)})") from None


def color_for(classification: Classification, rng: np.random.Generator,
              palette: Palette = RED_GREEN) -> RGB:
    """Pick one color uniformly (with replacement) from the set for ``classification``."""
    colors = palette.colors(classification)
    return colors[int(rng.integers(len(colors)))]


def assign_colors(labels: Mapping[Disk, Classification], rng: np.random.Generator,
                  palette: Palette = RED_GREEN) -> Dict[Disk, RGB]:
    return {disk: color_for(cls, rng, palette) for disk, cls in labels.items()}


# =========================
# Disk packing
# =========================
def _validate_packing(width: int, height: int, max_radius: float, min_radius: float,
                      gap: float, coverage_ratio: float, max_rejections: int):
    ensure_bool(int(width) > 0 and int(height) > 0,
                f"Canvas must have positive dimensions, got {width}x{height}.")
    ensure_bool(min_radius > 0, f"min_radius must be > 0, got {min_radius}.")
    ensure_bool(min_radius <= max_radius,
                f"min_radius ({min_radius}) must not exceed max_radius ({max_radius}).")
    ensure_bool(gap >= 0, f"gap must be >= 0, got {gap}.")
    ensure_bool(0 < coverage_ratio <= 1,
                f"coverage_ratio must be in (0, 1], got {coverage_ratio}.")
    ensure_bool(int(max_rejections) >= 1, f"max_rejections must be >= 1, got {max_rejections}.")


def pack(width: int, height: int, rng: np.random.Generator, *,
         max_radius: float = MAX_RADIUS,
         min_radius: float = MIN_RADIUS,
         gap: float = GAP,
         coverage_ratio: float = COVERAGE_RATIO,
         max_rejections: int = MAX_REJECTIONS,
         keep_inside_canvas: bool = False) -> List[Disk]:
    """
    Randomized incremental disk packing.

    Candidate centers are drawn uniformly over the canvas. Each candidate
    gets the largest radius (capped at ``max_radius``) that keeps ``gap``
    clearance to every disk placed so far; candidates whose radius would
    fall below ``min_radius`` are discarded. Packing stops once the summed
    disk area reaches ``coverage_ratio * width * height``.

    Disks near the border may extend past the canvas unless
    ``keep_inside_canvas`` is set, in which case the distance to the
    nearest edge also bounds the radius.

    Args:
        width: Canvas width in pixels.
        height: Canvas height in pixels.
        rng: Random source; the same seed yields the same disks.
        max_radius: Upper bound for any disk radius.
        min_radius: Smallest radius a disk may be placed with.
        gap: Minimum clearance between the rims of two disks.
        coverage_ratio: Fraction of the canvas area to cover.
        max_rejections: Consecutive rejected candidates tolerated before
            the goal is declared unreachable.
        keep_inside_canvas: Shrink disks so they never cross the border.

    Returns:
        Disks in placement order.

    Raises:
        ConfigurationError: Invalid dimensions or parameters.
        PackingUnreachable: ``max_rejections`` candidates in a row were
            rejected before the coverage goal was met.
    """
    _validate_packing(width, height, max_radius, min_radius, gap, coverage_ratio, max_rejections)
    width, height = int(width), int(height)

    goal_area = coverage_ratio * width * height
    # every accepted disk adds at least pi * min_radius^2
    capacity = int(goal_area / (math.pi * min_radius ** 2)) + 1
    xs = np.empty(capacity, dtype=np.float64)
    ys = np.empty(capacity, dtype=np.float64)
    rs = np.empty(capacity, dtype=np.float64)

    disks: List[Disk] = []
    area = 0.0
    rejected = 0

    while area < goal_area:
        x = int(rng.integers(0, width))
        y = int(rng.integers(0, height))

        radius = max_radius
        n = len(disks)
        if n:
            edge = np.hypot(xs[:n] - x, ys[:n] - y) - rs[:n] - gap
            radius = min(radius, float(edge.min()))
        if keep_inside_canvas:
            radius = float(min(radius, x, y, width - 1 - x, height - 1 - y))

        if radius < min_radius:
            rejected += 1
            if rejected >= max_rejections:
                coverage = area / (width * height)
                raise PackingUnreachable(
                    f"Coverage goal {coverage_ratio:.2f} unreachable on {width}x{height} canvas: "
                    f"{max_rejections} consecutive candidates rejected "
                    f"({n} disks, coverage={coverage:.3f}).",
                    disks=n, coverage=coverage)
            continue

        rejected = 0
        disk = Disk(Point(x, y), radius)
        xs[n], ys[n], rs[n] = x, y, radius
        disks.append(disk)
        area += disk.area
        logger.debug("%s", disk)

    logger.info("[PACK] canvas=%dx%d disks=%d coverage=%.3f",
                width, height, len(disks), area / (width * height))
    return disks


# =========================
# Classification
# =========================
def opacity_grid(mask: np.ndarray) -> np.ndarray:
    """Return the 2D opacity grid of ``mask`` (alpha channel for RGBA input)."""
    grid = np.asarray(mask)
    if grid.ndim == 3 and grid.shape[2] == 4:
        grid = grid[:, :, 3]
    ensure_bool(grid.ndim == 2, f"Mask must be 2D (or RGBA), got shape {np.shape(mask)}.")
    ensure_bool(grid.shape[0] > 0 and grid.shape[1] > 0,
                f"Mask must have positive dimensions, got shape {grid.shape}.")
    return grid


def classify(disks: Iterable[Disk], mask: np.ndarray) -> Dict[Disk, Classification]:
    """
    Label each disk by the mask value under its center pixel.

    Exactly zero opacity means INSIDE; anything else is OUTSIDE. Only the
    center is sampled, so a disk straddling the silhouette edge takes the
    label of the side its center falls on.
    """
    grid = opacity_grid(mask)
    labels: Dict[Disk, Classification] = {}
    for d in disks:
        inside = grid[d.center.y, d.center.x] == 0
        labels[d] = Classification.INSIDE if inside else Classification.OUTSIDE
    return labels


# =========================
# Compositing
# =========================
def paint(width: int, height: int, colors: Mapping[Disk, RGB]) -> np.ndarray:
    """Draw filled disks on an opaque white ``(height, width, 3)`` RGB canvas."""
    canvas = np.empty((int(height), int(width), 3), dtype=np.uint8)
    canvas[:] = BACKGROUND_RGB
    for d, rgb in colors.items():
        cv2.circle(canvas, (d.center.x, d.center.y), int(d.radius),
                   tuple(int(v) for v in rgb),
                   thickness=DRAW_FILLED_THICKNESS, lineType=DRAW_LINE_TYPE)
    return canvas


def composite(width: int, height: int, labels: Mapping[Disk, Classification],
              rng: np.random.Generator, palette: Palette = RED_GREEN) -> np.ndarray:
    return paint(width, height, assign_colors(labels, rng, palette))
