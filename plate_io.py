"""
plate_io.py

Everything that touches pixels coming in or files going out:

  - :func:`render_text_mask` turns the hidden message into an opacity grid
    (OpenCV Hershey fonts), the mask consumed by :func:`plate_core.classify`.
  - :func:`write_image` encodes the composited RGB canvas as PNG.
  - :func:`write_layout_csv` / :func:`write_layout_svg` export the disk
    layout for inspection or vector printing.
"""

from __future__ import annotations
import csv
import logging
import os
import xml.etree.ElementTree as ET
from typing import Dict, Mapping

import cv2
import numpy as np

from plate_core import RGB, BACKGROUND_RGB, Classification, ConfigurationError, Disk, ensure_bool

logger = logging.getLogger(__name__)

# =========================
# Text mask
# =========================
DEFAULT_FONT = "simplex"
DEFAULT_FONT_SCALE = 8.0
DEFAULT_THICKNESS = 28
DEFAULT_PADDING = 20
MASK_OPACITY = 255
MASK_LINE_TYPE = cv2.LINE_AA    # soft glyph edges count as opaque

FONT_FACES: Dict[str, int] = {
    "simplex": cv2.FONT_HERSHEY_SIMPLEX,
    "plain": cv2.FONT_HERSHEY_PLAIN,
    "duplex": cv2.FONT_HERSHEY_DUPLEX,
    "complex": cv2.FONT_HERSHEY_COMPLEX,
    "triplex": cv2.FONT_HERSHEY_TRIPLEX,
    "complex_small": cv2.FONT_HERSHEY_COMPLEX_SMALL,
    "script_simplex": cv2.FONT_HERSHEY_SCRIPT_SIMPLEX,
    "script_complex": cv2.FONT_HERSHEY_SCRIPT_COMPLEX,
}


def font_face(name: str, italic: bool = False) -> int:
    try:
        face = FONT_FACES[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown font '{name}' (available: {sorted(FONT_FACES)})") from None
    return face | cv2.FONT_ITALIC if italic else face


def render_text_mask(text: str, *,
                     font: str = DEFAULT_FONT,
                     font_scale: float = DEFAULT_FONT_SCALE,
                     thickness: int = DEFAULT_THICKNESS,
                     padding: int = DEFAULT_PADDING,
                     italic: bool = False) -> np.ndarray:
    """
    Rasterize ``text`` into an opacity grid.

    Glyph strokes get opacity ``MASK_OPACITY``; everything else stays 0.
    The grid is sized to the rendered text (including the baseline
    descent) plus ``padding`` pixels on every side.

    Args:
        text: Message to hide in the plate; a single line.
        font: Key of :data:`FONT_FACES`.
        font_scale: OpenCV font scale (1.0 is roughly 22 px cap height).
        thickness: Stroke thickness in pixels.
        padding: Blank border around the text in pixels.
        italic: Slant the Hershey glyphs.

    Returns:
        ``(height, width)`` uint8 array.
    """
    ensure_bool(isinstance(text, str) and text.strip() != "", "Text to encode must not be empty.")
    ensure_bool(font_scale > 0, f"font_scale must be > 0, got {font_scale}.")
    ensure_bool(int(thickness) >= 1, f"thickness must be >= 1, got {thickness}.")
    ensure_bool(int(padding) >= 0, f"padding must be >= 0, got {padding}.")
    face = font_face(font, italic)
    thickness, padding = int(thickness), int(padding)

    (text_w, text_h), baseline = cv2.getTextSize(text, face, float(font_scale), thickness)
    width = text_w + 2 * padding
    height = text_h + baseline + 2 * padding
    ensure_bool(width > 0 and height > 0, f"Text '{text}' rendered to an empty mask.")

    mask = np.zeros((height, width), dtype=np.uint8)
    cv2.putText(mask, text, (padding, padding + text_h), face, float(font_scale),
                MASK_OPACITY, thickness, MASK_LINE_TYPE)
    logger.info("[MASK] text=%r font=%s size=%dx%d", text, font, width, height)
    return mask


# =========================
# Output naming / image codec
# =========================
def _sanitize_id(text: str) -> str:
    s = "".join(ch if ch.isalnum() or ch in "-_." else "-" for ch in (text or ""))
    return s.strip("-.") or "plate"


def output_stem(text: str) -> str:
    """
    File stem derived from the hidden text; same text, same name.

    Characters outside ``[A-Za-z0-9-_.]`` become ``-``, so distinct texts
    can share a stem (``"a/b"`` and ``"a-b"`` both give ``a-b``) and a
    later plate overwrites the earlier file in the same output directory.
    """
    return _sanitize_id(text)


def write_image(path: str, rgb: np.ndarray) -> str:
    """Encode an RGB canvas to ``path`` (format from the extension)."""
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    try:
        ok = cv2.imwrite(path, cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR))
    except cv2.error as e:
        raise OSError(f"Failed to write image: {path} ({e})") from e
    if not ok:
        raise OSError(f"Failed to write image: {path}")
    return path


# =========================
# Layout export
# =========================
CSV_FIELDS = ["x", "y", "radius", "classification", "color_rgb"]


def write_layout_csv(csv_path: str,
                     labels: Mapping[Disk, Classification],
                     colors: Mapping[Disk, RGB]) -> None:
    """
    Write one CSV row per disk: center, radius, label and painted color.

    Rows are ordered top-to-bottom, then left-to-right.
    """
    rows = []
    for d, cls in labels.items():
        rgb = colors[d]
        rows.append({
            "x": d.center.x,
            "y": d.center.y,
            "radius": f"{d.radius:.3f}",
            "classification": cls.value,
            "color_rgb": f"[{rgb[0]}, {rgb[1]}, {rgb[2]}]",
        })
    rows.sort(key=lambda r: (r["y"], r["x"]))

    parent = os.path.dirname(csv_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(csv_path, "w", newline="") as f:
        w = csv.DictWriter(f, fieldnames=CSV_FIELDS)
        w.writeheader()
        w.writerows(rows)


def write_layout_svg(svg_path: str,
                     width: int,
                     height: int,
                     labels: Mapping[Disk, Classification],
                     colors: Mapping[Disk, RGB]) -> None:
    """
    Write the plate as an SVG in pixel units.

    A white background rect is followed by one group per classification,
    each holding that label's circles with their exact (unrounded) radii.
    """
    svg = ET.Element(
        "svg",
        xmlns="http://www.w3.org/2000/svg",
        version="1.1",
        width=str(width),
        height=str(height),
        viewBox=f"0 0 {width} {height}",
    )
    bg = BACKGROUND_RGB
    ET.SubElement(svg, "rect", x="0", y="0", width=str(width), height=str(height),
                  fill=f"rgb({bg[0]},{bg[1]},{bg[2]})")

    groups = {cls: ET.SubElement(svg, "g", id=f"disks-{cls.value}") for cls in Classification}
    for d, cls in labels.items():
        rgb = colors[d]
        el = ET.SubElement(groups[cls], "circle",
                           cx=str(d.center.x), cy=str(d.center.y), r=f"{d.radius:.3f}",
                           fill=f"rgb({rgb[0]},{rgb[1]},{rgb[2]})")
        el.set("data-classification", cls.value)

    parent = os.path.dirname(svg_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    ET.ElementTree(svg).write(svg_path, encoding="utf-8", xml_declaration=True)
