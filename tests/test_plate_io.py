import csv
import xml.etree.ElementTree as ET

import cv2
import numpy as np
import pytest

from plate_core import Classification, ConfigurationError, Disk, Point
from plate_io import (
    MASK_OPACITY, output_stem, render_text_mask, write_image,
    write_layout_csv, write_layout_svg,
)


def test_text_mask_shape_and_padding():
    mask = render_text_mask("12", font_scale=1.0, thickness=2, padding=15)
    assert mask.ndim == 2
    assert mask.dtype == np.uint8
    assert mask.max() == MASK_OPACITY
    # the padding band stays transparent
    assert not mask[:10, :].any()
    assert not mask[:, :10].any()


def test_text_mask_grows_with_text():
    short = render_text_mask("1", font_scale=1.0, thickness=2)
    long = render_text_mask("1111", font_scale=1.0, thickness=2)
    assert short.shape[0] == long.shape[0]
    assert long.shape[1] > short.shape[1]


def test_text_mask_is_deterministic():
    a = render_text_mask("Hi", font_scale=2.0, thickness=4)
    b = render_text_mask("Hi", font_scale=2.0, thickness=4)
    assert np.array_equal(a, b)


@pytest.mark.parametrize("kwargs", [
    {"text": ""},
    {"text": "   "},
    {"text": "ok", "font": "comic_sans"},
    {"text": "ok", "font_scale": 0},
    {"text": "ok", "thickness": 0},
    {"text": "ok", "padding": -1},
])
def test_text_mask_rejects_bad_input(kwargs):
    with pytest.raises(ConfigurationError):
        render_text_mask(**kwargs)


@pytest.mark.parametrize("text, stem", [
    ("42", "42"),
    ("Hello World", "Hello-World"),
    ("a/b", "a-b"),
    ("../x", "x"),
    ("///", "plate"),
])
def test_output_stem(text, stem):
    assert output_stem(text) == stem


def test_output_stem_is_lossy():
    # documented: distinct texts may map to the same file
    assert output_stem("a/b") == output_stem("a-b") == output_stem("a b")


def test_text_mask_options_are_keyword_only():
    with pytest.raises(TypeError):
        render_text_mask("ok", "simplex")


def test_write_image_round_trip(tmp_path):
    rgb = np.zeros((5, 7, 3), dtype=np.uint8)
    rgb[..., 0] = 200
    path = write_image(str(tmp_path / "out" / "plate.png"), rgb)
    back = cv2.imread(path, cv2.IMREAD_COLOR)
    assert back.shape == (5, 7, 3)
    # stored as BGR on disk
    assert tuple(back[0, 0]) == (0, 0, 200)


def test_write_image_failure_is_os_error(tmp_path):
    with pytest.raises(OSError):
        write_image(str(tmp_path / "plate.notaformat"), np.zeros((2, 2, 3), dtype=np.uint8))


@pytest.fixture
def layout():
    a = Disk(Point(30, 5), 4.25)
    b = Disk(Point(3, 20), 3.0)
    c = Disk(Point(10, 5), 6.9)
    labels = {a: Classification.INSIDE, b: Classification.OUTSIDE, c: Classification.INSIDE}
    colors = {a: (207, 95, 71), b: (90, 138, 80), c: (253, 149, 0)}
    return labels, colors


def test_layout_csv(tmp_path, layout):
    labels, colors = layout
    path = tmp_path / "layout.csv"
    write_layout_csv(str(path), labels, colors)
    with open(path, newline="") as f:
        rows = list(csv.DictReader(f))
    assert [(r["x"], r["y"]) for r in rows] == [("10", "5"), ("30", "5"), ("3", "20")]
    assert rows[1] == {"x": "30", "y": "5", "radius": "4.250", "classification": "inside",
                       "color_rgb": "[207, 95, 71]"}
    assert rows[2]["classification"] == "outside"


def test_layout_svg(tmp_path, layout):
    labels, colors = layout
    path = tmp_path / "layout.svg"
    write_layout_svg(str(path), 40, 30, labels, colors)
    root = ET.parse(path).getroot()
    ns = {"svg": "http://www.w3.org/2000/svg"}
    assert root.get("viewBox") == "0 0 40 30"
    assert root.find("svg:rect", ns).get("fill") == "rgb(255,255,255)"
    inside = root.findall("svg:g[@id='disks-inside']/svg:circle", ns)
    outside = root.findall("svg:g[@id='disks-outside']/svg:circle", ns)
    assert len(inside) == 2
    assert len(outside) == 1
    assert outside[0].get("fill") == "rgb(90,138,80)"
    assert outside[0].get("r") == "3.000"
