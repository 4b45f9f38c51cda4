from collections import Counter

import numpy as np
import pytest

from plate_core import (
    RED_GREEN, Classification, ConfigurationError, Disk, Palette, Point,
    assign_colors, color_for, get_palette, parse_color,
)


@pytest.mark.parametrize("spec, expected", [
    ("#cf5f47", (207, 95, 71)),
    ("#FFFFFF", (255, 255, 255)),
    ("(1, 2, 3)", (1, 2, 3)),
    ("10,20,30", (10, 20, 30)),
    ([4, 5, 6], (4, 5, 6)),
    ((7, 8, 9), (7, 8, 9)),
])
def test_parse_color(spec, expected):
    assert parse_color(spec) == expected


@pytest.mark.parametrize("spec", ["#12345", "#gg0000", "1,2", "(a, b, c)", [1, 2], 42, (0, 0, 256)])
def test_parse_color_rejects_garbage(spec):
    with pytest.raises(ValueError):
        parse_color(spec)


def test_red_green_palette_sets():
    assert RED_GREEN.inside[0] == (207, 95, 71)
    assert len(RED_GREEN.inside) == 7
    assert RED_GREEN.outside == ((90, 138, 80), (162, 171, 90), (201, 204, 125))
    assert not set(RED_GREEN.inside) & set(RED_GREEN.outside)


def test_get_palette():
    assert get_palette("red_green") is RED_GREEN
    with pytest.raises(ConfigurationError):
        get_palette("blue_yellow")


def test_empty_palette_side_is_rejected():
    with pytest.raises(ConfigurationError):
        Palette.from_specs("broken", [], ["#000000"])


def test_color_for_draws_from_matching_set(rng):
    for _ in range(200):
        assert color_for(Classification.INSIDE, rng) in RED_GREEN.inside
        assert color_for(Classification.OUTSIDE, rng) in RED_GREEN.outside


def test_color_for_picks_with_replacement(rng):
    counts = Counter(color_for(Classification.OUTSIDE, rng) for _ in range(300))
    assert set(counts) == set(RED_GREEN.outside)


def test_color_for_refuses_unclassified(rng):
    with pytest.raises(TypeError):
        color_for(None, rng)


def test_assign_colors_keeps_disk_order():
    disks = [Disk(Point(i * 20, 0), 3.0) for i in range(5)]
    labels = {d: Classification.INSIDE if i % 2 else Classification.OUTSIDE
              for i, d in enumerate(disks)}
    colors = assign_colors(labels, np.random.default_rng(0))
    assert list(colors) == disks
    for d, cls in labels.items():
        assert colors[d] in RED_GREEN.colors(cls)
