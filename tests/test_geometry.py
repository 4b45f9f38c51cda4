import math

import pytest

from plate_core import Disk, Point, covered_area


def test_point_distance():
    assert Point(0, 0).distance(Point(3, 4)) == 5.0
    assert Point(-2, 5).distance(Point(-2, 5)) == 0.0


def test_point_is_immutable():
    p = Point(1, 2)
    with pytest.raises(AttributeError):
        p.x = 3


def test_disk_str_matches_layout_log_format():
    assert str(Disk(Point(4, 9), 3.5)) == "(4, 9), 3.5"


def test_disk_clearance():
    a = Disk(Point(0, 0), 3.0)
    b = Disk(Point(10, 0), 4.0)
    assert a.clearance(b) == pytest.approx(3.0)
    assert b.clearance(a) == pytest.approx(3.0)


def test_covered_area():
    disks = [Disk(Point(0, 0), 1.0), Disk(Point(5, 5), 2.0)]
    assert covered_area(disks) == pytest.approx(5 * math.pi)
    assert covered_area([]) == 0
