import math

import pytest

from lib.coordinate_transform import (
    angle,
    clamp,
    clamp_value,
    distance,
    fit_rect,
    fit_scale,
    is_degenerate,
    midpoint,
)


def test_fit_scale_letterbox():
    assert fit_scale((200, 100), (400, 400)) == 2.0
    assert fit_scale((1920, 1080), (960, 960)) == 0.5


@pytest.mark.parametrize("image, view", [((0, 10), (10, 10)), ((10, 10), (10, 0)), ((-1, 5), (5, 5))])
def test_fit_scale_degenerate(image, view):
    assert is_degenerate(image) or is_degenerate(view)
    assert fit_scale(image, view) == 0.0


def test_fit_rect_centres_image():
    assert fit_rect((200, 100), (400, 400)) == (0.0, 100.0, 400.0, 200.0)


def test_distance_angle_midpoint():
    assert distance((0, 0), (3, 4)) == 5.0
    assert angle((0, 0), (0, 1)) == pytest.approx(math.pi / 2)
    assert angle((0, 0), (-1, 0)) == pytest.approx(math.pi)
    assert midpoint((0, 0), (4, -2)) == (2.0, -1.0)


def test_clamp():
    rect = (10, 20, 100, 50)
    assert clamp((0, 0), rect) == (10, 20)
    assert clamp((500, 500), rect) == (110, 70)
    assert clamp((50, 30), rect) == (50, 30)
    assert clamp_value(5, 0, 3) == 3
