import numpy as np
import pytest

from lib.view_transform import (
    MAX_ZOOM,
    MIN_ZOOM,
    Rotation,
    ViewTransform,
    wheel_zoom_factor,
)

IMAGE = (200, 100)
VIEW = (400, 400)


def approx_pt(p, q, tol=1e-6):
    return abs(p[0] - q[0]) <= tol * max(1.0, abs(q[0])) and abs(p[1] - q[1]) <= tol * max(1.0, abs(q[1]))


def test_letterbox_at_identity():
    t = ViewTransform()
    # fit = min(400/200, 400/100) = 2, image drawn 400x200 centred vertically
    assert approx_pt(t.map_image_to_view((0, 0), IMAGE, VIEW), (0, 100))
    assert approx_pt(t.map_image_to_view((200, 100), IMAGE, VIEW), (400, 300))
    assert approx_pt(t.map_image_to_view((100, 50), IMAGE, VIEW), (200, 200))


def test_corners_in_view():
    corners = ViewTransform().corners_in_view(IMAGE, VIEW)
    expected = [(0, 100), (400, 100), (400, 300), (0, 300)]
    for got, want in zip(corners, expected):
        assert approx_pt(got, want)


@pytest.mark.parametrize("rotation", list(Rotation))
@pytest.mark.parametrize("flips", [(False, False), (True, False), (False, True), (True, True)])
def test_inverse_round_trip(rotation, flips):
    t = ViewTransform(zoom_factor=3.7, pan_offset=(12.5, -40.0), rotation=rotation,
                      flip_horizontal=flips[0], flip_vertical=flips[1])
    for p in [(0, 0), (13.25, 77.5), (200, 100)]:
        back = t.map_view_to_image(t.map_image_to_view(p, IMAGE, VIEW), IMAGE, VIEW)
        assert approx_pt(back, p, tol=1e-9)


@pytest.mark.parametrize("start_zoom", [0.1, 0.5, 1.0, 7.0, 20.0])
@pytest.mark.parametrize("factor", [0.9, 1.1, 2.5])
def test_zoom_keeps_point_under_cursor(start_zoom, factor):
    t = ViewTransform(zoom_factor=start_zoom, pan_offset=(30.0, -15.0), rotation=Rotation.CW_90,
                      flip_horizontal=True)
    cursor = (123.0, 321.0)
    saved = t.map_view_to_image(cursor, IMAGE, VIEW)
    zoomed = t.zoom(factor, cursor, IMAGE, VIEW)
    assert approx_pt(zoomed.map_image_to_view(saved, IMAGE, VIEW), cursor)


def test_zoom_clamps():
    t = ViewTransform()
    for _ in range(100):
        t = t.zoom(0.5, (10, 10), IMAGE, VIEW)
    assert t.zoom_factor == pytest.approx(MIN_ZOOM)
    for _ in range(200):
        t = t.zoom(1.5, (10, 10), IMAGE, VIEW)
    assert t.zoom_factor == pytest.approx(MAX_ZOOM)


def test_zoom_at_limit_returns_same_instance():
    t = ViewTransform(zoom_factor=MAX_ZOOM, pan_offset=(5.0, 5.0))
    assert t.zoom(1.1, (50, 60), IMAGE, VIEW) is t


def test_rotation_cycles():
    t = ViewTransform()
    seen = []
    for _ in range(4):
        t = t.rotate_clockwise()
        seen.append(t.rotation)
    assert seen == [Rotation.CW_90, Rotation.CW_180, Rotation.CW_270, Rotation.NONE]
    assert ViewTransform().rotate_counterclockwise().rotation == Rotation.CW_270


def test_rotation_pivots_on_image_centre():
    t = ViewTransform(rotation=Rotation.CW_90)
    assert approx_pt(t.map_image_to_view((100, 50), IMAGE, VIEW), (200, 200))
    # Top-left of the image swings to the top-right of the rotated footprint
    assert approx_pt(t.map_image_to_view((0, 0), IMAGE, VIEW), (300, 0))


def test_flip_twice_is_identity():
    t = ViewTransform(zoom_factor=2.0, pan_offset=(3.0, 4.0))
    assert t.toggle_horizontal_flip().toggle_horizontal_flip() == t
    assert t.toggle_vertical_flip().toggle_vertical_flip() == t
    flipped = t.toggle_horizontal_flip()
    a = t.map_image_to_view((0, 0), IMAGE, VIEW)
    b = flipped.map_image_to_view((200, 0), IMAGE, VIEW)
    assert approx_pt(a, b)


@pytest.mark.parametrize("image, view", [((0, 100), VIEW), (IMAGE, (400, 0)), ((0, 0), (0, 0))])
def test_degenerate_sizes_map_identity(image, view):
    t = ViewTransform(zoom_factor=4.0, pan_offset=(10.0, 10.0), rotation=Rotation.CW_180)
    assert t.map_image_to_view((7, 9), image, view) == (7.0, 9.0)
    assert t.map_view_to_image((7, 9), image, view) == (7.0, 9.0)
    assert np.array_equal(t.matrix(image, view), np.eye(3))


def test_reset_keeps_orientation():
    t = ViewTransform(zoom_factor=5.0, pan_offset=(9.0, 1.0), rotation=Rotation.CW_90, flip_vertical=True)
    r = t.reset()
    assert r.zoom_factor == 1.0 and r.pan_offset == (0.0, 0.0)
    assert r.rotation == Rotation.CW_90 and r.flip_vertical
    assert t.reset_all() == ViewTransform()


def test_pan_is_unconstrained():
    t = ViewTransform().pan((1e6, -1e6))
    assert t.pan_offset == (1e6, -1e6)


def test_operations_return_new_instances():
    t = ViewTransform()
    moved = t.pan((1, 2))
    assert t.pan_offset == (0.0, 0.0)
    assert moved is not t


def test_wheel_zoom_factor():
    assert wheel_zoom_factor(1) == 1.1
    assert wheel_zoom_factor(-1) == 0.9
    assert wheel_zoom_factor(5, precise=True) == pytest.approx(1.05)


def test_display_scale():
    assert ViewTransform(zoom_factor=3.0).display_scale(IMAGE, VIEW) == pytest.approx(6.0)
