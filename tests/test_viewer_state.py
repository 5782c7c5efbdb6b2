import pytest

from lib import viewer_state as vs
from lib.view_transform import Rotation, ViewTransform


def test_from_settings_sanitises_level():
    assert vs.from_settings({"integration_level": 8}).integration_level == 8
    assert vs.from_settings({"integration_level": 3}).integration_level == 1
    assert vs.from_settings({"integration_level": "junk"}).integration_level == 1
    s = vs.from_settings({"scale_bar_visible": True, "show_fps_overlay": False})
    assert s.scale_bar_visible and not s.show_fps_overlay


def test_toggle_freeze():
    s = vs.ViewerState()
    assert vs.toggle_freeze(s).is_frozen
    assert not vs.toggle_freeze(vs.toggle_freeze(s)).is_frozen
    assert not s.is_frozen


def test_scale_bar_without_calibration_enters_calibration():
    s = vs.toggle_scale_bar(vs.ViewerState(), has_calibration=False)
    assert s.scale_bar_visible and s.is_calibrating


def test_scale_bar_with_calibration_just_toggles():
    s = vs.toggle_scale_bar(vs.ViewerState(), has_calibration=True)
    assert s.scale_bar_visible and not s.is_calibrating
    assert not vs.toggle_scale_bar(s, has_calibration=True).scale_bar_visible


def test_cancel_calibration_hides_bar_when_uncalibrated():
    s = vs.toggle_scale_bar(vs.ViewerState(), has_calibration=False)
    cancelled = vs.cancel_calibration(s, has_calibration=False)
    assert not cancelled.is_calibrating and not cancelled.scale_bar_visible
    kept = vs.cancel_calibration(s, has_calibration=True)
    assert kept.scale_bar_visible


def test_complete_calibration_shows_bar():
    s = vs.complete_calibration(vs.begin_calibration(vs.ViewerState()))
    assert not s.is_calibrating and s.scale_bar_visible


def test_integration_level():
    s = vs.ViewerState()
    assert vs.cycle_integration(s).integration_level == 2
    assert vs.set_integration_level(s, 16).integration_level == 16
    with pytest.raises(ValueError):
        vs.set_integration_level(s, 5)


def test_transform_and_reset_view():
    t = ViewTransform(zoom_factor=3.0, pan_offset=(4.0, 5.0), rotation=Rotation.CW_180)
    s = vs.with_transform(vs.ViewerState(), t)
    assert s.view_transform is t
    r = vs.reset_view(s).view_transform
    assert r.zoom_factor == 1.0 and r.rotation == Rotation.CW_180


def test_set_camera_and_overlay():
    s = vs.set_camera(vs.ViewerState(), "usb0", (1920.0, 1080.0))
    assert s.camera_id == "usb0" and s.resolution == (1920, 1080)
    assert not vs.set_fps_overlay(s, False).show_fps_overlay
