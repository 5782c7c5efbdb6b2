from modules.registry import (
    all_extra_settings_keys,
    collect_module_defaults,
    discover_modules,
    get_module_info,
    pick_camera_module,
)


def by_name(modules):
    return {m["name"]: m for m in modules}


def test_discovers_frame_sources():
    found = by_name(discover_modules())
    assert {"opencv_camera", "test_pattern"} <= set(found)
    cam = found["opencv_camera"]
    assert cam["import_path"] == "modules.detector.opencv_camera"
    assert cam["type"] == "detector"
    assert "cv_camera_index" in cam["setting_keys"]


def test_unknown_module_gets_defaults():
    info = get_module_info("modules.detector.does_not_exist")
    assert info["display_name"] == "Does Not Exist"
    assert info["setting_keys"] == []


def test_settings_keys_and_defaults():
    modules = discover_modules()
    keys = all_extra_settings_keys(modules)
    assert {"load_opencv_camera_module", "load_test_pattern_module", "tp_noise"} <= keys
    defaults = collect_module_defaults(modules)
    assert defaults["cv_width"] == 1920
    assert defaults["tp_fps"] == 30.0


def test_pick_highest_priority_enabled():
    modules = discover_modules()
    assert pick_camera_module(modules, {})["name"] == "opencv_camera"
    assert pick_camera_module(modules, {"load_opencv_camera_module": False})["name"] == "test_pattern"


def test_pick_prefer_overrides_priority():
    modules = discover_modules()
    assert pick_camera_module(modules, {}, prefer="test_pattern")["name"] == "test_pattern"


def test_pick_none_enabled():
    modules = [
        {"name": "a", "type": "detector", "default_enabled": False, "camera_priority": 3},
        {"name": "b", "type": "machine", "default_enabled": True},
    ]
    assert pick_camera_module(modules, {}) is None
