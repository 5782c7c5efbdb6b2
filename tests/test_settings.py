import json

from lib import settings


def test_load_missing_file_gives_defaults(tmp_path):
    s = settings.load_settings(path=tmp_path / "missing.json")
    for key, value in settings.CORE_DEFAULTS.items():
        assert s[key] == value


def test_load_ignores_unknown_keys_unless_extra(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"integration_level": 4, "foo": 1, "bar": 2}), encoding="utf-8")
    s = settings.load_settings(extra_keys={"bar"}, path=path)
    assert s["integration_level"] == 4
    assert "foo" not in s
    assert s["bar"] == 2


def test_unreadable_file_gives_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("[1, 2", encoding="utf-8")
    assert settings.load_settings(path=path)["integration_level"] == 1
    path.write_text("[1, 2]", encoding="utf-8")
    assert settings.load_settings(path=path)["integration_level"] == 1


def test_save_merges_with_existing(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"someone_elses_key": "keep"}), encoding="utf-8")
    settings.save_settings({"integration_level": 8, "not_allowed": 1}, path=path)
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["integration_level"] == 8
    assert data["someone_elses_key"] == "keep"
    assert "not_allowed" not in data
    assert settings.load_settings(path=path)["integration_level"] == 8


def test_reset_writes_defaults(tmp_path):
    path = tmp_path / "settings.json"
    settings.save_settings({"integration_level": 16}, path=path)
    settings.reset_settings(path=path)
    assert settings.load_settings(path=path)["integration_level"] == 1


def test_module_defaults_are_included():
    defaults = settings.get_all_defaults()
    assert defaults["load_test_pattern_module"] is True
    assert defaults["cv_camera_index"] == 0


def test_calibrations_path(tmp_path):
    assert settings.calibrations_path({}) == settings.SETTINGS_DIR / "calibrations.json"
    absolute = tmp_path / "cal.json"
    assert settings.calibrations_path({"calibrations_file": str(absolute)}) == absolute
