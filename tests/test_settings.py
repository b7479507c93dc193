import json

import pytest

from errors import SettingsError
from settings import Settings, load_settings, save_settings


def test_missing_file_gives_defaults(tmp_path):
    settings = load_settings(str(tmp_path / "nope.json"))
    assert settings == Settings()
    assert settings.log_level == "WARNING"


def test_save_then_load(tmp_path):
    path = str(tmp_path / "recyclebin.json")
    save_settings(Settings(identity="S-1-5-21-1", volumes=["C:\\", "D:\\"], log_level="INFO"), path)
    assert load_settings(path) == Settings(identity="S-1-5-21-1", volumes=["C:\\", "D:\\"], log_level="INFO")


def test_unknown_keys_ignored_and_level_normalised(tmp_path):
    path = tmp_path / "recyclebin.json"
    path.write_text(json.dumps({"log_level": "debug", "theme": "dark"}))
    settings = load_settings(str(path))
    assert settings.log_level == "DEBUG"
    assert settings.identity is None


@pytest.mark.parametrize("content", ["{not json", "[1, 2]", '{"volumes": "C:\\\\"}'])
def test_bad_settings(tmp_path, content):
    path = tmp_path / "recyclebin.json"
    path.write_text(content)
    with pytest.raises(SettingsError):
        load_settings(str(path))
