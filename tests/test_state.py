import os

from stampkit.core.state import AppSettings, load_settings, load_settings_file, save_settings

ENV_KEYS = ("STAMPKIT_PREVIEW_DEBOUNCE_MS", "STAMPKIT_SAFE_MARGIN_MM", "STAMPKIT_MAX_LINE_CHARS", "STAMPKIT_EXPORT_BACKGROUND")


def _isolate_env(monkeypatch):
    # setenv first so monkeypatch removes whatever load_dotenv adds
    for key in ENV_KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)


def test_defaults(tmp_path, monkeypatch):
    _isolate_env(monkeypatch)
    settings = load_settings(tmp_path / "missing.env")
    assert settings == AppSettings()
    assert settings.preview_debounce_ms == 300
    assert settings.frame_interval_ms == 16


def test_env_file_overrides(tmp_path, monkeypatch):
    _isolate_env(monkeypatch)
    env = tmp_path / "env"
    env.write_text(
        "STAMPKIT_PREVIEW_DEBOUNCE_MS=120\n"
        "STAMPKIT_SAFE_MARGIN_MM=1.5\n"
        "STAMPKIT_EXPORT_BACKGROUND=white\n",
        encoding="utf-8",
    )
    settings = load_settings(env)
    assert settings.preview_debounce_ms == 120
    assert settings.safe_margin_mm == 1.5
    assert settings.export_background == "white"
    assert os.environ["STAMPKIT_PREVIEW_DEBOUNCE_MS"] == "120"


def test_invalid_env_value_is_ignored(tmp_path, monkeypatch, caplog):
    _isolate_env(monkeypatch)
    monkeypatch.setenv("STAMPKIT_MAX_LINE_CHARS", "many")
    settings = load_settings(tmp_path / "missing.env")
    assert settings.max_line_chars == 30
    assert "Ignoring invalid value" in caplog.text


def test_settings_file_round_trip(tmp_path):
    path = tmp_path / "settings.json"
    save_settings(AppSettings(default_ink_color="black", max_line_chars=40), path)
    loaded = load_settings_file(path)
    assert loaded.default_ink_color == "black"
    assert loaded.max_line_chars == 40


def test_settings_file_missing_or_broken(tmp_path):
    assert load_settings_file(tmp_path / "nope.json") == AppSettings()
    broken = tmp_path / "broken.json"
    broken.write_text("{", encoding="utf-8")
    assert load_settings_file(broken) == AppSettings()
