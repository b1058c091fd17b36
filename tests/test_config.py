import json

import pytest

from handcraft.config import RenderSettings, data_dir, font_dirs, glyph_store_dir, load_settings, save_settings
from handcraft.styles import (
    HANDWRITING_STYLES,
    INK_COLORS,
    PAGE_TYPES,
    get_ink,
    get_page_type,
    get_style,
    hex_to_bgr,
)


def test_presets():
    assert len(HANDWRITING_STYLES) == 15
    assert HANDWRITING_STYLES[0].is_custom and HANDWRITING_STYLES[0].id == "custom"
    assert sum(s.is_custom for s in HANDWRITING_STYLES) == 1
    assert [t.id for t in PAGE_TYPES] == ["single-margin", "double-margin", "plain"]
    assert set(INK_COLORS) == {"blue", "darkblue", "black"}
    assert all(len(ink.variations) == 4 for ink in INK_COLORS.values())


def test_lookups():
    assert get_style("cursive").font_family == "Kalam"
    with pytest.raises(KeyError):
        get_style("nope")
    with pytest.raises(KeyError):
        get_page_type("graph-paper")
    assert get_ink("purple") is INK_COLORS["blue"]


def test_text_area():
    assert get_page_type("single-margin").text_width == 2480 - 150 - 100
    assert get_page_type("double-margin").text_width == 2480 - 150 - 110
    assert get_page_type("plain").text_start_x == 110


def test_hex_colors():
    assert hex_to_bgr("#FF8000") == (0, 128, 255)
    assert hex_to_bgr("#abc") == (0xCC, 0xBB, 0xAA)
    assert hex_to_bgr("transparent") is None
    with pytest.raises(ValueError):
        hex_to_bgr("#12345")


def test_style_intensity_is_clamped():
    assert get_style("neat").with_overrides(variation_intensity=5).variation_intensity == 2.0
    assert get_style("neat").with_overrides(variation_intensity=-1).variation_intensity == 0.0


def test_settings_resolve_defaults():
    style, page_type, header = RenderSettings().resolve()
    assert style.id == "neat"
    assert style.font_size == 52.0
    assert style.line_height == pytest.approx(1.6)
    assert style.variation_intensity == 1.0
    assert page_type.id == "single-margin"
    assert header is None


def test_settings_clamp_and_validate():
    s = RenderSettings(font_size=100, line_spacing=0.2, variation_intensity=9, workers=0)
    assert (s.font_size, s.line_spacing, s.variation_intensity, s.workers) == (40, 1.0, 2.0, 1)
    with pytest.raises(ValueError):
        RenderSettings(fatigue_mode="sleepy")


def test_template_preselects_page_and_title():
    style, page_type, header = RenderSettings(template_id="lab-record", name="Ann").resolve()
    assert page_type.id == "double-margin"
    assert header.title == "Laboratory Record"
    assert header.name == "Ann"

    _, _, header = RenderSettings(template_id="assignment", title="Homework 3").resolve()
    assert header.title == "Homework 3"


def test_settings_file_round_trip(tmp_path):
    path = tmp_path / "conf" / "settings.json"
    assert load_settings(path) == RenderSettings()
    s = RenderSettings(style_id="marker", ink_color="black", fatigue_mode="rush", subject="Maths")
    save_settings(s, path)
    assert load_settings(path) == s

    raw = json.loads(path.read_text(encoding="utf-8"))
    raw["unknown_key"] = 1
    path.write_text(json.dumps(raw), encoding="utf-8")
    assert load_settings(path) == s


def test_settings_file_must_hold_an_object(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_settings(path)


def test_data_dirs_follow_env(isolated_home, monkeypatch, tmp_path):
    assert data_dir() == isolated_home
    assert glyph_store_dir() == isolated_home / "glyphs"
    monkeypatch.setenv("HANDCRAFT_FONT_DIR", str(tmp_path / "fonts"))
    assert font_dirs()[0] == tmp_path / "fonts"
