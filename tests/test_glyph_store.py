import json

import cv2
import numpy as np
import pytest

from handcraft import glyph_store
from handcraft.errors import ResourceError
from handcraft.glyph_store import GlyphStore, glyph_filename


def _glyph(h, w, value):
    g = np.zeros((h, w, 4), np.uint8)
    g[1:-1, 1:-1, 3] = value
    return g


def test_missing_store_loads_none(tmp_path):
    assert GlyphStore(tmp_path / "glyphs").load() is None


def test_default_root_follows_env(isolated_home):
    assert GlyphStore().root == isolated_home / "glyphs"


def test_save_then_load(tmp_path):
    store = GlyphStore(tmp_path / "glyphs")
    glyphs = {"A": _glyph(20, 12, 255), "?": _glyph(9, 5, 128)}
    store.save(glyphs)

    manifest = json.loads((tmp_path / "glyphs" / "glyphs.json").read_text(encoding="utf-8"))
    assert manifest["glyphs"] == {"?": "u003f.png", "A": "u0041.png"}

    loaded = store.load()
    assert set(loaded) == {"A", "?"}
    for ch, g in glyphs.items():
        assert np.array_equal(loaded[ch], g)


def test_save_replaces_previous_set(tmp_path):
    store = GlyphStore(tmp_path / "glyphs")
    store.save({"a": _glyph(5, 5, 255), "b": _glyph(5, 5, 255)})
    store.save({"c": _glyph(6, 4, 200)})
    assert set(store.load()) == {"c"}
    assert not (tmp_path / "glyphs" / glyph_filename("a")).exists()


def test_failed_save_keeps_previous_set(tmp_path, monkeypatch):
    store = GlyphStore(tmp_path / "glyphs")
    store.save({"a": _glyph(5, 5, 255)})
    monkeypatch.setattr(glyph_store.cv2, "imwrite", lambda *args, **kwargs: False)
    with pytest.raises(ResourceError):
        store.save({"z": _glyph(5, 5, 255)})
    monkeypatch.undo()
    assert set(store.load()) == {"a"}
    assert [p.name for p in tmp_path.iterdir()] == ["glyphs"]


def test_clear(tmp_path):
    store = GlyphStore(tmp_path / "glyphs")
    assert store.clear() is False
    store.save({"x": _glyph(4, 4, 255)})
    assert store.clear() is True
    assert store.load() is None


def test_grayscale_files_load_as_alpha(tmp_path):
    root = tmp_path / "glyphs"
    root.mkdir()
    cv2.imwrite(str(root / "u0078.png"), np.full((3, 3), 200, np.uint8))
    (root / "glyphs.json").write_text(json.dumps({"glyphs": {"x": "u0078.png"}}), encoding="utf-8")
    g = GlyphStore(root).load()["x"]
    assert g.shape == (3, 3, 4)
    assert (g[..., 3] == 200).all()


def test_corrupt_manifest_raises(tmp_path):
    root = tmp_path / "glyphs"
    root.mkdir()
    (root / "glyphs.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(ResourceError):
        GlyphStore(root).load()


def test_interrupted_swap_restores_previous_set(tmp_path, monkeypatch):
    store = GlyphStore(tmp_path / "glyphs")
    store.save({"a": _glyph(5, 5, 255)})
    real_replace = glyph_store.os.replace
    calls = []

    def flaky_replace(src, dst):
        calls.append((src, dst))
        if len(calls) == 2:
            raise OSError("disk full")
        return real_replace(src, dst)

    monkeypatch.setattr(glyph_store.os, "replace", flaky_replace)
    with pytest.raises(OSError):
        store.save({"z": _glyph(5, 5, 255)})
    monkeypatch.undo()
    assert set(store.load()) == {"a"}
    assert [p.name for p in tmp_path.iterdir()] == ["glyphs"]
