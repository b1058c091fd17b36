from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from .config import glyph_store_dir
from .errors import ResourceError
from .glyphs import GlyphMap

logger = logging.getLogger(__name__)

MANIFEST = "glyphs.json"
FORMAT_VERSION = 1


def glyph_filename(ch: str) -> str:
    return f"u{ord(ch):04x}.png"


class GlyphStore:
    """Saved personal glyphs: one BGRA PNG per character plus a JSON manifest.

    ``save`` builds the new set in a sibling temporary directory and swaps it in,
    so a failed save leaves the previous set untouched.
    """

    def __init__(self, root: Optional[Path] = None) -> None:
        self.root = Path(root) if root is not None else glyph_store_dir()

    @property
    def manifest_path(self) -> Path:
        return self.root / MANIFEST

    def exists(self) -> bool:
        return self.manifest_path.exists()

    def load(self) -> Optional[GlyphMap]:
        if not self.exists():
            return None
        try:
            manifest = json.loads(self.manifest_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise ResourceError(f"Could not read glyph manifest {self.manifest_path}: {exc}") from exc

        glyphs: GlyphMap = {}
        for ch, fn in manifest.get("glyphs", {}).items():
            img = cv2.imread(str(self.root / fn), cv2.IMREAD_UNCHANGED)
            if img is None:
                raise ResourceError(f"Could not read glyph image {self.root / fn}")
            if img.ndim == 2:
                alpha = img
                img = np.zeros((*alpha.shape, 4), np.uint8)
                img[..., 3] = alpha
            glyphs[ch] = img
        logger.debug("Loaded %d glyphs from %s", len(glyphs), self.root)
        return glyphs

    def save(self, glyph_map: GlyphMap) -> Path:
        self.root.parent.mkdir(parents=True, exist_ok=True)
        tmp = Path(tempfile.mkdtemp(prefix=".glyphs-", dir=str(self.root.parent)))
        old = None
        try:
            index = {}
            for ch, img in sorted(glyph_map.items()):
                fn = glyph_filename(ch)
                if not cv2.imwrite(str(tmp / fn), img):
                    raise ResourceError(f"Failed to write glyph {ch!r}")
                index[ch] = fn
            payload = {"version": FORMAT_VERSION, "count": len(index), "glyphs": index}
            (tmp / MANIFEST).write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")

            if self.root.exists():
                old = self.root.with_name(f".{self.root.name}.old")
                if old.exists():
                    shutil.rmtree(old)
                os.replace(self.root, old)
            os.replace(tmp, self.root)
            if old is not None:
                shutil.rmtree(old, ignore_errors=True)
        except BaseException:
            shutil.rmtree(tmp, ignore_errors=True)
            # put the previous set back if the swap got halfway
            if old is not None and old.exists() and not self.root.exists():
                os.replace(old, self.root)
            raise
        logger.debug("Saved %d glyphs to %s", len(glyph_map), self.root)
        return self.root

    def clear(self) -> bool:
        if not self.root.exists():
            return False
        shutil.rmtree(self.root)
        return True
