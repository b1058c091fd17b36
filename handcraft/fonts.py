from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional, Tuple

import cv2
import numpy as np
from PIL import Image, ImageDraw, ImageFont

from .config import font_dirs

logger = logging.getLogger(__name__)

FONT_SUFFIXES = (".ttf", ".otf")

# Hershey scale per pixel of requested font size; 52px writes roughly 25px per average glyph
HERSHEY_SCALE_PER_PX = 0.026

# family -> (Hershey face, extra stroke thickness)
HERSHEY_FACES: Dict[str, Tuple[int, int]] = {
    "caveat": (cv2.FONT_HERSHEY_SCRIPT_SIMPLEX, 0),
    "kalam": (cv2.FONT_HERSHEY_SCRIPT_SIMPLEX, 0),
    "indieflower": (cv2.FONT_HERSHEY_SCRIPT_SIMPLEX, 0),
    "homemadeapple": (cv2.FONT_HERSHEY_SCRIPT_COMPLEX, 0),
    "patrickhand": (cv2.FONT_HERSHEY_SCRIPT_SIMPLEX, 0),
    "dancingscript": (cv2.FONT_HERSHEY_SCRIPT_COMPLEX, 0),
    "frederickathegreat": (cv2.FONT_HERSHEY_SCRIPT_SIMPLEX, 1),
    "architectsdaughter": (cv2.FONT_HERSHEY_SCRIPT_SIMPLEX, 0),
    "shadowsintolighttwo": (cv2.FONT_HERSHEY_SCRIPT_SIMPLEX, 0),
    "rocksalt": (cv2.FONT_HERSHEY_SCRIPT_SIMPLEX, 1),
    "satisfy": (cv2.FONT_HERSHEY_SCRIPT_COMPLEX, 0),
    "permanentmarker": (cv2.FONT_HERSHEY_SCRIPT_SIMPLEX, 2),
    "herrvonmuellerhoff": (cv2.FONT_HERSHEY_SCRIPT_COMPLEX, 0),
    "nanumpenscript": (cv2.FONT_HERSHEY_SCRIPT_SIMPLEX, 0),
}


@dataclass
class TextMask:
    mask: np.ndarray  # H x W, uint8 ink coverage
    baseline: int  # row of the text baseline inside mask
    left: int  # column of the pen origin inside mask
    advance: float


def family_key(family: str) -> str:
    return re.sub(r"[^a-z0-9]", "", (family or "").lower())


class FontFace:
    name = "font"

    def render(self, text: str, px: float, bold: bool = False) -> TextMask:
        raise NotImplementedError

    def measure(self, text: str, px: float, bold: bool = False) -> float:
        raise NotImplementedError


class HersheyFace(FontFace):
    """OpenCV's built-in stroke fonts; always available."""

    def __init__(self, face: int = cv2.FONT_HERSHEY_SCRIPT_SIMPLEX, extra_thickness: int = 0) -> None:
        self.face = int(face)
        self.extra_thickness = int(extra_thickness)
        self.name = f"hershey:{self.face}"

    def _params(self, px: float, bold: bool) -> Tuple[float, int]:
        scale = max(0.2, float(px) * HERSHEY_SCALE_PER_PX)
        thick = max(1, int(round(px / 22.0))) + self.extra_thickness
        if bold:
            thick += max(1, int(round(px / 40.0)))
        return scale, thick

    def measure(self, text: str, px: float, bold: bool = False) -> float:
        if not text:
            return 0.0
        scale, thick = self._params(px, bold)
        (tw, _), _ = cv2.getTextSize(text, self.face, scale, thick)
        return float(tw)

    def render(self, text: str, px: float, bold: bool = False) -> TextMask:
        scale, thick = self._params(px, bold)
        (tw, th), base = cv2.getTextSize(text or " ", self.face, scale, thick)
        pad = thick + 4
        mask = np.zeros((max(1, th + base + 2 * pad), max(1, tw + 2 * pad)), np.uint8)
        if text:
            cv2.putText(mask, text, (pad, pad + th), self.face, scale, 255, thick, cv2.LINE_AA)
        return TextMask(mask=mask, baseline=pad + th, left=pad, advance=float(tw))


class TrueTypeFace(FontFace):
    """A handwriting font file rasterized with Pillow."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.name = f"ttf:{self.path.name}"
        # fail early on unreadable files
        ImageFont.truetype(str(self.path), 32)

    @lru_cache(maxsize=64)
    def _font(self, size: int):
        return ImageFont.truetype(str(self.path), max(4, size))

    def measure(self, text: str, px: float, bold: bool = False) -> float:
        if not text:
            return 0.0
        return float(self._font(int(round(px))).getlength(text))

    def render(self, text: str, px: float, bold: bool = False) -> TextMask:
        font = self._font(int(round(px)))
        stroke = max(1, int(round(px / 48.0))) if bold else 0
        if not text.strip():
            adv = self.measure(text, px, bold)
            return TextMask(mask=np.zeros((1, 1), np.uint8), baseline=0, left=0, advance=adv)
        left, top, right, bottom = font.getbbox(text, anchor="ls", stroke_width=stroke)
        pad = 4 + stroke
        w = max(1, int(right - left) + 2 * pad)
        h = max(1, int(bottom - top) + 2 * pad)
        img = Image.new("L", (w, h), 0)
        draw = ImageDraw.Draw(img)
        draw.text((pad - left, pad - top), text, font=font, fill=255, anchor="ls", stroke_width=stroke, stroke_fill=255)
        return TextMask(
            mask=np.asarray(img, dtype=np.uint8).copy(),
            baseline=int(pad - top),
            left=int(pad - left),
            advance=float(font.getlength(text)),
        )


def find_font_file(family: str) -> Optional[Path]:
    key = family_key(family)
    if not key:
        return None
    for d in font_dirs():
        if not d.is_dir():
            continue
        for p in sorted(d.iterdir()):
            if p.suffix.lower() in FONT_SUFFIXES and family_key(p.stem).startswith(key):
                return p
    return None


@lru_cache(maxsize=32)
def get_face(family: str) -> FontFace:
    path = find_font_file(family)
    if path is not None:
        try:
            face = TrueTypeFace(path)
            logger.debug("Using font file %s for family %r", path, family)
            return face
        except OSError as exc:
            logger.warning("Could not load font %s (%s); using stroke font", path, exc)
    face_id, extra = HERSHEY_FACES.get(family_key(family), (cv2.FONT_HERSHEY_SCRIPT_SIMPLEX, 0))
    return HersheyFace(face_id, extra)
