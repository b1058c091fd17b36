from pathlib import Path
from typing import Dict, Iterable, Tuple

import cv2
import numpy as np
import pytest

from handcraft.glyphs import CELL_H, CELL_W, GRID_PAD, GRID_TOP, TEMPLATE_HEIGHT, TEMPLATE_ROWS, TEMPLATE_WIDTH

# ink rectangle inside each cell: offset and size in template pixels
INK_DX, INK_DY, INK_W, INK_H = 30, 60, 30, 40


def cell_of(ch: str) -> Tuple[int, int]:
    for r, row in enumerate(TEMPLATE_ROWS):
        if ch in row:
            return r, row.index(ch)
    raise KeyError(ch)


def draw_ink(img: np.ndarray, chars: Iterable[str], scale: float = 1.0) -> Dict[str, Tuple[int, int, int, int]]:
    """Fill a black rectangle in each character's cell; returns the expected ink boxes."""
    boxes = {}
    for ch in chars:
        r, c = cell_of(ch)
        x = int(round((GRID_PAD + c * CELL_W + INK_DX) * scale))
        y = int(round((GRID_TOP + r * CELL_H + INK_DY) * scale))
        w, h = int(round(INK_W * scale)), int(round(INK_H * scale))
        cv2.rectangle(img, (x, y), (x + w - 1, y + h - 1), (0, 0, 0), -1)
        boxes[ch] = (x, y, w, h)
    return boxes


@pytest.fixture
def blank_sheet():
    def make(scale: float = 1.0) -> np.ndarray:
        h, w = int(round(TEMPLATE_HEIGHT * scale)), int(round(TEMPLATE_WIDTH * scale))
        return np.full((h, w, 3), 255, np.uint8)

    return make


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch):
    home = tmp_path / "handcraft_home"
    monkeypatch.setenv("HANDCRAFT_HOME", str(home))
    monkeypatch.delenv("HANDCRAFT_FONT_DIR", raising=False)
    return home


@pytest.fixture
def ink():
    return draw_ink
