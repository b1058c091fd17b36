from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from .errors import ResourceError

logger = logging.getLogger(__name__)

# Characters on the sample sheet, row by row
TEMPLATE_ROWS: List[List[str]] = [
    "A B C D E F G H I J K L M".split(" "),
    "N O P Q R S T U V W X Y Z".split(" "),
    "a b c d e f g h i j k l m".split(" "),
    "n o p q r s t u v w x y z".split(" "),
    "0 1 2 3 4 5 6 7 8 9".split(" "),
    ". , ; : ! ? ( ) - /".split(" "),
]
TEMPLATE_CHARS: List[str] = [ch for row in TEMPLATE_ROWS for ch in row]
PUNCTUATION = ".,;:!?()-/"

# Sheet geometry (pixels of the generated template). The uniform-grid fallback in
# extraction scales these to the photo, so both must change together.
CELL_W = 120
CELL_H = 140
LABEL_H = 30
GRID_PAD = 40
TITLE_H = 80
FOOTER_H = 100
COLS = 13
TEMPLATE_WIDTH = GRID_PAD * 2 + COLS * CELL_W
TEMPLATE_HEIGHT = GRID_PAD * 2 + len(TEMPLATE_ROWS) * CELL_H + FOOTER_H
GRID_TOP = GRID_PAD + TITLE_H

# Grid detection: a pixel darker than DARK_LEVEL is "dark"; a row/column whose dark
# ratio exceeds LINE_RATIO is part of a ruled grid line.
DARK_LEVEL = 140
LINE_RATIO = 0.3

LABEL_SKIP_RATIO = 0.25
CELL_PAD_RATIO = 0.08
GLYPH_PAD = 4
MIN_GLYPH_SIDE = 3

# callers reject sheets that yield fewer glyphs than this
MIN_GLYPHS = 10

GlyphMap = Dict[str, np.ndarray]  # char -> H x W x 4 uint8 (BGRA, ink in alpha)
Box = Tuple[int, int, int, int]  # x, y, w, h


@dataclass
class GlyphStats:
    total: int = 0
    uppercase: int = 0
    lowercase: int = 0
    digits: int = 0
    punctuation: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class SheetAnalysis:
    glyphs: GlyphMap
    boxes: Dict[str, Box]
    threshold: int
    grid_detected: bool
    cells: List[List[Box]] = field(default_factory=list)


# -----------------------
# Template sheet
# -----------------------
def render_template_sheet() -> np.ndarray:
    """Printable calibration sheet: one labeled cell per character."""
    sheet = np.full((TEMPLATE_HEIGHT, TEMPLATE_WIDTH, 3), 255, np.uint8)

    def centered(text, cx, y, scale, color, thick):
        (tw, _), _ = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, scale, thick)
        cv2.putText(sheet, text, (int(cx - tw / 2), int(y)), cv2.FONT_HERSHEY_SIMPLEX, scale, color, thick, cv2.LINE_AA)

    centered("HandCraft - Handwriting Sample Sheet", TEMPLATE_WIDTH / 2, 40, 0.9, (34, 34, 34), 2)
    centered(
        "Write each character clearly inside its box. Photograph this sheet and upload it.",
        TEMPLATE_WIDTH / 2,
        65,
        0.45,
        (102, 102, 102),
        1,
    )

    y = GRID_TOP
    for chars in TEMPLATE_ROWS:
        for col, ch in enumerate(chars):
            x = GRID_PAD + col * CELL_W
            cv2.rectangle(sheet, (x + 1, y + 1), (x + CELL_W - 1, y + LABEL_H), (240, 240, 240), -1)
            cv2.rectangle(sheet, (x, y), (x + CELL_W, y + CELL_H), (85, 85, 85), 2, cv2.LINE_8)
            centered(ch, x + CELL_W / 2, y + 22, 0.55, (68, 68, 68), 2)
            base_y = int(y + LABEL_H + (CELL_H - LABEL_H) * 0.7)
            for dx in range(x + 8, x + CELL_W - 8, 8):
                cv2.line(sheet, (dx, base_y), (min(dx + 4, x + CELL_W - 8), base_y), (204, 204, 204), 1, cv2.LINE_8)
        y += CELL_H

    centered(
        "Tip: Use a dark pen. Keep characters within the boxes. Avoid touching the borders.",
        TEMPLATE_WIDTH / 2,
        y + 25,
        0.4,
        (136, 136, 136),
        1,
    )
    return sheet


# -----------------------
# Image processing
# -----------------------
def load_sheet_image(source: Union[str, Path, bytes, np.ndarray]) -> np.ndarray:
    """Decode a photo of the sample sheet into a BGR array."""
    if isinstance(source, np.ndarray):
        img = source
        if img.ndim == 2:
            img = cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
        elif img.shape[2] == 4:
            img = cv2.cvtColor(img, cv2.COLOR_BGRA2BGR)
        return img
    if isinstance(source, (bytes, bytearray)):
        img = cv2.imdecode(np.frombuffer(bytes(source), np.uint8), cv2.IMREAD_COLOR)
        if img is None:
            raise ResourceError("Failed to load image")
        return img
    path = Path(source)
    if not path.exists():
        raise ResourceError(f"Could not read image: {path}")
    img = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if img is None:
        raise ResourceError(f"Could not read image: {path}")
    return img


def to_grayscale(image_bgr: np.ndarray) -> np.ndarray:
    if image_bgr.ndim == 2:
        return image_bgr
    return cv2.cvtColor(image_bgr, cv2.COLOR_BGR2GRAY)


def otsu_threshold(gray: np.ndarray) -> int:
    """Intensity that best separates ink from paper (Otsu's method).

    Pixels ``<= threshold`` are ink. When several levels tie for the best split
    (empty histogram bins between the two classes) the middle one is taken.
    """
    hist = np.bincount(np.asarray(gray, np.uint8).ravel(), minlength=256).astype(np.float64)
    total = hist.sum()
    if total <= 0:
        return 128
    levels = np.arange(256, dtype=np.float64)
    w_b = np.cumsum(hist)
    w_f = total - w_b
    sum_b = np.cumsum(levels * hist)
    sum_all = sum_b[-1]
    valid = (w_b > 0) & (w_f > 0)
    var = np.zeros(256, np.float64)
    m_b = np.divide(sum_b, w_b, out=np.zeros_like(sum_b), where=valid)
    m_f = np.divide(sum_all - sum_b, w_f, out=np.zeros_like(sum_b), where=valid)
    var[valid] = w_b[valid] * w_f[valid] * (m_b[valid] - m_f[valid]) ** 2
    best = var.max()
    if best <= 0:
        return 128
    ties = np.flatnonzero(np.isclose(var, best, rtol=1e-12, atol=0.0))
    first = int(ties[0])
    # contiguous run of tied levels starting at the first maximum
    run_end = first
    for t in ties[1:]:
        if int(t) != run_end + 1:
            break
        run_end = int(t)
    return (first + run_end) // 2


def find_grid_lines(gray: np.ndarray, horizontal: bool) -> List[int]:
    """Centers of ruled lines found from the dark-pixel projection profile."""
    dark = np.asarray(gray) < DARK_LEVEL
    profile = dark.mean(axis=1 if horizontal else 0)
    lines: List[int] = []
    in_line = False
    start = 0
    for i, ratio in enumerate(profile):
        if ratio > LINE_RATIO and not in_line:
            in_line = True
            start = i
        elif ratio <= LINE_RATIO and in_line:
            in_line = False
            lines.append(int(round((start + i) / 2.0)))
    if in_line:
        lines.append(int(round((start + len(profile)) / 2.0)))
    return lines


def _most_regular_window(lines: Sequence[int], count: int) -> List[int]:
    if len(lines) <= count:
        return list(lines)
    best, best_score = None, None
    for i in range(len(lines) - count + 1):
        window = lines[i:i + count]
        gaps = np.diff(window)
        score = float(np.std(gaps)) / max(1.0, float(np.mean(gaps)))
        if best_score is None or score < best_score:
            best, best_score = window, score
    return list(best)


def uniform_grid(width: int, height: int) -> List[List[Box]]:
    """Cell boxes estimated by scaling the template geometry to the image size."""
    sx = width / float(TEMPLATE_WIDTH)
    sy = height / float(TEMPLATE_HEIGHT)
    cells = []
    for r, chars in enumerate(TEMPLATE_ROWS):
        row = []
        for c in range(len(chars)):
            x = int(round((GRID_PAD + c * CELL_W) * sx))
            y = int(round((GRID_TOP + r * CELL_H) * sy))
            row.append((x, y, int(round(CELL_W * sx)), int(round(CELL_H * sy))))
        cells.append(row)
    return cells


def detect_grid_cells(gray: np.ndarray) -> Tuple[List[List[Box]], bool]:
    h_lines = find_grid_lines(gray, horizontal=True)
    v_lines = find_grid_lines(gray, horizontal=False)
    n_rows = len(TEMPLATE_ROWS)
    if len(h_lines) >= n_rows + 1 and len(v_lines) >= COLS + 1:
        h_lines = _most_regular_window(h_lines, n_rows + 1)
        v_lines = _most_regular_window(v_lines, COLS + 1)
        cells = []
        for r in range(n_rows):
            row = []
            for c in range(min(len(v_lines) - 1, len(TEMPLATE_ROWS[r]))):
                row.append((v_lines[c], h_lines[r], v_lines[c + 1] - v_lines[c], h_lines[r + 1] - h_lines[r]))
            cells.append(row)
        logger.debug("Detected grid with %d row lines and %d column lines", len(h_lines), len(v_lines))
        return cells, True
    logger.debug(
        "Grid detection found %d row lines and %d column lines; using uniform grid", len(h_lines), len(v_lines)
    )
    return uniform_grid(gray.shape[1], gray.shape[0]), False


def extract_glyph(gray: np.ndarray, cell: Box, threshold: int) -> Tuple[Optional[np.ndarray], Optional[Box]]:
    """Crop the handwritten ink in one cell into a BGRA stamp.

    Returns (glyph, tight ink box in image coordinates), or (None, None) for an
    empty cell.
    """
    x, y, w, h = cell
    label_skip = int(round(h * LABEL_SKIP_RATIO))
    write_y = y + label_skip
    write_h = h - label_skip
    pad = int(round(min(w, write_h) * CELL_PAD_RATIO))
    cx1, cy1 = max(0, x + pad), max(0, write_y + pad)
    cx2 = min(gray.shape[1], x + w - pad)
    cy2 = min(gray.shape[0], write_y + write_h - pad)
    if cx2 - cx1 <= 0 or cy2 - cy1 <= 0:
        return None, None

    crop = gray[cy1:cy2, cx1:cx2]
    ys, xs = np.where(crop <= threshold)
    if xs.size == 0:
        return None, None
    ix1, ix2 = int(xs.min()), int(xs.max())
    iy1, iy2 = int(ys.min()), int(ys.max())
    ink_box = (cx1 + ix1, cy1 + iy1, ix2 - ix1 + 1, iy2 - iy1 + 1)

    gx1, gy1 = max(0, ix1 - GLYPH_PAD), max(0, iy1 - GLYPH_PAD)
    gx2 = min(crop.shape[1] - 1, ix2 + GLYPH_PAD)
    gy2 = min(crop.shape[0] - 1, iy2 + GLYPH_PAD)
    gw, gh = gx2 - gx1 + 1, gy2 - gy1 + 1
    if gw < MIN_GLYPH_SIDE or gh < MIN_GLYPH_SIDE:
        return None, None

    lum = crop[gy1:gy2 + 1, gx1:gx2 + 1].astype(np.float32)
    thr = float(max(1, threshold))
    darkness = np.clip(1.0 - lum / thr, 0.0, 1.0)
    alpha = np.where(lum <= threshold, np.round(darkness * 255.0), 0).astype(np.uint8)
    glyph = np.zeros((gh, gw, 4), np.uint8)
    glyph[..., 3] = alpha
    return glyph, ink_box


def analyze_sheet(
    source: Union[str, Path, bytes, np.ndarray],
    sensitivity: int = 0,
) -> SheetAnalysis:
    """Full extraction pass over a sample-sheet photo.

    ``sensitivity`` shifts the computed ink threshold (positive picks up lighter
    strokes).
    """
    image = load_sheet_image(source)
    gray = to_grayscale(image)
    threshold = int(np.clip(otsu_threshold(gray) + int(sensitivity), 0, 255))
    cells, detected = detect_grid_cells(gray)

    glyphs: GlyphMap = {}
    boxes: Dict[str, Box] = {}
    for r, row_chars in enumerate(TEMPLATE_ROWS):
        row_cells = cells[r] if r < len(cells) else []
        for ch, cell in zip(row_chars, row_cells):
            glyph, box = extract_glyph(gray, cell, threshold)
            if glyph is None:
                continue
            glyphs[ch] = glyph
            boxes[ch] = box

    logger.debug("Extracted %d/%d glyphs (threshold=%d)", len(glyphs), len(TEMPLATE_CHARS), threshold)
    return SheetAnalysis(glyphs=glyphs, boxes=boxes, threshold=threshold, grid_detected=detected, cells=cells)


def extract_glyphs(source: Union[str, Path, bytes, np.ndarray], sensitivity: int = 0) -> GlyphMap:
    return analyze_sheet(source, sensitivity).glyphs


def glyph_stats(glyph_map: Optional[GlyphMap]) -> GlyphStats:
    if not glyph_map:
        return GlyphStats()
    keys = list(glyph_map.keys())
    return GlyphStats(
        total=len(keys),
        uppercase=sum(1 for c in keys if "A" <= c <= "Z"),
        lowercase=sum(1 for c in keys if "a" <= c <= "z"),
        digits=sum(1 for c in keys if "0" <= c <= "9"),
        punctuation=sum(1 for c in keys if c in PUNCTUATION),
    )
