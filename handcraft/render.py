from __future__ import annotations

import logging
import math
import random
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from .diagrams import DEFAULT_DIAGRAM_HEIGHT, render_diagram
from .errors import InputError
from .fonts import FontFace, get_face
from .glyphs import GlyphMap
from .pagination import DIAGRAM, HEADER_DETAIL, HEADER_TITLE, HEADING, SPACER, LaidOutLine, Page, paginate
from .raster import composite, maybe_apply_ink_variation, new_canvas, polyline_mask, tf_mask
from .structure import parse_text
from .styles import (
    A4_HEIGHT_PX,
    A4_WIDTH_PX,
    TOP_MARGIN,
    Color,
    HeaderInfo,
    InkColor,
    PageTypeConfig,
    StyleConfig,
    get_ink,
    hex_to_bgr,
)
from .variation import VariationState, page_seed

logger = logging.getLogger(__name__)

SAFE_BOTTOM = A4_HEIGHT_PX - 100
RULED_BOTTOM = A4_HEIGHT_PX - 140
PAGE_NUMBER_Y = A4_HEIGHT_PX - 60
SPACER_RATIO = 0.55

GRAIN_COLORS = [hex_to_bgr(c) for c in ("#e8e4d8", "#ddd9cc", "#eae6da", "#d5d0c4")]
GRAIN_COUNT = 2000
GRAIN_ALPHA = 0.04
FIBER_COLOR = hex_to_bgr("#c0b8a0")
FIBER_COUNT = 40
FIBER_ALPHA = 0.015

# a glyph of median height is drawn this tall relative to the font size
GLYPH_HEIGHT_RATIO = 0.72
# glyph top sits this far above the baseline, as a fraction of its drawn height
GLYPH_ASCENT = 0.75
INK_VARIATION = 0.12


@dataclass
class RenderedDocument:
    pages: List[Page]
    images: List[np.ndarray] = field(default_factory=list)


# -----------------------
# Paper
# -----------------------
def _vertical_rule(canvas: np.ndarray, x: int, width: int, color: Color, alpha: float) -> None:
    mask = np.full((canvas.shape[0], max(1, width)), 255, np.uint8)
    composite(canvas, mask, int(x) - width // 2, 0, color, alpha)


def draw_page_background(
    canvas: np.ndarray,
    page_type: PageTypeConfig,
    line_spacing: float,
    np_rng: np.random.Generator,
) -> None:
    """Grain, fibers, ruled lines and margin rules over an already paper-filled canvas."""
    height, width = canvas.shape[:2]

    xs = np_rng.uniform(0, width, GRAIN_COUNT).astype(int)
    ys = np_rng.uniform(0, height, GRAIN_COUNT).astype(int)
    sizes = np.ceil(np_rng.uniform(0.5, 2.0, GRAIN_COUNT)).astype(int)
    picks = np_rng.integers(0, len(GRAIN_COLORS), GRAIN_COUNT)
    for x, y, s, k in zip(xs, ys, sizes, picks):
        patch = canvas[y:y + s, x:x + s].astype(np.float32)
        col = np.array(GRAIN_COLORS[k], np.float32)
        canvas[y:y + s, x:x + s] = (patch * (1 - GRAIN_ALPHA) + col * GRAIN_ALPHA).astype(np.uint8)

    for _ in range(FIBER_COUNT):
        x1, y1 = float(np_rng.uniform(0, width)), float(np_rng.uniform(0, height))
        x2 = x1 + float(np_rng.uniform(-30, 30))
        y2 = y1 + float(np_rng.uniform(-4, 4))
        ox, oy = int(min(x1, x2)) - 2, int(min(y1, y2)) - 2
        shape = (int(abs(y2 - y1)) + 5, int(abs(x2 - x1)) + 5)
        m = polyline_mask(shape, [(x1, y1), (x2, y2)], 1, origin=(ox, oy))
        composite(canvas, m, ox, oy, FIBER_COLOR, FIBER_ALPHA)

    if page_type.has_ruled_lines:
        ruled = hex_to_bgr(page_type.ruled_line_color)
        if ruled is not None and line_spacing > 0:
            y = float(TOP_MARGIN)
            while y <= RULED_BOTTOM:
                pts = [(0.0, y)]
                for x in range(0, width, 100):
                    pts.append((float(x), y + float(np_rng.uniform(-0.25, 0.25))))
                pts.append((float(width), y))
                oy = int(y) - 4
                m = polyline_mask((9, width), pts, 2, origin=(0, oy))
                composite(canvas, m, 0, oy, ruled, 0.55)
                y += line_spacing

        margin = hex_to_bgr(page_type.margin_line_color)
        if margin is not None:
            if page_type.margin_left:
                _vertical_rule(canvas, page_type.margin_left, 3, margin, 0.65)
                _vertical_rule(canvas, page_type.margin_left + 6, 1, margin, 0.3)
            if page_type.margin_right:
                _vertical_rule(canvas, width - page_type.margin_right, 3, margin, 0.65)

    # faint shadow along the top edge
    shade = np.linspace(0.03, 0.0, 20, dtype=np.float32).reshape(20, 1, 1)
    canvas[:20] = (canvas[:20].astype(np.float32) * (1.0 - shade)).astype(np.uint8)


# -----------------------
# Text
# -----------------------
def ink_variant(ink: InkColor, variation: VariationState) -> Color:
    if not ink.variations:
        return ink.base
    idx = min(len(ink.variations) - 1, int(variation.random() * len(ink.variations)))
    return ink.variations[idx]


def glyph_reference_height(glyph_map: Optional[GlyphMap]) -> float:
    if not glyph_map:
        return 0.0
    return float(np.median([g.shape[0] for g in glyph_map.values()]))


def glyph_scale(font_px: float, reference_height: float) -> float:
    return (float(font_px) * GLYPH_HEIGHT_RATIO) / max(1.0, reference_height)


def _glyph_alpha(glyph: np.ndarray) -> np.ndarray:
    return glyph[..., 3] if glyph.ndim == 3 else glyph


def render_char(
    canvas: np.ndarray,
    ch: str,
    x: float,
    y: float,
    char_index: int,
    variation: VariationState,
    style: StyleConfig,
    ink: InkColor,
    face: FontFace,
    glyph: Optional[np.ndarray] = None,
    reference_height: float = 0.0,
    tilt: float = 0.0,
) -> None:
    """Draw one character with its baseline origin at (x, y)."""
    variation.tick()
    intensity = style.variation_intensity

    y_off = variation.baseline_jitter(intensity) + variation.baseline_wave(char_index, intensity * 0.6)
    x_off = variation.letter_spacing_jitter(intensity * 0.5)
    rotation = variation.rotation_jitter(intensity) + tilt
    font_px = variation.size_jitter(style.font_size, intensity * 0.6)
    opacity = variation.opacity_jitter(intensity)
    color = ink_variant(ink, variation)

    ox, oy = x + x_off, y + y_off
    # canvas rotations are clockwise for positive radians; tf_mask takes counter-clockwise degrees
    angle = -math.degrees(rotation)

    if glyph is not None:
        scale = glyph_scale(font_px, reference_height)
        scale_var = 0.92 + variation.random() * 0.16
        skew = (variation.random() - 0.5) * 0.08
        weight_var = 0.95 + variation.random() * 0.1
        alpha = _glyph_alpha(glyph)
        draw_w = alpha.shape[1] * scale * scale_var
        draw_h = alpha.shape[0] * scale * scale_var * weight_var
        if draw_w < 1 or draw_h < 1:
            return
        patch = tf_mask(alpha, angle, scale * scale_var, scale * scale_var * weight_var, skew)
        patch = maybe_apply_ink_variation(patch, variation.random, INK_VARIATION * intensity)
        cx = ox + draw_w / 2.0
        cy = oy - draw_h * GLYPH_ASCENT + draw_h / 2.0
        ph, pw = patch.shape[:2]
        composite(canvas, patch, int(round(cx - pw / 2.0)), int(round(cy - ph / 2.0)), color, opacity)
        return

    def stamp(px: float, dx: float, alpha: float) -> None:
        tm = face.render(ch, px, style.bold)
        h, w = tm.mask.shape[:2]
        cx = ox + dx - tm.left + w / 2.0
        cy = oy + dx - tm.baseline + h / 2.0
        patch = tf_mask(tm.mask, angle)
        ph, pw = patch.shape[:2]
        composite(canvas, patch, int(round(cx - pw / 2.0)), int(round(cy - ph / 2.0)), color, alpha)

    if variation.ink_blob():
        stamp(font_px + 3, 0.5, opacity * 0.6)
    stamp(font_px, 0.0, min(1.0, opacity + 0.15))


def _char_advance(ch: str, style: StyleConfig, face: FontFace, glyph_map: Optional[GlyphMap], reference_height: float) -> float:
    glyph = glyph_map.get(ch) if glyph_map else None
    if glyph is not None:
        return glyph.shape[1] * glyph_scale(style.font_size, reference_height)
    return face.measure(ch, style.font_size, style.bold)


def render_line(
    canvas: np.ndarray,
    text: str,
    start_x: float,
    y: float,
    variation: VariationState,
    style: StyleConfig,
    ink: InkColor,
    face: FontFace,
    is_heading: bool = False,
    heading_level: int = 2,
    glyph_map: Optional[GlyphMap] = None,
    reference_height: float = 0.0,
) -> None:
    if not text or not text.strip():
        return

    intensity = style.variation_intensity
    line_angle = variation.line_angle(intensity)
    base_style = style
    if is_heading:
        style = style.with_overrides(font_size=style.font_size * (1.35 if heading_level == 1 else 1.18), weight="700")

    x = start_x + variation.line_start_jitter(intensity)
    heading_start = x
    in_word = False
    word_shift = 0.0
    stretch = 1.0
    slope = math.sin(line_angle)

    for i, ch in enumerate(text):
        if ch == " ":
            in_word = False
        elif not in_word:
            in_word = True
            word_shift = variation.word_shift(intensity)
            stretch = variation.word_stretch(intensity)

        char_w = _char_advance(ch, style, face, glyph_map, reference_height)
        if ch != " ":
            glyph = glyph_map.get(ch) if glyph_map else None
            render_char(
                canvas,
                ch,
                x,
                y + word_shift + (x - start_x) * slope,
                i,
                variation,
                style,
                ink,
                face,
                glyph,
                reference_height,
                line_angle,
            )

        x += char_w * stretch + base_style.letter_spacing + variation.letter_spacing_jitter(intensity * 0.25)
        if ch == " ":
            x += variation.word_spacing_jitter(intensity)

    if is_heading:
        color = ink_variant(ink, variation)
        under_y = y + 10
        seg_w = (x - heading_start) / 8.0
        pts = [(heading_start, under_y + (variation.random() - 0.5) * 2)]
        for s in range(1, 9):
            px = heading_start + s * seg_w
            pts.append((px, under_y + (px - start_x) * slope + (variation.random() - 0.5) * 3))
        min_x = int(min(p[0] for p in pts)) - 4
        min_y = int(min(p[1] for p in pts)) - 4
        max_x = int(max(p[0] for p in pts)) + 4
        max_y = int(max(p[1] for p in pts)) + 4
        m = polyline_mask((max_y - min_y + 1, max_x - min_x + 1), pts, 2, origin=(min_x, min_y))
        composite(canvas, m, min_x, min_y, color, 0.45)


def _page_number(canvas: np.ndarray, page_index: int, style: StyleConfig, ink: InkColor, face: FontFace, variation: VariationState) -> None:
    color = ink_variant(ink, variation)
    tm = face.render(f"- {page_index + 1} -", style.font_size * 0.7, style.bold)
    x = int(round(A4_WIDTH_PX / 2.0 - tm.advance / 2.0)) - tm.left
    y = PAGE_NUMBER_Y - tm.baseline
    composite(canvas, tm.mask, x, y, color, 0.55)


# -----------------------
# Pages
# -----------------------
def _report_overflow(page_index: int, remaining: Sequence[LaidOutLine]) -> None:
    left = sum(1 for ln in remaining if ln.type != SPACER)
    if left:
        logger.warning("Page %d overflowed; %d line(s) not drawn", page_index + 1, left)


def render_page(
    page: Page,
    style: StyleConfig,
    page_type: PageTypeConfig,
    ink_color: str = "blue",
    page_index: int = 0,
    total_pages: int = 1,
    glyph_map: Optional[GlyphMap] = None,
    fatigue_mode: str = "none",
) -> np.ndarray:
    """Draw one laid-out page; returns an A4 (3508 x 2480) BGR image.

    Lines are drawn top-down from the top margin; the vertical cursor is the text
    baseline. Drawing stops early, without raising, if the cursor passes the safe
    bottom bound.
    """
    seed = page_seed(page_index)
    paper = hex_to_bgr(page_type.paper_color) or (245, 254, 255)
    canvas = new_canvas(A4_WIDTH_PX, A4_HEIGHT_PX, paper)
    line_spacing = style.line_spacing
    draw_page_background(canvas, page_type, line_spacing, np.random.default_rng(seed))

    variation = VariationState.for_page(page_index, total_pages, fatigue_mode)
    face = get_face(style.font_family)
    ink = get_ink(ink_color)
    ref_h = glyph_reference_height(glyph_map)
    start_x = page_type.text_start_x
    y = float(TOP_MARGIN)

    for n, line in enumerate(page.lines):
        if line.type == SPACER:
            y += line_spacing * SPACER_RATIO
            continue

        if line.type == DIAGRAM:
            h = line.height_px or DEFAULT_DIAGRAM_HEIGHT
            if y + h > SAFE_BOTTOM:
                _report_overflow(page_index, page.lines[n:])
                break
            if line.diagram is not None:
                render_diagram(canvas, line.diagram, start_x - 10, y, page_type.text_width + 20, h, random.Random(seed + n))
            y += h
        elif line.type in (HEADING, HEADER_TITLE):
            render_line(canvas, line.text, start_x, y, variation, style, ink, face, True, line.level or 2, glyph_map, ref_h)
            y += line_spacing
        elif line.type == HEADER_DETAIL:
            detail = style.with_overrides(
                font_size=style.font_size * 0.88,
                variation_intensity=style.variation_intensity * 0.65,
            )
            render_line(canvas, line.text, start_x, y, variation, detail, ink, face, False, 2, glyph_map, ref_h)
            y += line_spacing
        else:
            render_line(canvas, line.text, start_x, y, variation, style, ink, face, False, 2, glyph_map, ref_h)
            y += line_spacing

        if y > SAFE_BOTTOM:
            _report_overflow(page_index, page.lines[n + 1:])
            break

    if total_pages > 1:
        _page_number(canvas, page_index, style, ink, face, variation)
    return canvas


def render_pages(
    pages: Sequence[Page],
    style: StyleConfig,
    page_type: PageTypeConfig,
    ink_color: str = "blue",
    glyph_map: Optional[GlyphMap] = None,
    fatigue_mode: str = "none",
    workers: int = 1,
) -> List[np.ndarray]:
    """Render every page; output order always matches ``pages``."""
    total = len(pages)

    def one(i: int) -> np.ndarray:
        logger.debug("Rendering page %d/%d", i + 1, total)
        return render_page(pages[i], style, page_type, ink_color, i, total, glyph_map, fatigue_mode)

    if workers <= 1 or total <= 1:
        return [one(i) for i in range(total)]
    with ThreadPoolExecutor(max_workers=min(int(workers), total)) as pool:
        return list(pool.map(one, range(total)))


def generate_document(
    text: str,
    style: StyleConfig,
    page_type: PageTypeConfig,
    header: Optional[HeaderInfo] = None,
    ink_color: str = "blue",
    glyph_map: Optional[GlyphMap] = None,
    fatigue_mode: str = "none",
    workers: int = 1,
) -> RenderedDocument:
    """Structure, paginate and render ``text``.

    The glyph map is only used with a custom-handwriting style.
    """
    if not text or not text.strip():
        raise InputError("Please enter some text first")
    blocks = parse_text(text)
    pages = paginate(blocks, style, page_type, header)
    use_glyphs = glyph_map if (style.is_custom and glyph_map) else None
    images = render_pages(pages, style, page_type, ink_color, use_glyphs, fatigue_mode, workers)
    logger.debug("Rendered %d page(s) from %d block(s)", len(images), len(blocks))
    return RenderedDocument(pages=pages, images=images)
