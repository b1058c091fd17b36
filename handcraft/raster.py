from __future__ import annotations

import math
from typing import Callable, Optional, Sequence, Tuple

import cv2
import numpy as np

from .styles import Color, clamp


def new_canvas(width: int, height: int, color: Color) -> np.ndarray:
    return np.full((height, width, 3), color, np.uint8)


def composite(canvas: np.ndarray, mask: np.ndarray, x: int, y: int, color: Color, opacity: float = 1.0) -> None:
    """Alpha-blend ``color`` into ``canvas`` using ``mask`` (0-255 coverage) placed at (x, y)."""
    h, w = mask.shape[:2]
    x1, y1 = max(0, x), max(0, y)
    x2, y2 = min(canvas.shape[1], x + w), min(canvas.shape[0], y + h)
    if x1 >= x2 or y1 >= y2:
        return
    mx1, my1 = x1 - x, y1 - y
    sub = (mask[my1:my1 + (y2 - y1), mx1:mx1 + (x2 - x1)].astype(np.float32) / 255.0)[..., None]
    alpha = sub * clamp(float(opacity), 0.0, 1.0)
    if not np.any(alpha > 0):
        return
    col = np.array(color, dtype=np.float32).reshape(1, 1, 3)
    patch = canvas[y1:y2, x1:x2].astype(np.float32)
    canvas[y1:y2, x1:x2] = np.clip(patch * (1 - alpha) + col * alpha, 0, 255).astype(np.uint8)


def tf_mask(mask: np.ndarray, angle: float, sx: float = 1.0, sy: float = 1.0, shear: float = 0.0) -> np.ndarray:
    """Scale, shear and rotate (degrees, counter-clockwise) a mask about its center.

    The output is grown to hold the whole transformed mask, so the input center maps
    onto the output center.
    """
    h, w = mask.shape[:2]
    if h == 0 or w == 0:
        return mask
    rad = math.radians(angle)
    cos, sin = math.cos(rad), math.sin(rad)
    rot = np.array([[cos, sin], [-sin, cos]], np.float64)
    lin = rot @ np.array([[1.0, shear], [0.0, 1.0]]) @ np.array([[sx, 0.0], [0.0, sy]])
    corners = np.array([[-w / 2.0, -h / 2.0], [w / 2.0, -h / 2.0], [w / 2.0, h / 2.0], [-w / 2.0, h / 2.0]])
    moved = corners @ lin.T
    bw = max(1, int(math.ceil(moved[:, 0].max() - moved[:, 0].min())) + 2)
    bh = max(1, int(math.ceil(moved[:, 1].max() - moved[:, 1].min())) + 2)
    M = np.zeros((2, 3), np.float64)
    M[:, :2] = lin
    M[:, 2] = np.array([bw / 2.0, bh / 2.0]) - lin @ np.array([w / 2.0, h / 2.0])
    return cv2.warpAffine(mask, M, (bw, bh), flags=cv2.INTER_LINEAR, borderValue=0)


def maybe_apply_ink_variation(mask: np.ndarray, rand: Callable[[], float], amount: float) -> np.ndarray:
    """Occasionally thicken, thin or soften a stroke mask, the way real pens vary."""
    amt = clamp(float(amount), 0.0, 1.0)
    if amt <= 0.0 or min(mask.shape[:2]) < 4:
        return mask
    out = mask
    if rand() < (0.22 + 0.38 * amt):
        kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (3, 3))
        if rand() < 0.5:
            out = cv2.dilate(out, kernel, iterations=1)
        else:
            out = cv2.erode(out, kernel, iterations=1)
    if rand() < (0.20 + 0.25 * amt):
        sigma = 0.15 + 0.70 * amt
        out = cv2.GaussianBlur(out, (3, 3), sigma)
    return out


def paste_max(dst: np.ndarray, patch: np.ndarray, x: int, y: int, scale: float = 1.0) -> None:
    """Merge ``patch`` into the single-channel ``dst`` at (x, y), keeping the stronger coverage."""
    h, w = patch.shape[:2]
    x1, y1 = max(0, x), max(0, y)
    x2, y2 = min(dst.shape[1], x + w), min(dst.shape[0], y + h)
    if x1 >= x2 or y1 >= y2:
        return
    src = patch[y1 - y:y2 - y, x1 - x:x2 - x]
    if scale != 1.0:
        src = np.clip(src.astype(np.float32) * scale, 0, 255).astype(np.uint8)
    np.maximum(dst[y1:y2, x1:x2], src, out=dst[y1:y2, x1:x2])


def polyline_mask(
    shape: Tuple[int, int],
    points: Sequence[Tuple[float, float]],
    thickness: int = 2,
    closed: bool = False,
    value: int = 255,
    origin: Tuple[int, int] = (0, 0),
    out: Optional[np.ndarray] = None,
) -> np.ndarray:
    mask = out if out is not None else np.zeros(shape, np.uint8)
    ox, oy = origin
    pts = np.array([[int(round(px - ox)), int(round(py - oy))] for px, py in points], np.int32)
    if len(pts) >= 2:
        cv2.polylines(mask, [pts], closed, int(value), max(1, int(thickness)), cv2.LINE_AA)
    return mask
