from __future__ import annotations

from pathlib import Path
from typing import List, Sequence

import cv2
import numpy as np
from PIL import Image

from .errors import ResourceError

PDF_DPI = 300.0


def save_png_pages(images: Sequence[np.ndarray], out_dir: Path, prefix: str = "page") -> List[Path]:
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    paths = []
    for i, img in enumerate(images, start=1):
        path = out_dir / f"{prefix}_{i:03d}.png"
        if not cv2.imwrite(str(path), img):
            raise ResourceError(f"Failed to write {path}")
        paths.append(path)
    return paths


def to_pil(image_bgr: np.ndarray) -> Image.Image:
    return Image.fromarray(cv2.cvtColor(image_bgr, cv2.COLOR_BGR2RGB))


def save_pdf(images: Sequence[np.ndarray], out_path: Path, title: str = "") -> Path:
    """One A4 page per image, in order, at 300 DPI."""
    if not images:
        raise ValueError("No pages to export")
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    pages = [to_pil(img) for img in images]
    try:
        pages[0].save(
            str(out_path),
            "PDF",
            resolution=PDF_DPI,
            save_all=True,
            append_images=pages[1:],
            title=title or "Handwritten Notes",
        )
    except OSError as exc:
        raise ResourceError(f"Failed to write {out_path}: {exc}") from exc
    return out_path
