from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .styles import (
    FATIGUE_MODES,
    HeaderInfo,
    PageTypeConfig,
    StyleConfig,
    clamp,
    get_page_type,
    get_style,
    get_template,
)

DATA_DIR_ENV = "HANDCRAFT_HOME"
FONT_DIR_ENV = "HANDCRAFT_FONT_DIR"

PACKAGE_ROOT = Path(__file__).resolve().parent


def data_dir() -> Path:
    raw = os.environ.get(DATA_DIR_ENV)
    return Path(raw).expanduser() if raw else Path.home() / ".handcraft"


def glyph_store_dir() -> Path:
    return data_dir() / "glyphs"


def font_dirs() -> List[Path]:
    dirs = []
    raw = os.environ.get(FONT_DIR_ENV)
    if raw:
        dirs.extend(Path(p).expanduser() for p in raw.split(os.pathsep) if p)
    dirs.append(data_dir() / "fonts")
    dirs.append(PACKAGE_ROOT / "fonts")
    return dirs


@dataclass
class RenderSettings:
    """User-facing knobs, as persisted between sessions.

    ``font_size`` is the UI slider value (18-40); the rendered pixel size at 300 DPI
    is twice that.
    """

    style_id: str = "neat"
    page_type_id: str = "single-margin"
    ink_color: str = "blue"
    fatigue_mode: str = "none"
    variation_intensity: float = 1.0
    font_size: int = 26
    line_spacing: float = 1.6
    template_id: str = "none"
    title: str = ""
    name: str = ""
    roll_number: str = ""
    subject: str = ""
    date: str = ""
    workers: int = 1

    def __post_init__(self) -> None:
        if self.fatigue_mode not in FATIGUE_MODES:
            raise ValueError(f"Unknown fatigue mode: {self.fatigue_mode!r}")
        self.variation_intensity = clamp(float(self.variation_intensity), 0.0, 2.0)
        self.font_size = int(clamp(int(self.font_size), 18, 40))
        self.line_spacing = clamp(float(self.line_spacing), 1.0, 2.5)
        self.workers = max(1, int(self.workers))

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "RenderSettings":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in raw.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def resolve(self) -> Tuple[StyleConfig, PageTypeConfig, Optional[HeaderInfo]]:
        template = get_template(self.template_id)
        page_type = get_page_type(template.page_type_id or self.page_type_id)
        base = get_style(self.style_id)
        style = base.with_overrides(
            font_size=float(self.font_size * 2),
            line_height=float(self.line_spacing),
            variation_intensity=float(self.variation_intensity),
        )
        header = HeaderInfo(
            title=self.title or template.header_title,
            name=self.name,
            roll_number=self.roll_number,
            subject=self.subject,
            date=self.date,
        )
        return style, page_type, (header if header.has_content() else None)


def load_settings(path: Path) -> RenderSettings:
    path = Path(path)
    if not path.exists():
        return RenderSettings()
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError(f"Invalid settings file: {path}")
    return RenderSettings.from_dict(raw)


def save_settings(settings: RenderSettings, path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(settings.to_dict(), indent=2), encoding="utf-8")
