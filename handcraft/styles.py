from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple

# A4 at 300 DPI
A4_WIDTH_PX = 2480
A4_HEIGHT_PX = 3508

TOP_MARGIN = 140
BOTTOM_MARGIN = 100

DEFAULT_MARGIN_LEFT = 120

FATIGUE_MODES = ("none", "gradual", "rush", "careful-start")

Color = Tuple[int, int, int]


def clamp(v, lo, hi):
    return max(lo, min(hi, v))


def hex_to_bgr(value: Optional[str]) -> Optional[Color]:
    """Parse '#rrggbb' (or '#rgb') into an OpenCV BGR tuple; 'transparent'/empty gives None."""
    if not value:
        return None
    s = value.strip().lstrip("#")
    if s.lower() == "transparent":
        return None
    if len(s) == 3:
        s = "".join(ch * 2 for ch in s)
    if len(s) != 6:
        raise ValueError(f"Invalid color: {value!r}")
    r, g, b = int(s[0:2], 16), int(s[2:4], 16), int(s[4:6], 16)
    return (b, g, r)


@dataclass(frozen=True)
class StyleConfig:
    id: str = "neat"
    name: str = "Neat Student"
    font_family: str = "Caveat"
    font_size: float = 52.0
    letter_spacing: float = 1.0
    line_height: float = 1.55
    variation_intensity: float = 0.7
    weight: str = "400"
    is_custom: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "variation_intensity", clamp(float(self.variation_intensity), 0.0, 2.0))
        if self.font_size <= 0:
            raise ValueError("font_size must be positive")
        if self.line_height <= 0:
            raise ValueError("line_height must be positive")

    @property
    def line_spacing(self) -> float:
        return float(self.font_size) * float(self.line_height)

    @property
    def bold(self) -> bool:
        try:
            return int(self.weight) >= 600
        except ValueError:
            return self.weight.lower() == "bold"

    def with_overrides(self, **changes) -> "StyleConfig":
        return replace(self, **changes)


@dataclass(frozen=True)
class PageTypeConfig:
    id: str = "single-margin"
    name: str = "Single Margin Ruled"
    margin_left: int = DEFAULT_MARGIN_LEFT
    margin_right: int = 0
    has_ruled_lines: bool = True
    ruled_line_color: str = "#a8c8e8"
    margin_line_color: str = "#d94040"
    paper_color: str = "#FFFEF5"

    @property
    def text_start_x(self) -> int:
        return (self.margin_left or DEFAULT_MARGIN_LEFT) + 30

    @property
    def text_right_pad(self) -> int:
        return (self.margin_right + 20) if self.margin_right else 100

    @property
    def text_width(self) -> int:
        return A4_WIDTH_PX - self.text_start_x - self.text_right_pad


@dataclass(frozen=True)
class HeaderInfo:
    title: str = ""
    name: str = ""
    roll_number: str = ""
    subject: str = ""
    date: str = ""

    def has_content(self) -> bool:
        return any(v.strip() for v in (self.title, self.name, self.roll_number, self.subject, self.date))


@dataclass(frozen=True)
class InkColor:
    key: str
    label: str
    base: Color
    variations: Tuple[Color, ...] = field(default_factory=tuple)


def _rgb(r: int, g: int, b: int) -> Color:
    return (b, g, r)


INK_COLORS: Dict[str, InkColor] = {
    "blue": InkColor(
        "blue",
        "Blue Ink",
        _rgb(10, 30, 140),
        (_rgb(8, 25, 130), _rgb(15, 35, 150), _rgb(10, 28, 135), _rgb(12, 32, 145)),
    ),
    "darkblue": InkColor(
        "darkblue",
        "Dark Blue",
        _rgb(5, 10, 60),
        (_rgb(2, 8, 50), _rgb(8, 15, 70), _rgb(5, 12, 55), _rgb(6, 14, 65)),
    ),
    "black": InkColor(
        "black",
        "Black Ink",
        _rgb(15, 15, 18),
        (_rgb(10, 10, 12), _rgb(20, 20, 24), _rgb(12, 12, 15), _rgb(18, 18, 20)),
    ),
}


def get_ink(key: str) -> InkColor:
    return INK_COLORS.get(key) or INK_COLORS["blue"]


def _style(id, name, family, size, spacing, line_height, intensity, is_custom=False):
    return StyleConfig(
        id=id,
        name=name,
        font_family=family,
        font_size=size,
        letter_spacing=spacing,
        line_height=line_height,
        variation_intensity=intensity,
        is_custom=is_custom,
    )


HANDWRITING_STYLES: List[StyleConfig] = [
    _style("custom", "My Handwriting", "Caveat", 52, 1.0, 1.55, 0.5, is_custom=True),
    _style("neat", "Neat Student", "Caveat", 52, 1.0, 1.55, 0.7),
    _style("cursive", "Cursive Style", "Kalam", 46, 0.6, 1.5, 0.9),
    _style("casual", "Casual Notes", "Indie Flower", 48, 1.2, 1.65, 0.8),
    _style("classic", "Classic Pen", "Homemade Apple", 38, 1.0, 1.8, 1.0),
    _style("quick", "Quick Writing", "Patrick Hand", 50, 0.8, 1.5, 0.6),
    _style("elegant", "Elegant Script", "Dancing Script", 46, 0.8, 1.55, 0.65),
    _style("bold-sketch", "Bold Sketch", "Fredericka the Great", 44, 1.2, 1.7, 0.5),
    _style("architect", "Pencil Draft", "Architects Daughter", 48, 1.0, 1.6, 0.75),
    _style("schoolbook", "Schoolbook", "Shadows Into Light Two", 50, 1.0, 1.55, 0.8),
    _style("scratchy", "Messy Scrawl", "Rock Salt", 36, 1.4, 1.9, 1.2),
    _style("soft", "Soft Cursive", "Satisfy", 48, 0.8, 1.55, 0.6),
    _style("marker", "Marker Style", "Permanent Marker", 44, 1.0, 1.6, 0.55),
    _style("vintage", "Vintage Quill", "Herr Von Muellerhoff", 58, 1.2, 1.45, 0.7),
    _style("tech", "Tech Print", "Nanum Pen Script", 50, 0.9, 1.6, 0.4),
]

PAGE_TYPES: List[PageTypeConfig] = [
    PageTypeConfig(),
    PageTypeConfig(id="double-margin", name="Double Margin", margin_right=90),
    PageTypeConfig(
        id="plain",
        name="Plain A4",
        margin_left=80,
        has_ruled_lines=False,
        ruled_line_color="transparent",
        margin_line_color="transparent",
        paper_color="#FFFFFF",
    ),
]


@dataclass(frozen=True)
class PageTemplate:
    id: str
    name: str
    page_type_id: Optional[str] = None
    header_title: str = ""


PAGE_TEMPLATES: List[PageTemplate] = [
    PageTemplate("none", "None"),
    PageTemplate("assignment", "Assignment", "single-margin", "Assignment"),
    PageTemplate("lab-record", "Lab Record", "double-margin", "Laboratory Record"),
    PageTemplate("exam-answer", "Exam Answer", "single-margin", ""),
]


def _by_id(items, key, kind):
    for it in items:
        if it.id == key:
            return it
    raise KeyError(f"Unknown {kind}: {key!r}")


def get_style(style_id: str) -> StyleConfig:
    return _by_id(HANDWRITING_STYLES, style_id, "style")


def get_page_type(page_type_id: str) -> PageTypeConfig:
    return _by_id(PAGE_TYPES, page_type_id, "page type")


def get_template(template_id: str) -> PageTemplate:
    return _by_id(PAGE_TEMPLATES, template_id, "page template")
