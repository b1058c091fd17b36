"""Hand-sketched diagrams embedded in notes.

A diagram is written inline as ``[DIAGRAM: type | title | description]``. The
description is a small per-type language:

- flowchart: ``Start -> Read input -> Process -> End``
- tree: ``Root, Left, Right, LL, LR`` (breadth-first, binary), ``Key:value`` labels
- table: ``Headers: Name, Age; Row1: Ann, 12; Row2: Bob, 14``
- labeled: ``Components: ALU, Control Unit, Registers with arrows``
- cycle: ``Evaporation -> Condensation -> Precipitation -> Evaporation``

Drawing happens in two steps: the description is parsed into a typed parameter
object and laid out into positioned nodes and edges (pure, testable), then the
layout is drawn with wobbly pencil strokes.
"""

from __future__ import annotations

import logging
import math
import random
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, Type, Union

import numpy as np

from .fonts import get_face
from .raster import composite, paste_max, polyline_mask
from .styles import hex_to_bgr

logger = logging.getLogger(__name__)

PENCIL_COLOR = hex_to_bgr("#3a3a3a")
DIAGRAM_FONT_FAMILY = "Caveat"

DIAGRAM_TYPES = ("flowchart", "tree", "table", "labeled", "cycle")
DIAGRAM_HEIGHTS: Dict[str, int] = {
    "flowchart": 350,
    "tree": 340,
    "table": 300,
    "labeled": 380,
    "cycle": 360,
}
DEFAULT_DIAGRAM_HEIGHT = 320

# stroke strengths (0-1) for the pencil layer
STROKE_ALPHA = 0.75
BORDER_ALPHA = 0.3
HATCH_ALPHA = 0.25
TEXT_ALPHA = 0.85

_MARKER_RE = re.compile(r"\[DIAGRAM:\s*(\w+)\s*\|\s*([^|]+)\s*\|\s*(.+)\]", re.IGNORECASE)
_MARKER_PREFIX_RE = re.compile(r"\[DIAGRAM:", re.IGNORECASE)


@dataclass(frozen=True)
class DiagramSpec:
    type: str
    title: str
    description: str


def is_diagram_line(text: str) -> bool:
    return bool(_MARKER_PREFIX_RE.search(text or ""))


def parse_diagram_marker(text: str) -> Optional[DiagramSpec]:
    m = _MARKER_RE.search(text or "")
    if not m:
        return None
    return DiagramSpec(type=m.group(1).lower().strip(), title=m.group(2).strip(), description=m.group(3).strip())


def serialize_diagram_marker(spec: DiagramSpec) -> str:
    return f"[DIAGRAM: {spec.type} | {spec.title} | {spec.description}]"


def diagram_height(diagram_type: str) -> int:
    return DIAGRAM_HEIGHTS.get((diagram_type or "").lower(), DEFAULT_DIAGRAM_HEIGHT)


# -----------------------
# Parsed parameters
# -----------------------
@dataclass
class FlowchartParams:
    steps: List[str]


@dataclass
class TreeParams:
    labels: List[str]


@dataclass
class TableParams:
    rows: List[List[str]]

    @property
    def columns(self) -> int:
        return max((len(r) for r in self.rows), default=0)


@dataclass
class LabeledParams:
    components: List[str]


@dataclass
class CycleParams:
    steps: List[str]


DiagramParams = Union[FlowchartParams, TreeParams, TableParams, LabeledParams, CycleParams]


def _split_arrows(description: str) -> List[str]:
    return [s.strip() for s in description.split("->") if s.strip()]


def _split_top_level(text: str, sep: str = ",") -> List[str]:
    parts, depth, cur = [], 0, []
    for ch in text:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(0, depth - 1)
        if ch == sep and depth == 0:
            parts.append("".join(cur))
            cur = []
            continue
        cur.append(ch)
    parts.append("".join(cur))
    return [p.strip() for p in parts if p.strip()]


def tree_label(raw: str) -> str:
    label = re.sub(r"\(.*?\)|\(.*$", "", raw).strip()
    if ":" in label:
        label = label.split(":", 1)[1].strip()
    return label.replace("(", "").replace(")", "")


def parse_flowchart(description: str) -> FlowchartParams:
    return FlowchartParams(_split_arrows(description))


def parse_tree(description: str) -> TreeParams:
    return TreeParams([tree_label(n) for n in _split_top_level(description)])


def parse_table(description: str) -> TableParams:
    rows = []
    for part in (p.strip() for p in description.split(";")):
        if not part:
            continue
        content = part.split(":", 1)[1].strip() if ":" in part else part
        rows.append([c.strip() for c in content.split(",")])
    return TableParams(rows)


def parse_labeled(description: str) -> LabeledParams:
    text = re.sub(r"components?:", "", description, flags=re.IGNORECASE)
    text = re.sub(r"\bwith\b.*", "", text, flags=re.IGNORECASE)
    return LabeledParams([s.strip() for s in text.split(",") if s.strip()])


def parse_cycle(description: str) -> CycleParams:
    steps = _split_arrows(description)
    if len(steps) > 1 and steps[-1] == steps[0]:
        steps = steps[:-1]
    return CycleParams(steps)


_PARSERS: Dict[str, Callable[[str], DiagramParams]] = {
    "flowchart": parse_flowchart,
    "tree": parse_tree,
    "table": parse_table,
    "labeled": parse_labeled,
    "cycle": parse_cycle,
}


def parse_diagram(spec: DiagramSpec) -> DiagramParams:
    """Unknown types are read as a labeled component diagram."""
    parser = _PARSERS.get((spec.type or "").lower(), parse_labeled)
    return parser(spec.description or "")


# -----------------------
# Layout
# -----------------------
@dataclass
class Node:
    label: str
    cx: float
    cy: float
    w: float
    h: float
    shape: str = "rect"  # rect | oval | circle | cell
    font_px: float = 24.0
    hatched: bool = False


@dataclass
class Edge:
    x1: float
    y1: float
    x2: float
    y2: float
    arrow: bool = True


@dataclass
class DiagramLayout:
    kind: str
    title: str
    title_x: float
    title_y: float
    nodes: List[Node] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)


def _ring_positions(n: int, cx: float, cy: float, radius: float) -> List[Tuple[float, float]]:
    out = []
    for i in range(n):
        angle = (i / n) * math.pi * 2 - math.pi / 2
        out.append((cx + math.cos(angle) * radius, cy + math.sin(angle) * radius))
    return out


def layout_flowchart(p: FlowchartParams, layout: DiagramLayout, x, y, w, h) -> None:
    n = len(p.steps)
    if n == 0:
        return
    cols = min(n, 3)
    box_w = min(240.0, (w - 80) / cols)
    box_h = 55.0
    gap_x = (w - cols * box_w) / (cols + 1)
    start_y = y + 50
    row_gap = 90

    def origin(i):
        row = i // cols
        col = i % cols if row % 2 == 0 else (cols - 1) - (i % cols)
        return row, col, x + gap_x + col * (box_w + gap_x), start_y + row * row_gap

    for i, step in enumerate(p.steps):
        row, col, bx, by = origin(i)
        shape = "oval" if i in (0, n - 1) else "rect"
        layout.nodes.append(Node(step, bx + box_w / 2, by + box_h / 2, box_w, box_h, shape, 24))
        if i == n - 1:
            continue
        nrow, ncol, nx, ny = origin(i + 1)
        if nrow == row:
            if ncol > col:
                layout.edges.append(Edge(bx + box_w, by + box_h / 2, nx, ny + box_h / 2))
            else:
                layout.edges.append(Edge(bx, by + box_h / 2, nx + box_w, ny + box_h / 2))
        else:
            layout.edges.append(Edge(bx + box_w / 2, by + box_h, nx + box_w / 2, ny))


def layout_tree(p: TreeParams, layout: DiagramLayout, x, y, w, h) -> None:
    if not p.labels:
        return
    levels: List[List[str]] = []
    idx, size = 0, 1
    while idx < len(p.labels):
        levels.append(p.labels[idx:idx + size])
        idx += size
        size *= 2
    start_y = y + 65
    r = 30.0
    level_gap = 80
    for lvl, names in enumerate(levels):
        spacing = w / (len(names) + 1)
        cy = start_y + lvl * level_gap
        for i, name in enumerate(names):
            cx = x + spacing * (i + 1)
            if lvl > 0:
                parent_spacing = w / (len(levels[lvl - 1]) + 1)
                px = x + parent_spacing * (i // 2 + 1)
                py = start_y + (lvl - 1) * level_gap
                layout.edges.append(Edge(px, py + r, cx, cy - r, arrow=False))
            layout.nodes.append(Node(name, cx, cy, 2 * r, 2 * r, "circle", 22))


def layout_table(p: TableParams, layout: DiagramLayout, x, y, w, h) -> None:
    cols = p.columns
    if not p.rows or cols == 0:
        return
    cell_w = min(220.0, (w - 60) / cols)
    cell_h = 48.0
    table_x = x + (w - cols * cell_w) / 2
    table_y = y + 50
    for r, row in enumerate(p.rows):
        for c in range(cols):
            text = row[c] if c < len(row) else ""
            cx = table_x + c * cell_w + cell_w / 2
            cy = table_y + r * cell_h + cell_h / 2
            layout.nodes.append(Node(text, cx, cy, cell_w, cell_h, "cell", 20, hatched=(r == 0)))


def _ring_layout(labels, layout, x, y, w, h, box_w, box_h, font_px, y_bias, off_x, off_y) -> None:
    n = len(labels)
    if n == 0:
        return
    center_x = x + w / 2
    center_y = y + h / 2 + y_bias
    radius = min(w, h) * 0.3
    pts = _ring_positions(n, center_x, center_y, radius)
    for i, label in enumerate(labels):
        cx, cy = pts[i]
        layout.nodes.append(Node(label, cx, cy, box_w, box_h, "rect", font_px))
        nx, ny = pts[(i + 1) % n]
        dx, dy = nx - cx, ny - cy
        dist = math.hypot(dx, dy)
        if dist <= 1e-6:
            continue
        ux, uy = dx / dist, dy / dist
        layout.edges.append(Edge(cx + ux * off_x, cy + uy * off_y, nx - ux * off_x, ny - uy * off_y))


def layout_labeled(p: LabeledParams, layout: DiagramLayout, x, y, w, h) -> None:
    _ring_layout(p.components, layout, x, y, w, h, 180, 55, 20, 10, 60, 60)


def layout_cycle(p: CycleParams, layout: DiagramLayout, x, y, w, h) -> None:
    _ring_layout(p.steps, layout, x, y, w, h, 160, 45, 18, 15, 55, 35)


_LAYOUTS: Dict[Type, Tuple[str, Callable]] = {
    FlowchartParams: ("flowchart", layout_flowchart),
    TreeParams: ("tree", layout_tree),
    TableParams: ("table", layout_table),
    LabeledParams: ("labeled", layout_labeled),
    CycleParams: ("cycle", layout_cycle),
}


def layout_diagram(spec: DiagramSpec, x: float, y: float, width: float, height: float) -> DiagramLayout:
    """Position a diagram's nodes and connectors inside the given rectangle."""
    params = parse_diagram(spec)
    kind, fn = _LAYOUTS[type(params)]
    layout = DiagramLayout(kind=kind, title=spec.title, title_x=x + width / 2, title_y=y + 20)
    fn(params, layout, x, y, width, height)
    return layout


# -----------------------
# Sketchy drawing
# -----------------------
class SketchLayer:
    """Single-channel pencil layer covering one diagram's area of the page."""

    def __init__(self, x: int, y: int, width: int, height: int, rng: random.Random) -> None:
        self.x0, self.y0 = int(x), int(y)
        self.mask = np.zeros((max(1, int(height)), max(1, int(width))), np.uint8)
        self.rng = rng

    def _jit(self, wobble: float) -> float:
        return (self.rng.random() - 0.5) * wobble

    def line(self, x1, y1, x2, y2, wobble=2.0, alpha=STROKE_ALPHA, thickness=2) -> None:
        pts = [(x1 + self._jit(wobble), y1 + self._jit(wobble))]
        segments = max(3, int(math.hypot(x2 - x1, y2 - y1) // 20))
        for i in range(1, segments + 1):
            t = i / segments
            pts.append((x1 + (x2 - x1) * t + self._jit(wobble), y1 + (y2 - y1) * t + self._jit(wobble)))
        polyline_mask(self.mask.shape, pts, thickness, False, int(alpha * 255), (self.x0, self.y0), self.mask)

    def rect(self, x, y, w, h, wobble=2.0, alpha=STROKE_ALPHA, thickness=2) -> None:
        self.line(x, y, x + w, y, wobble, alpha, thickness)
        self.line(x + w, y, x + w, y + h, wobble, alpha, thickness)
        self.line(x + w, y + h, x, y + h, wobble, alpha, thickness)
        self.line(x, y + h, x, y, wobble, alpha, thickness)

    def ellipse(self, cx, cy, rx, ry, wobble=2.0, alpha=STROKE_ALPHA, thickness=2) -> None:
        steps = 36
        pts = []
        for i in range(steps + 1):
            a = (i / steps) * math.pi * 2
            pts.append((cx + math.cos(a) * rx + self._jit(wobble), cy + math.sin(a) * ry + self._jit(wobble)))
        polyline_mask(self.mask.shape, pts, thickness, True, int(alpha * 255), (self.x0, self.y0), self.mask)

    def arrow(self, x1, y1, x2, y2, wobble=2.0) -> None:
        self.line(x1, y1, x2, y2, wobble)
        angle = math.atan2(y2 - y1, x2 - x1)
        head = 18
        for a in (angle - math.pi / 6, angle + math.pi / 6):
            self.line(x2, y2, x2 - head * math.cos(a), y2 - head * math.sin(a), 1.0)

    def hatch(self, x, y, w, h, density=6) -> None:
        w, h = int(round(w)), int(round(h))
        if w <= 0 or h <= 0:
            return
        sub = np.zeros((h, w), np.uint8)
        diag = int(math.hypot(w, h))
        for lx in range(-diag, w + diag, density):
            polyline_mask(sub.shape, [(lx, 0), (lx - h, h)], 1, False, int(HATCH_ALPHA * 255), out=sub)
        paste_max(self.mask, sub, int(round(x)) - self.x0, int(round(y)) - self.y0)

    def text(self, text: str, cx, cy, font_px=28) -> None:
        if not text:
            return
        tm = get_face(DIAGRAM_FONT_FAMILY).render(text, font_px)
        mh, mw = tm.mask.shape[:2]
        px = int(round(cx + self._jit(1.5) - mw / 2.0)) - self.x0
        py = int(round(cy + self._jit(1.5) - mh / 2.0)) - self.y0
        paste_max(self.mask, tm.mask, px, py, TEXT_ALPHA)


def draw_layout(layer: SketchLayer, layout: DiagramLayout) -> None:
    layer.text(layout.title, layout.title_x, layout.title_y, 32)
    for edge in layout.edges:
        if edge.arrow:
            layer.arrow(edge.x1, edge.y1, edge.x2, edge.y2, 1.5)
        else:
            layer.line(edge.x1, edge.y1, edge.x2, edge.y2, 1.5)
    for node in layout.nodes:
        left, top = node.cx - node.w / 2, node.cy - node.h / 2
        if node.shape == "oval":
            layer.ellipse(node.cx, node.cy, node.w / 2, node.h / 2, 2.0)
        elif node.shape == "circle":
            layer.ellipse(node.cx, node.cy, node.w / 2, node.h / 2, 1.5)
        elif node.shape == "cell":
            if node.hatched:
                layer.hatch(left + 2, top + 2, node.w - 4, node.h - 4)
            layer.rect(left, top, node.w, node.h, 1.5)
        else:
            layer.rect(left, top, node.w, node.h, 2.0)
        layer.text(node.label, node.cx, node.cy, node.font_px)


def render_diagram(
    canvas: np.ndarray,
    spec: DiagramSpec,
    x: float,
    y: float,
    width: float,
    height: float,
    rng: Optional[random.Random] = None,
) -> DiagramLayout:
    """Sketch ``spec`` in pencil into the rectangle (x, y, width, height) of ``canvas``.

    Diagrams always use the pencil color and the handwriting diagram font, whatever
    ink and style the page text uses.
    """
    rng = rng or random.Random(0)
    bleed = 40
    layer = SketchLayer(int(x) - bleed, int(y) - bleed, int(width) + 2 * bleed, int(height) + 2 * bleed, rng)
    layer.rect(x + 10, y + 5, width - 20, height - 10, 1.5, BORDER_ALPHA, 2)
    layout = layout_diagram(spec, x + 20, y, width - 40, height)
    draw_layout(layer, layout)
    composite(canvas, layer.mask, layer.x0, layer.y0, PENCIL_COLOR, 1.0)
    logger.debug("Drew %s diagram %r with %d nodes", layout.kind, spec.title, len(layout.nodes))
    return layout
