from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .diagrams import DiagramSpec, diagram_height
from .structure import ContentBlock, Diagram, Heading, Paragraph
from .styles import A4_HEIGHT_PX, BOTTOM_MARGIN, TOP_MARGIN, HeaderInfo, PageTypeConfig, StyleConfig

logger = logging.getLogger(__name__)

USABLE_HEIGHT = A4_HEIGHT_PX - TOP_MARGIN - BOTTOM_MARGIN

AVG_CHAR_WIDTH_RATIO = 0.48
HEADING_WIDTH_RATIO = 0.82
HEADER_FIELD_GAP = "     "

TEXT = "text"
HEADING = "heading"
HEADER_TITLE = "header-title"
HEADER_DETAIL = "header-detail"
SPACER = "spacer"
DIAGRAM = "diagram"


@dataclass
class LaidOutLine:
    type: str
    text: str = ""
    level: Optional[int] = None
    diagram: Optional[DiagramSpec] = None
    height_px: Optional[int] = None


@dataclass
class Page:
    lines: List[LaidOutLine] = field(default_factory=list)
    is_first_page: bool = False


def line_cost(line: LaidOutLine, line_spacing: float) -> float:
    """Vertical budget a line takes during pagination."""
    if line.type == DIAGRAM:
        return float(line.height_px or diagram_height(line.diagram.type if line.diagram else ""))
    return float(line_spacing)


def estimate_chars_per_line(font_size: float, page_type: PageTypeConfig) -> int:
    return max(1, int(page_type.text_width // (font_size * AVG_CHAR_WIDTH_RATIO)))


def word_wrap(text: str, max_chars: int) -> List[str]:
    """Greedy wrap by character count; words longer than a line are split with a hyphen."""
    max_chars = max(2, int(max_chars))
    words = (text or "").split()
    if not words:
        return [""]
    lines: List[str] = []
    cur = ""
    for word in words:
        if len(cur) + len(word) + 1 <= max_chars:
            cur = f"{cur} {word}" if cur else word
            continue
        if cur:
            lines.append(cur)
        if len(word) > max_chars:
            rest = word
            while len(rest) > max_chars:
                lines.append(rest[: max_chars - 1] + "-")
                rest = rest[max_chars - 1:]
            cur = rest
        else:
            cur = word
    if cur:
        lines.append(cur)
    return lines or [""]


def header_lines(header: Optional[HeaderInfo]) -> List[LaidOutLine]:
    if header is None:
        return []
    out: List[LaidOutLine] = []
    if header.title.strip():
        out.append(LaidOutLine(HEADER_TITLE, header.title.strip()))
    details = []
    if header.name.strip():
        details.append(f"Name: {header.name.strip()}")
    if header.roll_number.strip():
        details.append(f"Roll No: {header.roll_number.strip()}")
    if details:
        out.append(LaidOutLine(HEADER_DETAIL, HEADER_FIELD_GAP.join(details)))
    details = []
    if header.subject.strip():
        details.append(f"Subject: {header.subject.strip()}")
    if header.date.strip():
        details.append(f"Date: {header.date.strip()}")
    if details:
        out.append(LaidOutLine(HEADER_DETAIL, HEADER_FIELD_GAP.join(details)))
    if out:
        out.append(LaidOutLine(SPACER))
    return out


def flatten_blocks(blocks: Sequence[ContentBlock], chars_per_line: int) -> List[LaidOutLine]:
    lines: List[LaidOutLine] = []
    for block in blocks:
        if isinstance(block, Diagram):
            lines.append(LaidOutLine(SPACER))
            lines.append(LaidOutLine(DIAGRAM, diagram=block.spec, height_px=diagram_height(block.spec.type)))
            lines.append(LaidOutLine(SPACER))
        elif isinstance(block, Heading):
            if lines:
                lines.append(LaidOutLine(SPACER))
            for wl in word_wrap(block.text, int(chars_per_line * HEADING_WIDTH_RATIO)):
                lines.append(LaidOutLine(HEADING, wl, level=block.level))
            lines.append(LaidOutLine(SPACER))
        elif isinstance(block, Paragraph):
            for wl in word_wrap(block.text, chars_per_line):
                lines.append(LaidOutLine(TEXT, wl))
            lines.append(LaidOutLine(SPACER))
    while lines and lines[-1].type == SPACER:
        lines.pop()
    return lines


def paginate(
    blocks: Sequence[ContentBlock],
    style: StyleConfig,
    page_type: PageTypeConfig,
    header: Optional[HeaderInfo] = None,
    usable_height: float = USABLE_HEIGHT,
) -> List[Page]:
    """Pack laid-out lines onto pages without splitting any line or diagram.

    A line that would overflow the page starts a new one, unless the page is still
    empty (an oversized diagram then gets a page to itself). Spacers that would
    overflow are dropped, since the page break already separates the content, and
    continuation pages never start with a spacer.
    """
    line_spacing = style.line_spacing
    chars = estimate_chars_per_line(style.font_size, page_type)
    stream = flatten_blocks(blocks, chars)

    first = Page(lines=header_lines(header), is_first_page=True)
    pages = [first]
    used = sum(line_cost(ln, line_spacing) for ln in first.lines)

    for line in stream:
        page = pages[-1]
        cost = line_cost(line, line_spacing)
        if line.type == SPACER:
            if not page.lines or used + cost > usable_height:
                continue
        elif used + cost > usable_height and page.lines:
            page = Page(lines=[], is_first_page=False)
            pages.append(page)
            used = 0.0
        page.lines.append(line)
        used += cost

    logger.debug("Paginated %d blocks into %d lines over %d pages", len(blocks), len(stream), len(pages))
    return pages
