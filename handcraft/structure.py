from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Union

from .diagrams import DiagramSpec, is_diagram_line, parse_diagram_marker

logger = logging.getLogger(__name__)

# shorter all-caps lines are promoted to level-2 headings
CAPS_HEADING_MAX_LEN = 60

_HEADING_RE = re.compile(r"^(#+)\s*")
_LETTER_RE = re.compile(r"[A-Z]")


@dataclass(frozen=True)
class Paragraph:
    text: str


@dataclass(frozen=True)
class Heading:
    text: str
    level: int = 1


@dataclass(frozen=True)
class Diagram:
    spec: DiagramSpec


ContentBlock = Union[Paragraph, Heading, Diagram]


def _is_caps_heading(line: str) -> bool:
    return len(line) < CAPS_HEADING_MAX_LEN and line == line.upper() and bool(_LETTER_RE.search(line))


def parse_text(raw_text: str) -> List[ContentBlock]:
    """Split raw notes into paragraphs, headings and diagram blocks.

    Lines inside a paragraph are joined with single spaces so the paginator can
    re-wrap them; a blank line ends the paragraph. Diagram markers that do not
    parse are dropped.
    """
    if not raw_text or not raw_text.strip():
        return []

    blocks: List[ContentBlock] = []
    buf: List[str] = []

    def flush():
        if buf:
            blocks.append(Paragraph(" ".join(buf)))
            buf.clear()

    for line in raw_text.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
        trimmed = line.strip()
        if not trimmed:
            flush()
            continue

        if is_diagram_line(trimmed):
            flush()
            spec = parse_diagram_marker(trimmed)
            if spec is not None:
                blocks.append(Diagram(spec))
            else:
                logger.debug("Dropping malformed diagram marker: %r", trimmed)
            continue

        m = _HEADING_RE.match(trimmed)
        if m:
            flush()
            blocks.append(Heading(trimmed[m.end():], min(len(m.group(1)), 3)))
            continue

        if _is_caps_heading(trimmed):
            flush()
            blocks.append(Heading(trimmed, 2))
            continue

        buf.append(trimmed)

    flush()
    return blocks
