"""Typed notes to realistic handwritten A4 notebook pages."""

from .config import RenderSettings, load_settings, save_settings
from .diagrams import DiagramSpec, diagram_height, layout_diagram, parse_diagram_marker, render_diagram, serialize_diagram_marker
from .errors import HandcraftError, InputError, ResourceError
from .export import save_pdf, save_png_pages
from .glyph_store import GlyphStore
from .glyphs import MIN_GLYPHS, analyze_sheet, extract_glyphs, glyph_stats, otsu_threshold, render_template_sheet
from .pagination import LaidOutLine, Page, paginate
from .render import RenderedDocument, generate_document, render_page, render_pages
from .structure import Diagram, Heading, Paragraph, parse_text
from .styles import (
    HANDWRITING_STYLES,
    INK_COLORS,
    PAGE_TEMPLATES,
    PAGE_TYPES,
    HeaderInfo,
    PageTypeConfig,
    StyleConfig,
    get_page_type,
    get_style,
)
from .variation import VariationState, fatigue_multiplier

__all__ = [
    "Diagram",
    "DiagramSpec",
    "GlyphStore",
    "HANDWRITING_STYLES",
    "HandcraftError",
    "HeaderInfo",
    "Heading",
    "INK_COLORS",
    "InputError",
    "LaidOutLine",
    "MIN_GLYPHS",
    "PAGE_TEMPLATES",
    "PAGE_TYPES",
    "Page",
    "PageTypeConfig",
    "Paragraph",
    "RenderSettings",
    "RenderedDocument",
    "ResourceError",
    "StyleConfig",
    "VariationState",
    "analyze_sheet",
    "diagram_height",
    "extract_glyphs",
    "fatigue_multiplier",
    "generate_document",
    "get_page_type",
    "get_style",
    "glyph_stats",
    "layout_diagram",
    "load_settings",
    "otsu_threshold",
    "paginate",
    "parse_diagram_marker",
    "parse_text",
    "render_diagram",
    "render_page",
    "render_pages",
    "render_template_sheet",
    "save_pdf",
    "save_png_pages",
    "save_settings",
    "serialize_diagram_marker",
]
