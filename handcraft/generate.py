from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import RenderSettings, load_settings, save_settings
from .errors import HandcraftError, InputError, ResourceError
from .export import save_pdf, save_png_pages
from .glyph_store import GlyphStore
from .render import generate_document
from .styles import FATIGUE_MODES, HANDWRITING_STYLES, INK_COLORS, PAGE_TEMPLATES, PAGE_TYPES

TEXT_SUFFIXES = (".txt", ".md")
DEFAULT_OUT_DIR = Path("out") / "pages"

# CLI flag -> RenderSettings field
_OVERRIDES = {
    "style": "style_id",
    "page_type": "page_type_id",
    "template": "template_id",
    "ink": "ink_color",
    "fatigue": "fatigue_mode",
    "intensity": "variation_intensity",
    "font_size": "font_size",
    "line_spacing": "line_spacing",
    "title": "title",
    "name": "name",
    "roll_number": "roll_number",
    "subject": "subject",
    "date": "date",
    "workers": "workers",
}


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Render text as handwritten A4 notebook pages")
    src = p.add_mutually_exclusive_group(required=True)
    src.add_argument("--text", default=None)
    src.add_argument("--input", type=Path, default=None, help="A .txt or .md file")
    p.add_argument("--config", type=Path, default=None, help="Settings JSON to start from")
    p.add_argument("--save-config", type=Path, default=None, dest="save_config")
    p.add_argument("--style", choices=[s.id for s in HANDWRITING_STYLES], default=None)
    p.add_argument("--page-type", choices=[t.id for t in PAGE_TYPES], default=None, dest="page_type")
    p.add_argument("--template", choices=[t.id for t in PAGE_TEMPLATES], default=None)
    p.add_argument("--ink", choices=sorted(INK_COLORS), default=None)
    p.add_argument("--fatigue", choices=list(FATIGUE_MODES), default=None)
    p.add_argument("--intensity", type=float, default=None, help="Variation intensity, 0-2")
    p.add_argument("--font-size", type=int, default=None, dest="font_size", help="18-40")
    p.add_argument("--line-spacing", type=float, default=None, dest="line_spacing", help="1.0-2.5")
    p.add_argument("--title", default=None)
    p.add_argument("--name", default=None)
    p.add_argument("--roll-number", default=None, dest="roll_number")
    p.add_argument("--subject", default=None)
    p.add_argument("--date", default=None)
    p.add_argument("--glyphs", type=Path, default=None, help="Glyph store directory (custom style only)")
    p.add_argument("--out", type=Path, default=DEFAULT_OUT_DIR, help="Directory for page PNGs")
    p.add_argument("--pdf", type=Path, default=None, help="Also write a multi-page PDF")
    p.add_argument("--no-png", action="store_true", dest="no_png")
    p.add_argument("--workers", type=int, default=None)
    p.add_argument("--json", action="store_true")
    p.add_argument("--verbose", "-v", action="store_true")
    return p


def read_input_text(path: Path) -> str:
    path = Path(path)
    if path.suffix.lower() not in TEXT_SUFFIXES:
        raise InputError(f"Unsupported file type: {path.suffix or path.name} (use .txt or .md)")
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ResourceError(f"Could not read {path}: {exc}") from exc


def settings_from_args(args: argparse.Namespace) -> RenderSettings:
    try:
        base = load_settings(args.config) if args.config else RenderSettings()
        raw = base.to_dict()
        for flag, key in _OVERRIDES.items():
            value = getattr(args, flag, None)
            if value is not None:
                raw[key] = value
        return RenderSettings.from_dict(raw)
    except ValueError as exc:
        raise InputError(str(exc)) from exc


def run(args: argparse.Namespace) -> Dict[str, Any]:
    if args.no_png and not args.pdf:
        raise InputError("Nothing to write: --no-png needs --pdf")
    settings = settings_from_args(args)
    if args.save_config:
        save_settings(settings, args.save_config)

    text = args.text if args.text is not None else read_input_text(args.input)
    try:
        style, page_type, header = settings.resolve()
    except KeyError as exc:
        raise InputError(str(exc)) from exc

    warnings: List[str] = []
    glyph_map = None
    if style.is_custom:
        glyph_map = GlyphStore(args.glyphs).load()
        if glyph_map is None:
            warnings.append("No saved handwriting found; using the font for every character")

    doc = generate_document(
        text,
        style,
        page_type,
        header=header,
        ink_color=settings.ink_color,
        glyph_map=glyph_map,
        fatigue_mode=settings.fatigue_mode,
        workers=settings.workers,
    )

    files: List[Path] = []
    if not args.no_png:
        files = save_png_pages(doc.images, args.out)
    pdf_path: Optional[Path] = None
    if args.pdf:
        pdf_path = save_pdf(doc.images, args.pdf, title=header.title if header else "")

    return {
        "ok": True,
        "pages": len(doc.images),
        "files": [str(f) for f in files],
        "pdf": str(pdf_path) if pdf_path else None,
        "style": style.id,
        "pageType": page_type.id,
        "glyphs": len(glyph_map) if glyph_map else 0,
        "warnings": warnings,
        "settings": settings.to_dict(),
    }


def main(argv: Optional[List[str]] = None) -> None:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    try:
        payload = run(args)
    except HandcraftError as e:
        if args.json:
            print(json.dumps({"ok": False, "error": str(e)}))
            raise SystemExit(1)
        raise SystemExit(f"Error: {e}")

    if args.json:
        print(json.dumps(payload))
        return
    print(f"Rendered {payload['pages']} page(s) with style '{payload['style']}' on '{payload['pageType']}'")
    if payload["files"]:
        print(f"Saved PNG pages to {args.out}")
    if payload["pdf"]:
        print(f"Saved PDF to {payload['pdf']}")
    for w in payload["warnings"]:
        print(f"Warning: {w}")


if __name__ == "__main__":
    main()
