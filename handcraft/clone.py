from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import cv2

from .errors import HandcraftError, InputError, ResourceError
from .glyph_store import GlyphStore
from .glyphs import MIN_GLYPHS, TEMPLATE_CHARS, analyze_sheet, glyph_stats, render_template_sheet

DEFAULT_TEMPLATE_PATH = Path("out") / "handwriting_template.png"


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Clone your handwriting from a photographed sample sheet")
    p.add_argument("--store", type=Path, default=None, help="Glyph store directory")
    p.add_argument("--json", action="store_true")
    p.add_argument("--verbose", "-v", action="store_true")
    sub = p.add_subparsers(dest="command", required=True)

    t = sub.add_parser("template", help="Write the printable sample sheet")
    t.add_argument("--out", type=Path, default=DEFAULT_TEMPLATE_PATH)

    e = sub.add_parser("extract", help="Extract glyphs from a photo of the filled-in sheet and save them")
    e.add_argument("image", type=Path)
    e.add_argument("--sensitivity", type=int, default=0, help="Ink threshold offset; positive picks up lighter strokes")
    e.add_argument("--min-glyphs", type=int, default=MIN_GLYPHS, dest="min_glyphs")
    e.add_argument("--dry-run", action="store_true", dest="dry_run", help="Analyze only; do not save")

    sub.add_parser("stats", help="Show counts for the saved glyphs")
    sub.add_parser("clear", help="Delete the saved glyphs")
    return p


def cmd_template(args: argparse.Namespace) -> Dict[str, Any]:
    sheet = render_template_sheet()
    args.out.parent.mkdir(parents=True, exist_ok=True)
    if not cv2.imwrite(str(args.out), sheet):
        raise ResourceError(f"Failed to write {args.out}")
    return {"ok": True, "out": str(args.out), "width": sheet.shape[1], "height": sheet.shape[0]}


def cmd_extract(args: argparse.Namespace) -> Dict[str, Any]:
    analysis = analyze_sheet(args.image, sensitivity=args.sensitivity)
    stats = glyph_stats(analysis.glyphs)
    if stats.total < args.min_glyphs:
        raise InputError(
            f"Only {stats.total} characters detected. Please use a clearer photo with dark ink on white paper."
        )
    saved: Optional[Path] = None
    if not args.dry_run:
        saved = GlyphStore(args.store).save(analysis.glyphs)
    missing = "".join(ch for ch in TEMPLATE_CHARS if ch not in analysis.glyphs)
    return {
        "ok": True,
        "stats": stats.to_dict(),
        "threshold": analysis.threshold,
        "gridDetected": analysis.grid_detected,
        "missing": missing,
        "store": str(saved) if saved else None,
    }


def cmd_stats(args: argparse.Namespace) -> Dict[str, Any]:
    store = GlyphStore(args.store)
    glyph_map = store.load()
    return {"ok": True, "store": str(store.root), "saved": glyph_map is not None, "stats": glyph_stats(glyph_map).to_dict()}


def cmd_clear(args: argparse.Namespace) -> Dict[str, Any]:
    store = GlyphStore(args.store)
    return {"ok": True, "store": str(store.root), "cleared": store.clear()}


COMMANDS = {"template": cmd_template, "extract": cmd_extract, "stats": cmd_stats, "clear": cmd_clear}


def _report(command: str, payload: Dict[str, Any]) -> None:
    if command == "template":
        print(f"Saved sample sheet ({payload['width']}x{payload['height']}) to {payload['out']}")
        print("Next: fill it in, photograph it, then run: python -m handcraft.clone extract <photo>")
        return
    if command == "clear":
        print("Cleared saved handwriting" if payload["cleared"] else "No saved handwriting to clear")
        return
    s = payload["stats"]
    lines: List[str] = [
        f"Glyphs: {s['total']} (upper {s['uppercase']}, lower {s['lowercase']}, digits {s['digits']}, punct {s['punctuation']})"
    ]
    if command == "extract":
        lines.append(f"Threshold: {payload['threshold']} | Grid detected: {payload['gridDetected']}")
        if payload["missing"]:
            lines.append(f"Missing: {payload['missing']}")
        if payload["store"]:
            lines.append(f"Saved to {payload['store']}")
    elif not payload["saved"]:
        lines = [f"No saved handwriting in {payload['store']}"]
    for ln in lines:
        print(ln)


def main(argv: Optional[List[str]] = None) -> None:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    try:
        payload = COMMANDS[args.command](args)
    except HandcraftError as e:
        if args.json:
            print(json.dumps({"ok": False, "error": str(e)}))
            raise SystemExit(1)
        raise SystemExit(f"Error: {e}")
    if args.json:
        print(json.dumps(payload))
        return
    _report(args.command, payload)


if __name__ == "__main__":
    main()
