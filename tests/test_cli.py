import json

import cv2
import pytest

from handcraft import clone, generate
from handcraft.glyphs import TEMPLATE_CHARS


def _run(main, argv, capsys):
    main(argv)
    return json.loads(capsys.readouterr().out.strip().splitlines()[-1])


def _run_failing(main, argv, capsys):
    with pytest.raises(SystemExit) as exc:
        main(argv)
    assert exc.value.code == 1
    return json.loads(capsys.readouterr().out.strip().splitlines()[-1])


def test_generate_png_and_pdf(tmp_path, capsys):
    out = tmp_path / "pages"
    pdf = tmp_path / "notes.pdf"
    payload = _run(
        generate.main,
        ["--text", "# Hi\n\nShort note.", "--out", str(out), "--pdf", str(pdf), "--ink", "black", "--json"],
        capsys,
    )
    assert payload["ok"] and payload["pages"] == 1
    assert payload["files"] == [str(out / "page_001.png")]
    img = cv2.imread(payload["files"][0])
    assert img.shape == (3508, 2480, 3)
    assert pdf.read_bytes().startswith(b"%PDF")


def test_generate_reads_markdown_and_saves_config(tmp_path, capsys):
    src = tmp_path / "notes.md"
    src.write_text("Some notes from a file.", encoding="utf-8")
    conf = tmp_path / "settings.json"
    payload = _run(
        generate.main,
        ["--input", str(src), "--style", "casual", "--font-size", "20", "--save-config", str(conf), "--no-png", "--pdf", str(tmp_path / "notes.pdf"), "--json"],
        capsys,
    )
    assert payload["style"] == "casual"
    assert payload["files"] == []
    saved = json.loads(conf.read_text(encoding="utf-8"))
    assert saved["style_id"] == "casual" and saved["font_size"] == 20


def test_generate_rejects_unsupported_files(tmp_path, capsys):
    doc = tmp_path / "notes.docx"
    doc.write_bytes(b"PK")
    payload = _run_failing(generate.main, ["--input", str(doc), "--json"], capsys)
    assert payload["ok"] is False
    assert "Unsupported file type" in payload["error"]


def test_generate_reports_undecodable_file(tmp_path, capsys):
    src = tmp_path / "latin1.txt"
    src.write_bytes(b"caf\xe9 notes")
    payload = _run_failing(generate.main, ["--input", str(src), "--pdf", str(tmp_path / "x.pdf"), "--json"], capsys)
    assert payload["ok"] is False
    assert "Could not read" in payload["error"]
    assert not (tmp_path / "x.pdf").exists()


def test_generate_needs_some_output(tmp_path, capsys):
    payload = _run_failing(generate.main, ["--text", "hello", "--no-png", "--json"], capsys)
    assert payload["ok"] is False
    assert "--pdf" in payload["error"]


def test_generate_rejects_empty_text(tmp_path, capsys):
    payload = _run_failing(generate.main, ["--text", "   ", "--out", str(tmp_path), "--json"], capsys)
    assert payload["ok"] is False


def test_custom_style_without_saved_glyphs_warns(tmp_path, capsys):
    payload = _run(
        generate.main,
        ["--text", "hello", "--style", "custom", "--glyphs", str(tmp_path / "none"), "--no-png", "--pdf", str(tmp_path / "h.pdf"), "--json"],
        capsys,
    )
    assert payload["glyphs"] == 0
    assert payload["warnings"]


def test_clone_template(tmp_path, capsys):
    out = tmp_path / "sheet.png"
    payload = _run(clone.main, ["--json", "template", "--out", str(out)], capsys)
    assert (payload["width"], payload["height"]) == (1640, 1020)
    assert cv2.imread(str(out)).shape == (1020, 1640, 3)


def test_clone_extract_stats_clear(tmp_path, capsys, blank_sheet, ink):
    store = tmp_path / "store"
    img = blank_sheet()
    chars = TEMPLATE_CHARS[:12]
    ink(img, chars)
    photo = tmp_path / "photo.png"
    cv2.imwrite(str(photo), img)

    payload = _run(clone.main, ["--store", str(store), "--json", "extract", str(photo)], capsys)
    assert payload["stats"]["total"] == 12
    assert payload["gridDetected"] is False
    assert payload["missing"] == "".join(TEMPLATE_CHARS[12:])

    payload = _run(clone.main, ["--store", str(store), "--json", "stats"], capsys)
    assert payload["saved"] and payload["stats"]["uppercase"] == 12

    payload = _run(clone.main, ["--store", str(store), "--json", "clear"], capsys)
    assert payload["cleared"] is True
    payload = _run(clone.main, ["--store", str(store), "--json", "stats"], capsys)
    assert payload["saved"] is False


def test_clone_rejects_sparse_sheet(tmp_path, capsys, blank_sheet, ink):
    img = blank_sheet()
    ink(img, ["A", "B"])
    photo = tmp_path / "photo.png"
    cv2.imwrite(str(photo), img)
    payload = _run_failing(clone.main, ["--store", str(tmp_path / "s"), "--json", "extract", str(photo)], capsys)
    assert "Only 2 characters" in payload["error"]
    assert not (tmp_path / "s").exists()


def test_clone_unreadable_image(tmp_path, capsys):
    payload = _run_failing(clone.main, ["--json", "extract", str(tmp_path / "missing.jpg")], capsys)
    assert payload["ok"] is False
