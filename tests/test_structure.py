from handcraft.diagrams import DiagramSpec
from handcraft.structure import Diagram, Heading, Paragraph, parse_text


def test_heading_then_paragraph():
    blocks = parse_text("# Title\n\nHello world. This is a test paragraph.")
    assert blocks == [Heading("Title", 1), Paragraph("Hello world. This is a test paragraph.")]


def test_paragraph_lines_are_joined_and_blank_lines_split():
    blocks = parse_text("first line\nsecond line\n\n\nthird")
    assert blocks == [Paragraph("first line second line"), Paragraph("third")]


def test_heading_levels_are_capped():
    blocks = parse_text("## Two\n#### Deep")
    assert blocks == [Heading("Two", 2), Heading("Deep", 3)]


def test_short_caps_line_is_a_heading():
    blocks = parse_text("INTRODUCTION\nplain text here\n2024 - 2025")
    assert blocks[0] == Heading("INTRODUCTION", 2)
    # no letters, so not promoted
    assert blocks[1] == Paragraph("plain text here 2024 - 2025")


def test_long_caps_line_stays_paragraph():
    line = "THIS IS A VERY LONG SHOUTED SENTENCE THAT GOES ON AND ON AND ON FOREVER"
    assert len(line) >= 60
    assert parse_text(line) == [Paragraph(line)]


def test_diagram_marker_flushes_paragraph():
    text = "before\n[DIAGRAM: cycle | Loop | A -> B -> C -> A]\nafter"
    assert parse_text(text) == [
        Paragraph("before"),
        Diagram(DiagramSpec("cycle", "Loop", "A -> B -> C -> A")),
        Paragraph("after"),
    ]


def test_malformed_marker_is_dropped():
    blocks = parse_text("keep\n[DIAGRAM: flowchart | only two parts]\nmore")
    assert blocks == [Paragraph("keep"), Paragraph("more")]


def test_empty_input():
    assert parse_text("") == []
    assert parse_text("  \n\n \t") == []


def test_windows_newlines():
    assert parse_text("a\r\nb\r\n\r\nc") == [Paragraph("a b"), Paragraph("c")]
