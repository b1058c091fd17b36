from handcraft.diagrams import DiagramSpec
from handcraft.pagination import (
    DIAGRAM,
    HEADER_DETAIL,
    HEADER_TITLE,
    HEADING,
    SPACER,
    TEXT,
    USABLE_HEIGHT,
    estimate_chars_per_line,
    header_lines,
    line_cost,
    paginate,
    word_wrap,
)
from handcraft.structure import Diagram, Heading, Paragraph, parse_text
from handcraft.styles import HeaderInfo, get_page_type, get_style

STYLE = get_style("neat")
PAGE = get_page_type("single-margin")


def test_single_page_heading_and_paragraph():
    pages = paginate(parse_text("# Title\n\nHello world. This is a test paragraph."), STYLE, PAGE)
    assert len(pages) == 1
    lines = pages[0].lines
    assert (lines[0].type, lines[0].level, lines[0].text) == (HEADING, 1, "Title")
    assert lines[1].type == SPACER
    body = [ln.text for ln in lines[2:] if ln.type == TEXT]
    assert " ".join(body) == "Hello world. This is a test paragraph."


def test_long_text_spans_pages_and_header_only_on_first():
    text = " ".join(["This sentence is repeated to fill up the notebook."] * 500)
    header = HeaderInfo(title="Physics Notes", name="Sam", roll_number="42", subject="Physics", date="2024-01-01")
    pages = paginate(parse_text(text), STYLE, PAGE, header)
    assert len(pages) > 1
    assert pages[0].is_first_page
    assert [ln.type for ln in pages[0].lines[:3]] == [HEADER_TITLE, HEADER_DETAIL, HEADER_DETAIL]
    for page in pages[1:]:
        assert not page.is_first_page
        assert all(ln.type not in (HEADER_TITLE, HEADER_DETAIL) for ln in page.lines)
        assert page.lines[0].type != SPACER


def test_pages_respect_usable_height():
    text = "\n\n".join(
        [
            "# Chapter",
            "word " * 400,
            "[DIAGRAM: flowchart | Flow | A -> B -> C]",
            "## Section",
            "more words " * 300,
            "[DIAGRAM: labeled | Parts | Components: X, Y, Z]",
            "[DIAGRAM: table | T | Headers: a, b; Row1: 1, 2]",
            "tail " * 500,
        ]
    )
    pages = paginate(parse_text(text), STYLE, PAGE)
    for page in pages:
        used = sum(line_cost(ln, STYLE.line_spacing) for ln in page.lines)
        assert used <= USABLE_HEIGHT or len(page.lines) == 1


def test_blocks_keep_their_order():
    blocks = [
        Heading("Intro", 1),
        Paragraph("alpha " * 200),
        Diagram(DiagramSpec("tree", "Tree", "Root, Left, Right")),
        Heading("Next", 2),
        Paragraph("beta " * 900),
        Diagram(DiagramSpec("cycle", "Loop", "A -> B -> A")),
        Paragraph("gamma delta"),
    ]
    pages = paginate(blocks, STYLE, PAGE)
    stream = [ln for p in pages for ln in p.lines if ln.type != SPACER]

    headings = [ln.text for ln in stream if ln.type == HEADING]
    diagrams = [ln.diagram.title for ln in stream if ln.type == DIAGRAM]
    words = " ".join(ln.text for ln in stream if ln.type == TEXT).split()
    assert headings == ["Intro", "Next"]
    assert diagrams == ["Tree", "Loop"]
    assert words == ("alpha " * 200 + "beta " * 900 + "gamma delta").split()

    kinds = []
    for ln in stream:
        if not kinds or kinds[-1] != ln.type:
            kinds.append(ln.type)
    assert kinds == [HEADING, TEXT, DIAGRAM, HEADING, TEXT, DIAGRAM, TEXT]


def test_empty_input_gives_one_page():
    pages = paginate([], STYLE, PAGE)
    assert len(pages) == 1 and pages[0].lines == []

    pages = paginate([], STYLE, PAGE, HeaderInfo(title="Only a header"))
    assert len(pages) == 1
    assert [ln.type for ln in pages[0].lines] == [HEADER_TITLE, SPACER]


def test_oversized_diagram_gets_its_own_page():
    blocks = [Paragraph("intro"), Diagram(DiagramSpec("labeled", "Big", "A, B"))]
    pages = paginate(blocks, STYLE, PAGE, usable_height=300)
    assert len(pages) == 2
    assert [ln.type for ln in pages[1].lines] == [DIAGRAM]


def test_word_wrap_hyphenates_long_words():
    lines = word_wrap("short " + "x" * 25 + " end", 10)
    assert all(len(ln) <= 10 for ln in lines)
    assert lines[0] == "short"
    assert lines[1].endswith("-")
    joined = "".join(ln.rstrip("-") for ln in lines[1:-1])
    assert joined.startswith("x" * 25)


def test_chars_per_line_uses_text_width():
    single = estimate_chars_per_line(52, get_page_type("single-margin"))
    double = estimate_chars_per_line(52, get_page_type("double-margin"))
    assert single == int(2230 // (52 * 0.48))
    assert double < single


def test_header_lines_skip_empty_fields():
    lines = header_lines(HeaderInfo(name="Ann", date="Monday"))
    assert [ln.type for ln in lines] == [HEADER_DETAIL, HEADER_DETAIL, SPACER]
    assert lines[0].text == "Name: Ann"
    assert lines[1].text == "Date: Monday"
    assert header_lines(None) == []
