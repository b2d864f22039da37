"""Tests for canonical key derivation."""

from models.paper import MAX_KEY_LENGTH, Paper, sanitize_filename


def _paper(title: str) -> Paper:
    return Paper(paper_id="2501.00001", title=title, pdf_url="https://arxiv.org/pdf/2501.00001.pdf")


def test_key_is_deterministic() -> None:
    assert _paper("Attention Is All You Need").canonical_key == _paper("Attention Is All You Need").canonical_key
    assert sanitize_filename("Attention Is All You Need") == "Attention Is All You Need"


def test_illegal_characters_collapse_to_same_key() -> None:
    a = _paper('Graphs: A/B "Test"?')
    b = _paper("Graphs* A|B <Test>\x07")

    assert a.canonical_key == "Graphs_ A_B _Test__"
    assert a.canonical_key == b.canonical_key


def test_control_characters_are_replaced() -> None:
    assert sanitize_filename("line\tbreak\nhere\x00") == "line_break_here_"


def test_surrounding_whitespace_is_trimmed() -> None:
    assert sanitize_filename("   Padded Title  ") == "Padded Title"


def test_long_titles_truncate_to_exactly_200() -> None:
    key = _paper("x" * 500).canonical_key

    assert MAX_KEY_LENGTH == 200
    assert len(key) == 200


def test_filenames_derive_from_key() -> None:
    paper = _paper("Scaling Laws: Revisited")

    assert paper.pdf_filename == "Scaling Laws_ Revisited.pdf"
    assert paper.summary_filename == "Scaling Laws_ Revisited-summary.md"
