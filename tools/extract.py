"""PDF text extraction routine.

extract_pdf_text() is the unreliable step the sandbox exists for: malformed
or degenerate PDFs can make the parser loop forever, blow the recursion
limit, or print diagnostics straight to stdout/stderr. It is a plain
top-level function so it can be handed to a spawned process.

Well-formed failures (unreadable or encrypted files) are raised as
ExtractionFailure; anything else escaping the parser is treated by the
sandbox as a crash.
"""

from pathlib import Path

from pypdf import PdfReader
from pypdf.errors import PyPdfError


class ExtractionFailure(Exception):
    """Raised when a PDF is readable as a file but yields no usable text."""


def extract_pdf_text(path: str | Path) -> str:
    """Extract the text of every page of a PDF.

    Args:
        path: Local PDF path

    Returns:
        Page texts joined by newlines (may be empty for scanned PDFs)

    Raises:
        ExtractionFailure: If the file is not a readable PDF
    """
    try:
        reader = PdfReader(str(path))
        if reader.is_encrypted:
            raise ExtractionFailure("PDF is encrypted")
        pages = [page.extract_text() or "" for page in reader.pages]
    except PyPdfError as e:
        raise ExtractionFailure(f"{type(e).__name__}: {e}") from e
    except OSError as e:
        raise ExtractionFailure(f"cannot read {Path(path).name}: {e}") from e
    return "\n".join(pages)
