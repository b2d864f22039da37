"""Paper data model for discovered arXiv submissions.

This module defines the core Paper model used throughout the pipeline.
Each Paper represents a single candidate document from the discovery feed.

Canonical Key:
    Every paper carries a filesystem-safe key derived from its title.
    The same key names the cached PDF (<key>.pdf) and the finished
    summary (<key>-summary.md), so it doubles as the idempotency key.
"""

import re
from functools import cached_property

from pydantic import BaseModel, Field

# Characters that are illegal in filenames on common filesystems, plus controls
_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')

MAX_KEY_LENGTH = 200
SUMMARY_SUFFIX = "-summary.md"


def sanitize_filename(name: str) -> str:
    """Turn a title into a deterministic, filesystem-safe key.

    Illegal and control characters are replaced with '_', surrounding
    whitespace is trimmed and the result is cut to MAX_KEY_LENGTH code points.

    Example:
        >>> sanitize_filename('A/B: "C"?')
        'A_B_ _C__'
    """
    sanitized = _INVALID_FILENAME_CHARS.sub("_", name).strip()
    return sanitized[:MAX_KEY_LENGTH]


class Paper(BaseModel):
    """A candidate paper returned by the discovery feed.

    Attributes:
        paper_id: arXiv identifier (e.g. '2501.01234')
        title: Paper title as shown on the listing
        pdf_url: Direct download URL for the PDF

    Example:
        >>> paper = Paper(
        ...     paper_id="2501.01234",
        ...     title="Scaling Laws: Revisited",
        ...     pdf_url="https://arxiv.org/pdf/2501.01234.pdf",
        ... )
        >>> paper.canonical_key
        'Scaling Laws_ Revisited'
    """

    paper_id: str = Field(description="arXiv identifier")
    title: str = Field(description="Paper title")
    pdf_url: str = Field(description="URL of the PDF")

    @cached_property
    def canonical_key(self) -> str:
        """Filesystem-safe key derived once from the title."""
        return sanitize_filename(self.title)

    @property
    def pdf_filename(self) -> str:
        return f"{self.canonical_key}.pdf"

    @property
    def summary_filename(self) -> str:
        return f"{self.canonical_key}{SUMMARY_SUFFIX}"

    def __str__(self) -> str:
        """Human-readable representation for logging."""
        return f"Paper({self.paper_id}, '{self.title[:50]}')"
