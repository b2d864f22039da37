"""Data models for the paper summarization pipeline.

Paper:
    One discovered arXiv paper (id, title, PDF URL). Its canonical_key,
    derived from the title, names both the cached PDF and the summary.

ExtractionOutcome / SummaryAttempt / ProcessingOutcome:
    Stage results with a status enum each (see models/outcomes.py).

Example:
    >>> from models import Paper
    >>> paper = Paper(paper_id="2501.01234", title="A: B", pdf_url="...")
    >>> paper.canonical_key
    'A_ B'
"""

from models.paper import Paper, sanitize_filename
from models.outcomes import (
    ExtractionOutcome,
    ExtractionStatus,
    SummaryAttempt,
    AttemptStatus,
    ProcessingOutcome,
    ProcessingStatus,
)

__all__ = [
    "Paper",
    "sanitize_filename",
    "ExtractionOutcome",
    "ExtractionStatus",
    "SummaryAttempt",
    "AttemptStatus",
    "ProcessingOutcome",
    "ProcessingStatus",
]
