"""Outcome models for each pipeline stage.

ExtractionOutcome:
    Result of one sandboxed extraction call (text, timeout, crash, ...).

SummaryAttempt:
    Result of one request to the generation endpoint, classified for retry.

ProcessingOutcome:
    Terminal state of a paper after the orchestrator is done with it.

All three are plain dataclasses with a status enum and named constructors,
so callers never build inconsistent combinations by hand.
"""

from dataclasses import dataclass
from enum import Enum

from models.paper import Paper


class ExtractionStatus(str, Enum):
    """How an extraction call ended."""

    TEXT = "text"
    TIMEOUT = "timeout"
    CRASHED = "crashed"
    ERROR = "error"
    EMPTY = "empty"


@dataclass(frozen=True)
class ExtractionOutcome:
    """Result of a single sandboxed extraction.

    Attributes:
        status: How the call ended
        content: Extracted text (only for TEXT)
        message: Diagnostic detail for non-TEXT outcomes
    """

    status: ExtractionStatus
    content: str = ""
    message: str = ""

    @classmethod
    def text(cls, content: str) -> "ExtractionOutcome":
        return cls(status=ExtractionStatus.TEXT, content=content)

    @classmethod
    def timeout(cls, seconds: float) -> "ExtractionOutcome":
        return cls(status=ExtractionStatus.TIMEOUT, message=f"extraction timed out after {seconds:g}s")

    @classmethod
    def crashed(cls, detail: str = "") -> "ExtractionOutcome":
        message = "extraction crashed"
        if detail:
            message = f"{message}: {detail}"
        return cls(status=ExtractionStatus.CRASHED, message=message)

    @classmethod
    def error(cls, message: str) -> "ExtractionOutcome":
        return cls(status=ExtractionStatus.ERROR, message=message)

    @classmethod
    def empty(cls) -> "ExtractionOutcome":
        return cls(status=ExtractionStatus.EMPTY, message="extraction returned empty content")

    @property
    def ok(self) -> bool:
        return self.status is ExtractionStatus.TEXT

    @property
    def reason(self) -> str:
        """Short reason used in logs and processing outcomes."""
        return self.message or self.status.value


class AttemptStatus(str, Enum):
    """Retry classification of a generation request."""

    SUCCESS = "success"
    RETRYABLE = "retryable"
    TERMINAL = "terminal"


@dataclass(frozen=True)
class SummaryAttempt:
    """Result of one generation request (or of the whole retry loop)."""

    status: AttemptStatus
    document: str = ""
    message: str = ""

    @classmethod
    def success(cls, document: str) -> "SummaryAttempt":
        return cls(status=AttemptStatus.SUCCESS, document=document)

    @classmethod
    def retryable(cls, message: str) -> "SummaryAttempt":
        return cls(status=AttemptStatus.RETRYABLE, message=message)

    @classmethod
    def terminal(cls, message: str) -> "SummaryAttempt":
        return cls(status=AttemptStatus.TERMINAL, message=message)

    @property
    def ok(self) -> bool:
        return self.status is AttemptStatus.SUCCESS


class ProcessingStatus(str, Enum):
    """Terminal state of a paper within one run."""

    SKIPPED = "skipped"
    DOWNLOAD_FAILED = "download_failed"
    CORRUPT_DOWNLOAD = "corrupt_download"
    EXTRACTION_FAILED = "extraction_failed"
    SUMMARIZATION_FAILED = "summarization_failed"
    COMPLETED = "completed"


@dataclass(frozen=True)
class ProcessingOutcome:
    """Terminal outcome for a paper, reported back to the scheduler."""

    paper: Paper
    status: ProcessingStatus
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status is ProcessingStatus.COMPLETED
