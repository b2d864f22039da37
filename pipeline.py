"""Main pipeline orchestration for paper summarization.

This module coordinates the whole run:

Pipeline Flow:
    1. DISCOVER: Fetch the candidate paper list (fatal on failure)
    2. FILTER: Drop papers that already have a summary, and duplicate keys
    3. SCHEDULE: Process papers in fixed-size groups; every task in a group
       finishes before the next group starts
    4. PER PAPER:
       a. Download the PDF unless a cached copy exists
       b. Delete undersized PDFs (corrupt downloads)
       c. Extract text in the sandbox (timeout + crash containment)
       d. Summarize with bounded retries
       e. Write the summary atomically

Failure Isolation:
    Every stage failure is resolved to a ProcessingOutcome inside the paper's
    own task. Sibling tasks, the group and the run are never affected.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, asdict
from typing import Any, Awaitable, Callable, Iterator, TypeVar

import aiohttp

from artifacts import existing_summary_keys, plan_work, save_summary
from config import Config
from feeds import fetch_papers
from models.outcomes import ProcessingOutcome, ProcessingStatus
from models.paper import Paper
from agents.summarizer import SummarizationClient
from tools.download import DownloadError, download_file
from tools.sandbox import Sandbox, create_sandbox
from tools.utils import create_session
from observability.logging import set_run_context, set_paper_context, clear_context
from observability.tracing import setup_tracing, trace_operation

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

Discover = Callable[[aiohttp.ClientSession, Config], Awaitable[list[Paper]]]


@dataclass
class PipelineStats:
    """Statistics from a single pipeline run.

    Attributes:
        discovered: Papers returned by the discovery feed
        skipped: Papers with an existing summary or a duplicate key
        processed: Papers handed to the orchestrator
        completed: Summaries written
        download_failed: Download transport/status failures
        corrupt: Undersized downloads that were deleted
        extraction_failed: Sandbox timeouts, crashes, errors, empty text
        summarization_failed: Generation or write failures
        errors: Unexpected exceptions that escaped a paper task
        duration: Total run time in seconds
    """

    discovered: int = 0
    skipped: int = 0
    processed: int = 0
    completed: int = 0
    download_failed: int = 0
    corrupt: int = 0
    extraction_failed: int = 0
    summarization_failed: int = 0
    errors: int = 0
    duration: float = 0.0

    _FIELDS = {
        ProcessingStatus.SKIPPED: "skipped",
        ProcessingStatus.COMPLETED: "completed",
        ProcessingStatus.DOWNLOAD_FAILED: "download_failed",
        ProcessingStatus.CORRUPT_DOWNLOAD: "corrupt",
        ProcessingStatus.EXTRACTION_FAILED: "extraction_failed",
        ProcessingStatus.SUMMARIZATION_FAILED: "summarization_failed",
    }

    def record(self, outcome: ProcessingOutcome) -> None:
        """Count a terminal outcome."""
        name = self._FIELDS[outcome.status]
        setattr(self, name, getattr(self, name) + 1)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        d = asdict(self)
        d["duration"] = round(d["duration"], 2)
        return d


def chunked(items: list[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive slices of at most size items, in order."""
    for start in range(0, len(items), size):
        yield items[start:start + size]


async def run_in_groups(
    items: list[T],
    group_size: int,
    worker: Callable[[T], Awaitable[R]],
) -> list[R | BaseException]:
    """Run worker over items in fixed-size concurrent groups.

    All tasks of a group are awaited (success or failure) before the next
    group starts. Exceptions are returned in place of results, so one
    failing task never aborts its group or the batch.

    Args:
        items: Work items in order
        group_size: Tasks per group
        worker: Coroutine function applied to each item

    Returns:
        Results (or exceptions) in the same order as items
    """
    total = len(items)
    processed = 0
    results: list[R | BaseException] = []

    def _progress(_task: asyncio.Task) -> None:
        nonlocal processed
        processed += 1
        logger.info("Progress: %d/%d", processed, total)

    for group_number, group in enumerate(chunked(items, group_size), start=1):
        logger.debug("Group started | group=%d size=%d", group_number, len(group))
        tasks = []
        for item in group:
            task = asyncio.create_task(worker(item))
            task.add_done_callback(_progress)
            tasks.append(task)
        results.extend(await asyncio.gather(*tasks, return_exceptions=True))

    return results


class Pipeline:
    """Fault-isolated paper processing pipeline.

    Components:
        - Shared aiohttp session (discovery, downloads)
        - Sandbox for PDF text extraction
        - SummarizationClient with bounded retries (its own AsyncOpenAI client)

    All three are shared by every concurrent paper task.
    """

    def __init__(
        self,
        config: Config,
        session: aiohttp.ClientSession,
        sandbox: Sandbox | None = None,
        summarizer: SummarizationClient | None = None,
        discover: Discover = fetch_papers,
    ):
        """Initialize pipeline with all components.

        Args:
            config: Application configuration
            session: Shared aiohttp session
            sandbox: Extraction sandbox (default: from config)
            summarizer: Summarization client (default: from config)
            discover: Discovery operation returning de-duplicated papers
        """
        self.config = config
        self.session = session
        self.sandbox = sandbox or create_sandbox(config)
        self.summarizer = summarizer or SummarizationClient(config)
        self.discover = discover

    def _fail(self, paper: Paper, status: ProcessingStatus, reason: str) -> ProcessingOutcome:
        return ProcessingOutcome(paper, status, reason)

    async def _ensure_pdf(self, paper: Paper) -> ProcessingOutcome | None:
        """Download the PDF if needed and apply the size gate."""
        pdf_path = self.config.papers_dir / paper.pdf_filename

        if pdf_path.exists():
            logger.info("PDF already exists | file=%s", pdf_path.name)
        else:
            logger.info("Downloading PDF | url=%s", paper.pdf_url)
            try:
                size = await download_file(self.session, paper.pdf_url, pdf_path)
            except DownloadError as e:
                return self._fail(paper, ProcessingStatus.DOWNLOAD_FAILED, str(e))
            logger.info("PDF saved | file=%s bytes=%d", pdf_path.name, size)

        try:
            size = pdf_path.stat().st_size
        except OSError as e:
            return self._fail(paper, ProcessingStatus.DOWNLOAD_FAILED, f"cannot stat {pdf_path.name}: {e}")

        if size < self.config.min_pdf_bytes:
            pdf_path.unlink(missing_ok=True)
            return self._fail(
                paper,
                ProcessingStatus.CORRUPT_DOWNLOAD,
                f"PDF too small ({size} bytes), likely corrupted; deleted",
            )
        return None

    async def _process(self, paper: Paper) -> ProcessingOutcome:
        logger.info("Processing | title=%s", paper.title[:80])
        pdf_path = self.config.papers_dir / paper.pdf_filename

        # Status reported if an unexpected exception escapes the current stage
        stage = ProcessingStatus.DOWNLOAD_FAILED
        try:
            failed = await self._ensure_pdf(paper)
            if failed:
                return failed

            stage = ProcessingStatus.EXTRACTION_FAILED
            logger.info("Extracting text | file=%s", pdf_path.name)
            extraction = await self.sandbox.run_async(pdf_path)
            if not extraction.ok:
                return self._fail(paper, stage, extraction.reason)

            stage = ProcessingStatus.SUMMARIZATION_FAILED
            logger.info("Generating summary | chars=%d", len(extraction.content))
            summary = await self.summarizer.summarize(paper, extraction.content)
            if not summary.ok:
                return self._fail(paper, stage, summary.message)

            try:
                save_summary(paper, summary.document, self.config.summary_dir)
            except OSError as e:
                return self._fail(paper, stage, f"cannot write summary: {e}")

        except Exception as e:
            logger.error(
                "Unexpected error | stage=%s error=%s type=%s",
                stage.value, e, type(e).__name__, exc_info=True,
            )
            return self._fail(paper, stage, f"unexpected {type(e).__name__}: {e}")

        return ProcessingOutcome(paper, ProcessingStatus.COMPLETED)

    async def process_paper(self, paper: Paper) -> ProcessingOutcome:
        """Run every stage for one paper and return its terminal outcome.

        Runs inside its own task, so the paper context set here only tags
        this paper's log lines.
        """
        set_paper_context(paper.paper_id)
        with trace_operation("process_paper", {"paper_id": paper.paper_id}) as attrs:
            outcome = await self._process(paper)
            attrs["status"] = outcome.status.value

        if outcome.ok:
            logger.info("Paper completed | title=%s", paper.title[:60])
        else:
            logger.warning(
                "Paper failed | status=%s title=%s reason=%s",
                outcome.status.value, paper.title[:60], outcome.reason,
            )
        return outcome

    async def process_all(self, papers: list[Paper], stats: PipelineStats | None = None) -> list[ProcessingOutcome]:
        """Process papers in groups and collect their outcomes.

        Args:
            papers: Papers to process (already filtered)
            stats: Optional stats object to update

        Returns:
            Outcomes for papers whose task finished normally, in input order
        """
        stats = stats or PipelineStats()
        results = await run_in_groups(papers, self.config.group_size, self.process_paper)

        outcomes = []
        for paper, result in zip(papers, results):
            stats.processed += 1
            if isinstance(result, BaseException):
                stats.errors += 1
                logger.error(
                    "Unexpected error | id=%s error=%s",
                    paper.paper_id, result, exc_info=result,
                )
                continue
            stats.record(result)
            outcomes.append(result)
        return outcomes

    async def run_once(self) -> PipelineStats:
        """Execute one complete pipeline run.

        Raises:
            DiscoveryError: If the candidate list cannot be fetched

        Returns:
            PipelineStats with counts for each outcome
        """
        run_id = uuid.uuid4().hex[:8]
        set_run_context(run_id)
        start = time.time()
        stats = PipelineStats()

        try:
            with trace_operation("pipeline_run", {"run_id": run_id}) as attrs:
                self.config.papers_dir.mkdir(parents=True, exist_ok=True)
                self.config.summary_dir.mkdir(parents=True, exist_ok=True)

                completed_keys = existing_summary_keys(self.config.summary_dir)
                logger.info("Found %d existing summaries", len(completed_keys))

                papers = await self.discover(self.session, self.config)
                stats.discovered = len(papers)

                to_process, skipped = plan_work(papers, completed_keys)
                for outcome in skipped:
                    stats.record(outcome)
                logger.info(
                    "Work planned | discovered=%d to_process=%d skipped=%d",
                    stats.discovered, len(to_process), len(skipped),
                )

                if to_process:
                    await self.process_all(to_process, stats)

                attrs.update(stats.to_dict())
        finally:
            stats.duration = time.time() - start
            clear_context()

        logger.info(
            "Done! | completed=%d failed=%d skipped=%d errors=%d duration=%.1fs",
            stats.completed,
            stats.download_failed + stats.corrupt + stats.extraction_failed + stats.summarization_failed,
            stats.skipped,
            stats.errors,
            stats.duration,
        )
        return stats


async def run_once(config: Config) -> dict[str, Any]:
    """Run the pipeline once and return stats dict.

    Args:
        config: Application configuration
    """
    if config.enable_logfire:
        setup_tracing(enabled=True, service_name="paper-summarizer", token=config.logfire_token)

    async with create_session(
        timeout=config.http_timeout,
        max_connections=max(config.group_size * 2, 10),
    ) as session:
        summarizer = SummarizationClient(config)
        try:
            pipeline = Pipeline(config, session, summarizer=summarizer)
            return (await pipeline.run_once()).to_dict()
        finally:
            await summarizer.close()
