"""Tests for the batch scheduler and the per-paper orchestrator.

A local aiohttp server stands in for both arXiv (PDF downloads) and the
generation endpoint. Extraction runs in the thread sandbox with a fake
extractor so no real PDFs are needed.
"""

import asyncio
import multiprocessing
import os
import threading
import time
from pathlib import Path

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from models.outcomes import ProcessingStatus
from models.paper import Paper
from pipeline import Pipeline, chunked, run_in_groups
from tools.sandbox import ProcessSandbox, ThreadSandbox

PDF_BODY = b"%PDF-1.4\n" + b"0" * 2048


class FakeArxiv:
    """Serves PDFs by name and answers chat completions."""

    def __init__(self):
        self.downloads: list[str] = []
        self.completions = 0

    async def pdf(self, request):
        name = request.match_info["name"]
        self.downloads.append(name)
        if name.startswith("missing"):
            return web.Response(status=404)
        if name.startswith("small"):
            return web.Response(body=b"x" * 999)
        return web.Response(body=PDF_BODY, content_type="application/pdf")

    async def complete(self, request):
        self.completions += 1
        return web.json_response({"choices": [{"message": {"role": "assistant", "content": "Summary."}}]})

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/pdf/{name}", self.pdf)
        app.router.add_post("/v1/chat/completions", self.complete)
        return app


def fake_extract(path: str) -> str:
    if "crash" in Path(path).name:
        raise MemoryError("parser blew up")
    return Path(path).read_bytes()[:8].decode()


_release = threading.Event()


@pytest.fixture(autouse=True)
def release_hung_threads():
    _release.clear()
    yield
    _release.set()


def hanging_extract(path: str) -> str:
    if "hang" in Path(path).name:
        _release.wait(10)
    return fake_extract(path)


def aborting_extract(path: str) -> str:
    if "crash" in Path(path).name:
        os.abort()
    return Path(path).read_bytes()[:8].decode()


def _papers(server: TestServer, *names: str) -> list[Paper]:
    return [
        Paper(paper_id=f"2501.{i:05d}", title=f"Paper {name}", pdf_url=str(server.make_url(f"/pdf/{name}")))
        for i, name in enumerate(names)
    ]


def _with_pipeline(config, names, body, extractor=fake_extract, sandbox=None):
    """Run body(pipeline, papers, fake) against a fresh local server."""
    fake = FakeArxiv()

    async def go():
        server = TestServer(fake.app())
        await server.start_server()
        try:
            config.api_base_url = str(server.make_url("/v1"))
            papers = _papers(server, *names)
            async with aiohttp.ClientSession() as session:
                pipeline = Pipeline(config, session, sandbox=sandbox or ThreadSandbox(extractor, timeout=5))
                summarizer = pipeline.summarizer
                try:
                    return await body(pipeline, papers, fake)
                finally:
                    await summarizer.close()
        finally:
            await server.close()

    return asyncio.run(go())


def test_completed_paper_writes_summary(config) -> None:
    async def body(pipeline, papers, fake):
        return await pipeline.process_paper(papers[0])

    outcome = _with_pipeline(config, ["good"], body)

    assert outcome.status is ProcessingStatus.COMPLETED
    summary = (config.summary_dir / "Paper good-summary.md").read_text(encoding="utf-8")
    assert summary.startswith("# Paper good\n\n**arXiv ID**: 2501.00000\n")
    assert summary.endswith("---\n\nSummary.")
    assert (config.papers_dir / "Paper good.pdf").read_bytes() == PDF_BODY


def test_undersized_download_is_deleted_before_extraction(config) -> None:
    extracted = []

    def tracking_extract(path):
        extracted.append(path)
        return fake_extract(path)

    async def body(pipeline, papers, fake):
        return await pipeline.process_paper(papers[0])

    outcome = _with_pipeline(config, ["small"], body, extractor=tracking_extract)

    assert outcome.status is ProcessingStatus.CORRUPT_DOWNLOAD
    assert "999 bytes" in outcome.reason
    assert not (config.papers_dir / "Paper small.pdf").exists()
    assert extracted == []


def test_cached_pdf_is_reused(config) -> None:
    config.papers_dir.mkdir(parents=True)
    (config.papers_dir / "Paper missing.pdf").write_bytes(PDF_BODY)

    async def body(pipeline, papers, fake):
        return await pipeline.process_paper(papers[0]), fake.downloads

    outcome, downloads = _with_pipeline(config, ["missing"], body)

    assert outcome.status is ProcessingStatus.COMPLETED
    assert downloads == []


def test_download_failure_does_not_stop_siblings(config) -> None:
    config.group_size = 2

    async def body(pipeline, papers, fake):
        return await pipeline.process_all(papers)

    outcomes = _with_pipeline(config, ["missing", "one", "two"], body)

    assert [o.status for o in outcomes] == [
        ProcessingStatus.DOWNLOAD_FAILED,
        ProcessingStatus.COMPLETED,
        ProcessingStatus.COMPLETED,
    ]
    assert "404" in outcomes[0].reason


def test_crash_does_not_stop_siblings(config) -> None:
    async def body(pipeline, papers, fake):
        return await pipeline.process_all(papers)

    outcomes = _with_pipeline(config, ["one", "crash", "two"], body)

    assert [o.status for o in outcomes] == [
        ProcessingStatus.COMPLETED,
        ProcessingStatus.EXTRACTION_FAILED,
        ProcessingStatus.COMPLETED,
    ]
    assert "MemoryError" in outcomes[1].reason


def test_hung_extraction_does_not_stop_siblings(config) -> None:
    config.group_size = 3
    start = time.monotonic()

    async def body(pipeline, papers, fake):
        return await pipeline.process_all(papers)

    outcomes = _with_pipeline(
        config, ["one", "hang", "two"], body,
        sandbox=ThreadSandbox(hanging_extract, timeout=0.5),
    )

    assert [o.status for o in outcomes] == [
        ProcessingStatus.COMPLETED,
        ProcessingStatus.EXTRACTION_FAILED,
        ProcessingStatus.COMPLETED,
    ]
    assert "timed out" in outcomes[1].reason
    assert time.monotonic() - start < 5.0


@pytest.mark.skipif(
    "fork" not in multiprocessing.get_all_start_methods(),
    reason="fork start method not available",
)
def test_process_crash_does_not_stop_siblings(config) -> None:
    async def body(pipeline, papers, fake):
        return await pipeline.process_all(papers)

    outcomes = _with_pipeline(
        config, ["one", "crash", "two"], body,
        sandbox=ProcessSandbox(aborting_extract, timeout=10, start_method="fork"),
    )

    assert [o.status for o in outcomes] == [
        ProcessingStatus.COMPLETED,
        ProcessingStatus.EXTRACTION_FAILED,
        ProcessingStatus.COMPLETED,
    ]
    assert "exited with code" in outcomes[1].reason


def test_second_run_creates_no_new_artifacts(config) -> None:
    async def body(pipeline, papers, fake):
        async def discover(session, cfg):
            return papers

        pipeline.discover = discover
        first = await pipeline.run_once()
        listing = sorted(p.name for p in config.summary_dir.iterdir())
        completions = fake.completions
        second = await pipeline.run_once()
        return first, second, listing, completions, fake.completions

    first, second, listing, before, after = _with_pipeline(config, ["one", "two", "small"], body)

    assert first.completed == 2
    assert first.corrupt == 1
    assert second.completed == 0
    assert second.skipped == 2
    assert sorted(p.name for p in config.summary_dir.iterdir()) == listing
    assert after == before


def test_duplicate_titles_are_processed_once(config) -> None:
    async def body(pipeline, papers, fake):
        twin = Paper(paper_id="2501.99999", title=papers[0].title, pdf_url=papers[0].pdf_url)

        async def discover(session, cfg):
            return [papers[0], twin]

        pipeline.discover = discover
        return await pipeline.run_once(), fake.completions

    stats, completions = _with_pipeline(config, ["one"], body)

    assert stats.completed == 1
    assert stats.skipped == 1
    assert completions == 1


def test_unexpected_exception_becomes_stage_failure(config) -> None:
    class BrokenSummarizer:
        async def summarize(self, paper, text):
            raise KeyError("choices")

    async def body(pipeline, papers, fake):
        pipeline.summarizer = BrokenSummarizer()
        return await pipeline.process_paper(papers[0])

    outcome = _with_pipeline(config, ["one"], body)

    assert outcome.status is ProcessingStatus.SUMMARIZATION_FAILED
    assert "KeyError" in outcome.reason


def test_chunked_preserves_order() -> None:
    assert list(chunked([1, 2, 3, 4, 5], 2)) == [[1, 2], [3, 4], [5]]


def test_groups_are_separated_by_a_barrier() -> None:
    events = []

    async def worker(item):
        events.append(("start", item))
        # Later items in a group finish first
        await asyncio.sleep(0.01 * (3 - item % 3))
        events.append(("end", item))
        if item == 4:
            raise ValueError("bad item")
        return item * 10

    results = asyncio.run(run_in_groups(list(range(7)), 3, worker))

    assert results[:4] == [0, 10, 20, 30]
    assert isinstance(results[4], ValueError)
    assert results[5:] == [50, 60]

    groups = list(chunked(list(range(7)), 3))
    for earlier, later in zip(groups, groups[1:]):
        last_end = max(events.index(("end", i)) for i in earlier)
        first_start = min(events.index(("start", i)) for i in later)
        assert last_end < first_start
