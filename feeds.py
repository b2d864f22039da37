"""Paper discovery from arXiv.

This module turns an arXiv listing (HTML) or RSS feed into an ordered,
de-duplicated list of Paper objects for the pipeline.

Sources:
    listing (default):
        Scrapes the "recent" listing page. Each <dt> carries the /abs/<id>
        link and the following <dd> carries the title. If the first page
        yields fewer than MAX_PAPERS papers, a second page with a larger
        'show' parameter is fetched and merged, skipping ids already seen.
    rss:
        Parses the arXiv RSS feed with feedparser.

Error Handling Strategy:
    - The first fetch failing is fatal for the run (DiscoveryError)
    - The second listing page failing is logged and ignored
    - Entries without an arXiv id are dropped
"""

import asyncio
import logging
import re
from html.parser import HTMLParser

import aiohttp
import feedparser

from config import Config
from models.paper import Paper

logger = logging.getLogger(__name__)

_ID_PATTERN = re.compile(r"/abs/(\d+\.\d+)")
_WHITESPACE = re.compile(r"\s+")

PDF_URL_TEMPLATE = "https://arxiv.org/pdf/{paper_id}.pdf"


class DiscoveryError(Exception):
    """Raised when no candidate papers can be obtained."""


class _ListingParser(HTMLParser):
    """Collect (paper_id, title) pairs from an arXiv listing page.

    Usage:
        >>> parser = _ListingParser()
        >>> parser.feed(html)
        >>> parser.entries
        [('2501.01234', 'Title: Some Paper'), ...]
    """

    def __init__(self):
        super().__init__()
        self.entries: list[tuple[str, str]] = []
        self._in_dt = False
        self._in_dd = False
        self._current_id = ""
        self._title_parts: list[str] = []
        self._title_depth = 0  # Nesting depth of <div> inside div.list-title
        self._title_done = False

    def handle_starttag(self, tag, attrs):
        attrs = dict(attrs)
        if tag == "dt":
            # </dd> is optional in HTML; a new <dt> closes the previous entry
            self._flush()
            self._in_dd = False
            self._in_dt = True
            self._current_id = ""
        elif tag == "dd":
            self._in_dd = True
            self._title_parts = []
            self._title_depth = 0
            self._title_done = False
        elif tag == "a" and self._in_dt and not self._current_id:
            match = _ID_PATTERN.search(attrs.get("href") or "")
            if match:
                self._current_id = match.group(1)
        elif tag == "div" and self._in_dd:
            if self._title_depth:
                self._title_depth += 1
            elif not self._title_done and "list-title" in (attrs.get("class") or "").split():
                self._title_depth = 1

    def handle_endtag(self, tag):
        if tag == "dt":
            self._in_dt = False
        elif tag == "dd":
            self._flush()
            self._in_dd = False
        elif tag == "div" and self._title_depth:
            self._title_depth -= 1
            if not self._title_depth:
                self._title_done = True

    def handle_data(self, data):
        if self._title_depth:
            self._title_parts.append(data)

    def close(self):
        super().close()
        self._flush()

    def _flush(self) -> None:
        """Emit the pending entry once its <dd> is complete."""
        if self._current_id and self._in_dd:
            self.entries.append((self._current_id, "".join(self._title_parts)))
            self._current_id = ""


def _clean_title(raw: str, paper_id: str) -> str:
    title = _WHITESPACE.sub(" ", raw.replace("Title:", "")).strip()
    return title or f"Paper-{paper_id}"


def _make_paper(paper_id: str, raw_title: str) -> Paper:
    return Paper(
        paper_id=paper_id,
        title=_clean_title(raw_title, paper_id),
        pdf_url=PDF_URL_TEMPLATE.format(paper_id=paper_id),
    )


def parse_listing(html: str) -> list[Paper]:
    """Parse an arXiv listing page into papers (page order, may repeat)."""
    parser = _ListingParser()
    parser.feed(html)
    parser.close()
    return [_make_paper(paper_id, title) for paper_id, title in parser.entries]


def parse_rss(content: str) -> list[Paper]:
    """Parse an arXiv RSS/Atom feed into papers."""
    feed = feedparser.parse(content)
    papers = []
    for entry in feed.entries:
        match = _ID_PATTERN.search(entry.get("link", "")) or _ID_PATTERN.search(entry.get("id", ""))
        if not match:
            continue
        papers.append(_make_paper(match.group(1), entry.get("title", "")))
    return papers


def merge_papers(papers: list[Paper], extra: list[Paper], limit: int) -> list[Paper]:
    """Append papers with unseen ids, preserving order, up to limit."""
    merged = list(papers[:limit])
    seen = {p.paper_id for p in merged}
    for paper in extra:
        if len(merged) >= limit:
            break
        if paper.paper_id in seen:
            continue
        seen.add(paper.paper_id)
        merged.append(paper)
    return merged


async def _get_text(session: aiohttp.ClientSession, url: str, params: dict | None = None) -> str:
    """GET a page, raising DiscoveryError on any failure."""
    try:
        async with session.get(url, params=params) as resp:
            if resp.status != 200:
                raise DiscoveryError(f"HTTP {resp.status} from {url}")
            return await resp.text()
    except aiohttp.ClientError as e:
        raise DiscoveryError(f"{url}: {type(e).__name__}: {e}") from e
    except asyncio.TimeoutError as e:
        raise DiscoveryError(f"{url}: request timed out") from e


async def _fetch_listing(session: aiohttp.ClientSession, config: Config) -> list[Paper]:
    limit = config.max_papers
    papers = merge_papers([], parse_listing(await _get_text(session, config.listing_url)), limit)
    logger.debug("Listing page parsed | papers=%d", len(papers))

    if len(papers) < limit:
        params = {"skip": 0, "show": max(limit, 100)}
        try:
            extra = parse_listing(await _get_text(session, config.listing_url, params=params))
        except DiscoveryError as e:
            logger.warning("Extended listing fetch failed | error=%s", e)
        else:
            papers = merge_papers(papers, extra, limit)

    return papers


async def _fetch_rss(session: aiohttp.ClientSession, config: Config) -> list[Paper]:
    return merge_papers([], parse_rss(await _get_text(session, config.rss_url)), config.max_papers)


async def fetch_papers(session: aiohttp.ClientSession, config: Config) -> list[Paper]:
    """Discover candidate papers.

    Args:
        session: Shared aiohttp session
        config: Application configuration (source, URLs, max_papers)

    Returns:
        Ordered list of unique papers (by arXiv id), at most max_papers long

    Raises:
        DiscoveryError: If the source cannot be fetched
    """
    if config.discovery_source == "rss":
        papers = await _fetch_rss(session, config)
    else:
        papers = await _fetch_listing(session, config)

    logger.info("Papers discovered | source=%s papers=%d", config.discovery_source, len(papers))
    return papers
