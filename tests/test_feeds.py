"""Tests for arXiv discovery parsing and pagination."""

import asyncio

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from feeds import DiscoveryError, fetch_papers, merge_papers, parse_listing, parse_rss
from models.paper import Paper


def _entry(paper_id: str, title_html: str) -> str:
    return f"""
<dt><a name="item1">[1]</a>&nbsp;
  <a href="/abs/{paper_id}" title="Abstract" id="{paper_id}">arXiv:{paper_id}</a>
  [<a href="/pdf/{paper_id}" title="Download PDF">pdf</a>]
</dt>
<dd>
  <div class="meta">
    <div class="list-title mathjax"><span class="descriptor">Title:</span>
      {title_html}
    </div>
    <div class="list-authors"><a href="/a/doe_j_1">Jane Doe</a></div>
  </div>
</dd>"""


def _listing(*entries: str) -> str:
    return f"<html><body><dl id='articles'>{''.join(entries)}</dl></body></html>"


RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
<channel>
  <title>cs.AI updates on arXiv.org</title>
  <item>
    <title>Reasoning Agents at Scale</title>
    <link>https://arxiv.org/abs/2501.00011</link>
    <guid isPermaLink="false">oai:arXiv.org:2501.00011v1</guid>
  </item>
  <item>
    <title>Not a paper</title>
    <link>https://arxiv.org/help</link>
  </item>
</channel>
</rss>"""


def test_parse_listing_extracts_id_and_title() -> None:
    html = _listing(_entry("2501.01234", "Scaling   Laws\n <b>Revisited</b>"))

    papers = parse_listing(html)

    assert len(papers) == 1
    assert papers[0].paper_id == "2501.01234"
    assert papers[0].title == "Scaling Laws Revisited"
    assert papers[0].pdf_url == "https://arxiv.org/pdf/2501.01234.pdf"


def test_parse_listing_title_fallback() -> None:
    papers = parse_listing(_listing(_entry("2501.00002", "")))

    assert papers[0].title == "Paper-2501.00002"


def test_parse_listing_keeps_page_order() -> None:
    html = _listing(_entry("2501.00003", "Third"), _entry("2501.00001", "First"))

    assert [p.paper_id for p in parse_listing(html)] == ["2501.00003", "2501.00001"]


def test_parse_rss_uses_entry_links() -> None:
    papers = parse_rss(RSS)

    assert [(p.paper_id, p.title) for p in papers] == [("2501.00011", "Reasoning Agents at Scale")]


def test_merge_skips_seen_ids_and_caps() -> None:
    def p(pid):
        return Paper(paper_id=pid, title=pid, pdf_url="")

    merged = merge_papers([p("1"), p("2")], [p("2"), p("3"), p("4")], limit=3)

    assert [x.paper_id for x in merged] == ["1", "2", "3"]


def _discover(config, handler):
    async def go():
        app = web.Application()
        app.router.add_get("/list/cs.AI/recent", handler)
        server = TestServer(app)
        await server.start_server()
        try:
            config.listing_url = str(server.make_url("/list/cs.AI/recent"))
            async with aiohttp.ClientSession() as session:
                return await fetch_papers(session, config)
        finally:
            await server.close()

    return asyncio.run(go())


def test_short_first_page_fetches_extended_listing(config) -> None:
    config.max_papers = 3
    queries = []

    async def handler(request):
        queries.append(dict(request.query))
        if "show" in request.query:
            return web.Response(
                text=_listing(
                    _entry("2501.00001", "One"),
                    _entry("2501.00002", "Two"),
                    _entry("2501.00003", "Three"),
                    _entry("2501.00004", "Four"),
                ),
                content_type="text/html",
            )
        return web.Response(text=_listing(_entry("2501.00001", "One")), content_type="text/html")

    papers = _discover(config, handler)

    assert [p.paper_id for p in papers] == ["2501.00001", "2501.00002", "2501.00003"]
    assert queries == [{}, {"skip": "0", "show": "100"}]


def test_extended_listing_failure_is_ignored(config) -> None:
    config.max_papers = 5

    async def handler(request):
        if "show" in request.query:
            return web.Response(status=503)
        return web.Response(text=_listing(_entry("2501.00001", "One")), content_type="text/html")

    assert [p.paper_id for p in _discover(config, handler)] == ["2501.00001"]


def test_first_page_failure_is_fatal(config) -> None:
    async def handler(request):
        return web.Response(status=500)

    with pytest.raises(DiscoveryError):
        _discover(config, handler)
