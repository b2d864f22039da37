"""Tests for the PDF download tool."""

import asyncio

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from tools.download import CHUNK_SIZE, DownloadError, download_file

BIG_BODY = b"%PDF-1.4\n" + bytes(range(256)) * (CHUNK_SIZE // 64)


async def big_pdf(request):
    response = web.StreamResponse()
    await response.prepare(request)
    for start in range(0, len(BIG_BODY), 1000):
        await response.write(BIG_BODY[start:start + 1000])
    await response.write_eof()
    return response


async def truncated_pdf(request):
    response = web.StreamResponse(headers={"Content-Length": str(len(BIG_BODY))})
    await response.prepare(request)
    await response.write(BIG_BODY[:5000])
    # Close the connection before the announced length arrives
    request.transport.close()
    return response


async def not_found(request):
    return web.Response(status=404)


def _download(route, dest):
    async def go():
        app = web.Application()
        app.router.add_get("/pdf", route)
        server = TestServer(app)
        await server.start_server()
        try:
            async with aiohttp.ClientSession() as session:
                return await download_file(session, str(server.make_url("/pdf")), dest)
        finally:
            await server.close()

    return asyncio.run(go())


def test_streamed_body_is_written_whole(tmp_path) -> None:
    dest = tmp_path / "papers" / "big.pdf"

    size = _download(big_pdf, dest)

    assert size == len(BIG_BODY)
    assert dest.read_bytes() == BIG_BODY
    assert sorted(p.name for p in dest.parent.iterdir()) == ["big.pdf"]


def test_interrupted_body_leaves_no_file(tmp_path) -> None:
    dest = tmp_path / "cut.pdf"

    with pytest.raises(DownloadError):
        _download(truncated_pdf, dest)

    assert list(tmp_path.iterdir()) == []


def test_http_error_leaves_no_file(tmp_path) -> None:
    dest = tmp_path / "missing.pdf"

    with pytest.raises(DownloadError, match="HTTP 404"):
        _download(not_found, dest)

    assert list(tmp_path.iterdir()) == []
