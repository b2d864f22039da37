"""PDF download tool.

Fetches a paper's PDF through the shared session and stores it in the
download cache under <canonical_key>.pdf. The body is streamed in chunks
into a hidden temporary file that is renamed into place only once the
whole body has arrived, so an interrupted download never leaves a partial
file that a later run would mistake for a cached copy.
"""

import asyncio
import logging
from pathlib import Path

import aiohttp

from artifacts import atomic_open

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class DownloadError(Exception):
    """Raised when a PDF cannot be downloaded."""


async def download_file(
    session: aiohttp.ClientSession,
    url: str,
    dest: Path,
) -> int:
    """Download a URL to a local file.

    Args:
        session: Shared aiohttp session
        url: File URL
        dest: Destination path (written atomically)

    Returns:
        Number of bytes written

    Raises:
        DownloadError: On transport errors, non-200 status or write failure
    """
    logger.debug("Downloading | url=%s", url)
    size = 0
    try:
        async with session.get(url) as resp:
            if resp.status != 200:
                raise DownloadError(f"HTTP {resp.status} for {url}")
            with atomic_open(dest) as f:
                async for chunk in resp.content.iter_chunked(CHUNK_SIZE):
                    f.write(chunk)
                    size += len(chunk)
    except aiohttp.ClientError as e:
        raise DownloadError(f"{type(e).__name__}: {e}") from e
    except asyncio.TimeoutError as e:
        raise DownloadError(f"request timed out: {url}") from e
    except OSError as e:
        raise DownloadError(f"cannot write {dest.name}: {e}") from e

    return size
