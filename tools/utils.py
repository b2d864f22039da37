"""Shared HTTP utilities for the tools package.

This module builds the single aiohttp session shared by discovery and
downloads, along with the constants those callers have in common.
"""

import ssl

import aiohttp
import certifi

# Browser-like User-Agent to avoid being blocked by some servers
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


def create_ssl_context() -> ssl.SSLContext:
    """Create an SSL context that verifies certificates against the certifi bundle."""
    return ssl.create_default_context(cafile=certifi.where())


def create_session(timeout: int = 120, max_connections: int = 20) -> aiohttp.ClientSession:
    """Create the shared client session for one pipeline run.

    The session owns the connection pool and is safe to use from many
    concurrent tasks on the same event loop. The timeout applies to every
    request made through it.

    Args:
        timeout: Total timeout per request in seconds
        max_connections: Connection pool size

    Returns:
        Open aiohttp session (caller closes it)
    """
    connector = aiohttp.TCPConnector(limit=max_connections, ssl=create_ssl_context())
    return aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=timeout),
        headers={"User-Agent": USER_AGENT},
    )
