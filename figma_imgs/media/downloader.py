"""
Handles the low-level transfer of rendered images over HTTP, including the
entity-tag probe and the conditional short-circuit on an unchanged tag.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path

import aiofiles
import aiohttp

log = logging.getLogger(__name__)

CHUNK_SIZE = 131072  # 128 KB


def create_download_session(concurrency: int = 5) -> aiohttp.ClientSession:
    """
    Creates the aiohttp ClientSession shared by all fetches of one sync.

    The caller owns the session and must close it. No overall timeout is set,
    so a stalled transfer keeps its worker busy until the server gives up.

    Args:
        concurrency: Maximum concurrent fetches, used to size the connector.
    """
    connector = aiohttp.TCPConnector(
        limit=concurrency * 2,
        limit_per_host=concurrency,
        ttl_dns_cache=600,  # 10 minutes
        keepalive_timeout=30,
        enable_cleanup_closed=True,
    )
    session = aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=None),
    )
    log.debug(f"Created download session with limit_per_host={concurrency}")
    return session


def partial_path(destination: Path) -> Path:
    """The sibling file a body is streamed into before it replaces ``destination``."""
    return destination.with_name(f".{destination.name}.part")


@dataclass(frozen=True)
class FetchResult:
    """Outcome of a completed fetch."""

    id: str
    etag: str | None
    written: bool = True
    size: int = 0


@dataclass(frozen=True)
class ProbeResult:
    id: str
    etag: str | None


class AssetFetcher:
    """Downloads single assets through a caller-owned session."""

    def __init__(self, session: aiohttp.ClientSession, chunk_size: int = CHUNK_SIZE):
        self.session = session
        self.chunk_size = chunk_size

    async def fetch(
        self,
        asset_id: str,
        url: str,
        destination: Path,
        previous_etag: str | None = None,
    ) -> FetchResult:
        """
        Streams ``url`` into ``destination``. The body goes to a partial file
        first and replaces ``destination`` only once it is complete, so an
        interrupted transfer leaves any previous copy as it was.

        When ``previous_etag`` is given and equals the response's ETag, the
        response is closed as soon as its headers arrive: no body is read and
        no file is created, yet the fetch still succeeds with the current tag.

        Raises:
            aiohttp.ClientError: On connection failures or non-2xx responses.
            asyncio.TimeoutError: If the server stops responding mid-transfer.
        """
        async with self.session.get(url, allow_redirects=True) as response:
            response.raise_for_status()
            etag = response.headers.get("ETag")

            if previous_etag is not None and etag == previous_etag:
                response.close()
                log.debug(f"ETag unchanged for '{destination.name}', skipping body.")
                return FetchResult(id=asset_id, etag=etag, written=False)

            await asyncio.to_thread(
                destination.parent.mkdir, parents=True, exist_ok=True
            )
            part_path = partial_path(destination)
            bytes_written = 0
            try:
                async with aiofiles.open(part_path, "wb") as f:
                    async for chunk in response.content.iter_chunked(self.chunk_size):
                        await f.write(chunk)
                        bytes_written += len(chunk)
            except BaseException:
                part_path.unlink(missing_ok=True)
                raise

        await asyncio.to_thread(os.replace, part_path, destination)
        log.debug(f"Saved '{destination.name}' ({bytes_written} bytes).")
        return FetchResult(id=asset_id, etag=etag, written=True, size=bytes_written)

    async def probe_etag(self, asset_id: str, url: str) -> ProbeResult:
        """Issues a HEAD request and returns the asset's current ETag, if any."""
        async with self.session.head(url, allow_redirects=True) as response:
            response.raise_for_status()
            return ProbeResult(id=asset_id, etag=response.headers.get("ETag"))
