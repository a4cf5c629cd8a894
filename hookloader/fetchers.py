"""Resource fetcher implementations.

Concrete implementations of the Fetcher protocol:
- MemoryFetcher: in-process address -> source table
- FileFetcher: local filesystem paths
- HttpFetcher: remote addresses over HTTP(S)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol
from typing import runtime_checkable

import httpx

from .errors import FetchError

logger = logging.getLogger(__name__)


@runtime_checkable
class Fetcher(Protocol):
    """Maps a resource address to source text."""

    async def fetch(self, address: str) -> str: ...


class MemoryFetcher:
    """Serves sources from a mapping.

    Records every address it served, which lets callers assert on fetch counts.
    """

    def __init__(self, sources: Mapping[str, str] | None = None):
        self.sources: dict[str, str] = dict(sources or {})
        self.requests: list[str] = []

    def add(self, address: str, source: str) -> None:
        self.sources[address] = source

    async def fetch(self, address: str) -> str:
        self.requests.append(address)
        if address not in self.sources:
            raise FetchError(f"Resource not found: {address}", address=address)
        return self.sources[address]

    def __repr__(self) -> str:
        return f"MemoryFetcher({len(self.sources)} sources)"


class FileFetcher:
    """Local filesystem source."""

    def __init__(self, root: str | Path | None = None, encoding: str = "utf-8"):
        """Initialize with an optional root directory.

        Args:
            root: Directory relative addresses are read from (default: cwd)
            encoding: Text encoding of source files
        """
        self.root = Path(root) if root is not None else None
        self.encoding = encoding

    def _path_for(self, address: str) -> Path:
        # Handle file:// prefix
        if address.startswith("file://"):
            address = address[7:]
        path = Path(address)
        if self.root is not None and not path.is_absolute():
            path = self.root / path
        return path

    async def fetch(self, address: str) -> str:
        path = self._path_for(address)
        try:
            return await asyncio.to_thread(path.read_text, encoding=self.encoding)
        except FileNotFoundError as e:
            raise FetchError(f"Module file not found: {path}", address=address) from e
        except OSError as e:
            raise FetchError(f"Failed to read {path}: {e}", address=address) from e

    def __repr__(self) -> str:
        return f"FileFetcher({self.root or '.'})"


class HttpFetcher:
    """Remote source fetched with httpx."""

    def __init__(self, timeout: float = 10.0, client: httpx.AsyncClient | None = None):
        """Initialize HTTP fetcher.

        Args:
            timeout: Request timeout in seconds
            client: Optional shared client (caller owns its lifetime)
        """
        self.timeout = timeout
        self._client = client

    async def fetch(self, address: str) -> str:
        logger.debug(f"[fetch:http] GET {address}")
        try:
            if self._client is not None:
                response = await self._client.get(address, timeout=self.timeout, follow_redirects=True)
            else:
                async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                    response = await client.get(address)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FetchError(
                f"Fetching {address} failed with HTTP {e.response.status_code}", address=address
            ) from e
        except httpx.HTTPError as e:
            raise FetchError(f"Fetching {address} failed: {e}", address=address) from e
        return response.text

    def __repr__(self) -> str:
        return f"HttpFetcher(timeout={self.timeout})"
