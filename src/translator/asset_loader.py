"""Fetching model assets and placing them into alignment-constrained buffers."""

import asyncio
import ctypes
import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx

from common.config import Settings, settings as default_settings
from common.retry_utils import retry_with_exponential_backoff
from common.utils import gather_or_cancel
from translator.exceptions import AssetUnavailable

logger = logging.getLogger(__name__)

HTTP_SCHEMES = ("http", "https")


@dataclass(frozen=True)
class AssetDescriptor:
    """One file needed to construct a translation model."""

    kind: str
    required_alignment: int
    location: str
    expected_sha256: Optional[str] = None


class AlignedBuffer:
    """
    A byte region whose start address is a multiple of ``alignment``.

    The region is carved out of a larger ``bytearray`` so it never moves; the
    engine may keep pointers into it for as long as the model lives.
    """

    def __init__(self, size: int, alignment: int):
        if size < 0:
            raise ValueError(f"Buffer size must be non-negative, got {size}")
        if alignment <= 0:
            raise ValueError(f"Alignment must be positive, got {alignment}")

        self._storage = bytearray(size + alignment)
        base_address = ctypes.addressof(ctypes.c_char.from_buffer(self._storage))
        self._offset = (-base_address) % alignment
        self._address = base_address + self._offset
        self._size = size
        self._alignment = alignment
        self._view = memoryview(self._storage)[self._offset : self._offset + size]

    @classmethod
    def from_bytes(cls, data: bytes, alignment: int) -> "AlignedBuffer":
        buffer = cls(len(data), alignment)
        buffer.view[:] = data
        return buffer

    @property
    def size(self) -> int:
        return self._size

    @property
    def alignment(self) -> int:
        return self._alignment

    @property
    def address(self) -> int:
        return self._address

    @property
    def view(self) -> memoryview:
        return self._view

    def tobytes(self) -> bytes:
        return self._view.tobytes()

    def __len__(self) -> int:
        return self._size

    def __repr__(self) -> str:
        return f"AlignedBuffer(size={self._size}, alignment={self._alignment})"


class HttpAssetFetcher:
    """Downloads assets over HTTP(S) with httpx."""

    def __init__(self, timeout: float):
        self.timeout = timeout

    async def fetch(self, location: str) -> bytes:
        async with httpx.AsyncClient(
            timeout=self.timeout, follow_redirects=True
        ) as client:
            async with client.stream("GET", location) as response:
                # Non-2xx statuses raise HTTPStatusError
                response.raise_for_status()
                return await response.aread()


class LocalAssetFetcher:
    """Reads assets from the local filesystem (plain paths or ``file://`` URLs)."""

    @staticmethod
    def to_path(location: str) -> Path:
        parsed = urlparse(location)
        if parsed.scheme == "file":
            return Path(url2pathname(parsed.path))
        return Path(location)

    async def fetch(self, location: str) -> bytes:
        path = self.to_path(location)
        return await asyncio.to_thread(path.read_bytes)


def select_fetcher(location: str, timeout: float):
    """Pick the byte source for a location: network for http(s), local I/O otherwise."""
    if urlparse(location).scheme.lower() in HTTP_SCHEMES:
        return HttpAssetFetcher(timeout)
    return LocalAssetFetcher()


class AssetLoader:
    """Loads model assets into aligned buffers. Nothing is cached between calls."""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings

    @property
    def _retry_decorator(self):
        return retry_with_exponential_backoff(
            max_retries=self.config.asset_max_retries,
            initial_delay=self.config.asset_retry_initial_delay,
            exponential_base=self.config.asset_retry_exponential_base,
            max_delay=self.config.asset_retry_max_delay,
        )

    async def fetch_bytes(self, location: str) -> bytes:
        """
        Fetch raw bytes for a location, retrying transient failures.

        Raises:
            AssetUnavailable: If the source is unreachable or answers with a
                non-success status
        """
        fetcher = select_fetcher(location, self.config.asset_download_timeout)
        fetch = self._retry_decorator(fetcher.fetch)
        try:
            return await fetch(location)
        except httpx.HTTPStatusError as e:
            raise AssetUnavailable(
                f"Downloading {location} failed: HTTP {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, OSError) as e:
            raise AssetUnavailable(f"Fetching {location} failed: {e}") from e

    @staticmethod
    def verify_checksum(descriptor: AssetDescriptor, data: bytes) -> None:
        if not descriptor.expected_sha256:
            return
        actual = hashlib.sha256(data).hexdigest()
        if actual.lower() != descriptor.expected_sha256.lower():
            raise AssetUnavailable(
                f"Checksum mismatch for {descriptor.kind} asset {descriptor.location}: "
                f"expected {descriptor.expected_sha256}, got {actual}"
            )

    async def load(self, descriptor: AssetDescriptor) -> AlignedBuffer:
        """
        Fetch one asset and copy it into a buffer with the required alignment.

        Raises:
            AssetUnavailable: If the asset cannot be fetched or verified
        """
        data = await self.fetch_bytes(descriptor.location)
        if self.config.asset_verify_checksums:
            self.verify_checksum(descriptor, data)

        buffer = AlignedBuffer.from_bytes(data, descriptor.required_alignment)
        logger.info(
            f"{descriptor.kind} aligned memory prepared. "
            f"Size: {buffer.size} bytes, alignment: {buffer.alignment}"
        )
        return buffer

    async def load_all(
        self, descriptors: Sequence[AssetDescriptor]
    ) -> List[AlignedBuffer]:
        """
        Load several assets concurrently; results follow the input order.

        If one load fails the remaining ones are cancelled before the error
        propagates.
        """
        return await gather_or_cancel(*(self.load(d) for d in descriptors))
