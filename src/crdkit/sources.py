"""Bundle sources for the plugin registry.

A bundle source yields the raw text of one plugin bundle. Sources are
fetched concurrently by the registry, so ``fetch`` is a coroutine.
"""

import asyncio
from pathlib import Path
from typing import Protocol

import aiohttp

DEFAULT_FETCH_TIMEOUT = 10.0


class BundleFetchError(Exception):
    """Raised when a bundle source cannot be fetched."""

    def __init__(self, location: str, reason: str) -> None:
        """Initialize with the source location and the failure reason."""
        self.location = location
        self.reason = reason
        super().__init__(f"Failed to load plugin bundle {location}: {reason}")


class BundleSource(Protocol):
    """Protocol for fetching the text of one plugin bundle."""

    location: str

    async def fetch(self) -> str:
        """Return the bundle text, or raise BundleFetchError."""
        ...


class FileBundleSource:
    """Reads a bundle from the local filesystem."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.location = str(path)

    async def fetch(self) -> str:
        """Read the bundle file without blocking the event loop."""
        try:
            return await asyncio.to_thread(self.path.read_text, encoding="utf-8")
        except FileNotFoundError as e:
            raise BundleFetchError(self.location, "file not found") from e
        except OSError as e:
            raise BundleFetchError(self.location, e.strerror or str(e)) from e


class HttpBundleSource:
    """Fetches a bundle over HTTP(S) with aiohttp."""

    def __init__(self, url: str, timeout: float = DEFAULT_FETCH_TIMEOUT) -> None:
        self.url = url
        self.location = url
        self.timeout = timeout

    async def fetch(self) -> str:
        """GET the bundle; any non-2xx status is a fetch failure."""
        client_timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=client_timeout) as session:
                async with session.get(self.url) as response:
                    if not response.ok:
                        raise BundleFetchError(self.location, f"HTTP {response.status}")
                    return await response.text()
        except (aiohttp.ClientError, TimeoutError) as e:
            raise BundleFetchError(self.location, str(e) or type(e).__name__) from e


def source_for(
    location: str,
    base_dir: Path | None = None,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
) -> BundleSource:
    """Build the source for a configured bundle location.

    Args:
        location: An http(s) URL or a filesystem path.
        base_dir: Directory that relative paths are resolved against.
        timeout: Network timeout in seconds for HTTP sources.

    Returns:
        An HttpBundleSource for URLs, otherwise a FileBundleSource.
    """
    if location.startswith(("http://", "https://")):
        return HttpBundleSource(location, timeout=timeout)

    path = Path(location).expanduser()
    if not path.is_absolute() and base_dir is not None:
        path = base_dir / path
    return FileBundleSource(path)
