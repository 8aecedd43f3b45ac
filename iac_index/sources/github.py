"""GitHub content source with caching and retry on transient failures."""

import asyncio
import logging
import random
from urllib.parse import quote

import httpx

from iac_index import __version__
from iac_index.cache import CacheStore
from iac_index.errors import SourceError
from iac_index.sources.base import ContentSource, DataSourceConfig, SourceFile

logger = logging.getLogger(__name__)


class GitHubSource(ContentSource):
    """
    Reads data sources from GitHub.

    Directory listings go through the contents API and are walked up to
    ``max_depth`` levels below the base path. File content is fetched from
    the raw host, which does not count against the API rate limit.

    Cache keys:
        repo:<owner>/<repo>/<branch>/<path>   one directory listing
        index:<owner>/<repo>/<branch>         full recursive listing
        raw:<owner>/<repo>/<branch>/<path>    file content
    """

    DEFAULT_RETRY_MAX_DELAY = 30.0
    RETRY_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

    def __init__(
        self,
        cache: CacheStore,
        token: str = "",
        api_url: str = "https://api.github.com",
        raw_url: str = "https://raw.githubusercontent.com",
        timeout: float = 30.0,
        max_depth: int = 5,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        listing_ttl: float | None = None,
        file_ttl: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            cache: Store for listings and file content
            token: Optional GitHub token; anonymous access is heavily rate limited
            max_depth: Directory levels to descend below a source's base path
            max_retries: Retries after the first attempt (0 disables retrying)
            retry_base_delay: Base delay in seconds for exponential backoff
            transport: Custom httpx transport, used by tests
        """
        self.cache = cache
        self.api_url = api_url.rstrip("/")
        self.raw_url = raw_url.rstrip("/")
        self.max_depth = max_depth
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = self.DEFAULT_RETRY_MAX_DELAY
        self.listing_ttl = listing_ttl
        self.file_ttl = file_ttl

        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": f"iac-index/{__version__}",
        }
        if token:
            headers["Authorization"] = f"token {token}"

        self._client = httpx.AsyncClient(headers=headers, timeout=timeout, transport=transport)

    async def list_files(self, config: DataSourceConfig) -> list[SourceFile]:
        cache_key = f"index:{config.owner}/{config.repo}/{config.branch}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return list(cached)

        files: list[SourceFile] = []
        await self._walk(config, config.base_path.strip("/"), files, depth=0)

        logger.info(
            f"Listed {len(files)} files from {config.source_key}",
            extra={"data_source": config.name, "file_count": len(files)},
        )
        self.cache.set(cache_key, files, self.listing_ttl)
        return list(files)

    async def _walk(
        self, config: DataSourceConfig, path: str, files: list[SourceFile], depth: int
    ) -> None:
        if depth >= self.max_depth:
            return

        try:
            entries = await self._list_directory(config, path)
        except SourceError:
            # The base path must be readable; deeper directories are skipped
            if depth == 0:
                raise
            logger.warning(
                f"Skipping unreadable directory {path}",
                extra={"data_source": config.name, "path": path},
            )
            return

        for entry in entries:
            if entry.get("type") == "file":
                files.append(
                    SourceFile(name=entry["name"], path=entry["path"], size=entry.get("size") or 0)
                )
            elif entry.get("type") == "dir":
                await self._walk(config, entry["path"], files, depth + 1)

    async def _list_directory(self, config: DataSourceConfig, path: str) -> list[dict]:
        cache_key = f"repo:{config.owner}/{config.repo}/{config.branch}/{path}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        url = f"{self.api_url}/repos/{config.owner}/{config.repo}/contents/{quote(path)}"
        response = await self._request(url, params={"ref": config.branch})
        entries = response.json()
        # A file path returns a single object instead of a listing
        if isinstance(entries, dict):
            entries = [entries]
        if not isinstance(entries, list):
            raise SourceError(f"Unexpected listing response for {config.source_key}/{path}")

        self.cache.set(cache_key, entries, self.listing_ttl)
        return entries

    async def get_content(self, config: DataSourceConfig, path: str) -> str:
        cache_key = f"raw:{config.owner}/{config.repo}/{config.branch}/{path}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        url = f"{self.raw_url}/{config.owner}/{config.repo}/{config.branch}/{quote(path)}"
        response = await self._request(url)
        content = response.text
        self.cache.set(cache_key, content, self.file_ttl)
        return content

    def _calculate_backoff(self, attempt: int) -> float:
        """Exponential backoff capped at retry_max_delay, with +/-25% jitter."""
        delay = min(self.retry_base_delay * (2 ** attempt), self.retry_max_delay)
        jitter = delay * 0.25 * (random.random() * 2 - 1)
        return max(0, delay + jitter)

    async def _request(self, url: str, **kwargs) -> httpx.Response:
        """
        GET with automatic retry on transient failures.

        Retries on network errors and RETRY_STATUS_CODES. Any other error
        status, or running out of attempts, raises SourceError.
        """
        for attempt in range(self.max_retries + 1):
            is_last = attempt >= self.max_retries
            try:
                response = await self._client.get(url, **kwargs)
            except httpx.RequestError as e:
                if is_last:
                    raise SourceError(
                        f"Network error after {attempt + 1} attempts: {e}"
                    ) from e
                logger.debug(f"Retrying {url} after network error: {e}")
                await asyncio.sleep(self._calculate_backoff(attempt))
                continue

            if response.status_code in self.RETRY_STATUS_CODES and not is_last:
                logger.debug(f"Retrying {url} after HTTP {response.status_code}")
                await asyncio.sleep(self._calculate_backoff(attempt))
                continue

            if response.status_code >= 400:
                raise SourceError(
                    f"GitHub request failed with HTTP {response.status_code}: {url}",
                    upstream_status=response.status_code,
                )
            return response

        raise SourceError(f"Max retries exceeded: {url}")

    def invalidate(self, config: DataSourceConfig) -> int:
        """Drop every cached listing and file of a data source."""
        removed = 0
        for prefix in ("index:", "repo:", "raw:"):
            removed += self.cache.delete_prefix(f"{prefix}{config.owner}/{config.repo}/{config.branch}")
        return removed

    async def aclose(self) -> None:
        await self._client.aclose()
