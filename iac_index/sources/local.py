"""Content source over a local checkout of the data source repositories."""

import asyncio
import logging
from pathlib import Path

from iac_index.errors import SourceError
from iac_index.sources.base import ContentSource, DataSourceConfig, SourceFile

logger = logging.getLogger(__name__)


class LocalSource(ContentSource):
    """
    Reads data sources from ``<root>/<repo>/<base_path>``.

    Paths returned by ``list_files`` are relative to ``<root>/<repo>`` so
    records built from a local checkout carry the same paths and ids as
    ones built from GitHub.
    """

    def __init__(self, root: str | Path, max_depth: int = 5):
        self.root = Path(root)
        self.max_depth = max_depth

    def _repo_root(self, config: DataSourceConfig) -> Path:
        return self.root / config.repo

    def _list(self, config: DataSourceConfig) -> list[SourceFile]:
        repo_root = self._repo_root(config)
        base = repo_root / config.base_path.strip("/")
        if not base.is_dir():
            raise SourceError(f"Local source directory not found: {base}")

        files = []
        for path in sorted(base.rglob("*")):
            if not path.is_file():
                continue
            relative = path.relative_to(repo_root)
            if len(path.relative_to(base).parts) > self.max_depth:
                continue
            files.append(
                SourceFile(name=path.name, path=relative.as_posix(), size=path.stat().st_size)
            )
        return files

    async def list_files(self, config: DataSourceConfig) -> list[SourceFile]:
        files = await asyncio.to_thread(self._list, config)
        logger.debug(f"Listed {len(files)} local files for {config.name}")
        return files

    async def get_content(self, config: DataSourceConfig, path: str) -> str:
        repo_root = self._repo_root(config).resolve()
        target = (repo_root / path).resolve()
        if not target.is_relative_to(repo_root):
            raise SourceError(f"Path escapes the data source: {path}")
        try:
            return await asyncio.to_thread(target.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise SourceError(f"Failed to read {path}: {e}") from e
