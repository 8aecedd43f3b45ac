"""Template Indexer - builds template indexes from a content source."""

import asyncio
import logging
import time

from iac_index.cache import CacheStore, get_cache
from iac_index.config import get_settings
from iac_index.metrics import INDEX_BUILD_DURATION_SECONDS
from iac_index.schemas.template import TemplateIndex, TemplateRecord
from iac_index.services.template_extractor import (
    build_index,
    build_record,
    find_metadata_file,
    is_template_file,
)
from iac_index.sources.base import ContentSource, DataSourceConfig, SourceFile

logger = logging.getLogger(__name__)


def template_index_key(config: DataSourceConfig) -> str:
    return f"template-index:{config.owner}/{config.repo}/{config.branch}"


class TemplateIndexer:
    """
    Fetches and extracts every template file of a data source.

    Files are processed in batches of ``batch_size`` concurrent extractions
    with ``batch_delay`` seconds between batches. A file that cannot be
    fetched or extracted is left out of the index and listed in
    ``failed_files``; it never fails the build.
    """

    def __init__(
        self,
        source: ContentSource,
        cache: CacheStore,
        batch_size: int = 10,
        batch_delay: float = 0.5,
        index_ttl: float | None = None,
    ):
        self.source = source
        self.cache = cache
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay
        self.index_ttl = index_ttl

    async def index_templates(self, config: DataSourceConfig) -> TemplateIndex:
        """Return the cached index for a data source, building it on a miss."""
        cache_key = template_index_key(config)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        start = time.perf_counter()
        all_files = await self.source.list_files(config)
        template_files = [f for f in all_files if is_template_file(f.name)]

        records: list[TemplateRecord] = []
        failed: list[str] = []

        for i in range(0, len(template_files), self.batch_size):
            batch = template_files[i:i + self.batch_size]
            results = await asyncio.gather(
                *(self._process_file(config, f, all_files) for f in batch),
                return_exceptions=True,
            )
            for file, result in zip(batch, results):
                if isinstance(result, BaseException):
                    failed.append(file.path)
                    logger.warning(
                        f"Failed to process template {file.path}: {result}",
                        extra={"file_name": file.name, "path": file.path, "data_source": config.name},
                    )
                else:
                    records.append(result)

            if i + self.batch_size < len(template_files):
                await asyncio.sleep(self.batch_delay)

        index = build_index(records, failed_files=failed, data_source=config.name)
        duration = time.perf_counter() - start
        INDEX_BUILD_DURATION_SECONDS.labels(kind="templates").observe(duration)
        logger.info(
            f"Indexed {index.total_templates} templates from {config.source_key}",
            extra={
                "data_source": config.name,
                "total_templates": index.total_templates,
                "failed_files": len(failed),
                "duration_ms": round(duration * 1000, 2),
            },
        )

        self.cache.set(cache_key, index, self.index_ttl)
        return index

    async def _process_file(
        self, config: DataSourceConfig, file: SourceFile, all_files: list[SourceFile]
    ) -> TemplateRecord:
        content = await self.source.get_content(config, file.path)

        metadata_file = None
        sibling = find_metadata_file(file, all_files)
        if sibling is not None:
            try:
                metadata_file = (sibling.name, await self.source.get_content(config, sibling.path))
            except Exception as e:
                logger.warning(
                    f"Failed to fetch metadata file {sibling.path}: {e}",
                    extra={"file_name": sibling.name, "kind": "metadata", "path": sibling.path},
                )

        return build_record(config.source_key, file, content, metadata_file)

    def invalidate(self, config: DataSourceConfig) -> bool:
        return self.cache.delete(template_index_key(config))


def get_template_indexer(source: ContentSource) -> TemplateIndexer:
    """Build an indexer over a content source using settings and the shared cache."""
    settings = get_settings()
    return TemplateIndexer(
        source=source,
        cache=get_cache(),
        batch_size=settings.index_batch_size,
        batch_delay=settings.index_batch_delay,
        index_ttl=settings.cache_ttl_template_index,
    )
