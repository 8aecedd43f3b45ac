"""Policy Indexer - builds policy indexes and answers policy searches."""

import asyncio
import logging
import time
from datetime import datetime, timezone

from iac_index.cache import CacheStore, get_cache
from iac_index.config import get_settings
from iac_index.metrics import INDEX_BUILD_DURATION_SECONDS
from iac_index.schemas.policy import ParsedPolicy, PolicyIndex, PolicySearchCriteria
from iac_index.services.policy_parser import PolicyParser
from iac_index.sources.base import ContentSource, DataSourceConfig, SourceFile

logger = logging.getLogger(__name__)


def policy_index_key(config: DataSourceConfig) -> str:
    return f"policy-index:{config.owner}/{config.repo}/{config.branch}"


def is_policy_file(file_name: str) -> bool:
    """Policy definitions, skipping the split-out rules/parameters companions."""
    lowered = file_name.lower()
    return lowered.endswith(".json") and not lowered.endswith((".rules.json", ".parameters.json"))


def build_policy_index(
    policies: list[ParsedPolicy],
    failed_files: list[str] | None = None,
    data_source: str | None = None,
) -> PolicyIndex:
    categories: dict[str, int] = {}
    resource_types: dict[str, list[str]] = {}
    for policy in policies:
        categories[policy.category] = categories.get(policy.category, 0) + 1
        for resource_type in policy.resource_types:
            resource_types.setdefault(resource_type, []).append(policy.id)

    return PolicyIndex(
        policies=policies,
        categories=categories,
        resource_types=resource_types,
        total_policies=len(policies),
        failed_files=failed_files or [],
        last_updated=datetime.now(timezone.utc),
        data_source=data_source,
    )


def search_policies(index: PolicyIndex, criteria: PolicySearchCriteria) -> list[ParsedPolicy]:
    """Conjunctive filter over an index. Results keep index order."""
    results = list(index.policies)

    if criteria.categories:
        results = [p for p in results if p.category in criteria.categories]

    if criteria.effects:
        wanted = {e.lower() for e in criteria.effects}
        results = [p for p in results if any(e.effect.lower() in wanted for e in p.effects)]

    if criteria.resource_types:
        wanted = {t.lower() for t in criteria.resource_types}
        results = [p for p in results if any(t.lower() in wanted for t in p.resource_types)]

    if criteria.keywords:
        keywords = [k.lower() for k in criteria.keywords]

        def matches(policy: ParsedPolicy) -> bool:
            text = f"{policy.name} {policy.display_name} {policy.description}".lower()
            return any(k in text for k in keywords)

        results = [p for p in results if matches(p)]

    if criteria.policy_types:
        results = [p for p in results if p.policy_type in criteria.policy_types]

    if not criteria.include_preview:
        results = [p for p in results if not p.preview]

    if not criteria.include_deprecated:
        results = [p for p in results if not p.deprecated]

    if criteria.limit:
        results = results[: criteria.limit]

    return results


class PolicyIndexer:
    """Parses every policy definition of a data source, tolerating bad files."""

    def __init__(
        self,
        source: ContentSource,
        cache: CacheStore,
        parser: PolicyParser | None = None,
        batch_size: int = 10,
        batch_delay: float = 0.5,
        index_ttl: float | None = None,
    ):
        self.source = source
        self.cache = cache
        self.parser = parser or PolicyParser()
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay
        self.index_ttl = index_ttl

    async def index_policies(self, config: DataSourceConfig) -> PolicyIndex:
        cache_key = policy_index_key(config)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        start = time.perf_counter()
        files = [f for f in await self.source.list_files(config) if is_policy_file(f.name)]

        policies: list[ParsedPolicy] = []
        failed: list[str] = []

        for i in range(0, len(files), self.batch_size):
            batch = files[i:i + self.batch_size]
            results = await asyncio.gather(
                *(self._process_file(config, f) for f in batch),
                return_exceptions=True,
            )
            for file, result in zip(batch, results):
                if isinstance(result, BaseException):
                    failed.append(file.path)
                    logger.warning(
                        f"Failed to process policy {file.path}: {result}",
                        extra={"file_name": file.name, "path": file.path, "data_source": config.name},
                    )
                else:
                    policies.append(result)

            if i + self.batch_size < len(files):
                await asyncio.sleep(self.batch_delay)

        index = build_policy_index(policies, failed_files=failed, data_source=config.name)
        duration = time.perf_counter() - start
        INDEX_BUILD_DURATION_SECONDS.labels(kind="policies").observe(duration)
        logger.info(
            f"Indexed {index.total_policies} policies from {config.source_key}",
            extra={
                "data_source": config.name,
                "total_policies": index.total_policies,
                "failed_files": len(failed),
                "duration_ms": round(duration * 1000, 2),
            },
        )

        self.cache.set(cache_key, index, self.index_ttl)
        return index

    async def _process_file(self, config: DataSourceConfig, file: SourceFile) -> ParsedPolicy:
        content = await self.source.get_content(config, file.path)
        return self.parser.parse(content, id=f"{config.source_key}/{file.path}")

    def invalidate(self, config: DataSourceConfig) -> bool:
        return self.cache.delete(policy_index_key(config))


def get_policy_indexer(source: ContentSource, parser: PolicyParser | None = None) -> PolicyIndexer:
    settings = get_settings()
    return PolicyIndexer(
        source=source,
        cache=get_cache(),
        parser=parser,
        batch_size=settings.index_batch_size,
        batch_delay=settings.index_batch_delay,
        index_ttl=settings.cache_ttl_policy_index,
    )
