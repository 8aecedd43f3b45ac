"""Pydantic schemas for data sources and cache status."""

from typing import Literal

from pydantic import Field

from iac_index.schemas.common import CamelModel


class DataSourceInfo(CamelModel):
    name: str
    owner: str
    repo: str
    branch: str
    base_path: str = ""
    description: str = ""
    kind: Literal["policies", "templates"]


class CacheStats(CamelModel):
    size: int
    max_size: int
    hits: int
    misses: int
    hit_rate: float = Field(..., description="hits / (hits + misses), 0.0 before any lookup")


class RefreshResponse(CamelModel):
    refreshed: list[str]
    cache: CacheStats
