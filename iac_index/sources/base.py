"""Content source contract shared by the GitHub and local implementations."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Literal

SourceKind = Literal["policies", "templates"]


@dataclass(frozen=True)
class SourceFile:
    """A file entry from a directory listing."""

    name: str
    path: str
    size: int = 0

    @property
    def directory(self) -> str:
        return self.path.rsplit("/", 1)[0] if "/" in self.path else ""


@dataclass(frozen=True)
class DataSourceConfig:
    """Coordinates of one repository of policies or templates."""

    name: str
    owner: str
    repo: str
    branch: str = "master"
    base_path: str = ""
    description: str = ""
    kind: SourceKind = "templates"

    @property
    def source_key(self) -> str:
        return f"{self.owner}/{self.repo}"


class ContentSource(ABC):
    """Lists and reads files for a data source.

    Implementations raise SourceError when the backing store cannot be read.
    """

    @abstractmethod
    async def list_files(self, config: DataSourceConfig) -> list[SourceFile]:
        """All files under the source's base path, recursively."""

    @abstractmethod
    async def get_content(self, config: DataSourceConfig, path: str) -> str:
        """UTF-8 content of one file, by repository-relative path."""

    def invalidate(self, config: DataSourceConfig) -> int:
        """Forget anything cached for a data source. Returns entries dropped."""
        return 0

    async def aclose(self) -> None:
        """Release any held connections."""
