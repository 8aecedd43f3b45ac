"""Unit tests for the local checkout content source."""

import pytest

from iac_index.errors import SourceError
from iac_index.sources.base import DataSourceConfig
from iac_index.sources.local import LocalSource


class TestLocalSource:
    """Tests for listing and reading files from a local checkout."""

    @pytest.mark.asyncio
    async def test_paths_are_relative_to_repo(self, local_root, template_source_config):
        files = await LocalSource(local_root).list_files(template_source_config)
        paths = [f.path for f in files]

        assert "quickstarts/storage/storage-account/main.bicep" in paths
        assert all(p.startswith("quickstarts/") for p in paths)

    @pytest.mark.asyncio
    async def test_sizes_are_reported(self, local_root, template_source_config):
        files = await LocalSource(local_root).list_files(template_source_config)
        bicep = next(f for f in files if f.name == "main.bicep")
        assert bicep.size == (local_root / "azure-quickstart-templates" / bicep.path).stat().st_size
        assert bicep.size > 0

    @pytest.mark.asyncio
    async def test_max_depth(self, local_root, template_source_config):
        files = await LocalSource(local_root, max_depth=2).list_files(template_source_config)
        # storage/storage-account/main.bicep sits three levels below the base path
        assert [f.path for f in files] == ["quickstarts/broken/broken.json"]

    @pytest.mark.asyncio
    async def test_missing_directory_raises(self, local_root):
        config = DataSourceConfig(name="x", owner="Azure", repo="missing-repo")
        with pytest.raises(SourceError):
            await LocalSource(local_root).list_files(config)

    @pytest.mark.asyncio
    async def test_get_content(self, local_root, template_source_config):
        content = await LocalSource(local_root).get_content(
            template_source_config, "quickstarts/storage/storage-account/README.md"
        )
        assert content.startswith("# Storage Account With HTTPS")

    @pytest.mark.asyncio
    async def test_missing_file_raises(self, local_root, template_source_config):
        with pytest.raises(SourceError):
            await LocalSource(local_root).get_content(template_source_config, "quickstarts/nope.bicep")

    @pytest.mark.asyncio
    async def test_path_escape_is_rejected(self, local_root, template_source_config):
        with pytest.raises(SourceError, match="escapes"):
            await LocalSource(local_root).get_content(
                template_source_config, "../azure-policy/built-in-policies/policyDefinitions/Storage/broken.json"
            )
