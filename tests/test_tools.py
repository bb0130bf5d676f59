"""Tests for the memory tools."""

import json

import pytest
from amplifier_module_tool_codecontext import mount
from amplifier_module_tool_codecontext.config import StoreConfig
from amplifier_module_tool_codecontext.store import CodeContextStore
from amplifier_module_tool_codecontext.tools import (
    ClearMemoryTool,
    ExportMemoryTool,
    IngestScanTool,
    InitProjectTool,
    ProjectStatusTool,
    RecallTool,
    RememberTool,
)


@pytest.fixture
def config(temp_project):
    return StoreConfig(project_path=temp_project)


@pytest.fixture
def initialized(config):
    """Config for a project whose store already exists."""
    CodeContextStore(config.project_path).initialize()
    return config


class FakeCoordinator:
    """Records what a module mounts."""

    def __init__(self):
        self.mounted = {}
        self.capabilities = {}

    async def mount(self, mount_point, module, name=None):
        self.mounted[name] = (mount_point, module)

    def set_capability(self, name, value):
        self.capabilities[name] = value


class TestInitProjectTool:
    """Tests for InitProjectTool."""

    @pytest.mark.asyncio
    async def test_init_success(self, config):
        """Test that init creates the project store."""
        result = await InitProjectTool(config).execute({})

        assert result.success is True
        assert result.output["project"]["name"] == "demo-project"
        assert (config.project_path / ".codecontext" / "memory.db").exists()

    @pytest.mark.asyncio
    async def test_init_twice_fails(self, initialized):
        """Test that a second init reports already_initialized."""
        result = await InitProjectTool(initialized).execute({})

        assert result.success is False
        assert result.error["kind"] == "already_initialized"

    @pytest.mark.asyncio
    async def test_project_path_override(self, config, tmp_path):
        """Test that a per-call project path is honored."""
        other = tmp_path / "elsewhere"
        other.mkdir()

        result = await InitProjectTool(config).execute({"project_path": str(other)})

        assert result.success is True
        assert (other / ".codecontext" / "memory.db").exists()
        assert not (config.project_path / ".codecontext").exists()


class TestRememberAndRecall:
    """Tests for RememberTool and RecallTool."""

    @pytest.mark.asyncio
    async def test_remember_then_recall(self, initialized):
        """Test that a stored decision is recalled first."""
        remember = RememberTool(initialized)
        await remember.execute({"content": "Frontend uses React", "type": "note"})
        stored = await remember.execute({
            "content": "Use Redis for sessions",
            "type": "decision",
            "context": "Scaling review",
        })
        assert stored.success is True
        assert stored.output["type"] == "decision"

        result = await RecallTool(initialized).execute({"query": "Redis"})

        assert result.success is True
        assert result.output["count"] == 1
        top = result.output["memories"][0]
        assert top["id"] == stored.output["id"]
        assert 13 <= top["score"] <= 18

    @pytest.mark.asyncio
    async def test_remember_missing_content(self, initialized):
        """Test error when content is missing."""
        result = await RememberTool(initialized).execute({"type": "note"})

        assert result.success is False
        assert result.error["kind"] == "invalid_memory"
        assert "Memory content is required" in result.error["message"]

    @pytest.mark.asyncio
    async def test_recall_no_matches(self, initialized):
        await RememberTool(initialized).execute({"content": "Use Redis for sessions"})

        result = await RecallTool(initialized).execute({"query": "xyz-nonexistent"})

        assert result.success is True
        assert result.output["count"] == 0
        assert result.output["memories"] == []

    @pytest.mark.asyncio
    async def test_recall_respects_limit(self, initialized):
        remember = RememberTool(initialized)
        for i in range(5):
            await remember.execute({"content": f"Note number {i}", "type": "note"})

        result = await RecallTool(initialized).execute({"limit": 3})

        assert result.output["count"] == 3

    @pytest.mark.asyncio
    async def test_recall_uninitialized(self, config):
        """Test that recall on a fresh project reports not_found."""
        result = await RecallTool(config).execute({"query": "anything"})

        assert result.success is False
        assert result.error["kind"] == "not_found"
        assert not (config.project_path / ".codecontext").exists()


class TestIngestAndStatus:
    """Tests for IngestScanTool and ProjectStatusTool."""

    @pytest.mark.asyncio
    async def test_ingest_scan(self, initialized, scan_payload):
        result = await IngestScanTool(initialized).execute(scan_payload)

        assert result.success is True
        assert result.output["message"] == "Analyzed 2 files, found 1 patterns"
        assert result.output["total_lines"] == 100

    @pytest.mark.asyncio
    async def test_ingest_scan_partial_failure(self, initialized, scan_payload):
        """Test that a failed batch reports how many records were kept."""
        scan_payload["patterns"][0]["confidence"] = 3.0

        result = await IngestScanTool(initialized).execute(scan_payload)

        assert result.success is False
        assert result.error["kind"] == "batch_ingest_error"
        assert result.error["completed"] == 2
        assert result.error["total"] == 3

    @pytest.mark.asyncio
    async def test_status(self, initialized, scan_payload):
        await IngestScanTool(initialized).execute(scan_payload)
        await RememberTool(initialized).execute({"content": "Talked about caching"})

        result = await ProjectStatusTool(initialized).execute({})

        assert result.success is True
        assert result.output["projectName"] == "demo-project"
        assert result.output["filesTracked"] == 2
        assert result.output["conversations"] == 1
        assert result.output["patterns"] == 1
        assert result.output["recentActivity"][0]["type"] == "memory"


class TestExportMemoryTool:
    """Tests for ExportMemoryTool."""

    @pytest.mark.asyncio
    async def test_export_content(self, initialized):
        await RememberTool(initialized).execute({"content": "Use Redis for sessions", "type": "decision"})

        result = await ExportMemoryTool(initialized).execute({})

        assert result.success is True
        assert result.output["format"] == "json"
        data = json.loads(result.output["content"])
        assert data["memories"][0]["content"] == "Use Redis for sessions"

    @pytest.mark.asyncio
    async def test_export_to_markdown_file(self, initialized, tmp_path):
        """Test that a .md output path produces a markdown file."""
        await RememberTool(initialized).execute({"content": "Use Redis for sessions", "type": "decision"})
        target = tmp_path / "export.md"

        result = await ExportMemoryTool(initialized).execute({"output_path": str(target)})

        assert result.success is True
        assert result.output == {"format": "markdown", "path": str(target)}
        assert "### decision - " in target.read_text()

    @pytest.mark.asyncio
    async def test_export_bad_format(self, initialized):
        result = await ExportMemoryTool(initialized).execute({"format": "xml"})

        assert result.success is False
        assert "Unsupported export format" in result.error["message"]
        assert result.error["kind"] == "invalid_record"


class TestClearMemoryTool:
    """Tests for ClearMemoryTool."""

    @pytest.mark.asyncio
    async def test_clear_requires_confirm(self, initialized):
        """Test that nothing is cleared without confirm."""
        await RememberTool(initialized).execute({"content": "Keep me"})

        result = await ClearMemoryTool(initialized).execute({"confirm": "yes"})

        assert result.success is False
        assert "confirm" in result.error["message"]
        status = await ProjectStatusTool(initialized).execute({})
        assert status.output["memories"] == 1

    @pytest.mark.asyncio
    async def test_clear_with_confirm(self, initialized):
        await RememberTool(initialized).execute({"content": "Forget me"})

        result = await ClearMemoryTool(initialized).execute({"confirm": True})

        assert result.success is True
        status = await ProjectStatusTool(initialized).execute({})
        assert status.output["memories"] == 0
        assert status.output["recentActivity"][0]["type"] == "clear"


class TestMount:
    """Tests for module mounting."""

    @pytest.mark.asyncio
    async def test_mount_registers_tools(self, temp_project):
        """Test that mount registers every tool and the shared config."""
        coordinator = FakeCoordinator()

        cleanup = await mount(coordinator, {"project_path": str(temp_project), "default_limit": 5})

        assert set(coordinator.mounted) == {
            "init_project",
            "remember",
            "recall",
            "ingest_scan",
            "project_status",
            "export_memory",
            "clear_memory",
        }
        assert all(point == "tools" for point, _ in coordinator.mounted.values())

        config = coordinator.capabilities["codecontext.config"]
        assert config.project_path == temp_project.resolve()
        assert config.default_limit == 5

        await cleanup()
