"""
CodeContext memory tools for AI agents.

Each tool follows the Amplifier Tool protocol:
- name: Tool identifier
- description: Human-readable description
- input_schema: JSON Schema for input validation
- execute(input): Async method that returns ToolResult

Every tool works on one project's store. The project defaults to the
mounted ``project_path`` and can be overridden per call. Store errors come
back as failed results carrying the error kind, so callers can tell an
uninitialized project from bad input or a database failure.
"""

from typing import Any
import logging

from amplifier_core import ToolResult

from .config import StoreConfig
from .errors import CodeContextError
from .export import EXPORT_FORMATS, export_memory, format_for_path, write_export
from .ingest import ingest_scan, remember_payload
from .models import MEMORY_TYPES
from .search import search_scored
from .store import CodeContextStore

logger = logging.getLogger(__name__)

PROJECT_PATH_PROPERTY = {
    "type": "string",
    "description": "Project root (defaults to the configured project)",
}


def _failure(action: str, e: Exception) -> ToolResult:
    logger.error(f"Failed to {action}: {e}")
    if isinstance(e, CodeContextError):
        error = e.to_dict()
        error["message"] = str(e)
        return ToolResult(success=False, error=error)
    return ToolResult(success=False, error={"message": str(e)})


class _StoreTool:
    """Shared plumbing: resolving the project store for a call."""

    def __init__(self, config: StoreConfig):
        self.config = config

    def _store(self, input: dict[str, Any]) -> CodeContextStore:
        project_path = self.config.resolve_project(input.get("project_path"))
        return CodeContextStore(project_path, state_dir=self.config.state_dir)

    def _open_store(self, input: dict[str, Any]) -> CodeContextStore:
        return self._store(input).open()


class InitProjectTool(_StoreTool):
    """Tool to create a project's memory store."""

    @property
    def name(self) -> str:
        return "init_project"

    @property
    def description(self) -> str:
        return (
            "Initialize persistent memory for a project. Creates a hidden .codecontext directory "
            "holding the memory store. Fails if the project is already initialized unless force is set, "
            "in which case all existing memory is destroyed."
        )

    @property
    def input_schema(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "project_path": PROJECT_PATH_PROPERTY,
                "force": {
                    "type": "boolean",
                    "description": "Reinitialize, destroying existing memory",
                    "default": False
                }
            }
        }

    async def execute(self, input: dict[str, Any]) -> ToolResult:
        try:
            project = self._store(input).initialize(force=bool(input.get("force", False)))
            return ToolResult(
                success=True,
                output={
                    "message": "Project memory initialized",
                    "project": project.to_dict(),
                }
            )
        except Exception as e:
            return _failure("initialize project", e)


class RememberTool(_StoreTool):
    """Tool to store a memory."""

    @property
    def name(self) -> str:
        return "remember"

    @property
    def description(self) -> str:
        return (
            "Store a fact, decision or note in the project's persistent memory. Use this when something "
            "should still be known in later sessions: architectural decisions, conventions, gotchas."
        )

    @property
    def input_schema(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "content": {
                    "type": "string",
                    "description": "What to remember"
                },
                "type": {
                    "type": "string",
                    "enum": MEMORY_TYPES,
                    "description": "Memory type: conversation, decision, pattern, note",
                    "default": "conversation"
                },
                "context": {
                    "type": "string",
                    "description": "Additional context"
                },
                "tags": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Optional tags for filtering"
                },
                "metadata": {
                    "type": "object",
                    "description": "Optional structured metadata"
                },
                "project_path": PROJECT_PATH_PROPERTY,
            },
            "required": ["content"]
        }

    async def execute(self, input: dict[str, Any]) -> ToolResult:
        try:
            memory = remember_payload(self._open_store(input), input)
            return ToolResult(
                success=True,
                output={
                    "id": memory.id,
                    "message": "Memory stored successfully",
                    "type": memory.type,
                }
            )
        except Exception as e:
            return _failure("store memory", e)


class RecallTool(_StoreTool):
    """Tool to search memories with relevance ranking."""

    @property
    def name(self) -> str:
        return "recall"

    @property
    def description(self) -> str:
        return (
            "Search the project's memories. Results are ranked by exact match, recency and type "
            "(decisions first). Omit the query to list the most relevant recent memories."
        )

    @property
    def input_schema(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Search query (all words must match)"
                },
                "type": {
                    "type": "string",
                    "enum": MEMORY_TYPES,
                    "description": "Filter by memory type"
                },
                "since": {
                    "type": "string",
                    "description": "Only memories created at or after this ISO-8601 time"
                },
                "tags": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Only memories carrying any of these tags"
                },
                "limit": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": 100,
                    "description": "Maximum results to return",
                    "default": self.config.default_limit
                },
                "project_path": PROJECT_PATH_PROPERTY,
            }
        }

    async def execute(self, input: dict[str, Any]) -> ToolResult:
        try:
            query = input.get("query")
            results = search_scored(
                self._open_store(input),
                query=query,
                type=input.get("type"),
                since=input.get("since"),
                tags=input.get("tags"),
                limit=int(input.get("limit", self.config.default_limit)),
            )
            return ToolResult(
                success=True,
                output={
                    "query": query,
                    "count": len(results),
                    "memories": [r.to_dict() for r in results]
                }
            )
        except Exception as e:
            return _failure("recall memories", e)


class IngestScanTool(_StoreTool):
    """Tool to store the results of a project scan."""

    @property
    def name(self) -> str:
        return "ingest_scan"

    @property
    def description(self) -> str:
        return (
            "Store a project scan: tracked files (keyed by path), detected code patterns (keyed by id) "
            "and project metrics. Re-ingesting the same scan replaces records instead of duplicating them."
        )

    @property
    def input_schema(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "files": {
                    "type": "array",
                    "items": {"type": "object"},
                    "description": "Files: path, language, size, lines, lastModified, hash"
                },
                "patterns": {
                    "type": "array",
                    "items": {"type": "object"},
                    "description": "Patterns: id, type, name, description, frequency, confidence, examples, file, lines"
                },
                "metrics": {
                    "type": "object",
                    "description": "Project metrics: totalFiles, totalLines, complexity"
                },
                "architecture": {"type": "object"},
                "dependencies": {"type": "array", "items": {"type": "object"}},
                "project_path": PROJECT_PATH_PROPERTY,
            },
            "required": ["files", "patterns"]
        }

    async def execute(self, input: dict[str, Any]) -> ToolResult:
        try:
            report = ingest_scan(self._open_store(input), input)
            return ToolResult(
                success=True,
                output={
                    "message": f"Analyzed {report.files} files, found {report.patterns} patterns",
                    **report.to_dict(),
                }
            )
        except Exception as e:
            return _failure("ingest scan", e)


class ProjectStatusTool(_StoreTool):
    """Tool to summarize a project's memory store."""

    @property
    def name(self) -> str:
        return "project_status"

    @property
    def description(self) -> str:
        return "Show memory statistics for the project: counts, store size and recent activity."

    @property
    def input_schema(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "project_path": PROJECT_PATH_PROPERTY,
            }
        }

    async def execute(self, input: dict[str, Any]) -> ToolResult:
        try:
            status = self._open_store(input).status()
            return ToolResult(success=True, output=status.to_dict())
        except Exception as e:
            return _failure("get project status", e)


class ExportMemoryTool(_StoreTool):
    """Tool to export the whole memory store."""

    @property
    def name(self) -> str:
        return "export_memory"

    @property
    def description(self) -> str:
        return (
            "Export all project memory. json is a complete snapshot (memories, patterns, files); "
            "markdown is a readable report of the memories. Writes to output_path when given, "
            "otherwise returns the text."
        )

    @property
    def input_schema(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "format": {
                    "type": "string",
                    "enum": EXPORT_FORMATS,
                    "description": "Export format (default: json, or markdown for a .md output_path)"
                },
                "output_path": {
                    "type": "string",
                    "description": "File to write the export to"
                },
                "project_path": PROJECT_PATH_PROPERTY,
            }
        }

    async def execute(self, input: dict[str, Any]) -> ToolResult:
        try:
            store = self._open_store(input)
            output_path = input.get("output_path")

            if output_path:
                format = input.get("format") or format_for_path(output_path)
                written = write_export(store, output_path, format=format)
                return ToolResult(
                    success=True,
                    output={"format": format, "path": str(written)}
                )

            format = input.get("format") or "json"
            return ToolResult(
                success=True,
                output={"format": format, "content": export_memory(store, format=format)}
            )
        except Exception as e:
            return _failure("export memory", e)


class ClearMemoryTool(_StoreTool):
    """Tool to delete all memories, patterns and files of a project."""

    @property
    def name(self) -> str:
        return "clear_memory"

    @property
    def description(self) -> str:
        return (
            "Delete ALL memories, patterns and tracked files for the project. The activity log is kept. "
            "Requires confirm=true."
        )

    @property
    def input_schema(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "confirm": {
                    "type": "boolean",
                    "description": "Must be true to clear"
                },
                "project_path": PROJECT_PATH_PROPERTY,
            },
            "required": ["confirm"]
        }

    async def execute(self, input: dict[str, Any]) -> ToolResult:
        try:
            if input.get("confirm") is not True:
                return ToolResult(
                    success=False,
                    error={"message": "Set confirm to true to clear all memory"}
                )

            self._open_store(input).clear_all()
            return ToolResult(success=True, output={"message": "All memory data cleared"})
        except Exception as e:
            return _failure("clear memory", e)
