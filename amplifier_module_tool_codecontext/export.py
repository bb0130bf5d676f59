"""
Export a project's memory store.

Two shapes are produced:

- ``json``: one object with ``project``, ``memories``, ``patterns``,
  ``files`` and ``exportedAt``. Memories read back with ``parse_export``.
- ``markdown``: a readable report with statistics and one section per
  memory. Patterns and files are left out; it is not a backup format.

Output is always composed in memory and written to disk in one step.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from .errors import InvalidRecord, StorageError
from .models import Memory, ProjectStatus, now
from .store import CodeContextStore

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ["json", "markdown"]


def build_export(store: CodeContextStore) -> dict:
    """Gather the full snapshot: status, every memory, pattern and file."""
    status = store.status()
    return {
        "project": status.to_dict(),
        "memories": [m.to_dict() for m in store.list_memories()],
        "patterns": [p.to_dict() for p in store.list_patterns()],
        "files": [f.to_dict() for f in store.list_files()],
        "exportedAt": now().isoformat(),
    }


def export_memory(store: CodeContextStore, format: str = "json") -> str:
    """Render the project's store as JSON or Markdown text."""
    if format not in EXPORT_FORMATS:
        raise InvalidRecord(
            f"Unsupported export format: {format!r} (expected one of {EXPORT_FORMATS})",
            operation="export_memory",
            path=store.project_path,
        )

    if format == "json":
        return json.dumps(build_export(store), indent=2)

    status = store.status()
    return render_markdown(status, store.list_memories())


def render_markdown(status: ProjectStatus, memories: list[Memory]) -> str:
    lines = [
        "# CodeContext Memory Export",
        "",
        f"**Project:** {status.project_name}",
        f"**Exported:** {now().strftime('%Y-%m-%d %H:%M:%S UTC')}",
        "",
        "## Statistics",
        "",
        f"- Files Tracked: {status.files_tracked}",
        f"- Conversations: {status.conversations}",
        f"- Memories: {status.memories}",
        f"- Patterns: {status.patterns}",
        f"- Memory Size: {status.memory_size}",
        "",
    ]

    if memories:
        lines += ["## Memories", ""]
        for memory in memories:
            lines.append(f"### {memory.type} - {memory.created_at.strftime('%Y-%m-%d')}")
            lines.append("")
            lines.append(memory.content)
            lines.append("")
            if memory.context:
                lines.append(f"*Context: {memory.context}*")
                lines.append("")

    return "\n".join(lines)


def parse_export(payload: str | dict) -> list[Memory]:
    """Read the memories back out of a JSON export."""
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise InvalidRecord(f"Export is not valid JSON: {e}", operation="parse_export") from e

    if not isinstance(payload, dict) or not isinstance(payload.get("memories"), list):
        raise InvalidRecord("Export has no memories list", operation="parse_export")

    return [Memory.from_dict(entry) for entry in payload["memories"]]


def format_for_path(path: str | Path) -> str:
    return "markdown" if Path(path).suffix.lower() in (".md", ".markdown") else "json"


def write_export(
    store: CodeContextStore,
    output_path: str | Path,
    format: Optional[str] = None,
) -> Path:
    """
    Write an export file atomically (tempfile + rename).

    The format defaults to markdown for .md paths and json otherwise.
    """
    output_path = Path(output_path).expanduser()
    format = format or format_for_path(output_path)

    text = export_memory(store, format=format)

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=output_path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_path, output_path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise
    except OSError as e:
        raise StorageError(
            f"Cannot write export: {e}", operation="write_export", path=output_path
        ) from e

    logger.info(f"Exported {store.project_path} as {format} to {output_path}")
    return output_path
