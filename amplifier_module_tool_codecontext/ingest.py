"""
Ingestion of manual memories and project-scan results.

Scan batches are written one record at a time. The first failure stops
the batch and reports how many records made it in; nothing is rolled
back, so a failed batch calls for a re-scan rather than a resume.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from .errors import BatchIngestError, CodeContextError, InvalidMemory, InvalidRecord
from .export import parse_export
from .models import COMPLEXITY_LEVELS, Memory, ProjectAnalysis
from .store import CodeContextStore

logger = logging.getLogger(__name__)


@dataclass
class ScanReport:
    """Outcome of a scan ingestion."""
    files: int
    patterns: int
    total_files: int
    total_lines: int
    complexity: str

    def to_dict(self) -> dict:
        return {
            "files": self.files,
            "patterns": self.patterns,
            "total_files": self.total_files,
            "total_lines": self.total_lines,
            "complexity": self.complexity,
        }


def remember(
    store: CodeContextStore,
    content: str,
    type: str = "conversation",
    context: Optional[str] = None,
    tags: Optional[list[str]] = None,
    metadata: Optional[dict] = None,
    timestamp: Optional[datetime | str] = None,
) -> Memory:
    """Store one memory, stamped with the current time unless a timestamp is given."""
    return store.insert_memory(
        content=content,
        type=type,
        context=context,
        tags=tags,
        metadata=metadata,
        created_at=timestamp,
    )


def remember_payload(store: CodeContextStore, payload: dict[str, Any]) -> Memory:
    """Store a memory from a loose dict. Unknown keys are ignored."""
    if not isinstance(payload, dict):
        raise InvalidMemory(
            "Memory payload must be a mapping", operation="remember", path=store.project_path
        )
    return remember(
        store,
        content=payload.get("content"),
        type=payload.get("type") or "conversation",
        context=payload.get("context"),
        tags=payload.get("tags"),
        metadata=payload.get("metadata"),
        timestamp=payload.get("timestamp") or payload.get("created_at"),
    )


def _as_analysis(store: CodeContextStore, analysis: Any) -> ProjectAnalysis:
    if isinstance(analysis, ProjectAnalysis):
        return analysis
    if not isinstance(analysis, dict):
        raise InvalidRecord(
            "Scan payload must be a mapping", operation="ingest_scan", path=store.project_path
        )
    try:
        return ProjectAnalysis.from_dict(analysis)
    except InvalidRecord as e:
        e.operation = "ingest_scan"
        e.path = str(store.project_path)
        raise
    except (TypeError, ValueError, AttributeError) as e:
        raise InvalidRecord(
            f"Malformed scan payload: {e}", operation="ingest_scan", path=store.project_path
        ) from e


def ingest_scan(store: CodeContextStore, analysis: ProjectAnalysis | dict) -> ScanReport:
    """
    Upsert a scan's files (by path) and patterns (by id), then refresh the
    project's cached totals.

    Args:
        store: Store of the scanned project
        analysis: Scanner output, as a ProjectAnalysis or its dict form

    Returns:
        Counts of what was written

    Raises:
        NotFound: The project has no initialized store
        InvalidRecord: The payload itself is malformed (nothing written)
        BatchIngestError: A record failed; ``completed`` records were kept
    """
    analysis = _as_analysis(store, analysis)

    metrics = analysis.metrics
    if metrics.complexity not in COMPLEXITY_LEVELS:
        raise InvalidRecord(
            f"Invalid complexity: {metrics.complexity!r}",
            operation="ingest_scan",
            path=store.project_path,
        )

    # Fail before writing anything if there is no store
    store.get_project()

    total = len(analysis.files) + len(analysis.patterns)
    completed = 0
    try:
        for record in analysis.files:
            store.upsert_file(record, record_activity=False)
            completed += 1
        for pattern in analysis.patterns:
            store.upsert_pattern(pattern, record_activity=False)
            completed += 1
    except CodeContextError as e:
        logger.warning(f"Scan ingestion stopped after {completed}/{total} records: {e}")
        raise BatchIngestError(
            f"Scan ingestion stopped after {completed} of {total} records: {e.message}",
            completed=completed,
            total=total,
            operation="ingest_scan",
            path=store.project_path,
        ) from e

    total_files = metrics.total_files or len(analysis.files)
    total_lines = metrics.total_lines or sum(f.lines for f in analysis.files)
    store.update_project_metrics(total_files, total_lines, metrics.complexity)

    store.log_activity(
        "scan",
        f"Analyzed {len(analysis.files)} files, found {len(analysis.patterns)} patterns",
    )
    logger.info(
        f"Stored scan for {store.project_path}: "
        f"{len(analysis.files)} files, {len(analysis.patterns)} patterns"
    )

    return ScanReport(
        files=len(analysis.files),
        patterns=len(analysis.patterns),
        total_files=total_files,
        total_lines=total_lines,
        complexity=metrics.complexity,
    )


def import_export(store: CodeContextStore, payload: str | dict) -> list[Memory]:
    """
    Re-ingest the memories of a structured export.

    Memories get fresh ids; type, content, context, tags, metadata and
    creation time are preserved. Stops at the first failure like a scan
    batch does.
    """
    memories = parse_export(payload)

    imported: list[Memory] = []
    try:
        for memory in memories:
            imported.append(store.insert_memory(
                content=memory.content,
                type=memory.type,
                context=memory.context,
                tags=memory.tags,
                metadata=memory.metadata,
                created_at=memory.created_at,
            ))
    except CodeContextError as e:
        raise BatchIngestError(
            f"Import stopped after {len(imported)} of {len(memories)} memories: {e.message}",
            completed=len(imported),
            total=len(memories),
            operation="import_export",
            path=store.project_path,
        ) from e

    logger.info(f"Imported {len(imported)} memories into {store.project_path}")
    return imported
