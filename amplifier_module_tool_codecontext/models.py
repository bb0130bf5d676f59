"""
Record types for the CodeContext memory store.

Every record converts to a plain dict for export and rebuilds from one.
Rebuilding tolerates unknown keys and the camelCase spellings produced by
the project scanner, so older and newer payloads both load.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from .errors import InvalidMemory, InvalidRecord

MemoryType = Literal["conversation", "decision", "pattern", "note"]

MEMORY_TYPES = ["conversation", "decision", "pattern", "note"]

PatternType = Literal["function", "class", "module", "pattern", "style"]

PATTERN_TYPES = ["function", "class", "module", "pattern", "style"]

COMPLEXITY_LEVELS = ["low", "medium", "high", "unknown"]

ACTIVITY_TYPES = ["init", "scan", "memory", "clear"]


def now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_datetime(value: Any, default: Optional[datetime] = None) -> Optional[datetime]:
    """Accept a datetime, an ISO-8601 string or epoch milliseconds."""
    if value is None or value == "":
        return default
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        # fromisoformat() before 3.11 rejects the trailing Z
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            raise InvalidRecord(f"Invalid timestamp: {value!r}")
    raise InvalidRecord(f"Invalid timestamp: {value!r}")


def to_epoch_ms(value: datetime) -> int:
    """Milliseconds since the epoch. Naive datetimes are taken as local time."""
    return int(value.timestamp() * 1000)


def _pick(data: dict, *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass
class Project:
    """One tracked project root."""
    id: str
    name: str
    path: str
    created_at: datetime
    last_active: datetime

    # Cached scan metrics
    total_files: int = 0
    total_lines: int = 0
    complexity: str = "unknown"

    def validate(self) -> None:
        if not self.id:
            raise InvalidRecord("Project id is required")
        if not self.name:
            raise InvalidRecord("Project name is required")
        if not self.path:
            raise InvalidRecord("Project path is required")
        if self.total_files < 0 or self.total_lines < 0:
            raise InvalidRecord("Project totals cannot be negative")
        if self.complexity not in COMPLEXITY_LEVELS:
            raise InvalidRecord(f"Invalid complexity: {self.complexity!r}")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "path": self.path,
            "created_at": self.created_at.isoformat(),
            "last_active": self.last_active.isoformat(),
            "total_files": self.total_files,
            "total_lines": self.total_lines,
            "complexity": self.complexity,
        }


@dataclass
class FileRecord:
    """A tracked source file, keyed by its path relative to the project root."""
    path: str
    language: str
    size: int
    lines: int
    last_modified: datetime
    hash: str

    def validate(self) -> None:
        if not isinstance(self.path, str) or not self.path.strip():
            raise InvalidRecord("File path is required")
        if not isinstance(self.size, int) or self.size < 0:
            raise InvalidRecord(f"Invalid size for {self.path}: {self.size!r}")
        if not isinstance(self.lines, int) or self.lines < 0:
            raise InvalidRecord(f"Invalid line count for {self.path}: {self.lines!r}")
        if not isinstance(self.last_modified, datetime):
            raise InvalidRecord(f"Invalid last_modified for {self.path}")

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "language": self.language,
            "size": self.size,
            "lines": self.lines,
            "last_modified": self.last_modified.isoformat(),
            "hash": self.hash,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FileRecord":
        return cls(
            path=data.get("path", ""),
            language=data.get("language") or "unknown",
            size=int(data.get("size") or 0),
            lines=int(data.get("lines") or 0),
            last_modified=parse_datetime(
                _pick(data, "last_modified", "lastModified"), default=now()
            ),
            hash=data.get("hash") or "",
        )


@dataclass
class Pattern:
    """A structural or stylistic observation produced by a scan."""
    id: str
    type: str
    name: str
    description: str
    frequency: int
    confidence: float
    examples: list[str]
    file: str
    line_start: int
    line_end: int

    def validate(self) -> None:
        if not self.id:
            raise InvalidRecord("Pattern id is required")
        if not self.name:
            raise InvalidRecord(f"Pattern {self.id} has no name")
        if self.type not in PATTERN_TYPES:
            raise InvalidRecord(f"Invalid pattern type: {self.type!r}")
        if not isinstance(self.frequency, int) or self.frequency < 1:
            raise InvalidRecord(f"Pattern {self.id} frequency must be >= 1")
        if not 0.0 <= self.confidence <= 1.0:
            raise InvalidRecord(f"Pattern {self.id} confidence must be within [0, 1]")
        if self.line_start > self.line_end:
            raise InvalidRecord(f"Pattern {self.id} has an inverted line range")
        if not all(isinstance(e, str) for e in self.examples):
            raise InvalidRecord(f"Pattern {self.id} examples must be strings")

    @property
    def lines(self) -> tuple[int, int]:
        return (self.line_start, self.line_end)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "description": self.description,
            "frequency": self.frequency,
            "confidence": self.confidence,
            "examples": self.examples,
            "file": self.file,
            "lines": [self.line_start, self.line_end],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Pattern":
        lines = data.get("lines") or [
            data.get("line_start", 0),
            data.get("line_end", 0),
        ]
        try:
            line_start, line_end = int(lines[0]), int(lines[1])
        except (TypeError, ValueError, IndexError):
            raise InvalidRecord(f"Invalid line range: {lines!r}")
        return cls(
            id=data.get("id", ""),
            type=data.get("type", "pattern"),
            name=data.get("name", ""),
            description=data.get("description") or "",
            frequency=int(data.get("frequency", 1)),
            confidence=float(data.get("confidence", 0.0)),
            examples=list(data.get("examples") or []),
            file=data.get("file") or "",
            line_start=line_start,
            line_end=line_end,
        )


@dataclass
class Memory:
    """A remembered fact, decision or note. Content never changes once stored."""
    id: str
    type: str
    content: str
    context: Optional[str]
    created_at: datetime
    tags: list[str] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "content": self.content,
            "context": self.context,
            "timestamp": self.created_at.isoformat(),
            "tags": self.tags,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Memory":
        content = data.get("content")
        if not isinstance(content, str) or not content.strip():
            raise InvalidMemory("Memory content is required")
        return cls(
            id=data.get("id") or "",
            type=data.get("type") or "conversation",
            content=content,
            context=data.get("context"),
            created_at=parse_datetime(
                _pick(data, "timestamp", "created_at", "createdAt"), default=now()
            ),
            tags=list(data.get("tags") or []),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class Activity:
    """Append-only audit entry."""
    id: int
    type: str
    description: str
    created_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "description": self.description,
            "timestamp": self.created_at.isoformat(),
        }


@dataclass
class ProjectMetrics:
    """Aggregate numbers a scan reports about the whole project."""
    total_files: int = 0
    total_lines: int = 0
    complexity: str = "unknown"
    code_files: int = 0
    test_files: int = 0
    config_files: int = 0
    maintainability: Optional[float] = None
    test_coverage: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict) -> "ProjectMetrics":
        return cls(
            total_files=int(_pick(data, "total_files", "totalFiles", default=0)),
            total_lines=int(_pick(data, "total_lines", "totalLines", default=0)),
            complexity=data.get("complexity") or "unknown",
            code_files=int(_pick(data, "code_files", "codeFiles", default=0)),
            test_files=int(_pick(data, "test_files", "testFiles", default=0)),
            config_files=int(_pick(data, "config_files", "configFiles", default=0)),
            maintainability=data.get("maintainability"),
            test_coverage=_pick(data, "test_coverage", "testCoverage"),
        )


@dataclass
class ProjectAnalysis:
    """Scanner output consumed by scan ingestion.

    Architecture and dependency details are carried through untouched;
    the store only persists files, patterns and the metrics totals.
    """
    files: list[FileRecord]
    patterns: list[Pattern]
    metrics: ProjectMetrics
    architecture: dict = field(default_factory=dict)
    dependencies: list[dict] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "ProjectAnalysis":
        files = [
            f if isinstance(f, FileRecord) else FileRecord.from_dict(f)
            for f in data.get("files") or []
        ]
        patterns = [
            p if isinstance(p, Pattern) else Pattern.from_dict(p)
            for p in data.get("patterns") or []
        ]
        metrics = data.get("metrics") or {}
        if not isinstance(metrics, ProjectMetrics):
            metrics = ProjectMetrics.from_dict(metrics)
        return cls(
            files=files,
            patterns=patterns,
            metrics=metrics,
            architecture=dict(data.get("architecture") or {}),
            dependencies=list(data.get("dependencies") or []),
        )


@dataclass
class ProjectStatus:
    """Summary of one project's store."""
    project_id: str
    project_name: str
    created_at: datetime
    last_active: datetime
    files_tracked: int
    conversations: int
    memories: int
    patterns: int
    memory_size: str
    store_bytes: int
    recent_activity: list[Activity]

    def to_dict(self) -> dict:
        return {
            "projectId": self.project_id,
            "projectName": self.project_name,
            "createdAt": self.created_at.isoformat(),
            "lastActive": self.last_active.isoformat(),
            "filesTracked": self.files_tracked,
            "conversations": self.conversations,
            "memories": self.memories,
            "patterns": self.patterns,
            "memorySize": self.memory_size,
            "storeBytes": self.store_bytes,
            "recentActivity": [a.to_dict() for a in self.recent_activity],
        }


@dataclass
class ScoredMemory:
    """A search hit with its relevance score.

    ``lexical`` is the full-text match strength reported by the index
    (0.0 when the hit came from a substring scan or no query was given).
    It is informational and takes no part in ``score``.
    """
    memory: Memory
    score: float
    lexical: float = 0.0

    def to_dict(self) -> dict:
        data = self.memory.to_dict()
        data["score"] = round(self.score, 3)
        return data
