"""
Project-scoped memory storage using SQLite with FTS5 full-text search.

Each project keeps its own store under a hidden state directory at the
project root:

- ``<state_dir>/memory.db`` holds projects, files, patterns, memories and
  the activity log
- ``<state_dir>/config.json`` is a small sidecar identifying the project

A ``CodeContextStore`` is bound to exactly one project path. Every
operation opens its own connection, does one unit of work and closes it.
"""

import json
import logging
import os
import sqlite3
import tempfile
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Optional

from .config import DEFAULT_STATE_DIR
from .errors import (
    AlreadyInitialized,
    InvalidMemory,
    InvalidRecord,
    NotFound,
    StorageError,
    StoreUnavailable,
)
from .index import MemoryIndex
from .models import (
    COMPLEXITY_LEVELS,
    MEMORY_TYPES,
    Activity,
    FileRecord,
    Memory,
    Pattern,
    Project,
    ProjectStatus,
    now,
    parse_datetime,
    to_epoch_ms,
)

logger = logging.getLogger(__name__)

DB_FILENAME = "memory.db"
SIDECAR_FILENAME = "config.json"
STORE_FORMAT_VERSION = "1.0.0"

ACTIVITY_PREVIEW_CHARS = 50

DEFAULT_BUSY_TIMEOUT = 5.0


def format_bytes(size: int) -> str:
    """Human-readable byte count: 0 B, 512 B, 1.5 KB, 2 MB."""
    if size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(units) - 1:
        value /= 1024
        unit += 1
    return f"{round(value, 2):g} {units[unit]}"


def memory_filter_sql(
    type: Optional[str] = None,
    since: Optional[datetime] = None,
    tags: Optional[list[str]] = None,
    alias: str = "memories",
) -> tuple[str, list[Any]]:
    """
    Build the AND-ed WHERE fragment for memory filters.

    Returns a fragment starting with " AND" (or empty) and its parameters.
    Tags match when the memory carries any of them.
    """
    sql = ""
    params: list[Any] = []

    if type:
        sql += f" AND {alias}.type = ?"
        params.append(type)

    if since is not None:
        sql += f" AND {alias}.created_at_epoch >= ?"
        params.append(to_epoch_ms(since))

    if tags:
        wanted = [t.strip().lower() for t in tags if t and t.strip()]
        if wanted:
            placeholders = ",".join("?" for _ in wanted)
            sql += (
                f" AND EXISTS (SELECT 1 FROM json_each({alias}.tags_json) j"
                f" WHERE j.value IN ({placeholders}))"
            )
            params.extend(wanted)

    return sql, params


def row_to_memory(row: sqlite3.Row) -> Memory:
    """Convert a memories row to Memory."""
    return Memory(
        id=row["id"],
        type=row["type"],
        content=row["content"],
        context=row["context"],
        created_at=datetime.fromisoformat(row["created_at"]),
        tags=json.loads(row["tags_json"]) if row["tags_json"] else [],
        metadata=json.loads(row["metadata_json"]) if row["metadata_json"] else {},
    )


def _is_contention(error: Optional[BaseException]) -> bool:
    """Whether a SQLite error means another connection holds the lock."""
    if not isinstance(error, sqlite3.OperationalError):
        return False
    name = getattr(error, "sqlite_errorname", "") or ""
    return name.startswith(("SQLITE_BUSY", "SQLITE_LOCKED")) or "locked" in str(error)


def _normalize_tags(tags: Any) -> list[str]:
    if tags is None:
        return []
    if isinstance(tags, str) or not isinstance(tags, (list, tuple, set)):
        raise InvalidMemory("Tags must be a list of strings")
    normalized: list[str] = []
    for tag in tags:
        if not isinstance(tag, str):
            raise InvalidMemory(f"Tag must be a string: {tag!r}")
        tag = tag.strip().lower()
        if tag and tag not in normalized:
            normalized.append(tag)
    return normalized


class CodeContextStore:
    """SQLite-backed store for one project's memories and scan results."""

    SCHEMA_VERSION = 1

    def __init__(
        self,
        project_path: str | Path,
        state_dir: str = DEFAULT_STATE_DIR,
        busy_timeout: float = DEFAULT_BUSY_TIMEOUT,
    ):
        """
        Bind a store to a project directory. No I/O happens until open().

        Args:
            project_path: Project root; the store lives in a hidden directory under it
            state_dir: Name of the hidden state directory
            busy_timeout: Seconds to wait for another connection's lock
        """
        self.busy_timeout = busy_timeout
        self.project_path = Path(project_path).expanduser().resolve()
        self.state_path = self.project_path / state_dir
        self.db_path = self.state_path / DB_FILENAME
        self.config_path = self.state_path / SIDECAR_FILENAME
        self.index = MemoryIndex()

    def __repr__(self) -> str:
        return f"CodeContextStore({str(self.project_path)!r})"

    # -------------------------------------------------------------------------
    # Connection and Lifecycle
    # -------------------------------------------------------------------------

    @contextmanager
    def connect(self, operation: str, create: bool = False) -> Iterator[sqlite3.Connection]:
        """
        Open a connection for one operation, commit on success, always close.

        Raises:
            NotFound: The store file does not exist and create is False
            StoreUnavailable: The file cannot be opened at all
            StorageError: Any database failure while the connection is in use
        """
        if not create and not self.is_initialized():
            raise NotFound(
                "Project not initialized. Run init first.",
                operation=operation,
                path=self.project_path,
            )

        try:
            conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout)
        except sqlite3.Error as e:
            raise StoreUnavailable(
                f"Cannot open memory store: {e}", operation=operation, path=self.db_path
            ) from e

        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(
                f"Database error: {e}", operation=operation, path=self.db_path
            ) from e
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def is_initialized(self) -> bool:
        return self.db_path.exists()

    def open(self, create: bool = False) -> "CodeContextStore":
        """
        Locate (or with create=True, create) the store file and make sure
        its schema and full-text index are usable.

        Raises:
            NotFound: No store exists and create is False
            StoreUnavailable: The state directory cannot be created or the
                file is corrupt or was written by a newer schema
            StorageError: Another connection holds the database lock
        """
        if not create and not self.is_initialized():
            raise NotFound(
                "Project not initialized. Run init first.",
                operation="open",
                path=self.project_path,
            )

        try:
            self.state_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreUnavailable(
                f"Cannot create state directory: {e}", operation="open", path=self.state_path
            ) from e

        try:
            with self.connect("open", create=True) as conn:
                check = conn.execute("PRAGMA quick_check").fetchone()[0]
                if check != "ok":
                    raise StoreUnavailable(
                        f"Memory store is corrupt: {check}", operation="open", path=self.db_path
                    )
                conn.execute("PRAGMA journal_mode=WAL")
                self._init_schema(conn)
                self.index.ensure_consistent(conn)
        except StorageError as e:
            # Lock contention is transient; the file itself is fine
            if _is_contention(e.__cause__):
                raise
            raise StoreUnavailable(
                f"Cannot use memory store: {e.message}", operation="open", path=self.db_path
            ) from e

        return self

    def _init_schema(self, conn: sqlite3.Connection):
        """Create tables, indexes and the full-text index if they don't exist."""
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            )
        """)
        row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
        current_version = row[0] if row and row[0] else 0
        if current_version > self.SCHEMA_VERSION:
            raise StoreUnavailable(
                f"Memory store schema v{current_version} is newer than supported "
                f"v{self.SCHEMA_VERSION}",
                operation="open",
                path=self.db_path,
            )

        conn.execute("""
            CREATE TABLE IF NOT EXISTS projects (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                path TEXT NOT NULL UNIQUE,
                created_at TEXT NOT NULL,
                last_active TEXT NOT NULL,

                -- Cached scan metrics
                total_files INTEGER DEFAULT 0,
                total_lines INTEGER DEFAULT 0,
                complexity TEXT DEFAULT 'unknown'
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS files (
                path TEXT PRIMARY KEY,
                language TEXT,
                size INTEGER,
                lines INTEGER,
                last_modified TEXT,
                hash TEXT
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS patterns (
                id TEXT PRIMARY KEY,
                type TEXT NOT NULL,
                name TEXT NOT NULL,
                description TEXT,
                frequency INTEGER DEFAULT 1,
                confidence REAL DEFAULT 0.0,
                examples_json TEXT DEFAULT '[]',
                file TEXT,
                line_start INTEGER,
                line_end INTEGER
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS memories (
                id TEXT PRIMARY KEY,
                type TEXT NOT NULL,
                content TEXT NOT NULL,
                context TEXT,
                created_at TEXT NOT NULL,
                created_at_epoch INTEGER NOT NULL,
                tags_json TEXT DEFAULT '[]',
                metadata_json TEXT DEFAULT '{}'
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS activities (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                type TEXT NOT NULL,
                description TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)

        # Keep filtered scans fast without the full-text index
        conn.execute("CREATE INDEX IF NOT EXISTS idx_memories_type ON memories(type)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_memories_created ON memories(created_at_epoch DESC)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_patterns_type ON patterns(type)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_files_language ON files(language)")

        self.index.create(conn)

        conn.execute(
            "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
            (self.SCHEMA_VERSION,),
        )

    def initialize(self, force: bool = False) -> Project:
        """
        Create the store for this project.

        Args:
            force: Destroy any existing store and start over

        Returns:
            The new Project record

        Raises:
            AlreadyInitialized: A store exists and force is False
            StoreUnavailable: The state directory or file cannot be created
        """
        if self.is_initialized() and not force:
            raise AlreadyInitialized(
                "Project already initialized. Use force to reinitialize.",
                operation="initialize",
                path=self.project_path,
            )

        if force:
            self._remove_store_files()

        self.open(create=True)

        timestamp = now()
        project = Project(
            id=str(uuid.uuid4()),
            name=self.project_path.name or str(self.project_path),
            path=str(self.project_path),
            created_at=timestamp,
            last_active=timestamp,
        )

        with self.connect("initialize") as conn:
            self._write_project(conn, project)
            self._log_activity(conn, "init", "Project initialized with memory capabilities")

        self._write_sidecar(project)
        self._update_gitignore()

        logger.info(f"Initialized memory store for {project.name} at {self.db_path}")
        return project

    def _remove_store_files(self):
        for suffix in ("", "-wal", "-shm", "-journal"):
            target = self.db_path.with_name(self.db_path.name + suffix)
            try:
                target.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                raise StoreUnavailable(
                    f"Cannot remove existing store: {e}", operation="initialize", path=target
                ) from e

    def _write_sidecar(self, project: Project):
        """Write config.json atomically (tempfile + rename)."""
        data = {
            "projectId": project.id,
            "projectName": project.name,
            "version": STORE_FORMAT_VERSION,
            "initialized": project.created_at.isoformat(),
        }
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.state_path, suffix=".tmp")
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp_path, self.config_path)
            except BaseException:
                Path(tmp_path).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StoreUnavailable(
                f"Cannot write project config: {e}", operation="initialize", path=self.config_path
            ) from e

    def _update_gitignore(self):
        """Append the state directory to an existing .gitignore."""
        gitignore = self.project_path / ".gitignore"
        if not gitignore.is_file():
            return
        entry = f"{self.state_path.name}/"
        try:
            text = gitignore.read_text(encoding="utf-8")
            if self.state_path.name in text:
                return
            with gitignore.open("a", encoding="utf-8") as f:
                f.write(f"\n# CodeContext Memory\n{entry}\n")
        except OSError as e:
            logger.warning(f"Could not update {gitignore}: {e}")

    def read_sidecar(self) -> dict:
        """Load config.json, or raise NotFound if the project was never initialized."""
        try:
            with open(self.config_path, "r") as f:
                return json.load(f)
        except FileNotFoundError as e:
            raise NotFound(
                "Project config missing", operation="read_sidecar", path=self.config_path
            ) from e
        except (json.JSONDecodeError, OSError) as e:
            raise StoreUnavailable(
                f"Cannot read project config: {e}", operation="read_sidecar", path=self.config_path
            ) from e

    # -------------------------------------------------------------------------
    # Projects
    # -------------------------------------------------------------------------

    def get_project(self) -> Project:
        """Load this store's project record."""
        with self.connect("get_project") as conn:
            row = conn.execute(
                "SELECT * FROM projects WHERE path = ?", (str(self.project_path),)
            ).fetchone()
        if row is None:
            raise NotFound(
                "Project not found in memory store", operation="get_project", path=self.project_path
            )
        return self._row_to_project(row)

    def upsert_project(self, project: Project, record_activity: bool = True) -> Project:
        """
        Insert or update a project keyed by its path.

        An existing row keeps its id and creation time, so the returned
        record is the stored row rather than the argument.
        """
        self._validated(project, "upsert_project")
        with self.connect("upsert_project") as conn:
            self._write_project(conn, project)
            if record_activity:
                self._log_activity(conn, "scan", f"Updated project {project.name}")
            row = conn.execute(
                "SELECT * FROM projects WHERE path = ?", (project.path,)
            ).fetchone()
        return self._row_to_project(row)

    def update_project_metrics(
        self,
        total_files: int,
        total_lines: int,
        complexity: str = "unknown",
    ) -> None:
        """Refresh the project's cached totals and last-active time."""
        if total_files < 0 or total_lines < 0:
            raise InvalidRecord(
                "Project totals cannot be negative",
                operation="update_project_metrics",
                path=self.project_path,
            )
        if complexity not in COMPLEXITY_LEVELS:
            raise InvalidRecord(
                f"Invalid complexity: {complexity!r}",
                operation="update_project_metrics",
                path=self.project_path,
            )

        with self.connect("update_project_metrics") as conn:
            cursor = conn.execute("""
                UPDATE projects SET
                    last_active = ?,
                    total_files = ?,
                    total_lines = ?,
                    complexity = ?
                WHERE path = ?
            """, (now().isoformat(), total_files, total_lines, complexity, str(self.project_path)))
            if cursor.rowcount == 0:
                raise NotFound(
                    "Project not found in memory store",
                    operation="update_project_metrics",
                    path=self.project_path,
                )

    def _write_project(self, conn: sqlite3.Connection, project: Project):
        conn.execute("""
            INSERT INTO projects (
                id, name, path, created_at, last_active,
                total_files, total_lines, complexity
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(path) DO UPDATE SET
                name = excluded.name,
                last_active = excluded.last_active,
                total_files = excluded.total_files,
                total_lines = excluded.total_lines,
                complexity = excluded.complexity
        """, (
            project.id, project.name, project.path,
            project.created_at.isoformat(), project.last_active.isoformat(),
            project.total_files, project.total_lines, project.complexity,
        ))

    # -------------------------------------------------------------------------
    # Files and Patterns
    # -------------------------------------------------------------------------

    def upsert_file(self, record: FileRecord, record_activity: bool = True) -> FileRecord:
        """Insert or replace a tracked file keyed by path."""
        self._validated(record, "upsert_file")
        with self.connect("upsert_file") as conn:
            conn.execute("""
                INSERT OR REPLACE INTO files (path, language, size, lines, last_modified, hash)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                record.path, record.language, record.size, record.lines,
                record.last_modified.isoformat(), record.hash,
            ))
            if record_activity:
                self._log_activity(conn, "scan", f"Tracked file {record.path}")
        return record

    def upsert_pattern(self, pattern: Pattern, record_activity: bool = True) -> Pattern:
        """Insert or replace a detected pattern keyed by id."""
        self._validated(pattern, "upsert_pattern")
        with self.connect("upsert_pattern") as conn:
            conn.execute("""
                INSERT OR REPLACE INTO patterns (
                    id, type, name, description, frequency, confidence,
                    examples_json, file, line_start, line_end
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                pattern.id, pattern.type, pattern.name, pattern.description,
                pattern.frequency, pattern.confidence, json.dumps(pattern.examples),
                pattern.file, pattern.line_start, pattern.line_end,
            ))
            if record_activity:
                self._log_activity(conn, "scan", f"Recorded {pattern.type} pattern {pattern.name}")
        return pattern

    def list_files(self, language: Optional[str] = None) -> list[FileRecord]:
        query = "SELECT * FROM files"
        params: list[Any] = []
        if language:
            query += " WHERE language = ?"
            params.append(language)
        query += " ORDER BY path"

        with self.connect("list_files") as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_file(row) for row in rows]

    def list_patterns(self, type: Optional[str] = None) -> list[Pattern]:
        query = "SELECT * FROM patterns"
        params: list[Any] = []
        if type:
            query += " WHERE type = ?"
            params.append(type)
        query += " ORDER BY frequency DESC, id"

        with self.connect("list_patterns") as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_pattern(row) for row in rows]

    # -------------------------------------------------------------------------
    # Memories
    # -------------------------------------------------------------------------

    def insert_memory(
        self,
        content: str,
        type: str = "conversation",
        context: Optional[str] = None,
        tags: Optional[list[str]] = None,
        metadata: Optional[dict] = None,
        created_at: Optional[datetime] = None,
    ) -> Memory:
        """
        Store a new memory under a fresh id.

        Args:
            content: The remembered text (required, non-empty)
            type: conversation, decision, pattern or note
            context: Optional free-text context
            tags: Optional tags, normalized to lowercase
            metadata: Optional JSON-serializable map
            created_at: Creation time (default: now)

        Returns:
            The stored Memory

        Raises:
            InvalidMemory: Content is empty or a field is malformed
        """
        memory = self._build_memory(content, type, context, tags, metadata, created_at)

        if len(memory.content) > ACTIVITY_PREVIEW_CHARS:
            preview = memory.content[:ACTIVITY_PREVIEW_CHARS] + "..."
        else:
            preview = memory.content

        with self.connect("insert_memory") as conn:
            conn.execute("""
                INSERT INTO memories (
                    id, type, content, context, created_at, created_at_epoch,
                    tags_json, metadata_json
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                memory.id, memory.type, memory.content, memory.context,
                memory.created_at.isoformat(), to_epoch_ms(memory.created_at),
                json.dumps(memory.tags), json.dumps(memory.metadata),
            ))
            self._log_activity(conn, "memory", f"Stored {memory.type}: {preview}")

        logger.info(f"Stored memory {memory.id}: [{memory.type}] {preview}")
        return memory

    def _build_memory(
        self,
        content: Any,
        type: Any,
        context: Any,
        tags: Any,
        metadata: Any,
        created_at: Any,
    ) -> Memory:
        def invalid(message: str) -> InvalidMemory:
            return InvalidMemory(message, operation="insert_memory", path=self.project_path)

        if not isinstance(content, str) or not content.strip():
            raise invalid("Memory content is required")

        if not isinstance(type, str) or not type.strip():
            raise invalid("Memory type is required")
        type = type.strip().lower()
        if type not in MEMORY_TYPES:
            logger.warning(f"Storing memory with unrecognized type {type!r}")

        if context is not None:
            if not isinstance(context, str):
                raise invalid("Memory context must be a string")
            context = context.strip() or None

        try:
            tags = _normalize_tags(tags)
        except InvalidMemory as e:
            raise invalid(e.message) from None

        metadata = metadata if metadata is not None else {}
        if not isinstance(metadata, dict):
            raise invalid("Memory metadata must be a mapping")
        try:
            json.dumps(metadata)
        except (TypeError, ValueError) as e:
            raise invalid(f"Memory metadata is not JSON-serializable: {e}") from e

        try:
            created_at = parse_datetime(created_at, default=now())
        except InvalidRecord as e:
            raise invalid(e.message) from None

        return Memory(
            id=str(uuid.uuid4()),
            type=type,
            content=content,
            context=context,
            created_at=created_at,
            tags=tags,
            metadata=metadata,
        )

    def list_memories(
        self,
        type: Optional[str] = None,
        since: Optional[datetime] = None,
        tags: Optional[list[str]] = None,
        limit: Optional[int] = None,
    ) -> list[Memory]:
        """List memories newest first, with AND-ed filters."""
        filters, params = memory_filter_sql(type=type, since=since, tags=tags)
        query = (
            "SELECT * FROM memories WHERE 1=1" + filters
            + " ORDER BY created_at_epoch DESC, rowid DESC"
        )
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self.connect("list_memories") as conn:
            rows = conn.execute(query, params).fetchall()
        return [row_to_memory(row) for row in rows]

    def get_memory(self, memory_id: str) -> Optional[Memory]:
        with self.connect("get_memory") as conn:
            row = conn.execute("SELECT * FROM memories WHERE id = ?", (memory_id,)).fetchone()
        return row_to_memory(row) if row else None

    # -------------------------------------------------------------------------
    # Counts, Status and Clearing
    # -------------------------------------------------------------------------

    def count_memories(self, type: Optional[str] = None) -> int:
        with self.connect("count_memories") as conn:
            if type:
                return conn.execute(
                    "SELECT COUNT(*) FROM memories WHERE type = ?", (type,)
                ).fetchone()[0]
            return conn.execute("SELECT COUNT(*) FROM memories").fetchone()[0]

    def count_files(self) -> int:
        with self.connect("count_files") as conn:
            return conn.execute("SELECT COUNT(*) FROM files").fetchone()[0]

    def count_patterns(self) -> int:
        with self.connect("count_patterns") as conn:
            return conn.execute("SELECT COUNT(*) FROM patterns").fetchone()[0]

    def store_size(self) -> int:
        """Bytes on disk, including a pending write-ahead log."""
        total = 0
        for suffix in ("", "-wal"):
            target = self.db_path.with_name(self.db_path.name + suffix)
            try:
                total += target.stat().st_size
            except FileNotFoundError:
                continue
        return total

    def recent_activity(self, limit: int = 10) -> list[Activity]:
        with self.connect("recent_activity") as conn:
            rows = conn.execute(
                "SELECT * FROM activities ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
        return [self._row_to_activity(row) for row in rows]

    def status(self, activity_limit: int = 10) -> ProjectStatus:
        """Aggregate counts, store size and recent activity for this project."""
        project = self.get_project()
        store_bytes = self.store_size()
        return ProjectStatus(
            project_id=project.id,
            project_name=project.name,
            created_at=project.created_at,
            last_active=project.last_active,
            files_tracked=self.count_files(),
            conversations=self.count_memories(type="conversation"),
            memories=self.count_memories(),
            patterns=self.count_patterns(),
            memory_size=format_bytes(store_bytes),
            store_bytes=store_bytes,
            recent_activity=self.recent_activity(limit=activity_limit),
        )

    def clear_all(self) -> None:
        """
        Delete every memory, pattern and file. The project record and the
        activity log survive; a clear entry is appended to the log.
        """
        with self.connect("clear_all") as conn:
            conn.execute("DELETE FROM memories")
            conn.execute("DELETE FROM patterns")
            conn.execute("DELETE FROM files")
            conn.execute("""
                UPDATE projects SET
                    last_active = ?, total_files = 0, total_lines = 0, complexity = 'unknown'
                WHERE path = ?
            """, (now().isoformat(), str(self.project_path)))
            self._log_activity(conn, "clear", "All memory data cleared")

        logger.info(f"Cleared memory store at {self.db_path}")

    def log_activity(self, type: str, description: str) -> None:
        """Append an entry to the activity log."""
        with self.connect("log_activity") as conn:
            self._log_activity(conn, type, description)

    # -------------------------------------------------------------------------
    # Internal Helpers
    # -------------------------------------------------------------------------

    def _validated(self, record: Any, operation: str):
        try:
            record.validate()
        except InvalidRecord as e:
            e.operation = operation
            e.path = str(self.project_path)
            raise

    def _log_activity(self, conn: sqlite3.Connection, type: str, description: str):
        conn.execute(
            "INSERT INTO activities (type, description, created_at) VALUES (?, ?, ?)",
            (type, description, now().isoformat()),
        )

    def _row_to_project(self, row: sqlite3.Row) -> Project:
        return Project(
            id=row["id"],
            name=row["name"],
            path=row["path"],
            created_at=datetime.fromisoformat(row["created_at"]),
            last_active=datetime.fromisoformat(row["last_active"]),
            total_files=row["total_files"] or 0,
            total_lines=row["total_lines"] or 0,
            complexity=row["complexity"] or "unknown",
        )

    def _row_to_file(self, row: sqlite3.Row) -> FileRecord:
        return FileRecord(
            path=row["path"],
            language=row["language"] or "unknown",
            size=row["size"] or 0,
            lines=row["lines"] or 0,
            last_modified=datetime.fromisoformat(row["last_modified"]),
            hash=row["hash"] or "",
        )

    def _row_to_pattern(self, row: sqlite3.Row) -> Pattern:
        return Pattern(
            id=row["id"],
            type=row["type"],
            name=row["name"],
            description=row["description"] or "",
            frequency=row["frequency"],
            confidence=row["confidence"],
            examples=json.loads(row["examples_json"]) if row["examples_json"] else [],
            file=row["file"] or "",
            line_start=row["line_start"] or 0,
            line_end=row["line_end"] or 0,
        )

    def _row_to_activity(self, row: sqlite3.Row) -> Activity:
        return Activity(
            id=row["id"],
            type=row["type"],
            description=row["description"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )


def open_store(project_path: str | Path, state_dir: str = DEFAULT_STATE_DIR) -> CodeContextStore:
    """Open the existing store for a project, raising NotFound if it was never initialized."""
    return CodeContextStore(project_path, state_dir=state_dir).open()
