"""
Full-text index over memory content and context.

Backed by an SQLite FTS5 external-content table that mirrors the
``memories`` table through triggers, so every inserted memory is indexed
in the same statement that stores it. Query words are handed to FTS5 as
quoted strings, so the ``unicode61`` tokenizer that built the index also
splits and case-folds the query.
"""

import logging
import re
import sqlite3
from typing import Any, Optional

logger = logging.getLogger(__name__)

_WORD_CHAR_RE = re.compile(r"[^\W_]")


def query_terms(text: str | None) -> list[str]:
    """Whitespace-separated words that hold at least one letter or digit, first occurrences only."""
    if not text:
        return []
    seen: dict[str, None] = {}
    for word in text.split():
        if _WORD_CHAR_RE.search(word):
            seen.setdefault(word, None)
    return list(seen)


class MemoryIndex:
    """FTS5 index keyed by the memories table rowid."""

    TABLE = "memories_fts"

    def create(self, conn: sqlite3.Connection) -> bool:
        """Create the index and its sync triggers.

        Returns False when this SQLite build has no FTS5, in which case
        searches fall back to substring matching.
        """
        try:
            conn.execute(f"""
                CREATE VIRTUAL TABLE IF NOT EXISTS {self.TABLE} USING fts5(
                    content,
                    context,
                    content='memories',
                    content_rowid='rowid',
                    tokenize='unicode61 remove_diacritics 0'
                )
            """)
        except sqlite3.OperationalError as e:
            logger.warning(f"Full-text index unavailable, using substring search: {e}")
            return False

        conn.execute(f"""
            CREATE TRIGGER IF NOT EXISTS memories_ai AFTER INSERT ON memories BEGIN
                INSERT INTO {self.TABLE}(rowid, content, context)
                VALUES (new.rowid, new.content, new.context);
            END
        """)
        conn.execute(f"""
            CREATE TRIGGER IF NOT EXISTS memories_ad AFTER DELETE ON memories BEGIN
                INSERT INTO {self.TABLE}({self.TABLE}, rowid, content, context)
                VALUES ('delete', old.rowid, old.content, old.context);
            END
        """)
        conn.execute(f"""
            CREATE TRIGGER IF NOT EXISTS memories_au AFTER UPDATE ON memories BEGIN
                INSERT INTO {self.TABLE}({self.TABLE}, rowid, content, context)
                VALUES ('delete', old.rowid, old.content, old.context);
                INSERT INTO {self.TABLE}(rowid, content, context)
                VALUES (new.rowid, new.content, new.context);
            END
        """)
        return True

    def available(self, conn: sqlite3.Connection) -> bool:
        row = conn.execute(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
            (self.TABLE,),
        ).fetchone()
        return row is not None

    @staticmethod
    def match_expression(terms: list[str]) -> str:
        """Conjunctive FTS5 query: every term must appear.

        Each term is a quoted string, so FTS5 tokenizes it the same way
        it tokenized the indexed text. A term the tokenizer splits (like
        ``redis-cache``) matches as a phrase.
        """
        quoted = ['"' + t.replace('"', '""') + '"' for t in terms]
        return " AND ".join(quoted)

    def lookup(
        self,
        conn: sqlite3.Connection,
        terms: list[str],
        filters: str = "",
        params: Optional[list[Any]] = None,
        newest_first: bool = False,
    ) -> list[tuple[sqlite3.Row, float]]:
        """
        Find memories whose indexed text contains all terms.

        Args:
            conn: Open store connection
            terms: Query words, see ``query_terms``
            filters: Extra " AND ..." conditions on the memories table, aliased ``m``
            params: Parameters for ``filters``
            newest_first: Order by creation time instead of match strength

        Returns:
            (memories row, lexical) pairs. The lexical signal is the BM25
            score flipped to be positive.
        """
        if not terms:
            return []
        order = "m.created_at_epoch DESC, m.rowid DESC" if newest_first else "rank"
        rows = conn.execute(
            f"SELECT m.*, bm25({self.TABLE}) AS rank"
            f" FROM {self.TABLE} JOIN memories m ON m.rowid = {self.TABLE}.rowid"
            f" WHERE {self.TABLE} MATCH ?" + filters + f" ORDER BY {order}",
            [self.match_expression(terms)] + list(params or []),
        ).fetchall()
        return [(row, -row["rank"]) for row in rows]

    def indexed_count(self, conn: sqlite3.Connection) -> int:
        return conn.execute(f"SELECT COUNT(*) FROM {self.TABLE}_docsize").fetchone()[0]

    def verify(self, conn: sqlite3.Connection) -> bool:
        """Check the index row count against the base table and run the FTS5 integrity check."""
        stored = conn.execute("SELECT COUNT(*) FROM memories").fetchone()[0]
        try:
            if self.indexed_count(conn) != stored:
                return False
            conn.execute(f"INSERT INTO {self.TABLE}({self.TABLE}) VALUES ('integrity-check')")
        except sqlite3.DatabaseError as e:
            logger.debug(f"Index integrity check failed: {e}")
            return False
        return True

    def rebuild(self, conn: sqlite3.Connection) -> None:
        """Rebuild the whole index from the memories table."""
        conn.execute(f"INSERT INTO {self.TABLE}({self.TABLE}) VALUES ('rebuild')")

    def ensure_consistent(self, conn: sqlite3.Connection) -> bool:
        """Rebuild the index if it disagrees with the base table. Returns True if rebuilt."""
        if not self.available(conn) or self.verify(conn):
            return False
        logger.warning("Full-text index out of sync with memories, rebuilding")
        self.rebuild(conn)
        return True
