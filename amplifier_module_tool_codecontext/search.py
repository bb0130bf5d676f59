"""
Memory search and ranking.

Candidates come from the full-text index when a query is given (every
query word must match), from a case-insensitive substring scan when the
index cannot serve the query, and from the whole table otherwise. Each
candidate is then scored with three additive terms:

- +10 when the full query appears in the content (case-insensitive)
- a recency bonus of ``max(0, 5 - days_old * 0.1)``
- a type weight: decision 3, pattern/issue 2, conversation 1, others 0

Results are sorted by score; equal scores keep the retrieval order, which
is newest first. Searching never writes to the store or the index.
"""

import logging
import sqlite3
from datetime import datetime
from typing import Optional

from .config import DEFAULT_LIMIT
from .index import query_terms
from .models import Memory, ScoredMemory, now as utc_now, parse_datetime, to_epoch_ms
from .store import CodeContextStore, memory_filter_sql, row_to_memory

logger = logging.getLogger(__name__)

EXACT_MATCH_BONUS = 10.0
RECENCY_MAX_BONUS = 5.0
RECENCY_DECAY_PER_DAY = 0.1
MS_PER_DAY = 86_400_000

TYPE_WEIGHTS = {
    "decision": 3.0,
    "pattern": 2.0,
    "issue": 2.0,
    "conversation": 1.0,
}


def recency_bonus(created_at: datetime, now: datetime) -> float:
    """Linear decay from 5 points when new to 0 at 50 days. Future timestamps count as new."""
    age_days = max(0.0, (to_epoch_ms(now) - to_epoch_ms(created_at)) / MS_PER_DAY)
    return max(0.0, RECENCY_MAX_BONUS - age_days * RECENCY_DECAY_PER_DAY)


def type_weight(memory_type: str) -> float:
    return TYPE_WEIGHTS.get(memory_type, 0.0)


def score_memory(memory: Memory, query: Optional[str], now: datetime) -> float:
    """Relevance score of one memory for a query."""
    score = 0.0
    if query and query.casefold() in memory.content.casefold():
        score += EXACT_MATCH_BONUS
    score += recency_bonus(memory.created_at, now)
    score += type_weight(memory.type)
    return score


def search_scored(
    store: CodeContextStore,
    query: Optional[str] = None,
    type: Optional[str] = None,
    since: Optional[datetime | str] = None,
    limit: Optional[int] = DEFAULT_LIMIT,
    tags: Optional[list[str]] = None,
    now: Optional[datetime] = None,
) -> list[ScoredMemory]:
    """
    Search a project's memories and return them with their scores.

    Args:
        store: Store of the project to search
        query: Free-text query; None or blank returns every memory
        type: Only memories of this type
        since: Only memories created at or after this time
        limit: Maximum results (None for no limit)
        tags: Only memories carrying any of these tags
        now: Reference time for the recency bonus (default: current time)

    Returns:
        Scored memories, best first. Empty when nothing matches.
    """
    if limit is not None and limit <= 0:
        return []

    query = query.strip() if query else None
    type = type.strip().lower() if type else None
    since = parse_datetime(since)
    current = now or utc_now()

    candidates = _candidates(store, query, type, since, tags)

    scored = [
        ScoredMemory(memory=memory, score=score_memory(memory, query, current), lexical=lexical)
        for memory, lexical in candidates
    ]
    # Stable sort: equal scores stay newest first
    scored.sort(key=lambda s: -s.score)

    if limit is not None:
        scored = scored[:limit]
    return scored


def search(
    store: CodeContextStore,
    query: Optional[str] = None,
    type: Optional[str] = None,
    since: Optional[datetime | str] = None,
    limit: Optional[int] = DEFAULT_LIMIT,
    tags: Optional[list[str]] = None,
    now: Optional[datetime] = None,
) -> list[Memory]:
    """Search a project's memories, best match first."""
    results = search_scored(
        store, query=query, type=type, since=since, limit=limit, tags=tags, now=now
    )
    return [r.memory for r in results]


def _candidates(
    store: CodeContextStore,
    query: Optional[str],
    type: Optional[str],
    since: Optional[datetime],
    tags: Optional[list[str]],
) -> list[tuple[Memory, float]]:
    """Memories passing all filters, newest first, with their lexical signal."""
    filters, params = memory_filter_sql(type=type, since=since, tags=tags, alias="m")

    with store.connect("search") as conn:
        if query:
            terms = query_terms(query)
            if terms and store.index.available(conn):
                try:
                    hits = store.index.lookup(conn, terms, filters, params, newest_first=True)
                    return [(row_to_memory(row), lexical) for row, lexical in hits]
                except sqlite3.OperationalError as e:
                    logger.warning(f"Full-text search failed, falling back to substring match: {e}")
            else:
                logger.debug(f"Substring search for {query!r}")

        rows = conn.execute(
            "SELECT m.* FROM memories m WHERE 1=1" + filters
            + " ORDER BY m.created_at_epoch DESC, m.rowid DESC",
            params,
        ).fetchall()

    memories = [row_to_memory(row) for row in rows]
    if query:
        needle = query.casefold()
        memories = [
            m for m in memories
            if needle in m.content.casefold()
            or (m.context is not None and needle in m.context.casefold())
        ]
    return [(m, 0.0) for m in memories]
