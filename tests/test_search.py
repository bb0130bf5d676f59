"""Tests for memory search and ranking."""

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest
from amplifier_module_tool_codecontext.errors import NotFound
from amplifier_module_tool_codecontext.models import Memory
from amplifier_module_tool_codecontext.search import (
    recency_bonus,
    score_memory,
    search,
    search_scored,
    type_weight,
)
from amplifier_module_tool_codecontext.store import CodeContextStore

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _memory(type="note", content="text", created_at=NOW):
    return Memory(id="m", type=type, content=content, context=None, created_at=created_at)


class TestScoring:
    """Tests for the individual score terms."""

    @pytest.mark.parametrize("age_days,expected", [
        (0, 5.0),
        (10, 4.0),
        (25, 2.5),
        (50, 0.0),
        (80, 0.0),
    ])
    def test_recency_bonus(self, age_days, expected):
        assert recency_bonus(NOW - timedelta(days=age_days), NOW) == pytest.approx(expected)

    def test_future_timestamp_counts_as_new(self):
        assert recency_bonus(NOW + timedelta(days=3), NOW) == 5.0

    def test_recency_is_monotonic(self):
        """Test that newer never scores below older."""
        ages = [0, 0.5, 1, 7, 30, 49.9, 50, 51, 400]
        scores = [
            score_memory(_memory(created_at=NOW - timedelta(days=a)), "text", NOW)
            for a in ages
        ]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.parametrize("memory_type,weight", [
        ("decision", 3.0),
        ("pattern", 2.0),
        ("issue", 2.0),
        ("conversation", 1.0),
        ("note", 0.0),
        ("something-else", 0.0),
    ])
    def test_type_weight(self, memory_type, weight):
        assert type_weight(memory_type) == weight

    def test_exact_match_is_case_insensitive(self):
        memory = _memory(type="note", content="Use REDIS for sessions", created_at=NOW - timedelta(days=100))
        assert score_memory(memory, "redis for", NOW) == 10.0
        assert score_memory(memory, "redis sessions", NOW) == 0.0
        assert score_memory(memory, None, NOW) == 0.0


class TestSearch:
    """Tests for candidate selection and ordering."""

    def test_decision_found_first(self, store):
        """Test that a fresh decision matching the query ranks first with a high score."""
        store.insert_memory(content="We talked about Postgres tuning", type="conversation")
        target = store.insert_memory(content="Use Redis for sessions", type="decision")
        store.insert_memory(content="Frontend uses React", type="note")

        results = search_scored(store, "Redis")

        assert results[0].memory.id == target.id
        assert len(results) == 1
        assert 13.0 <= results[0].score <= 18.0
        assert results[0].lexical > 0

    def test_default_limit_newest_first(self, store):
        """Test that an empty query returns the ten newest of equal score."""
        old = NOW - timedelta(days=60)
        for i in range(15):
            store.insert_memory(content=f"memory {i}", type="conversation", created_at=old + timedelta(minutes=i))

        results = search(store, now=NOW)

        assert len(results) == 10
        assert [m.content for m in results] == [f"memory {i}" for i in range(14, 4, -1)]

    def test_equal_timestamps_resolve_to_latest_insert(self, store):
        """Test that identical scores and timestamps keep the newest insert first."""
        for i in range(3):
            store.insert_memory(content=f"same time {i}", type="note", created_at=NOW)

        results = search(store, now=NOW)
        assert [m.content for m in results] == ["same time 2", "same time 1", "same time 0"]

    def test_no_match_returns_empty_list(self, store):
        """Test that an unmatched query returns an empty list."""
        store.insert_memory(content="Use Redis for sessions", type="decision")
        assert search(store, "xyz-nonexistent") == []

    def test_query_tokens_are_conjunctive(self, store):
        """Test that all query words must appear."""
        match = store.insert_memory(content="Redis stores sessions")
        store.insert_memory(content="Redis stores rate limits")

        assert [m.id for m in search(store, "sessions redis")] == [match.id]

    def test_non_ascii_query_finds_exact_content(self, store):
        """Test that a query whose case folding differs per tokenizer still matches."""
        memory = store.insert_memory(content="Deploy region is İstanbul", type="decision")
        store.insert_memory(content="Deploy region is Frankfurt", type="decision")

        results = search_scored(store, "İstanbul")

        assert [r.memory.id for r in results] == [memory.id]
        assert results[0].score >= 13.0

    def test_exact_phrase_outranks_type(self, store):
        """Test that a full-query substring match outweighs the decision weight."""
        phrase = store.insert_memory(content="redis sessions are fast", type="note")
        store.insert_memory(content="sessions live in redis", type="decision")

        results = search_scored(store, "redis sessions")
        assert results[0].memory.id == phrase.id
        assert results[0].score > results[1].score

    def test_context_match_without_exact_bonus(self, store):
        """Test that context matches are candidates but earn no exact-match points."""
        memory = store.insert_memory(content="Add a cache layer", context="redis discussion", type="note")

        results = search_scored(store, "redis")
        assert [r.memory.id for r in results] == [memory.id]
        assert results[0].score < 10.0

    def test_filters_are_conjunctive(self, store):
        """Test that type and since filters must both hold."""
        since = NOW - timedelta(days=10)
        for days in (1, 5, 20, 40):
            for memory_type in ("decision", "note", "conversation"):
                store.insert_memory(
                    content=f"{memory_type} from {days} days ago",
                    type=memory_type,
                    created_at=NOW - timedelta(days=days),
                )

        results = search(store, type="decision", since=since, limit=None, now=NOW)

        assert len(results) == 2
        for memory in results:
            assert memory.type == "decision"
            assert memory.created_at >= since

    def test_since_accepts_iso_string(self, store):
        store.insert_memory(content="old", created_at=NOW - timedelta(days=30))
        store.insert_memory(content="recent", created_at=NOW - timedelta(days=1))

        results = search(store, since=(NOW - timedelta(days=7)).isoformat(), now=NOW)
        assert [m.content for m in results] == ["recent"]

    def test_tag_filter(self, store):
        tagged = store.insert_memory(content="Queue retries", tags=["backend"])
        store.insert_memory(content="Queue colors", tags=["frontend"])

        assert [m.id for m in search(store, "queue", tags=["Backend"])] == [tagged.id]

    def test_limit_zero_returns_nothing(self, store):
        store.insert_memory(content="anything")
        assert search(store, limit=0) == []

    def test_query_without_tokens_uses_substring(self, store):
        """Test that punctuation-only queries fall back to substring matching."""
        memory = store.insert_memory(content="Never ship on Friday!!!")
        store.insert_memory(content="Ship on Monday")

        assert [m.id for m in search(store, "!!!")] == [memory.id]

    def test_fallback_when_index_missing(self, store):
        """Test that search works by substring when the index is gone."""
        memory = store.insert_memory(content="Use Redis for sessions", type="decision")

        conn = sqlite3.connect(store.db_path)
        for trigger in ("memories_ai", "memories_ad", "memories_au"):
            conn.execute(f"DROP TRIGGER {trigger}")
        conn.execute("DROP TABLE memories_fts")
        conn.commit()
        conn.close()

        results = search_scored(store, "Redis")
        assert [r.memory.id for r in results] == [memory.id]
        assert results[0].score >= 13.0
        assert search(store, "Redis sessions") == []

    def test_search_is_read_only(self, store):
        """Test that searching leaves the store untouched."""
        store.insert_memory(content="Use Redis for sessions", type="decision")
        activity_before = store.recent_activity(limit=100)

        search(store, "redis")
        search(store)

        assert store.recent_activity(limit=100) == activity_before
        assert store.count_memories() == 1

    def test_uninitialized_project_raises_not_found(self, temp_project):
        with pytest.raises(NotFound):
            search(CodeContextStore(temp_project), "redis")
