"""Tests for memory and scan ingestion."""

from datetime import datetime, timezone

import pytest
from amplifier_module_tool_codecontext.errors import (
    BatchIngestError,
    InvalidMemory,
    InvalidRecord,
    NotFound,
)
from amplifier_module_tool_codecontext.ingest import ingest_scan, remember, remember_payload
from amplifier_module_tool_codecontext.models import ProjectAnalysis
from amplifier_module_tool_codecontext.store import CodeContextStore


class TestRemember:
    """Tests for storing single memories."""

    def test_remember_defaults(self, store):
        """Test that a bare memory is a conversation stamped now."""
        before = datetime.now(timezone.utc)
        memory = remember(store, "We discussed retry budgets")

        assert memory.type == "conversation"
        assert memory.context is None
        assert memory.created_at >= before.replace(microsecond=0)
        assert store.count_memories() == 1

    def test_remember_with_timestamp(self, store):
        memory = remember(store, "Adopted trunk-based flow", type="decision", timestamp="2026-03-01T09:30:00Z")
        assert memory.created_at == datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)

    def test_remember_payload_ignores_unknown_keys(self, store):
        """Test that extra payload keys are ignored."""
        memory = remember_payload(store, {
            "content": "Prefer dataclasses for records",
            "type": "pattern",
            "context": "code review",
            "tags": ["style"],
            "priority": "high",
        })

        assert memory.type == "pattern"
        assert memory.context == "code review"
        assert memory.tags == ["style"]

    @pytest.mark.parametrize("payload", [
        {},
        {"content": ""},
        {"content": "   ", "type": "note"},
        "just a string",
    ])
    def test_remember_payload_requires_content(self, store, payload):
        """Test that payloads without content are rejected."""
        with pytest.raises(InvalidMemory):
            remember_payload(store, payload)
        assert store.count_memories() == 0

    def test_remember_uninitialized_raises_not_found(self, temp_project):
        with pytest.raises(NotFound):
            remember(CodeContextStore(temp_project), "lost thought")


class TestIngestScan:
    """Tests for scan ingestion."""

    def test_ingest_scan(self, store, scan_payload):
        """Test that files, patterns and totals are stored."""
        report = ingest_scan(store, scan_payload)

        assert report.files == 2
        assert report.patterns == 1
        assert store.count_files() == 2
        assert store.count_patterns() == 1

        pattern = store.list_patterns()[0]
        assert pattern.lines == (10, 42)
        assert pattern.confidence == 0.9

        project = store.get_project()
        assert project.total_files == 2
        assert project.total_lines == 100
        assert project.complexity == "low"

    def test_ingest_scan_logs_one_activity(self, store, scan_payload):
        """Test that a scan writes a single summary activity."""
        ingest_scan(store, scan_payload)

        activity = store.recent_activity()
        assert [a.type for a in activity] == ["scan", "init"]
        assert activity[0].description == "Analyzed 2 files, found 1 patterns"

    def test_ingest_scan_accepts_analysis_object(self, store, scan_payload):
        report = ingest_scan(store, ProjectAnalysis.from_dict(scan_payload))
        assert report.total_lines == 100

    def test_rescan_is_idempotent(self, store, scan_payload):
        """Test that ingesting the same scan twice keeps row counts."""
        ingest_scan(store, scan_payload)
        ingest_scan(store, scan_payload)

        assert store.count_files() == 2
        assert store.count_patterns() == 1

    def test_totals_fall_back_to_files(self, store, scan_payload):
        """Test that missing metrics are derived from the file list."""
        scan_payload["metrics"] = {}
        report = ingest_scan(store, scan_payload)

        assert report.total_files == 2
        assert report.total_lines == 100
        assert store.get_project().complexity == "unknown"

    def test_failed_record_stops_batch(self, store, scan_payload):
        """Test that a bad record stops the batch and keeps earlier records."""
        scan_payload["files"].append({
            "path": "src/broken.py",
            "language": "python",
            "size": -1,
            "lines": 3,
        })

        with pytest.raises(BatchIngestError) as exc_info:
            ingest_scan(store, scan_payload)

        assert exc_info.value.completed == 2
        assert exc_info.value.total == 4
        assert isinstance(exc_info.value.__cause__, InvalidRecord)
        assert store.count_files() == 2
        assert store.count_patterns() == 0
        assert store.get_project().total_files == 0

    def test_invalid_complexity_writes_nothing(self, store, scan_payload):
        """Test that a malformed payload is rejected before any write."""
        scan_payload["metrics"]["complexity"] = "enormous"

        with pytest.raises(InvalidRecord):
            ingest_scan(store, scan_payload)
        assert store.count_files() == 0

    def test_non_mapping_payload_rejected(self, store):
        with pytest.raises(InvalidRecord):
            ingest_scan(store, ["src/app.py"])

    def test_uninitialized_raises_not_found(self, temp_project, scan_payload):
        """Test that scans require an initialized store."""
        store = CodeContextStore(temp_project)
        with pytest.raises(NotFound):
            ingest_scan(store, scan_payload)
        assert not store.state_path.exists()
