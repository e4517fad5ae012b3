"""Unit tests for docms.engine.logging — FileLogger, AsyncLogQueue, LogRetentionManager."""

import gzip
import json
import logging
from datetime import date, timedelta

from docms.engine.logging import (
    DEFAULT_RETENTION,
    OBJECT_TYPE_CATEGORIES,
    AsyncLogQueue,
    FileLogger,
    LogEntry,
    LogRetentionManager,
    configure_logging,
    get_log_queue,
    init_logging,
    log,
    log_job_event,
    log_system_event,
    log_task_event,
    log_task_performance,
    log_web_request,
    shutdown_logging,
)


class TestObjectTypeCategories:
    def test_types(self):
        assert set(OBJECT_TYPE_CATEGORIES) == {"system", "tasks", "jobs", "web"}

    def test_every_category_has_retention(self):
        for cats in OBJECT_TYPE_CATEGORIES.values():
            for cat in cats:
                assert cat in DEFAULT_RETENTION


class TestConfigureLogging:
    def test_single_handler(self):
        root = configure_logging("DEBUG")
        configure_logging("WARNING")
        marked = [h for h in root.handlers if getattr(h, "_docms_handler", False)]
        assert len(marked) == 1
        assert root.level == logging.WARNING


class TestLogEntry:
    def test_to_json(self):
        entry = LogEntry("tasks", "execution", {"task_name": "reindex"})
        assert json.loads(entry.to_json()) == {"task_name": "reindex"}


class TestFileLogger:
    """Test FileLogger file writing."""

    def test_creates_category_directories(self, log_dir):
        FileLogger(log_dir=str(log_dir))
        for obj_type, cats in OBJECT_TYPE_CATEGORIES.items():
            for cat in cats:
                assert (log_dir / obj_type / cat).is_dir()

    def test_write_creates_daily_file(self, log_dir):
        FileLogger(log_dir=str(log_dir)).write(
            LogEntry("jobs", "execution", {"job_name": "nightly"})
        )
        path = log_dir / "jobs" / "execution" / f"{date.today().isoformat()}.jsonl"
        assert json.loads(path.read_text().strip())["job_name"] == "nightly"

    def test_write_batch_groups_by_file(self, log_dir):
        logger = FileLogger(log_dir=str(log_dir))
        logger.write_batch(
            [LogEntry("tasks", "execution", {"n": i}) for i in range(3)]
            + [LogEntry("web", "execution", {"n": 9})]
        )
        tasks_files = list((log_dir / "tasks" / "execution").glob("*.jsonl"))
        web_files = list((log_dir / "web" / "execution").glob("*.jsonl"))
        assert len(tasks_files[0].read_text().strip().split("\n")) == 3
        assert len(web_files[0].read_text().strip().split("\n")) == 1


class TestAsyncLogQueue:
    def test_stop_drains_pending(self, log_dir):
        queue = AsyncLogQueue(FileLogger(str(log_dir)), flush_interval_ms=10_000)
        for i in range(5):
            assert queue.push(LogEntry("system", "lifecycle", {"n": i}))
        queue.stop()
        files = list((log_dir / "system" / "lifecycle").glob("*.jsonl"))
        assert len(files[0].read_text().strip().split("\n")) == 5

    def test_drops_when_full(self, log_dir):
        queue = AsyncLogQueue(FileLogger(str(log_dir)), max_queue_size=2)
        assert queue.push(LogEntry("system", "lifecycle", {}))
        assert queue.push(LogEntry("system", "lifecycle", {}))
        assert queue.push(LogEntry("system", "lifecycle", {})) is False
        assert queue.dropped_count == 1
        assert queue.pending_count == 2


class TestGlobalQueue:
    def test_log_without_init_is_dropped(self):
        assert get_log_queue() is None
        assert log(log_system_event("startup")) is False

    def test_init_log_shutdown(self, log_dir):
        queue = init_logging(log_dir=str(log_dir))
        assert get_log_queue() is queue
        assert log(log_system_event("platform_started"))
        shutdown_logging()
        assert get_log_queue() is None
        files = list((log_dir / "system" / "lifecycle").glob("*.jsonl"))
        assert json.loads(files[0].read_text().strip())["event"] == "platform_started"


class TestLogBuilders:
    """Test log entry builder functions."""

    def test_system_event(self):
        entry = log_system_event("startup_failed", level="ERROR", details={"component": "web"})
        assert (entry.object_type, entry.category) == ("system", "lifecycle")
        assert entry.data["level"] == "ERROR"
        assert entry.data["details"] == {"component": "web"}

    def test_none_values_omitted(self):
        entry = log_system_event("platform_shutdown")
        assert "details" not in entry.data

    def test_task_event(self):
        ok = log_task_event("reindex", "t1", success=True, duration_ms=3.5, backend="local")
        failed = log_task_event("reindex", "t2", success=False, error="boom")
        assert ok.data["event"] == "task_completed"
        assert ok.data["backend"] == "local"
        assert failed.data["event"] == "task_failed"
        assert failed.data["level"] == "ERROR"
        assert failed.data["error"] == "boom"

    def test_task_performance(self):
        entry = log_task_performance("reindex", "t1", 12.0)
        assert (entry.object_type, entry.category) == ("tasks", "performance")

    def test_job_event(self):
        entry = log_job_event("nightly", "reindex", task_id="t1")
        assert (entry.object_type, entry.category) == ("jobs", "execution")
        assert entry.data["event"] == "job_fired"

    def test_web_request(self):
        assert log_web_request("GET", "/health", 200, 1.0).data["level"] == "INFO"
        assert log_web_request("GET", "/health", 503, 1.0).data["level"] == "ERROR"


class TestLogRetentionManager:
    """Test retention cleanup."""

    def _touch(self, log_dir, obj_type, category, day):
        path = log_dir / obj_type / category / f"{day.isoformat()}.jsonl"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text('{"n":1}\n')
        return path

    def test_cleanup_empty_dir(self, log_dir):
        log_dir.mkdir()
        assert LogRetentionManager(log_dir=str(log_dir)).cleanup() == {"deleted": 0, "compressed": 0}

    def test_deletes_expired_and_compresses_old(self, log_dir):
        today = date(2026, 3, 1)
        expired = self._touch(log_dir, "tasks", "performance", today - timedelta(days=8))
        old = self._touch(log_dir, "tasks", "execution", today - timedelta(days=10))
        fresh = self._touch(log_dir, "tasks", "execution", today - timedelta(days=1))

        result = LogRetentionManager(log_dir=str(log_dir)).cleanup(today=today)

        assert result == {"deleted": 1, "compressed": 1}
        assert not expired.exists()
        assert not old.exists()
        with gzip.open(str(old) + ".gz", "rt") as f:
            assert f.read() == '{"n":1}\n'
        assert fresh.exists()

    def test_ignores_unrecognised_files(self, log_dir):
        path = log_dir / "web" / "execution" / "notes.txt"
        path.parent.mkdir(parents=True)
        path.write_text("x")
        LogRetentionManager(log_dir=str(log_dir)).cleanup(today=date(2030, 1, 1))
        assert path.exists()
