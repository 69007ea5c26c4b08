#!/usr/bin/env python3

import threading
import time
from pathlib import Path

import pytest
from watchfiles import Change

from odm_schema_to_ts.config import TypeGenConfig
from odm_schema_to_ts.watcher import ChangeCoordinator, CoordinatorState, RunOutcome, SchemaWatcher, watch_with_generation

TIMEOUT = 10


class RecordingRun:
    """Pipeline stand-in recording the paths of every run"""

    def __init__(self, block=False):
        self.calls: list[frozenset[Path]] = []
        self.started = threading.Event()
        self.release = threading.Event()
        if not block:
            self.release.set()

    def __call__(self, paths):
        self.calls.append(paths)
        self.started.set()
        assert self.release.wait(TIMEOUT)
        return len(self.calls)


class TestChangeCoordinator:
    """Test debouncing and run serialization"""

    def test_starts_idle(self):
        coordinator = ChangeCoordinator(RecordingRun(), debounce_ms=50)
        assert coordinator.state is CoordinatorState.IDLE
        assert coordinator.wait_idle(0)

    def test_rapid_events_trigger_one_run(self):
        """Two changes within the debounce window produce exactly one run"""
        run = RecordingRun()
        coordinator = ChangeCoordinator(run, debounce_ms=200)

        coordinator.notify("models/user.py")
        coordinator.notify("models/post.py")
        assert coordinator.state is CoordinatorState.PENDING

        assert coordinator.wait_idle(TIMEOUT)
        assert run.calls == [frozenset({Path("models/user.py"), Path("models/post.py")})]
        assert coordinator.run_count == 1

    def test_notify_restarts_the_timer(self):
        run = RecordingRun()
        coordinator = ChangeCoordinator(run, debounce_ms=300)

        coordinator.notify("a.py")
        time.sleep(0.15)
        coordinator.notify("b.py")
        time.sleep(0.2)
        # 350ms after the first event, but only 200ms after the last one
        assert run.calls == []

        assert coordinator.wait_idle(TIMEOUT)
        assert len(run.calls) == 1

    def test_events_during_a_run_trigger_one_follow_up(self):
        run = RecordingRun(block=True)
        coordinator = ChangeCoordinator(run, debounce_ms=20)

        coordinator.notify("a.py")
        assert run.started.wait(TIMEOUT)
        assert coordinator.state is CoordinatorState.RUNNING

        coordinator.notify("b.py")
        coordinator.notify("c.py")
        assert coordinator.state is CoordinatorState.RUNNING
        assert coordinator.pending_paths == {Path("b.py"), Path("c.py")}

        run.release.set()
        assert coordinator.wait_idle(TIMEOUT)
        assert run.calls == [frozenset({Path("a.py")}), frozenset({Path("b.py"), Path("c.py")})]

    def test_outcomes_are_reported(self):
        outcomes: list[RunOutcome] = []
        coordinator = ChangeCoordinator(RecordingRun(), debounce_ms=20, on_result=outcomes.append)

        coordinator.notify("a.py")
        assert coordinator.wait_idle(TIMEOUT)

        assert len(outcomes) == 1
        assert outcomes[0].result == 1
        assert outcomes[0].success
        assert outcomes[0].changed_paths == {Path("a.py")}

    def test_failed_run_is_reported_and_watching_continues(self):
        outcomes: list[RunOutcome] = []
        calls = []

        def flaky(paths):
            calls.append(paths)
            if len(calls) == 1:
                raise RuntimeError("boom")
            return "ok"

        coordinator = ChangeCoordinator(flaky, debounce_ms=20, on_result=outcomes.append)

        coordinator.notify("a.py")
        assert coordinator.wait_idle(TIMEOUT)
        coordinator.notify("a.py")
        assert coordinator.wait_idle(TIMEOUT)

        assert isinstance(outcomes[0].error, RuntimeError)
        assert not outcomes[0].success
        assert outcomes[1].result == "ok"
        assert coordinator.state is CoordinatorState.IDLE

    def test_failing_callback_does_not_break_the_coordinator(self):
        def bad_callback(outcome):
            raise ValueError("callback bug")

        run = RecordingRun()
        coordinator = ChangeCoordinator(run, debounce_ms=20, on_result=bad_callback)

        coordinator.notify("a.py")
        assert coordinator.wait_idle(TIMEOUT)
        coordinator.notify("b.py")
        assert coordinator.wait_idle(TIMEOUT)
        assert len(run.calls) == 2

    def test_shutdown_drops_pending_run(self):
        run = RecordingRun()
        coordinator = ChangeCoordinator(run, debounce_ms=5000)

        coordinator.notify("a.py")
        assert coordinator.shutdown(TIMEOUT)

        assert coordinator.state is CoordinatorState.IDLE
        assert coordinator.notify("b.py") is False
        assert run.calls == []

    def test_shutdown_drains_in_flight_run(self):
        run = RecordingRun(block=True)
        coordinator = ChangeCoordinator(run, debounce_ms=20)

        coordinator.notify("a.py")
        assert run.started.wait(TIMEOUT)

        drained = []
        stopper = threading.Thread(target=lambda: drained.append(coordinator.shutdown(TIMEOUT)))
        stopper.start()
        stopper.join(0.2)
        # Still waiting for the run
        assert stopper.is_alive()
        assert coordinator.notify("b.py") is False

        run.release.set()
        stopper.join(TIMEOUT)
        assert drained == [True]
        assert coordinator.state is CoordinatorState.IDLE
        assert coordinator.run_count == 1

    def test_shutdown_times_out(self):
        run = RecordingRun(block=True)
        coordinator = ChangeCoordinator(run, debounce_ms=20)

        coordinator.notify("a.py")
        assert run.started.wait(TIMEOUT)
        assert coordinator.shutdown(0.05) is False

        run.release.set()
        assert coordinator.wait_idle(TIMEOUT)


class TestSchemaWatcher:
    """Test the filesystem watcher"""

    def test_accepts_model_files_only(self, tmp_path):
        watcher = SchemaWatcher(TypeGenConfig(models_path=tmp_path))

        assert watcher.accepts(Change.modified, str(tmp_path / "user.py"))
        assert watcher.accepts(Change.added, str(tmp_path / "blog" / "post.py"))
        assert not watcher.accepts(Change.modified, str(tmp_path / "notes.txt"))
        assert not watcher.accepts(Change.modified, str(tmp_path / "tests" / "user.py"))
        assert not watcher.accepts(Change.modified, str(tmp_path / "__pycache__" / "user.py"))
        assert not watcher.accepts(Change.modified, str(tmp_path.parent / "elsewhere.py"))

    def test_file_change_triggers_a_run(self, tmp_path):
        run = RecordingRun()
        watcher = SchemaWatcher(TypeGenConfig(models_path=tmp_path, watch_debounce=50), run=run)

        with watcher:
            deadline = time.monotonic() + TIMEOUT
            # The native watcher starts asynchronously; keep touching until it reports
            while not run.calls and time.monotonic() < deadline:
                (tmp_path / "user.py").write_text(f"schema = {{'n{len(run.calls)}': str}}\n", encoding="utf-8")
                time.sleep(0.2)
            assert watcher.coordinator.wait_idle(TIMEOUT)

        assert run.calls
        assert all(path.name == "user.py" for call in run.calls for path in call)
        assert not watcher.running


class TestWatchWithGeneration:
    """Test the initial generation before watching"""

    def test_generates_before_watching(self, tmp_path):
        models = tmp_path / "models"
        models.mkdir()
        (models / "user.py").write_text("schema = {'name': str}\n", encoding="utf-8")
        config = TypeGenConfig(models_path=models, output_path=tmp_path / "types")

        outcomes: list[RunOutcome] = []
        watcher = watch_with_generation(config, outcomes.append)
        try:
            assert watcher.running
        finally:
            watcher.stop(TIMEOUT)

        assert len(outcomes) == 1
        assert outcomes[0].success
        assert outcomes[0].changed_paths == frozenset()
        assert (tmp_path / "types" / "index.ts").exists()


if __name__ == "__main__":
    pytest.main([__file__])
