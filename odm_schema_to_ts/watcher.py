"""
Watch mode.

``ChangeCoordinator`` turns a stream of filesystem events into debounced,
serialized pipeline runs:

    IDLE --notify--> PENDING --timer expires--> RUNNING --done--> IDLE
                     ^  |  notify restarts the timer        |
                     |  +-----------------------------------+
                     +---- events arrived during the run ---+

Only the timer expiry leaves PENDING, and at most one run is in flight.
Events arriving while RUNNING accumulate and produce exactly one follow-up
run. ``SchemaWatcher`` feeds a coordinator from ``watchfiles``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from watchfiles import Change, watch

from .config import TypeGenConfig
from .pipeline import GenerationResult, generate_types
from .utils import matches_any, matches_glob

logger = logging.getLogger(__name__)


class CoordinatorState(Enum):
    IDLE = "idle"
    PENDING = "pending"
    RUNNING = "running"


@dataclass
class RunOutcome:
    """Report of one coordinator run, successful or not."""

    changed_paths: frozenset[Path] = field(default_factory=frozenset)
    result: Any = None
    error: Exception | None = None

    @property
    def success(self) -> bool:
        if self.error is not None:
            return False
        return getattr(self.result, "success", True)


class ChangeCoordinator:
    """Debounces change notifications and serializes the resulting runs."""

    def __init__(
        self,
        run: Callable[[frozenset[Path]], Any],
        debounce_ms: int = 300,
        on_result: Callable[[RunOutcome], None] | None = None,
    ):
        """
        Args:
            run: Called with the accumulated changed paths; its return value is reported
            debounce_ms: Quiet period after the last event before a run starts
            on_result: Receives a RunOutcome after every run
        """
        self._run = run
        self._debounce_s = debounce_ms / 1000
        self._on_result = on_result

        self._cond = threading.Condition()
        self._state = CoordinatorState.IDLE
        self._pending: set[Path] = set()
        self._timer: threading.Timer | None = None
        # Bumped on every timer (re)start; a timer firing with an old value is stale
        self._generation = 0
        self._accepting = True
        self._run_count = 0

    @property
    def state(self) -> CoordinatorState:
        with self._cond:
            return self._state

    @property
    def run_count(self) -> int:
        with self._cond:
            return self._run_count

    @property
    def pending_paths(self) -> frozenset[Path]:
        with self._cond:
            return frozenset(self._pending)

    def notify(self, path: Path | str) -> bool:
        """Record a changed path. Returns False once shut down."""
        with self._cond:
            if not self._accepting:
                return False
            self._pending.add(Path(path))
            if self._state is CoordinatorState.RUNNING:
                # Picked up when the current run completes
                return True
            self._state = CoordinatorState.PENDING
            self._start_timer()
            return True

    def _start_timer(self) -> None:
        # Caller holds the lock
        if self._timer is not None:
            self._timer.cancel()
        self._generation += 1
        self._timer = threading.Timer(self._debounce_s, self._on_timer, args=(self._generation,))
        self._timer.daemon = True
        self._timer.start()

    def _cancel_timer(self) -> None:
        # Caller holds the lock
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._generation += 1

    def _on_timer(self, generation: int) -> None:
        with self._cond:
            if generation != self._generation or self._state is not CoordinatorState.PENDING:
                return
            self._timer = None
            paths = frozenset(self._pending)
            self._pending.clear()
            self._state = CoordinatorState.RUNNING

        outcome = self._execute(paths)
        self._report(outcome)

        with self._cond:
            self._run_count += 1
            if self._pending and self._accepting:
                logger.debug("%d change(s) arrived during the run, scheduling a follow-up", len(self._pending))
                self._state = CoordinatorState.PENDING
                self._start_timer()
            else:
                self._pending.clear()
                self._state = CoordinatorState.IDLE
            self._cond.notify_all()

    def _execute(self, paths: frozenset[Path]) -> RunOutcome:
        logger.info("Regenerating after %d change(s)", len(paths))
        try:
            return RunOutcome(changed_paths=paths, result=self._run(paths))
        except Exception as e:
            logger.exception("Run failed")
            return RunOutcome(changed_paths=paths, error=e)

    def _report(self, outcome: RunOutcome) -> None:
        if self._on_result is None:
            return
        try:
            self._on_result(outcome)
        except Exception:
            logger.exception("Result callback failed")

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no run is pending or in flight. Returns False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: self._state is CoordinatorState.IDLE, timeout)

    def shutdown(self, timeout: float | None = None) -> bool:
        """
        Stop accepting events, drop a pending run and drain an in-flight one.

        Returns:
            True if no run is in flight any more, False if the timeout expired first
        """
        with self._cond:
            self._accepting = False
            self._cancel_timer()
            if self._state is CoordinatorState.PENDING:
                self._pending.clear()
                self._state = CoordinatorState.IDLE
            return self._cond.wait_for(lambda: self._state is not CoordinatorState.RUNNING, timeout)


class SchemaWatcher:
    """Watches the models directory and regenerates types on change."""

    # watchfiles' own grouping window; the coordinator does the real debouncing
    RAW_DEBOUNCE_MS = 50

    def __init__(
        self,
        config: TypeGenConfig,
        on_result: Callable[[RunOutcome], None] | None = None,
        run: Callable[[frozenset[Path]], Any] | None = None,
    ):
        self.config = config
        self.coordinator = ChangeCoordinator(run or self._regenerate, config.watch_debounce, on_result)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def _regenerate(self, changed_paths: frozenset[Path]) -> GenerationResult:
        # The whole watched set is regenerated: references cross files
        return generate_types(self.config)

    def accepts(self, change: Change, path: str) -> bool:
        """watchfiles filter: model files under models_path that are not excluded."""
        try:
            relative = Path(path).relative_to(self.config.models_path).as_posix()
        except ValueError:
            return False
        return matches_glob(relative, self.config.pattern) and not matches_any(relative, self.config.exclude)

    def _watch_loop(self) -> None:
        try:
            for changes in watch(
                self.config.models_path,
                watch_filter=self.accepts,
                debounce=self.RAW_DEBOUNCE_MS,
                stop_event=self._stop_event,
                raise_interrupt=False,
            ):
                for change, path in changes:
                    logger.debug("%s: %s", change.name, path)
                    self.coordinator.notify(path)
        except Exception:
            logger.exception("Watching %s stopped", self.config.models_path)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        logger.info("Watching %s", self.config.models_path)
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._watch_loop, name="odm-schema-watch", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Drain the coordinator, then release the watch handle."""
        self.coordinator.shutdown(timeout)
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Stopped watching %s", self.config.models_path)

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def __enter__(self) -> SchemaWatcher:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()


def watch_with_generation(
    config: TypeGenConfig,
    on_result: Callable[[RunOutcome], None] | None = None,
) -> SchemaWatcher:
    """Generate once, then start watching. The caller owns the returned watcher."""
    initial = RunOutcome(result=generate_types(config))
    if on_result is not None:
        on_result(initial)

    watcher = SchemaWatcher(config, on_result)
    watcher.start()
    return watcher
