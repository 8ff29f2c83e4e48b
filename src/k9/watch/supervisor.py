"""
Watch-and-reload supervisor.

Keeps exactly one sketch process alive and relaunches it whenever the
sketch source changes:

    IDLE -> LAUNCHING -> RUNNING -> RESTARTING -> LAUNCHING -> RUNNING ... -> STOPPED

Every transition happens under one lock, so a stop request from another
thread can never interleave with a restart and leave two children running.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from ..errors import K9Error, SketchNotFound, TerminationTimeout
from ..launcher import Launcher
from .debounce import ChangeAccumulator
from .models import ChildProcess, SessionState, WatchState, WatchTarget
from .notifier import Notifier

log = logging.getLogger(__name__)


class WatchSupervisor:
    def __init__(
        self,
        target: WatchTarget,
        command: Callable[[WatchTarget], list[str]],
        launcher: Launcher,
        notifier: Notifier,
        *,
        poll_interval: float = 0.5,
        debounce_seconds: float = 0.25,
        grace_period: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            target: Sketch being watched
            command: Builds the command line from the target, called on every launch
            launcher: Starts, signals and reaps the child
            notifier: Source of change timestamps for the sketch
            poll_interval: Seconds between loop iterations
            debounce_seconds: Quiet time that ends a burst of changes
            grace_period: Seconds a child gets to exit after a graceful stop
        """
        self.target = target
        self.command = command
        self.launcher = launcher
        self.notifier = notifier
        self.poll_interval = poll_interval
        self.grace_period = grace_period
        self._clock = clock
        self._sleep = sleep

        self.state = SessionState.IDLE
        self.watch = WatchState(target=target)
        self.restarts = 0
        self.exit_code = 0
        self.error: K9Error | None = None

        self._changes = ChangeAccumulator(debounce_seconds, clock=clock)
        self._lock = threading.RLock()
        self._stop_requested = threading.Event()

    @property
    def child(self) -> ChildProcess | None:
        return self.watch.child

    def start(self) -> WatchSupervisor:
        """Launch the first child. Raises SketchNotFound if the sketch is missing."""
        with self._lock:
            if self.state is not SessionState.IDLE:
                raise RuntimeError(f"Session already {self.state.value}")
            if not self.target.sketch_path.exists():
                self.state = SessionState.STOPPED
                self.exit_code = 1
                raise SketchNotFound(self.target.sketch_path)
            self._launch(self.notifier.last_modified())
        return self

    def run(self) -> int:
        """
        Drive the loop until the session stops and return the exit code.

        Ctrl-C stops the sketch gracefully; the child is reaped even if the
        graceful stop itself is interrupted.
        """
        if self.state is SessionState.IDLE:
            self.start()
        try:
            while self.state is not SessionState.STOPPED:
                self.step()
                if self.state is not SessionState.STOPPED:
                    self._sleep(self.poll_interval)
        except KeyboardInterrupt:
            log.info("Interrupted, stopping sketch")
            self.stop()
        finally:
            self._reap()
        return self.exit_code

    def step(self) -> None:
        """One iteration: collect changes, check the child, restart if due."""
        with self._lock:
            if self.state is not SessionState.RUNNING:
                return
            if self._stop_requested.is_set():
                self._stop_locked()
                return

            for stamp in self.notifier.changes():
                self.on_change_detected(stamp)

            child = self.watch.child
            code = self.launcher.poll(child.handle)
            if code is not None:
                self._child_exited(child, code)
                return

            if self._changes.is_ready():
                self._restart()

    def on_change_detected(self, modified_at: float) -> None:
        with self._lock:
            # Only strictly newer than what the running child was started from.
            if modified_at <= self.watch.last_modified:
                log.debug(f"Ignoring stale change (mtime {modified_at})")
                return
            self._changes.add_change(modified_at)

    def stop(self) -> None:
        """Gracefully stop the child; returns once it is confirmed gone."""
        with self._lock:
            self._stop_locked()

    def request_stop(self) -> None:
        """Ask the loop to stop at its next iteration. Safe from signal handlers."""
        self._stop_requested.set()

    def _stop_locked(self) -> None:
        if self.state is SessionState.STOPPED:
            return
        self._terminate_child()
        self.state = SessionState.STOPPED
        self.exit_code = 0
        log.info("Watch session stopped")

    def _launch(self, baseline: float) -> None:
        self.state = SessionState.LAUNCHING
        try:
            handle = self.launcher.launch(self.command(self.target), cwd=self.target.sketch_path.parent)
        except K9Error as exc:
            self.state = SessionState.STOPPED
            self.exit_code = 1
            self.error = exc
            log.error(f"Could not launch {self.target.sketch_path}: {exc}")
            raise
        self.watch.child = ChildProcess(handle=handle, pid=handle.pid, started_at=self._clock())
        self.watch.last_modified = baseline
        self.state = SessionState.RUNNING
        log.info(f"Sketch {self.target.sketch_path} running (PID {handle.pid})")

    def _restart(self) -> None:
        latest = self._changes.get_and_clear() or 0.0
        self.state = SessionState.RESTARTING
        log.info(f"{self.target.sketch_path} changed, restarting")
        self._terminate_child()
        self._launch(max(latest, self.notifier.last_modified()))
        self.restarts += 1

    def _child_exited(self, child: ChildProcess, code: int) -> None:
        child.mark_exited(code)
        self.watch.history.append(child)
        self.watch.child = None
        log.warning(f"Sketch exited on its own with status {code}")

        if self._changes.pending:
            latest = self._changes.get_and_clear() or 0.0
            self.state = SessionState.RESTARTING
            self._launch(max(latest, self.notifier.last_modified()))
            self.restarts += 1
            return

        # No respawn without a source change, or a crashing sketch would loop.
        self.state = SessionState.STOPPED
        self.exit_code = code

    def _terminate_child(self) -> None:
        child = self.watch.child
        if child is None:
            return

        code = self.launcher.poll(child.handle)
        if code is None:
            self.launcher.terminate(child.handle, graceful=True)
            try:
                code = self.launcher.wait(child.handle, timeout=self.grace_period)
            except TerminationTimeout as exc:
                log.warning(f"{exc}; killing it")
                self.launcher.terminate(child.handle, graceful=False)
                code = self.launcher.wait(child.handle)

        child.mark_exited(code)
        self.watch.history.append(child)
        self.watch.child = None

    def _reap(self) -> None:
        child = self.watch.child
        if child is None:
            return
        log.warning(f"Force killing sketch (PID {child.pid})")
        self.launcher.terminate(child.handle, graceful=False)
        child.mark_exited(self.launcher.wait(child.handle))
        self.watch.history.append(child)
        self.watch.child = None
        self.state = SessionState.STOPPED
