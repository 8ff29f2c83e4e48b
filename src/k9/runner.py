"""Spawn a sketch for run/live, or hand it to the watch supervisor."""
from __future__ import annotations

import logging
import signal
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator

from .config import K9Config
from .errors import SketchNotFound, TerminationTimeout
from .invocation import Action, RunSketch
from .launcher import Launcher, ProcessLauncher, build_command
from .watch.models import WatchTarget
from .watch.notifier import Notifier, make_notifier
from .watch.supervisor import WatchSupervisor

log = logging.getLogger(__name__)


def ensure_exists(sketch: Path) -> None:
    if not sketch.exists():
        raise SketchNotFound(sketch)


def _interrupt() -> None:
    raise KeyboardInterrupt


def run_once(argv: list[str], launcher: Launcher, cwd: Path | None, grace_period: float) -> int:
    """Start the sketch and wait for it; Ctrl-C or SIGTERM stops it and still reaps it."""
    handle = launcher.launch(argv, cwd=cwd)
    try:
        with on_sigterm(_interrupt):
            return launcher.wait(handle)
    except KeyboardInterrupt:
        log.info("Interrupted, stopping sketch")
        launcher.terminate(handle, graceful=True)
        try:
            launcher.wait(handle, timeout=grace_period)
        except TerminationTimeout as exc:
            log.warning(f"{exc}; killing it")
            launcher.terminate(handle, graceful=False)
            launcher.wait(handle)
        return 0


@contextmanager
def on_sigterm(handler: Callable[[], None]) -> Iterator[None]:
    """Call handler on SIGTERM for the duration of the block (main thread only)."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    previous = signal.signal(signal.SIGTERM, lambda signum, frame: handler())
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)


def spin_up(
    cmd: RunSketch,
    config: K9Config,
    launcher: Launcher | None = None,
    notifier_factory: Callable[..., Notifier] = make_notifier,
) -> int:
    """
    Run a sketch in the mode cmd asks for and return the exit code.

    run/live wait for the single child; watch keeps relaunching it on
    every change until the session stops.
    """
    ensure_exists(cmd.sketch)
    launcher = launcher or ProcessLauncher(family_grace=config.grace_period)

    if cmd.mode is not Action.WATCH:
        argv = build_command(cmd.starter, cmd.sketch, cmd.args, config, nojruby=cmd.nojruby)
        return run_once(argv, launcher, cmd.sketch.parent, config.grace_period)

    def command(target: WatchTarget) -> list[str]:
        # Rebuilt per launch so an edited data/java_args.txt takes effect on reload.
        return build_command(cmd.starter, target.sketch_path, target.extra_args, config, nojruby=cmd.nojruby)

    notifier = notifier_factory(config.notifier, cmd.sketch, config.watch_directory)
    try:
        supervisor = WatchSupervisor(
            WatchTarget(sketch_path=cmd.sketch, extra_args=cmd.args),
            command,
            launcher,
            notifier,
            poll_interval=config.poll_interval,
            debounce_seconds=config.debounce_seconds,
            grace_period=config.grace_period,
        )
        with on_sigterm(supervisor.request_stop):
            code = supervisor.run()
        log.info(f"Watch session ended after {supervisor.restarts} restart(s)")
        return code
    finally:
        notifier.close()
