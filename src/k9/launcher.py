"""Build sketch command lines and start/stop the child JRuby process."""
from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Protocol

import psutil

from .config import K9Config
from .errors import LaunchFailed, RuntimeUnavailable, TerminationTimeout

log = logging.getLogger(__name__)

JRUBY_MAIN = "org.jruby.Main"


class Launcher(Protocol):
    def launch(self, argv: list[str], cwd: Path | None = None): ...

    def poll(self, handle) -> int | None: ...

    def terminate(self, handle, graceful: bool = True) -> None: ...

    def wait(self, handle, timeout: float | None = None) -> int: ...


def java_options(sketch: Path, config: K9Config) -> list[str]:
    """
    JVM options for a sketch.

    A sketch-local data/java_args.txt wins over java_args from config.yml.
    """
    args_file = sketch.parent / "data" / "java_args.txt"
    if args_file.exists():
        return args_file.read_text(encoding="utf-8").split()
    return list(config.java_args)


def jruby_complete(config: K9Config) -> Path:
    jar = config.jruby_complete
    if not jar.exists():
        raise RuntimeUnavailable(
            f"{jar} does not exist\n"
            f"Download jruby-complete.jar into {jar.parent} or install jruby and drop --nojruby"
        )
    return jar


def build_command(
    starter: str,
    sketch: Path,
    args: list[str] | tuple[str, ...],
    config: K9Config,
    nojruby: bool = False,
) -> list[str]:
    """
    Command line that starts the framework's starter script on a sketch.

    With nojruby the bundled jruby-complete jar is run on plain java,
    otherwise the installed jruby is used and JVM options get the -J prefix.
    """
    runner = config.runner_script(starter)
    if not runner.exists():
        raise RuntimeUnavailable(f"Runner script {runner} not found; check K9_ROOT in your config.yml")

    jvm_opts = java_options(sketch, config)
    if nojruby:
        if shutil.which("java") is None:
            raise RuntimeUnavailable("java not found on PATH")
        return [
            "java",
            *jvm_opts,
            "-cp",
            str(jruby_complete(config)),
            JRUBY_MAIN,
            str(runner),
            str(sketch),
            *args,
        ]

    if shutil.which("jruby") is None:
        raise RuntimeUnavailable("jruby not found on PATH; install jruby or run with --nojruby")
    return ["jruby", *[f"-J{opt}" for opt in jvm_opts], str(runner), str(sketch), *args]


class ProcessLauncher:
    """Launches sketches as child processes via subprocess, stops them via psutil."""

    def __init__(self, family_grace: float = 5.0):
        self.family_grace = family_grace
        # Descendants seen when a child was signalled, keyed by the child's pid.
        self._families: dict[int, list[psutil.Process]] = {}

    def launch(self, argv: list[str], cwd: Path | None = None) -> subprocess.Popen:
        log.info(f"Starting: {' '.join(argv)}")
        try:
            # stdio is inherited: live sketches need the terminal.
            proc = subprocess.Popen(argv, cwd=str(cwd) if cwd else None)
        except FileNotFoundError as exc:
            raise RuntimeUnavailable(f"{argv[0]} could not be found: {exc}") from exc
        except OSError as exc:
            raise LaunchFailed(f"Failed to start {argv[0]}: {exc}") from exc
        log.debug(f"Started PID {proc.pid}")
        return proc

    def poll(self, handle: subprocess.Popen) -> int | None:
        return handle.poll()

    def terminate(self, handle: subprocess.Popen, graceful: bool = True) -> None:
        """
        Signal the child and everything it spawned (SIGTERM when graceful,
        SIGKILL otherwise). The wrapper scripts may start the JVM as a
        grandchild, so the whole tree is signalled and remembered until
        wait() has seen it gone.
        """
        if handle.poll() is not None:
            return
        try:
            root = psutil.Process(handle.pid)
            descendants = root.children(recursive=True)
        except psutil.NoSuchProcess:
            return

        known = self._families.setdefault(handle.pid, [])
        known.extend(p for p in descendants if p not in known)

        for proc in descendants + [root]:
            try:
                if graceful:
                    proc.terminate()
                else:
                    proc.kill()
            except psutil.NoSuchProcess:
                continue

    def wait(self, handle: subprocess.Popen, timeout: float | None = None) -> int:
        """
        Wait for the child, then for any descendants signalled with it.

        Descendants still running after the grace time are killed, so a
        returned status means the whole tree is gone.
        """
        try:
            code = handle.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            raise TerminationTimeout(handle.pid, timeout or 0.0) from None
        self._reap_family(handle.pid, self.family_grace if timeout is None else timeout)
        return code

    def _reap_family(self, pid: int, timeout: float) -> None:
        family = self._families.pop(pid, [])
        if not family:
            return
        _, alive = psutil.wait_procs(family, timeout=timeout)
        for proc in alive:
            log.warning(f"Killing leftover sketch process (PID {proc.pid})")
            try:
                proc.kill()
            except psutil.NoSuchProcess:
                continue
        if alive:
            psutil.wait_procs(alive, timeout=1)
