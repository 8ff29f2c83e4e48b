"""Global pytest fixtures for the k9 test suite.

The supervisor tests never start real processes or touch the clock. They
use the fakes below instead:
  - FakeLauncher records every launch/terminate/wait call in order and
    counts how many handles are alive at once.
  - FakeNotifier hands out change timestamps the test pushes into it.
  - FakeClock only moves when the test (or the fake sleep) advances it.

Every test also gets an isolated config location, so a developer's own
~/.jruby_art/config.yml can never leak into assertions.
"""

import pytest

from k9.errors import TerminationTimeout


class FakeHandle:
    def __init__(self, pid: int, ignores_term: bool = False, exit_after_polls: int | None = None):
        self.pid = pid
        self.ignores_term = ignores_term
        self.exit_after_polls = exit_after_polls
        self.exit_code: int | None = None
        self.polls = 0

    @property
    def alive(self) -> bool:
        return self.exit_code is None

    def exit(self, code: int) -> None:
        self.exit_code = code


class FakeLauncher:
    def __init__(self):
        self.calls: list[tuple] = []
        self.handles: list[FakeHandle] = []
        self.argvs: list[list[str]] = []
        self.max_alive = 0
        self.fail_with: Exception | None = None
        self.ignore_term = False
        self.exit_after_polls: int | None = None
        self._next_pid = 1000

    @property
    def alive(self) -> list[FakeHandle]:
        return [h for h in self.handles if h.alive]

    def launch(self, argv, cwd=None):
        if self.fail_with is not None:
            raise self.fail_with
        assert not self.alive, "launch requested while a previous child is still alive"
        self._next_pid += 1
        handle = FakeHandle(self._next_pid, self.ignore_term, self.exit_after_polls)
        self.handles.append(handle)
        self.argvs.append(list(argv))
        self.calls.append(("launch", handle.pid))
        self.max_alive = max(self.max_alive, len(self.alive))
        return handle

    def poll(self, handle):
        handle.polls += 1
        if handle.alive and handle.exit_after_polls is not None and handle.polls >= handle.exit_after_polls:
            handle.exit(0)
        return handle.exit_code

    def terminate(self, handle, graceful=True):
        self.calls.append(("terminate", handle.pid, graceful))
        if not handle.alive:
            return
        if graceful and handle.ignores_term:
            return
        handle.exit(-15 if graceful else -9)

    def wait(self, handle, timeout=None):
        self.calls.append(("wait", handle.pid))
        if handle.alive:
            if timeout is None:
                raise AssertionError("wait() without timeout would block forever")
            raise TerminationTimeout(handle.pid, timeout)
        return handle.exit_code

    def names(self) -> list[str]:
        return [call[0] for call in self.calls]


class FakeNotifier:
    def __init__(self, mtime: float = 100.0):
        self.mtime = mtime
        self._pending: list[float] = []
        self.closed = False

    def push(self, *stamps: float) -> None:
        self._pending.extend(stamps)
        self.mtime = max([self.mtime, *stamps])

    def last_modified(self) -> float:
        return self.mtime

    def changes(self) -> list[float]:
        pending, self._pending = self._pending, []
        return pending

    def close(self) -> None:
        self.closed = True


class FakeClock:
    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.advance(seconds)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point k9 at a config file inside tmp_path (absent unless a test writes it)."""
    config_dir = tmp_path / ".jruby_art"
    monkeypatch.setenv("K9_CONFIG", str(config_dir / "config.yml"))
    monkeypatch.setenv("JRUBY_ART_HOME", str(config_dir))
    monkeypatch.delenv("K9_ROOT", raising=False)
    return config_dir / "config.yml"


@pytest.fixture
def sketch(tmp_path):
    path = tmp_path / "fred.rb"
    path.write_text("def draw; end\n", encoding="utf-8")
    return path


@pytest.fixture
def launcher():
    return FakeLauncher()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def clock():
    return FakeClock()
