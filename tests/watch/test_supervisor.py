# tests/watch/test_supervisor.py
import pytest

from k9.errors import RuntimeUnavailable, SketchNotFound
from k9.watch import ChildStatus, SessionState, WatchSupervisor, WatchTarget

ARGV = ["jruby", "run.rb", "fred.rb"]


def command(target):
    return [*ARGV, *target.extra_args]


@pytest.fixture
def make_supervisor(sketch, launcher, notifier, clock):
    def _make(path=None, **kwargs):
        target = WatchTarget(sketch_path=path or sketch, extra_args=("--seed", "3"))
        kwargs.setdefault("debounce_seconds", 0.25)
        kwargs.setdefault("grace_period", 2.0)
        return WatchSupervisor(
            target, command, launcher, notifier, clock=clock, sleep=clock.sleep, **kwargs
        )
    return _make


def test_start_launches_first_child(make_supervisor, launcher, notifier):
    """start() should spawn one child and record the baseline mtime"""
    sup = make_supervisor().start()

    assert sup.state is SessionState.RUNNING
    assert launcher.names() == ["launch"]
    assert sup.child.pid == launcher.handles[0].pid
    assert sup.watch.last_modified == notifier.mtime


def test_start_missing_sketch_raises_and_launches_nothing(make_supervisor, launcher, tmp_path):
    """Missing sketch should raise SketchNotFound without launching anything"""
    sup = make_supervisor(path=tmp_path / "nope.rb")

    with pytest.raises(SketchNotFound):
        sup.start()

    assert launcher.calls == []
    assert sup.state is SessionState.STOPPED


def test_start_twice_is_rejected(make_supervisor):
    """A session can only be started once"""
    sup = make_supervisor().start()

    with pytest.raises(RuntimeError):
        sup.start()


def test_burst_of_changes_yields_one_restart(make_supervisor, launcher, notifier, clock):
    """N change events inside the debounce window should cause exactly one restart"""
    sup = make_supervisor().start()

    for i in range(5):
        notifier.push(101.0 + i)
        sup.step()
        clock.advance(0.05)

    # Still inside the window: nothing restarted yet
    assert launcher.names().count("launch") == 1

    clock.advance(0.3)
    sup.step()
    for _ in range(3):
        clock.advance(0.3)
        sup.step()

    assert sup.restarts == 1
    assert launcher.names().count("launch") == 2
    assert sup.watch.last_modified == 105.0


def test_terminate_precedes_next_launch(make_supervisor, launcher, notifier, clock):
    """The old child must be terminated and reaped before the new one is launched"""
    sup = make_supervisor().start()
    first = launcher.handles[0]

    notifier.push(200.0)
    sup.step()
    clock.advance(1.0)
    sup.step()

    assert launcher.calls == [
        ("launch", first.pid),
        ("terminate", first.pid, True),
        ("wait", first.pid),
        ("launch", launcher.handles[1].pid),
    ]
    assert sup.watch.history[0].status is ChildStatus.KILLED


def test_at_most_one_child_alive(make_supervisor, launcher, notifier, clock):
    """Across many restarts no two children should ever be alive together"""
    sup = make_supervisor().start()

    for i in range(10):
        notifier.push(300.0 + i)
        sup.step()
        clock.advance(1.0)
        sup.step()

    assert sup.restarts == 10
    assert launcher.max_alive == 1
    assert len(launcher.alive) == 1


def test_stale_change_is_ignored(make_supervisor, launcher, notifier, clock):
    """Timestamps not newer than the launch baseline should not restart"""
    sup = make_supervisor().start()

    notifier.push(100.0, 99.0)
    sup.step()
    clock.advance(1.0)
    sup.step()

    assert sup.restarts == 0
    assert launcher.names() == ["launch"]


def test_crash_without_change_stops_session(make_supervisor, launcher, clock):
    """A child that exits on its own should end the session without a relaunch"""
    sup = make_supervisor().start()
    launcher.handles[0].exit(1)

    sup.step()

    assert sup.state is SessionState.STOPPED
    assert sup.exit_code == 1
    assert sup.watch.history[0].status is ChildStatus.EXITED_ERROR
    assert launcher.names() == ["launch"]

    # Further steps are no-ops
    clock.advance(5.0)
    sup.step()
    assert launcher.names() == ["launch"]


def test_clean_exit_without_change_reports_zero(make_supervisor, launcher):
    """A sketch that calls exit normally should stop the session with status 0"""
    sup = make_supervisor().start()
    launcher.handles[0].exit(0)

    sup.step()

    assert sup.state is SessionState.STOPPED
    assert sup.exit_code == 0
    assert sup.watch.history[0].status is ChildStatus.EXITED_OK


def test_crash_with_pending_change_relaunches(make_supervisor, launcher, notifier):
    """A crash that follows a source change should relaunch the fixed sketch"""
    sup = make_supervisor().start()

    notifier.push(150.0)
    launcher.handles[0].exit(1)
    sup.step()

    assert sup.state is SessionState.RUNNING
    assert sup.restarts == 1
    assert launcher.names() == ["launch", "launch"]


def test_stop_terminates_gracefully(make_supervisor, launcher):
    """stop() should send a graceful terminate and return only once the child is gone"""
    sup = make_supervisor().start()
    handle = launcher.handles[0]

    sup.stop()

    assert ("terminate", handle.pid, True) in launcher.calls
    assert launcher.names()[-1] == "wait"
    assert not handle.alive
    assert sup.child is None
    assert sup.state is SessionState.STOPPED
    assert sup.exit_code == 0


def test_unresponsive_child_is_force_killed(make_supervisor, launcher):
    """A child ignoring the graceful stop should be killed after the grace period"""
    launcher.ignore_term = True
    sup = make_supervisor().start()
    handle = launcher.handles[0]

    sup.stop()

    assert launcher.calls[1:] == [
        ("terminate", handle.pid, True),
        ("wait", handle.pid),
        ("terminate", handle.pid, False),
        ("wait", handle.pid),
    ]
    assert handle.exit_code == -9
    assert sup.state is SessionState.STOPPED


def test_restart_survives_unresponsive_child(make_supervisor, launcher, notifier, clock):
    """TerminationTimeout during a restart is recovered and the restart completes"""
    launcher.ignore_term = True
    sup = make_supervisor().start()

    notifier.push(120.0)
    sup.step()
    clock.advance(1.0)
    sup.step()

    assert sup.restarts == 1
    assert sup.state is SessionState.RUNNING
    assert launcher.max_alive == 1


def test_launch_failure_stops_session(make_supervisor, launcher):
    """A missing runtime should stop the session and be reported, not retried"""
    launcher.fail_with = RuntimeUnavailable("jruby not found on PATH")
    sup = make_supervisor()

    with pytest.raises(RuntimeUnavailable):
        sup.start()

    assert sup.state is SessionState.STOPPED
    assert sup.exit_code == 1
    assert isinstance(sup.error, RuntimeUnavailable)


def test_request_stop_is_observed_on_next_step(make_supervisor, launcher):
    """request_stop() should stop the session at the next loop iteration"""
    sup = make_supervisor().start()

    sup.request_stop()
    assert sup.state is SessionState.RUNNING

    sup.step()
    assert sup.state is SessionState.STOPPED
    assert not launcher.alive


def test_run_returns_child_status_when_it_exits(make_supervisor, launcher):
    """run() should loop until the child exits on its own"""
    launcher.exit_after_polls = 3
    sup = make_supervisor(poll_interval=0.1)

    code = sup.run()

    assert code == 0
    assert sup.state is SessionState.STOPPED
    assert launcher.handles[0].polls == 3


def test_run_interrupt_stops_and_reaps_child(make_supervisor, launcher, clock):
    """Ctrl-C during the loop should stop the child gracefully and return 0"""
    def interrupted_sleep(seconds):
        raise KeyboardInterrupt

    sup = make_supervisor()
    sup._sleep = interrupted_sleep

    code = sup.run()

    assert code == 0
    assert sup.state is SessionState.STOPPED
    assert not launcher.alive
    assert ("terminate", launcher.handles[0].pid, True) in launcher.calls


def test_every_launch_uses_target_args(make_supervisor, launcher, notifier, clock):
    """Relaunches should rebuild the command line from the session's target"""
    sup = make_supervisor().start()

    notifier.push(200.0)
    sup.step()
    clock.advance(0.3)
    sup.step()

    assert sup.restarts == 1
    assert launcher.argvs == [[*ARGV, "--seed", "3"], [*ARGV, "--seed", "3"]]
