import pytest

from shape3d.services.game.scheduler import ChallengeTimers


@pytest.fixture()
def spawned():
    return []


@pytest.fixture()
def timers(flask_app, spawned):
    # Capture background tasks instead of starting them; sleeping is a no-op
    return ChallengeTimers(
        flask_app,
        spawn=lambda fn, *args: spawned.append((fn, args)),
        sleep=lambda seconds: None,
    )


def run(task):
    fn, args = task
    fn(*args)


def test_timer_fires_once(timers, spawned):
    fired = []
    timers.arm('s1', 30, lambda: fired.append('s1'))
    assert timers.is_armed('s1')
    assert timers.deadline('s1') is not None
    run(spawned[0])
    assert fired == ['s1']
    assert not timers.is_armed('s1')
    # a second run of the same task is stale
    run(spawned[0])
    assert fired == ['s1']


def test_rearming_supersedes_previous_timer(timers, spawned):
    fired = []
    timers.arm('s1', 30, lambda: fired.append('first'))
    timers.arm('s1', 30, lambda: fired.append('second'))
    run(spawned[0])
    assert fired == []
    run(spawned[1])
    assert fired == ['second']


def test_cancel_prevents_fire(timers, spawned):
    fired = []
    timers.arm('s1', 30, lambda: fired.append('s1'))
    assert timers.cancel('s1')
    assert not timers.cancel('s1')
    run(spawned[0])
    assert fired == []


def test_cancel_all_on_shutdown(timers, spawned):
    fired = []
    timers.arm('s1', 30, lambda: fired.append('s1'))
    timers.arm('s2', 30, lambda: fired.append('s2'))
    assert timers.cancel_all() == 2
    for task in spawned:
        run(task)
    assert fired == []
    assert not timers.is_armed('s1') and not timers.is_armed('s2')


def test_timers_are_per_session(timers, spawned):
    fired = []
    timers.arm('s1', 30, lambda: fired.append('s1'))
    timers.arm('s2', 30, lambda: fired.append('s2'))
    timers.cancel('s1')
    for task in spawned:
        run(task)
    assert fired == ['s2']


def test_callback_errors_are_logged_not_raised(timers, spawned):
    def boom():
        raise RuntimeError('store went away')
    timers.arm('s1', 1, boom)
    run(spawned[0])
    assert not timers.is_armed('s1')
