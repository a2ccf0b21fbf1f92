import logging

import pytest

from crashgame.services.crash.scheduler import SocketIOScheduler, VirtualScheduler


class InlineSocketIO:
    """Collects background tasks so a test decides when they run."""

    def __init__(self):
        self.slept = []
        self.tasks = []

    def sleep(self, seconds):
        self.slept.append(seconds)

    def start_background_task(self, target, *args, **kwargs):
        self.tasks.append(lambda: target(*args, **kwargs))

    def run_tasks(self):
        tasks, self.tasks = self.tasks, []
        for task in tasks:
            task()


def test_socketio_timer_fires_after_sleeping():
    sio = InlineSocketIO()
    fired = []
    handle = SocketIOScheduler(sio).after(0.1, lambda: fired.append('tick'))
    assert handle.pending

    sio.run_tasks()
    assert fired == ['tick']
    assert sio.slept == [0.1]
    assert handle.fired
    assert not handle.pending


def test_cancelled_socketio_timer_never_fires():
    sio = InlineSocketIO()
    fired = []
    handle = SocketIOScheduler(sio).after(1.0, lambda: fired.append('tick'))
    handle.cancel()

    sio.run_tasks()
    assert fired == []
    assert not handle.fired
    assert not handle.pending


def test_zero_delay_socketio_timer_does_not_sleep():
    sio = InlineSocketIO()
    fired = []
    SocketIOScheduler(sio).after(0, lambda: fired.append('now'))
    sio.run_tasks()
    assert fired == ['now']
    assert sio.slept == []


def test_failing_socketio_callback_is_logged(caplog):
    sio = InlineSocketIO()

    def boom():
        raise RuntimeError('boom')

    SocketIOScheduler(sio, logging.getLogger('crashgame.test')).after(0.5, boom)
    with caplog.at_level(logging.ERROR):
        with pytest.raises(RuntimeError):
            sio.run_tasks()
    assert any('[timer-error]' in r.getMessage() for r in caplog.records)


def test_virtual_clock_fires_in_due_order():
    scheduler = VirtualScheduler()
    fired = []
    scheduler.after(0.2, lambda: fired.append('late'))
    scheduler.after(0.1, lambda: fired.append('early'))
    cancelled = scheduler.after(0.15, lambda: fired.append('cancelled'))
    cancelled.cancel()

    assert scheduler.advance(0.2) == 2
    assert fired == ['early', 'late']
    assert scheduler.now == 0.2
    assert scheduler.pending == []
