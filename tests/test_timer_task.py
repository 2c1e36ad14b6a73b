import threading
import time

from epollweb.timer_task import TimerTask


def test_callback_fires_after_timeout():
    fired = threading.Event()
    timer = TimerTask(7, 50, fired.set)
    started = time.monotonic()
    timer.start()
    assert fired.wait(2)
    assert time.monotonic() - started >= 0.04


def test_callback_fires_only_once_even_after_late_reset():
    calls = []
    done = threading.Event()

    def callback():
        calls.append(1)
        done.set()

    timer = TimerTask(1, 30, callback)
    timer.start()
    assert done.wait(2)
    timer.reset(30)
    time.sleep(0.15)
    assert timer.timeout_ms == 30
    assert len(calls) == 1


def test_cancel_prevents_callback():
    fired = threading.Event()
    timer = TimerTask(3, 100, fired.set)
    timer.start()
    timer.cancel()
    assert not fired.wait(0.3)


def test_cancel_before_start_prevents_callback():
    fired = threading.Event()
    timer = TimerTask(4, 20, fired.set)
    timer.cancel()
    timer.start()
    assert not fired.wait(0.2)


def test_reset_postpones_callback():
    fired = threading.Event()
    timer = TimerTask(5, 200, fired.set)
    timer.start()
    time.sleep(0.1)
    timer.reset(400)
    assert timer.timeout_ms == 400
    assert not fired.wait(0.25)
    assert fired.wait(2)


def test_fd_is_kept():
    timer = TimerTask(42, 10, lambda: None)
    assert timer.fd == 42