import os
import signal
import sys
import threading
import time

import pytest

from imgc.conversion.cancellation import CancellationToken


def test_first_request_sets_flag_later_ones_only_count():
    token = CancellationToken()
    assert not token.is_stop_requested()
    assert token.request_stop() is True
    assert token.request_stop() is False
    assert token.request_stop() is False
    assert token.is_stop_requested()
    assert token.extra_requests == 2


def test_handle_signal_is_idempotent():
    token = CancellationToken()
    token.handle_signal(signal.SIGINT, None)
    token.handle_signal(signal.SIGINT, None)
    assert token.is_stop_requested()
    assert token.extra_requests == 1


def test_signal_handlers_are_restored():
    token = CancellationToken()
    previous = signal.getsignal(signal.SIGINT)
    with token.signal_handlers():
        assert signal.getsignal(signal.SIGINT) == token.handle_signal
    assert signal.getsignal(signal.SIGINT) == previous


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signal delivery")
def test_interrupt_signal_sets_the_token():
    token = CancellationToken()
    with token.signal_handlers():
        os.kill(os.getpid(), signal.SIGINT)
        deadline = time.monotonic() + 2
        while not token.is_stop_requested() and time.monotonic() < deadline:
            time.sleep(0.01)
    assert token.is_stop_requested()


def test_concurrent_requests_stop_exactly_once():
    token = CancellationToken()
    barrier = threading.Barrier(8)
    results = []

    def request():
        barrier.wait()
        results.append(token.request_stop())

    threads = [threading.Thread(target=request) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 1
    assert token.extra_requests == 7
