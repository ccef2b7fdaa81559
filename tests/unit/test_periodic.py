"""
Tests for the background interval worker.
"""

import threading
import time
from unittest.mock import Mock

import pytest

from fuel_sync.utils.periodic import PeriodicTask


class TestPeriodicTask:
    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            PeriodicTask("bad", 0, Mock())

    def test_waits_one_interval_before_first_call(self):
        action = Mock()
        task = PeriodicTask("slow", 60, action)

        task.start()
        time.sleep(0.1)
        task.stop()

        action.assert_not_called()
        assert not task.is_running

    def test_run_immediately(self):
        called = threading.Event()
        task = PeriodicTask("eager", 60, called.set, run_immediately=True)

        task.start()
        try:
            assert called.wait(timeout=5)
        finally:
            task.stop()

    def test_repeats_until_stopped(self):
        calls = []
        third = threading.Event()

        def action():
            calls.append(time.monotonic())
            if len(calls) == 3:
                third.set()

        task = PeriodicTask("ticker", 0.02, action)
        task.start()
        try:
            assert third.wait(timeout=5)
        finally:
            task.stop()

        count = len(calls)
        time.sleep(0.1)
        assert len(calls) == count

    def test_failures_do_not_stop_the_schedule(self):
        recovered = threading.Event()
        outcomes = iter([RuntimeError("boom"), RuntimeError("boom")])

        def action():
            error = next(outcomes, None)
            if error is not None:
                raise error
            recovered.set()

        task = PeriodicTask("flaky", 0.02, action)
        task.start()
        try:
            assert recovered.wait(timeout=5)
        finally:
            task.stop()

    def test_start_twice_keeps_one_thread(self):
        task = PeriodicTask("single", 60, Mock())

        task.start()
        first = task._thread
        task.start()
        try:
            assert task._thread is first
        finally:
            task.stop()

    def test_stop_without_start(self):
        PeriodicTask("idle", 1, Mock()).stop()
