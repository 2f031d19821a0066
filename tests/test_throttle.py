"""Keep-latest throttling between feature extraction and the engine."""

import threading
import time

import pytest

from services.throttle import LatestValueThrottle


def wait_until(predicate, timeout=3.0):
    end = time.monotonic() + timeout
    while time.monotonic() < end:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


class Recorder:
    def __init__(self):
        self.items = []
        self.event = threading.Event()

    def __call__(self, item):
        self.items.append(item)
        self.event.set()


class TestLatestValueThrottle:
    def test_zero_interval_delivers_everything_offered_slowly(self):
        rec = Recorder()
        thr = LatestValueThrottle(0.0, rec)
        try:
            for i in range(5):
                rec.event.clear()
                thr.offer(i)
                assert rec.event.wait(2.0)
            assert rec.items == [0, 1, 2, 3, 4]
            assert thr.dropped == 0
        finally:
            thr.stop()

    def test_superseded_items_are_dropped_not_queued(self):
        rec = Recorder()
        thr = LatestValueThrottle(0.3, rec)
        try:
            thr.offer("first")
            assert rec.event.wait(2.0)
            thr.offer("second")
            thr.offer("third")
            assert wait_until(lambda: len(rec.items) == 2)
            assert rec.items == ["first", "third"]
            assert thr.dropped == 1
            assert thr.delivered == 2
        finally:
            thr.stop()

    def test_rate_is_bounded(self):
        stamps = []
        thr = LatestValueThrottle(0.1, lambda item: stamps.append(time.monotonic()))
        try:
            end = time.monotonic() + 0.55
            while time.monotonic() < end:
                thr.offer(object())
                time.sleep(0.002)
            assert wait_until(lambda: len(stamps) >= 3)
        finally:
            thr.stop()
        gaps = [b - a for a, b in zip(stamps, stamps[1:])]
        assert all(g >= 0.09 for g in gaps)
        assert len(stamps) <= 7

    def test_stop_discards_pending_item(self):
        rec = Recorder()
        thr = LatestValueThrottle(10.0, rec)
        thr.offer(1)
        assert rec.event.wait(2.0)
        thr.offer(2)
        thr.stop()
        assert rec.items == [1]
        assert thr.dropped == 1
        thr.offer(3)
        assert rec.items == [1]

    def test_delivery_errors_do_not_stop_the_worker(self):
        seen = []
        done = threading.Event()

        def deliver(item):
            if item == "bad":
                raise ValueError(item)
            seen.append(item)
            done.set()

        thr = LatestValueThrottle(0.0, deliver)
        try:
            thr.offer("bad")
            assert wait_until(lambda: thr.delivered == 0 and not thr._has_pending)
            thr.offer("good")
            assert done.wait(2.0)
            assert seen == ["good"]
        finally:
            thr.stop()

    def test_negative_interval_rejected(self):
        with pytest.raises(ValueError):
            LatestValueThrottle(-1.0, lambda item: None)
