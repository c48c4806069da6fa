"""
Unit tests for the worker thread pool.
"""

import threading
import time

import pytest

from userapi.core.thread_pool import ThreadPool


@pytest.fixture
def pool():
    p = ThreadPool(min_workers=2, max_workers=4, queue_size=10, idle_timeout=0.1)
    p.start()
    yield p
    p.shutdown(wait=False)


class TestThreadPool:

    def test_runs_tasks(self, pool):
        done = threading.Event()
        results = []

        def task(value):
            results.append(value)
            done.set()

        assert pool.submit(task, args=(7,)) is True
        assert done.wait(2.0)
        assert results == [7]

    def test_kwargs(self, pool):
        done = threading.Event()
        seen = {}

        def task(a, b=None):
            seen.update(a=a, b=b)
            done.set()

        pool.submit(task, args=(1,), kwargs={"b": 2})
        assert done.wait(2.0)
        assert seen == {"a": 1, "b": 2}

    def test_starts_min_workers(self, pool):
        assert pool.worker_count == 2

    def test_failing_task_does_not_kill_worker(self, pool):
        done = threading.Event()

        def bad():
            raise ValueError("boom")

        pool.submit(bad)
        pool.submit(done.set)
        assert done.wait(2.0)
        assert pool.worker_count == 2

    def test_scales_up_to_max(self, pool):
        release = threading.Event()
        started = threading.Semaphore(0)

        def blocker():
            started.release()
            release.wait(5.0)

        for _ in range(6):
            pool.submit(blocker)
            time.sleep(0.05)

        try:
            assert pool.worker_count <= 4
            assert pool.worker_count > 2
        finally:
            release.set()

    def test_full_queue_rejects(self):
        small = ThreadPool(min_workers=1, max_workers=1, queue_size=1, idle_timeout=0.1)
        small.start()
        release = threading.Event()
        running = threading.Event()

        def blocker():
            running.set()
            release.wait(5.0)

        try:
            assert small.submit(blocker, block=False)
            assert running.wait(2.0)
            assert small.submit(blocker, block=False)
            assert small.submit(blocker, block=False) is False
        finally:
            release.set()
            small.shutdown(wait=False)

    def test_submit_before_start(self):
        with pytest.raises(RuntimeError):
            ThreadPool().submit(lambda: None)

    def test_submit_after_shutdown(self):
        p = ThreadPool(min_workers=1, max_workers=1)
        p.start()
        p.shutdown()
        with pytest.raises(RuntimeError):
            p.submit(lambda: None)

    def test_shutdown_waits_for_queue(self):
        p = ThreadPool(min_workers=1, max_workers=1, idle_timeout=0.1)
        p.start()
        results = []
        for i in range(5):
            p.submit(lambda i=i: results.append(i))
        p.shutdown(wait=True, timeout=5.0)

        assert sorted(results) == [0, 1, 2, 3, 4]
        assert p.worker_count == 0

    @pytest.mark.parametrize("kwargs", [
        {"min_workers": 0},
        {"min_workers": 4, "max_workers": 2},
    ])
    def test_invalid_sizes(self, kwargs):
        with pytest.raises(ValueError):
            ThreadPool(**kwargs)

    def test_stats(self, pool):
        stats = pool.stats
        assert stats["workers"]["total"] == 2
        assert stats["tasks"]["queued"] == 0
