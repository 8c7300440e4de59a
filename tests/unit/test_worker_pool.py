"""
Unit tests for the worker pool.
"""

import threading

import pytest

from splitstack.core.worker_pool import WorkerPool


@pytest.fixture
def pool():
    pool = WorkerPool(min_workers=2, max_workers=4, queue_size=10)
    pool.start()
    yield pool
    pool.shutdown(wait=False, timeout=1.0)


class TestWorkerPool:
    """Tests for WorkerPool."""

    def test_runs_jobs(self, pool):
        """Submitted jobs execute on worker threads."""
        done = threading.Event()
        names = []

        def job():
            names.append(threading.current_thread().name)
            done.set()

        assert pool.submit(job) is True
        assert done.wait(2)
        assert names[0].startswith("splitstack-worker-")

    def test_failing_job_does_not_kill_worker(self, pool):
        """Exceptions are counted and the worker carries on."""
        done = threading.Event()

        pool.submit(lambda: 1 / 0)
        pool.submit(done.set)

        assert done.wait(2)
        assert pool.size == 2

    def test_scales_up_when_busy(self, pool):
        """Blocked workers trigger new ones, up to max_workers."""
        release = threading.Event()
        started = threading.Semaphore(0)

        def blocker():
            started.release()
            release.wait(5)

        try:
            for _ in range(2):
                pool.submit(blocker)
            for _ in range(2):
                assert started.acquire(timeout=2)
            for _ in range(4):
                pool.submit(blocker)

            assert 2 < pool.size <= 4
        finally:
            release.set()

    def test_full_queue_rejects(self):
        """submit() returns False when the queue is full."""
        pool = WorkerPool(min_workers=1, max_workers=1, queue_size=1)
        pool.start()
        release = threading.Event()
        started = threading.Event()

        def blocker():
            started.set()
            release.wait(5)

        try:
            pool.submit(blocker)
            assert started.wait(2)
            assert pool.submit(lambda: None) is True
            assert pool.submit(lambda: None) is False
        finally:
            release.set()
            pool.shutdown(timeout=2.0)

    def test_submit_after_shutdown(self, pool):
        """A stopped pool refuses work."""
        pool.shutdown()

        with pytest.raises(RuntimeError):
            pool.submit(lambda: None)

    def test_shutdown_waits_for_queued_jobs(self):
        """With wait=True queued jobs still run."""
        pool = WorkerPool(min_workers=1, max_workers=1)
        pool.start()
        results = []
        for i in range(5):
            pool.submit(lambda i=i: results.append(i))

        pool.shutdown(wait=True, timeout=2.0)

        assert sorted(results) == [0, 1, 2, 3, 4]

    def test_invalid_sizes(self):
        """min must be at least one and not above max."""
        with pytest.raises(ValueError):
            WorkerPool(min_workers=0)
        with pytest.raises(ValueError):
            WorkerPool(min_workers=4, max_workers=2)
