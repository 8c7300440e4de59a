"""
=============================================================================
WORKER POOL
=============================================================================

Connections are handled on a pool of worker threads fed from a bounded
queue. The accept loop never blocks on a slow client.

    accept loop ──submit(conn)──► [ queue (bounded) ] ──► worker 1
                                                     ──► worker 2
                                                     ──► ...
                                                     ──► worker N  (≤ max_workers)

The pool starts with min_workers threads and adds one whenever every
worker is busy and work is waiting, up to max_workers. When the queue is
full, submit() returns False and the caller sheds the connection.

Threads suit this workload: handlers spend their time waiting on sockets
and downstream I/O, during which the GIL is released.
=============================================================================
"""

from enum import Enum
from typing import Any, Callable, Optional
import logging
import queue
import threading
import time


logger = logging.getLogger(__name__)


Job = Callable[[], Any]


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


class Worker(threading.Thread):
    """Pulls jobs off the shared queue until it receives None."""

    def __init__(self, jobs: "queue.Queue[Optional[Job]]", worker_id: int, idle_timeout: float = 1.0):
        super().__init__(name=f"splitstack-worker-{worker_id}", daemon=True)
        self.jobs = jobs
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout
        self.state = WorkerState.IDLE
        self._stop_event = threading.Event()

    def run(self):
        while not self._stop_event.is_set():
            try:
                job = self.jobs.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            try:
                if job is None:
                    break
                self._execute(job)
            finally:
                self.jobs.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute(self, job: Job):
        self.state = WorkerState.BUSY
        start = time.perf_counter()
        try:
            job()
        except Exception:
            # One broken connection must not take the worker down with it
            logger.exception(
                f"Worker {self.worker_id} job failed after {time.perf_counter() - start:.3f}s"
            )
        finally:
            self.state = WorkerState.IDLE

    def stop(self):
        self._stop_event.set()


class WorkerPool:
    """
    Bounded, scale-up-only thread pool.

        pool = WorkerPool(min_workers=4, max_workers=16)
        pool.start()
        pool.submit(lambda: handle(conn))
        pool.shutdown()
    """

    def __init__(self, min_workers: int = 4, max_workers: int = 16, queue_size: int = 100):
        if min_workers < 1 or max_workers < min_workers:
            raise ValueError("Need 1 <= min_workers <= max_workers")
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.queue_size = queue_size

        self._jobs: "queue.Queue[Optional[Job]]" = queue.Queue(maxsize=queue_size)
        self._workers: list[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._closing = False
        self._next_worker_id = 0

    def start(self):
        with self._lock:
            if self._started:
                return
            logger.info(f"Starting worker pool with {self.min_workers} workers")
            for _ in range(self.min_workers):
                self._spawn_locked()
            self._started = True
            self._closing = False

    def _spawn_locked(self) -> Worker:
        worker = Worker(self._jobs, self._next_worker_id)
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(self, job: Job, block: bool = False, timeout: Optional[float] = None) -> bool:
        """
        Queue a job.

        Returns False when the queue is full.

        Raises:
            RuntimeError: If the pool is not running.
        """
        if not self._started or self._closing:
            raise RuntimeError("Worker pool is not running")

        try:
            self._jobs.put(job, block=block, timeout=timeout)
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        with self._lock:
            busy = sum(1 for w in self._workers if w.state is WorkerState.BUSY)
            if busy == len(self._workers) and len(self._workers) < self.max_workers and self._jobs.qsize() > 0:
                logger.debug(f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers")
                self._spawn_locked()

    def shutdown(self, wait: bool = True, timeout: float = 5.0):
        """Stop all workers; with wait, queued jobs finish first."""
        with self._lock:
            if not self._started:
                return
            self._closing = True
            workers = list(self._workers)

        logger.info("Shutting down worker pool...")

        if not wait:
            # Drop queued work; each drained item still counts as done
            while True:
                try:
                    self._jobs.get_nowait()
                except queue.Empty:
                    break
                self._jobs.task_done()

        for _ in workers:
            self._jobs.put(None)

        deadline = time.monotonic() + timeout
        for worker in workers:
            worker.join(timeout=max(0.0, deadline - time.monotonic()))
            worker.stop()

        with self._lock:
            self._workers.clear()
            self._started = False
        logger.info("Worker pool shutdown complete")

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._workers)
