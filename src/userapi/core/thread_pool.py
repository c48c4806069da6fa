"""
=============================================================================
THREAD POOL
=============================================================================

Accepted connections are processed by a fixed-but-growable set of worker
threads pulling from one bounded queue.

    accept loop ──submit()──► ┌──────────────┐ ──get()──► Worker-0
                              │ queue.Queue  │ ──get()──► Worker-1
                              │ (bounded)    │ ──get()──► ...
                              └──────────────┘

    * min_workers threads start with the pool
    * one more is added whenever every worker is busy and work is queued,
      up to max_workers
    * a full queue rejects the submit (the server answers 503)
    * shutdown puts one None ("poison pill") per worker on the queue

=============================================================================
"""

import queue
import threading
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Callable, Optional, Any, List


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """A deferred call: func(*args, **kwargs)."""
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """
    Pulls tasks off the shared queue until it receives None or is told
    to stop. An exception inside a task is logged and never kills the
    thread.
    """

    def __init__(self, task_queue: queue.Queue, worker_id: int, idle_timeout: float = 1.0):
        super().__init__(name=f"Worker-{worker_id}", daemon=True)
        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout

        self.state = WorkerState.IDLE
        self._stop_event = threading.Event()

        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while not self._stop_event.is_set():
            try:
                task = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            try:
                if task is None:
                    break
                self._execute(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute(self, task: Task):
        self.state = WorkerState.BUSY
        start = time.time()
        try:
            task.func(*task.args, **task.kwargs)
            self.tasks_completed += 1
            logger.debug(f"Worker {self.worker_id} completed task in {time.time() - start:.3f}s")
        except Exception as e:
            self.tasks_failed += 1
            logger.exception(f"Worker {self.worker_id} task failed after {time.time() - start:.3f}s: {e}")
        finally:
            self.state = WorkerState.IDLE

    def stop(self):
        self._stop_event.set()


class ThreadPool:
    """
    Bounded pool of worker threads.

    Usage:
        pool = ThreadPool(min_workers=4, max_workers=16, queue_size=100)
        pool.start()
        if not pool.submit(handle, args=(conn,), block=False):
            ...  # overloaded
        pool.shutdown()
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        queue_size: int = 100,
        idle_timeout: float = 1.0
    ):
        """
        Args:
            min_workers: Threads started immediately.
            max_workers: Upper bound when scaling up.
            queue_size: Tasks that may wait for a free worker.
            idle_timeout: How often an idle worker re-checks for shutdown.
        """
        if min_workers < 1:
            raise ValueError("min_workers must be >= 1")
        if max_workers < min_workers:
            raise ValueError("max_workers must be >= min_workers")

        self.min_workers = min_workers
        self.max_workers = max_workers
        self.max_queue_size = queue_size
        self.idle_timeout = idle_timeout

        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue(maxsize=queue_size)
        self._workers: List[Worker] = []
        self._lock = threading.Lock()  # guards _workers
        self._started = False
        self._shutting_down = False
        self._next_worker_id = 0

    def start(self):
        if self._started:
            return

        logger.debug(f"Starting thread pool with {self.min_workers} workers")
        with self._lock:
            for _ in range(self.min_workers):
                self._spawn_worker()
        self._started = True
        self._shutting_down = False

    def _spawn_worker(self) -> Worker:
        """Start one more worker. Caller holds self._lock."""
        worker = Worker(self._task_queue, self._next_worker_id, self.idle_timeout)
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        block: bool = True,
        queue_timeout: Optional[float] = None
    ) -> bool:
        """
        Queue func(*args, **kwargs) for a worker.

        Returns:
            True if queued, False if the queue was full.

        Raises:
            RuntimeError: If the pool is not running.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutting_down:
            raise RuntimeError("Thread pool is shutting down")

        task = Task(func=func, args=args, kwargs=kwargs or {})
        try:
            self._task_queue.put(task, block=block, timeout=queue_timeout)
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        with self._lock:
            if len(self._workers) >= self.max_workers:
                return
            if self.idle_workers == 0 and not self._task_queue.empty():
                logger.debug(f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers")
                self._spawn_worker()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop every worker.

        Args:
            wait: Let queued tasks finish first.
            timeout: Upper bound on the wait, in seconds.
        """
        if not self._started:
            return

        logger.debug("Shutting down thread pool...")
        self._shutting_down = True

        if wait:
            deadline = time.time() + timeout if timeout else None
            while not self._task_queue.empty():
                if deadline and time.time() > deadline:
                    logger.warning("Thread pool shutdown timed out; abandoning queued tasks")
                    break
                time.sleep(0.05)

        with self._lock:
            workers = list(self._workers)
            self._workers.clear()

        for worker in workers:
            worker.stop()
            try:
                self._task_queue.put_nowait(None)
            except queue.Full:
                pass  # the stop event still ends the worker
        for worker in workers:
            worker.join(timeout=2.0)

        self._started = False
        logger.debug("Thread pool shutdown complete")

    # ─────────────────────────────────────────────────────────────────────
    # MONITORING
    # ─────────────────────────────────────────────────────────────────────

    @property
    def worker_count(self) -> int:
        return len(self._workers)

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def idle_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.IDLE)

    @property
    def pending(self) -> int:
        """Tasks waiting for a worker."""
        return self._task_queue.qsize()

    @property
    def stats(self) -> dict:
        return {
            "workers": {
                "total": len(self._workers),
                "busy": self.busy_workers,
                "idle": self.idle_workers,
            },
            "tasks": {
                "queued": self.pending,
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }
