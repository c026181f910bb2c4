#!/usr/bin/env python3

"""
executor.py

Bounded worker pool used for parallel uploads.

Work is handed out in batches through map(); every item comes back as a
TaskResult so the caller decides what a failure means. With fail_fast set,
the first failing task stops the pool from starting anything still queued,
while tasks already running finish so their outcome is known.

A SIGINT/SIGTERM reaches all live pools through the process-wide
InterruptManager.
"""

from __future__ import annotations

import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Set, TypeVar

from s3archiver.logger import get_logger

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class TaskResult(Generic[R]):
    """Outcome of one item handed to the pool."""
    success: bool
    result: Optional[R] = None
    exception: Optional[BaseException] = None
    item: Optional[Any] = None

    @property
    def interrupted(self) -> bool:
        """True when the task never ran because the pool was stopped."""
        return isinstance(self.exception, InterruptedError)


class InterruptManager:
    """Tracks live pools so a signal handler can stop all of them at once."""

    def __init__(self):
        self._stop = threading.Event()
        self._pools: List[ManagedThreadPoolExecutor] = []
        self._pools_lock = threading.Lock()
        self.logger = get_logger(__name__)

    def register_executor(self, pool: ManagedThreadPoolExecutor) -> None:
        with self._pools_lock:
            if pool not in self._pools:
                self._pools.append(pool)

    def unregister_executor(self, pool: ManagedThreadPoolExecutor) -> None:
        with self._pools_lock:
            if pool in self._pools:
                self._pools.remove(pool)

    def interrupt_all(self) -> None:
        self.logger.warning("Interrupt signaled - no further uploads will be started")
        self._stop.set()
        with self._pools_lock:
            pools = list(self._pools)
        for pool in pools:
            pool.interrupt()

    def is_interrupted(self) -> bool:
        return self._stop.is_set()

    def get_executor_count(self) -> int:
        with self._pools_lock:
            return len(self._pools)

    def reset(self) -> None:
        self._stop.clear()
        with self._pools_lock:
            self._pools.clear()


_interrupt_manager = InterruptManager()


class ManagedThreadPoolExecutor:
    """
    ThreadPoolExecutor wrapper with stop handling and per-item results.

    Must be used as a context manager; leaving the block cancels whatever is
    still queued and waits for running tasks.
    """

    def __init__(
            self,
            max_workers: int,
            name: str = "Worker",
            progress_interval: int = 25,
            fail_fast: bool = False,
    ):
        self.logger = get_logger(__name__)
        self.max_workers = max(1, max_workers)
        self.name = name
        self.progress_interval = max(1, progress_interval)
        self.fail_fast = fail_fast
        self.interrupt_flag = threading.Event()
        self._executor: Optional[ThreadPoolExecutor] = None
        # queued or running futures; finished ones remove themselves
        self._pending: Set[Future] = set()
        self._pending_lock = threading.Lock()

    def __enter__(self) -> ManagedThreadPoolExecutor:
        self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix=self.name)
        _interrupt_manager.register_executor(self)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _interrupt_manager.unregister_executor(self)
        self.shutdown()
        return False

    def _stopped(self) -> bool:
        return self.interrupt_flag.is_set() or _interrupt_manager.is_interrupted()

    def _run(self, fn: Callable[[T], R], item: T) -> R:
        # the stop may have arrived while this task sat in the queue
        if self._stopped():
            raise InterruptedError(f"{self.name} stopped before task started")
        try:
            return fn(item)
        except Exception:
            if self.fail_fast:
                self.interrupt_flag.set()
            raise

    def submit(self, fn: Callable[[T], R], item: T) -> Future:
        if self._executor is None:
            raise RuntimeError("Executor not started. Use context manager.")
        if self._stopped():
            raise InterruptedError(f"{self.name} has been interrupted")

        with self._pending_lock:
            future = self._executor.submit(self._run, fn, item)
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def map(
            self,
            fn: Callable[[T], R],
            items: Iterable[T],
            increment_callback: Optional[Callable[[TaskResult[R]], None]] = None,
    ) -> List[TaskResult[R]]:
        """
        Run `fn` over `items` and return a TaskResult for every submitted item,
        in completion order.

        `increment_callback` is invoked on the calling thread as each result
        arrives. Items left unsubmitted after a stop have no result.
        """
        if self._executor is None:
            raise RuntimeError("Executor not started. Use context manager.")

        batch = list(items)
        results: List[TaskResult[R]] = []
        if not batch:
            return results

        submitted: Dict[Future, T] = {}
        for item in batch:
            if self._stopped():
                self.logger.warning(f"{self.name} stopped with {len(batch) - len(submitted)} item(s) unsubmitted")
                break
            try:
                submitted[self.submit(fn, item)] = item
            except InterruptedError:
                # a fail-fast task may stop the pool between the check above and submit
                break

        outstanding = set(submitted)
        try:
            while outstanding:
                done, outstanding = wait(outstanding, return_when=FIRST_COMPLETED)
                for future in done:
                    item = submitted[future]
                    try:
                        res = TaskResult(success=True, result=future.result(), item=item)
                    except Exception as e:
                        res = TaskResult(success=False, exception=e, item=item)
                    results.append(res)
                    if increment_callback is not None:
                        increment_callback(res)
                    if len(results) % self.progress_interval == 0:
                        self.logger.info(f"[{self.name}] {len(results)}/{len(batch)} done")
        except KeyboardInterrupt:
            self.logger.warning(f"{self.name} interrupted while waiting for results")
            self.interrupt_flag.set()
            raise
        finally:
            # done callbacks may still be pending when wait() returns
            with self._pending_lock:
                self._pending.difference_update(submitted)

        if len(results) % self.progress_interval != 0:
            self.logger.info(f"[{self.name}] {len(results)}/{len(batch)} done")
        return results

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is None:
            return
        with self._pending_lock:
            pending = list(self._pending)
            self._pending.clear()
        for future in pending:
            future.cancel()
        try:
            self._executor.shutdown(wait=wait, cancel_futures=True)
        finally:
            self._executor = None

    def interrupt(self) -> None:
        self.logger.warning(f"Stopping {self.name}...")
        self.interrupt_flag.set()


def create_managed_executor(
        max_workers: int,
        name: str = "Worker",
        progress_interval: int = 25,
        fail_fast: bool = False,
) -> ManagedThreadPoolExecutor:
    return ManagedThreadPoolExecutor(
        max_workers=max_workers,
        name=name,
        progress_interval=progress_interval,
        fail_fast=fail_fast,
    )


def get_interrupt_manager() -> InterruptManager:
    return _interrupt_manager
