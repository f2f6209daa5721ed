"""
Finalization pipeline for rendered images.

Decouples compute-bound program execution from the I/O-bound image
encode-and-write, so job N+1 can start before job N's image is on disk.

Producer (the driver thread) submits SaveTasks; N worker threads poll a
shared FIFO queue. With zero workers the pipeline is synchronous and
submit() writes in-line.

Shutdown contract:
- request_shutdown() sets a flag exactly once
- workers exit only when the flag is set AND the queue is empty
- no submitted task is ever dropped
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from flcmd.backend import ComputeBackend, PixelBuffer

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.1


@dataclass
class SaveTask:
    """A rendered buffer waiting to be written to disk.

    The buffer is owned by whoever holds the task. The device is shared
    and only used to read the pixels back.
    """

    buffer: PixelBuffer
    device: ComputeBackend
    source_path: Path
    dest_path: Path


class FinalizationPipeline:
    """
    Bounded-concurrency image writer.

    Usage:
        pipeline = FinalizationPipeline(worker_count=2)
        pipeline.start()
        pipeline.submit(task)
        ...
        pipeline.drain()
    """

    def __init__(self, worker_count: int = 0, poll_interval: float = DEFAULT_POLL_INTERVAL):
        if worker_count < 0:
            raise ValueError(f"worker_count must be >= 0, got {worker_count}")
        self.worker_count = worker_count
        self.poll_interval = poll_interval

        self._queue: "queue.Queue[SaveTask]" = queue.Queue()
        self._shutdown = threading.Event()
        self._lock = threading.Lock()
        self._workers: list[threading.Thread] = []

        self.items_produced = 0
        self.items_consumed = 0
        self.items_skipped = 0
        self.items_failed = 0

    @property
    def asynchronous(self) -> bool:
        return self.worker_count > 0

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown.is_set()

    @property
    def live_workers(self) -> int:
        return sum(1 for w in self._workers if w.is_alive())

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        """Spawn the worker threads. No-op in synchronous mode."""
        if self._workers:
            raise RuntimeError("Pipeline already started")
        for worker_id in range(self.worker_count):
            thread = threading.Thread(
                target=self._worker_loop,
                args=(worker_id,),
                name=f"flcmd-save-{worker_id}",
                daemon=True,
            )
            self._workers.append(thread)
            thread.start()
        if self.worker_count:
            logger.debug(f"Started {self.worker_count} save worker(s)")

    def enqueue(self, task: SaveTask) -> None:
        """Queue a task. Never blocks; ownership of the buffer moves to the pipeline."""
        if self._shutdown.is_set():
            raise RuntimeError("Cannot enqueue after shutdown was requested")
        with self._lock:
            self.items_produced += 1
        self._queue.put_nowait(task)

    def submit(self, task: SaveTask) -> None:
        """Queue the task, or write it right away when there are no workers."""
        if self.asynchronous:
            self.enqueue(task)
            return

        with self._lock:
            self.items_produced += 1
        try:
            self._write(task)
        finally:
            task.buffer.release()
        with self._lock:
            self.items_consumed += 1

    def request_shutdown(self) -> None:
        """Tell workers to exit once the queue is empty. Idempotent."""
        if not self._shutdown.is_set():
            logger.debug(f"Shutdown requested with {self.pending} task(s) pending")
            self._shutdown.set()

    def join(self, timeout: Optional[float] = None) -> None:
        for thread in self._workers:
            thread.join(timeout)

    def drain(self) -> None:
        """Request shutdown and wait until every queued task is processed."""
        self.request_shutdown()
        self.join()
        logger.info(
            f"[save] {self.items_consumed}/{self.items_produced} image(s) written"
            + (f", {self.items_skipped} skipped" if self.items_skipped else "")
            + (f", {self.items_failed} failed" if self.items_failed else "")
        )

    def _worker_loop(self, worker_id: int) -> None:
        while True:
            # Read the flag before looking at the queue: once it is set every
            # enqueue has already happened, so an empty queue really is final.
            exiting = self._shutdown.is_set()
            try:
                task = self._queue.get_nowait()
            except queue.Empty:
                if exiting:
                    return
                time.sleep(self.poll_interval)
                continue

            try:
                self._process(worker_id, task)
            finally:
                self._queue.task_done()

    def _process(self, worker_id: int, task: SaveTask) -> None:
        if task.buffer.released:
            logger.error(f"Buffer from file {task.source_path.name} is released. Skipping")
            with self._lock:
                self.items_skipped += 1
            return

        with self._lock:
            current = self.items_consumed + self.items_failed + self.items_skipped + 1
            total = self.items_produced
        logger.info(
            f"[W:{worker_id} {current}/{total}]Saving File: "
            f"{task.source_path.name} => {task.dest_path.name}"
        )

        try:
            self._write(task)
        except Exception:
            logger.error(f"Could not save {task.dest_path}", exc_info=True)
            with self._lock:
                self.items_failed += 1
            return
        finally:
            task.buffer.release()

        with self._lock:
            self.items_consumed += 1

    @staticmethod
    def _write(task: SaveTask) -> None:
        task.dest_path.parent.mkdir(parents=True, exist_ok=True)
        task.device.write_image(task.buffer, task.dest_path)
