"""
Main (UI) thread task queue.

Background threads never touch the display directly: they post callables
here and the thread that owns the window runs them from its loop.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import Executor, Future
from typing import Callable, Optional


class MainThreadExecutor(Executor):
    """
    Executor whose tasks run on the owner thread when it calls run_pending().

    The owner is the thread that created the executor unless given.
    """

    def __init__(self, owner: Optional[threading.Thread] = None):
        self._owner = owner or threading.current_thread()
        self._queue: "queue.Queue[Callable[[], None]]" = queue.Queue()
        self._shutdown = False
        self._shutdown_lock = threading.Lock()

    @property
    def owner(self) -> threading.Thread:
        return self._owner

    def is_ui_thread(self) -> bool:
        return threading.current_thread() is self._owner

    def post(self, fn: Callable[[], None]) -> None:
        """Queue fn to run on the UI thread. Dropped after shutdown."""
        with self._shutdown_lock:
            if self._shutdown:
                logging.debug("UI task posted after shutdown; dropped")
                return
            self._queue.put(fn)

    def submit(self, fn, /, *args, **kwargs) -> Future:
        future: Future = Future()

        def task() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(fn(*args, **kwargs))
            except BaseException as e:
                future.set_exception(e)

        with self._shutdown_lock:
            if self._shutdown:
                raise RuntimeError("cannot schedule new futures after shutdown")
            self._queue.put(task)
        return future

    def run_pending(self, timeout: float = 0.0) -> int:
        """
        Run queued tasks on the calling (owner) thread.

        Waits up to `timeout` seconds for the first task, then drains what is
        queued without waiting. Returns the number of tasks run.
        """
        if not self.is_ui_thread():
            raise RuntimeError("run_pending() must be called from the UI thread")

        ran = 0
        deadline = time.monotonic() + timeout
        while True:
            try:
                if ran == 0 and timeout > 0:
                    task = self._queue.get(timeout=max(0.0, deadline - time.monotonic()))
                else:
                    task = self._queue.get_nowait()
            except queue.Empty:
                return ran
            try:
                task()
            except Exception:
                logging.exception("UI task failed")
            ran += 1

    def shutdown(self, wait: bool = True, *, cancel_futures: bool = False) -> None:
        with self._shutdown_lock:
            self._shutdown = True
        if cancel_futures:
            while True:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    break
