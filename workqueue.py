# workqueue.py
"""Level-triggered work queue feeding the reconciler.

Keys are (namespace, name). A key is queued at most once, and a key that is
re-added while a worker holds it waits until done() so two workers never
reconcile the same object concurrently.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Deque, Hashable, List, Optional, Set

from config import debug_enabled


class WorkQueue:
    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._queue: Deque[Hashable] = deque()
        self._dirty: Set[Hashable] = set()
        self._processing: Set[Hashable] = set()
        self._timers: List[threading.Timer] = []
        self._shutting_down = False

    def add(self, key: Hashable) -> None:
        with self._cond:
            if self._shutting_down or key in self._dirty:
                return
            self._dirty.add(key)
            if key in self._processing:
                return
            self._queue.append(key)
            self._cond.notify()

    def add_after(self, key: Hashable, delay: float) -> None:
        """Re-add after a fixed delay. Every retry waits the same amount."""
        if delay <= 0:
            self.add(key)
            return
        t = threading.Timer(delay, self.add, args=(key,))
        t.daemon = True
        with self._cond:
            if self._shutting_down:
                return
            self._timers = [x for x in self._timers if x.is_alive()]
            self._timers.append(t)
        t.start()

    def get(self, timeout: Optional[float] = None) -> Optional[Hashable]:
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while not self._queue and not self._shutting_down:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return None
                self._cond.wait(remaining)
            if self._shutting_down:
                return None
            key = self._queue.popleft()
            self._processing.add(key)
            self._dirty.discard(key)
            return key

    def done(self, key: Hashable) -> None:
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty:
                self._queue.append(key)
                self._cond.notify()

    def shutdown(self) -> None:
        with self._cond:
            self._shutting_down = True
            timers, self._timers = self._timers, []
            self._cond.notify_all()
        for t in timers:
            t.cancel()

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)


def run_worker(queue: WorkQueue, reconciler, requeue_seconds: float, stop_event: threading.Event) -> None:
    """Pull keys until shutdown; requeue with a fixed delay when asked to."""
    while not stop_event.is_set():
        key = queue.get(timeout=1.0)
        if key is None:
            if queue.shutting_down:
                return
            continue
        try:
            result = reconciler.reconcile(*key)
            requeue = result.requeue
        except Exception as e:
            print(f"[workqueue] reconcile {key[0]}/{key[1]} raised: {e}")
            requeue = True
        finally:
            queue.done(key)
        if requeue:
            if debug_enabled():
                print(f"[workqueue] requeue {key[0]}/{key[1]} in {requeue_seconds}s")
            queue.add_after(key, requeue_seconds)
