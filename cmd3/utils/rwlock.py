"""
Reader-writer lock for cmd3.

Many readers may hold the lock together; a writer holds it alone. Once a
writer is waiting, new readers queue behind it so registration cannot starve
under a steady stream of lookups.
"""

import threading
from contextlib import contextmanager


class ReadWriteLock:
    """
    A writer-preferring reader-writer lock.

    Usage:
        lock = ReadWriteLock()
        with lock.read_locked():
            ...  # concurrent with other readers
        with lock.write_locked():
            ...  # exclusive
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    def acquire_read(self):
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1

    def release_read(self):
        with self._cond:
            if self._readers <= 0:
                raise RuntimeError("release_read() without matching acquire_read()")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self):
        with self._cond:
            self._waiting_writers += 1
            acquired = False
            try:
                while self._writer or self._readers:
                    self._cond.wait()
                acquired = True
            finally:
                self._waiting_writers -= 1
                if not acquired:
                    # readers queued behind this writer may proceed now
                    self._cond.notify_all()
            self._writer = True

    def release_write(self):
        with self._cond:
            if not self._writer:
                raise RuntimeError("release_write() without matching acquire_write()")
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self):
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self):
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()

    @property
    def readers(self) -> int:
        """Number of readers currently holding the lock"""
        return self._readers

    @property
    def write_held(self) -> bool:
        return self._writer
