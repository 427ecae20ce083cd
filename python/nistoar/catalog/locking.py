"""
A reader/writer lock for guarding the in-memory record store.

The lock allows any number of simultaneous readers (e.g. searches and index builds) or a single
writer (a reload).  It prefers writers:  once a writer is waiting, new readers are held back until
the writer has finished, so that a reload is never starved by a steady stream of searches.

The easiest way to use the lock is via the with statement:

.. code-block:: python

   lock = ReadWriteLock()
   with lock.shared():
       for rec in records:
           ...

   with lock.exclusive():
       records = newrecords
"""
import threading
from contextlib import contextmanager

__all__ = [ 'ReadWriteLock' ]

class ReadWriteLock(object):
    """
    a lock that can be held in a shared mode by many threads at once or in an exclusive mode by
    one thread.  The lock is not reentrant:  a thread holding it (in either mode) must not try to
    acquire it again.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False
        self._writers_waiting = 0

    @property
    def readers(self) -> int:
        """
        the number of threads currently holding the lock in shared mode
        """
        return self._readers

    @property
    def writing(self) -> bool:
        """
        True if a thread currently holds the lock in exclusive mode
        """
        return self._writing

    def acquire_shared(self):
        """
        acquire the lock in shared mode, blocking while a writer holds or is waiting for it
        """
        with self._cond:
            while self._writing or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_shared(self):
        """
        release a shared hold on the lock
        """
        with self._cond:
            if self._readers <= 0:
                raise RuntimeError("release_shared(): lock is not held in shared mode")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_exclusive(self):
        """
        acquire the lock in exclusive mode, blocking until all current readers have released it
        """
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writing or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writing = True

    def release_exclusive(self):
        """
        release an exclusive hold on the lock
        """
        with self._cond:
            if not self._writing:
                raise RuntimeError("release_exclusive(): lock is not held in exclusive mode")
            self._writing = False
            self._cond.notify_all()

    @contextmanager
    def shared(self):
        """
        a context manager that holds the lock in shared mode
        """
        self.acquire_shared()
        try:
            yield self
        finally:
            self.release_shared()

    @contextmanager
    def exclusive(self):
        """
        a context manager that holds the lock in exclusive mode
        """
        self.acquire_exclusive()
        try:
            yield self
        finally:
            self.release_exclusive()
