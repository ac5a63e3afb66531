"""Per-cell mutual exclusion for the count-then-insert admission step.

Inside one process this serializes every admission on the same
(package, date, time) cell. Across processes the admission transaction also
takes a row lock on the package (SELECT ... FOR UPDATE).
"""
import threading
from contextlib import contextmanager
from datetime import date
from weakref import WeakValueDictionary


class _CellLock:
    __slots__ = ("lock", "__weakref__")

    def __init__(self):
        self.lock = threading.Lock()


_guard = threading.Lock()
_locks = WeakValueDictionary()


def _lock_for(key) -> _CellLock:
    with _guard:
        cell = _locks.get(key)
        if cell is None:
            cell = _CellLock()
            _locks[key] = cell
        return cell


@contextmanager
def cell_lock(package_id: int, day: date, time: str):
    cell = _lock_for((package_id, day.isoformat(), time))
    with cell.lock:
        yield
