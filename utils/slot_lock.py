"""
Per-slot critical sections.

Capacity checks and waitlist position assignment are read-modify-write
sequences; every one of them runs inside ``slot_lock(slot_id)``. Locks are
keyed by slot id so two different slots never contend, and they are
re-entrant so a service already holding a slot's lock may call another
service that locks the same slot. A lock lives only while some thread holds
or waits on it.
"""
from contextlib import contextmanager
import logging
import threading
import weakref

from flask import current_app, has_app_context

from services.errors import ConcurrencyConflictError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0

_REGISTRY_LOCK = threading.Lock()
_SLOT_LOCKS = weakref.WeakValueDictionary()


def _lock_for(slot_id: int) -> threading.RLock:
    with _REGISTRY_LOCK:
        lock = _SLOT_LOCKS.get(slot_id)
        if lock is None:
            lock = threading.RLock()
            _SLOT_LOCKS[slot_id] = lock
        return lock


def _timeout() -> float:
    if has_app_context():
        return float(current_app.config.get("SLOT_LOCK_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS))
    return DEFAULT_TIMEOUT_SECONDS


@contextmanager
def slot_locks(*slot_ids, timeout=None):
    """
    Hold the locks of every given slot, acquired in ascending id order.

    Raises ConcurrencyConflictError if any lock cannot be acquired within
    ``timeout`` seconds; locks taken so far are released first.
    """
    wait = _timeout() if timeout is None else timeout
    ordered = sorted({int(s) for s in slot_ids if s is not None})
    held = []
    try:
        for slot_id in ordered:
            lock = _lock_for(slot_id)
            if not lock.acquire(timeout=wait):
                logger.warning("slot_lock_timeout slot_id=%s timeout=%s", slot_id, wait)
                raise ConcurrencyConflictError(slot_id=slot_id)
            held.append(lock)
        yield ordered
    finally:
        for lock in reversed(held):
            lock.release()


@contextmanager
def slot_lock(slot_id: int, timeout=None):
    with slot_locks(slot_id, timeout=timeout):
        yield slot_id
