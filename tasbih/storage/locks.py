import threading


class KeyedLocks:
    """One mutex per counter id.

    Locks exist only for ids a store has registered; looking up any other id
    returns None and leaves the registry untouched. The registry lock is only
    held long enough for the lookup, so work on different ids never waits on
    each other.
    """

    def __init__(self):
        self._registry_lock = threading.Lock()
        self._locks = {}

    def register(self, key):
        with self._registry_lock:
            return self._locks.setdefault(key, threading.Lock())

    def get(self, key):
        with self._registry_lock:
            return self._locks.get(key)

    def __len__(self):
        return len(self._locks)
