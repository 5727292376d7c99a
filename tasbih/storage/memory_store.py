import threading

from ..counter import Counter, IncrementOutcome, new_counter_id
from ..errors import NotFound
from .locks import KeyedLocks


class MemoryCounterStore:
    """In-process counter store.

    Every mutation runs under the counter's own lock; callers only ever get
    deep copies back, never the stored objects.
    """

    def __init__(self):
        self._counters = {}
        self._create_lock = threading.Lock()
        self._locks = KeyedLocks()

    def _require(self, counter_id):
        counter = self._counters.get(counter_id)
        if counter is None:
            raise NotFound(f"counter {counter_id} not found")
        return counter

    def _lock(self, counter_id):
        lock = self._locks.get(counter_id)
        if lock is None:
            raise NotFound(f"counter {counter_id} not found")
        return lock

    def create(self, goal, created_by):
        with self._create_lock:
            counter_id = new_counter_id()
            while counter_id in self._counters:
                counter_id = new_counter_id()
            self._counters[counter_id] = Counter(counter_id, goal, created_by)
            self._locks.register(counter_id)
        return counter_id

    def get(self, counter_id):
        with self._lock(counter_id):
            return self._require(counter_id).copy()

    def add_participant(self, counter_id, name):
        with self._lock(counter_id):
            counter = self._require(counter_id)
            counter.add_participant(name)
            return counter.copy()

    def atomic_increment(self, counter_id, name):
        with self._lock(counter_id):
            counter = self._require(counter_id)
            transitioned = counter.increment(name)
            return IncrementOutcome(counter.copy(), transitioned)

    def reset(self, counter_id, requesting_name):
        with self._lock(counter_id):
            counter = self._require(counter_id)
            counter.reset(requesting_name)
            return counter.copy()

    def counter_ids(self):
        return list(self._counters)

    def close(self):
        pass
