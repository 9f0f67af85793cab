import threading
import time


class RenderCache:
    """Bounded TTL cache for rendered export documents.

    Expired entries are dropped lazily on read. When full, the oldest
    inserted entry is evicted (FIFO, reads do not refresh position).
    A non-positive TTL or capacity disables the cache entirely.
    """

    def __init__(self, max_entries=100, ttl_seconds=300, clock=time.time):
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._data = {}
        self._lock = threading.Lock()

    @property
    def enabled(self):
        return self.ttl_seconds > 0 and self.max_entries > 0

    def get(self, key):
        if not self.enabled:
            return None
        now = self.clock()
        with self._lock:
            entry = self._data.get(key)
            if not entry:
                return None
            expires_at, value = entry
            if expires_at <= now:
                self._data.pop(key, None)
                return None
            return value

    def set(self, key, value):
        if not self.enabled:
            return
        expires_at = self.clock() + self.ttl_seconds
        with self._lock:
            self._data.pop(key, None)
            self._data[key] = (expires_at, value)
            while len(self._data) > self.max_entries:
                oldest = next(iter(self._data))
                del self._data[oldest]
