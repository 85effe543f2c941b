"""Caching helpers.

Two layers:
  - on-disk JSON cache for raw source responses (two-level directory,
    atomic writes, optional max age)
  - TTLCache, an in-memory key → value store with per-entry expiry that is
    passed explicitly to the clients and the gap resolver
"""

import json
import os
import tempfile
import threading
import time
from pathlib import Path


# ── On-disk JSON cache ───────────────────────────────────────────────

def cache_path(cache_dir, identifier):
    """Two-level cache path: cache_dir/prefix/identifier.json"""
    # Use first 4 chars of identifier as prefix subdirectory
    prefix = identifier[:4] if len(identifier) >= 4 else identifier
    return Path(cache_dir) / prefix / f"{identifier}.json"


def read_cache(cache_dir, identifier, max_age_seconds=0):
    """Read cached JSON for an identifier. Returns the data or None."""
    path = cache_path(cache_dir, identifier)
    if not path.exists():
        return None
    if max_age_seconds > 0:
        age = time.time() - path.stat().st_mtime
        if age > max_age_seconds:
            return None
    try:
        return json.loads(path.read_text())
    except (json.JSONDecodeError, OSError):
        return None


def write_cache(cache_dir, identifier, data):
    """Atomically write JSON to cache."""
    write_json(cache_path(cache_dir, identifier), data)


def write_json(path, data, indent=None):
    """Atomically write JSON to an arbitrary path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    # Atomic write: write to temp file then rename
    fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=indent)
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


# ── In-memory TTL cache ──────────────────────────────────────────────

_MISSING = object()


class TTLCache:
    """Thread-safe in-memory cache with time-based eviction only.

    clock is injectable so tests can move time forward.
    """

    def __init__(self, default_ttl=3600, clock=time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._data = {}
        self._lock = threading.Lock()

    def get(self, key, default=None):
        with self._lock:
            item = self._data.get(key)
            if item is None:
                return default
            expires_at, value = item
            if self._clock() >= expires_at:
                del self._data[key]
                return default
            return value

    def set(self, key, value, ttl=None):
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._data[key] = (self._clock() + ttl, value)

    def get_or_fetch(self, key, fetch, ttl=None):
        """Return the cached value, or call fetch() and cache its result.

        fetch runs outside the lock; two threads missing the same key may
        both fetch, and the later result wins.  Exceptions are not cached.
        """
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value
        value = fetch()
        self.set(key, value, ttl)
        return value

    def invalidate(self, key):
        with self._lock:
            self._data.pop(key, None)

    def clear(self):
        with self._lock:
            self._data.clear()

    def purge_expired(self):
        """Drop every expired entry.  Returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, (exp, _) in self._data.items() if now >= exp]
            for k in expired:
                del self._data[k]
        return len(expired)

    def __len__(self):
        with self._lock:
            return len(self._data)

    def __contains__(self, key):
        return self.get(key, _MISSING) is not _MISSING
