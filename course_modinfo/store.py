"""
A key + version addressed store on top of a Django cache, with advisory
per-key locks.

Every entry is saved together with the version it was built for. Reads
name the minimum version they will accept and get None back for a missing
or older entry. ``invalidate`` records a per-key version floor next to the
entry, so an entry written by a build that started before the invalidation
is still rejected when it lands.

Locks use ``cache.add``, which only succeeds when the key is absent, and
expire on their own so that a crashed holder cannot block a course forever.
"""
import logging
import threading
import time
from contextlib import contextmanager
from uuid import uuid4

from django.core.cache import caches

from . import config
from .exceptions import LockTimeout
from .monitoring import monitor_lock_timeout

log = logging.getLogger(__name__)


class VersionedStore:
    """
    Versioned payload storage and per-key locking.

    The clock and sleep functions are injectable so that lock waits can be
    exercised in tests without real delays.
    """

    def __init__(
        self,
        cache=None,
        key_prefix=None,
        timeout=None,
        lock_expiry=None,
        lock_wait=None,
        poll_interval=None,
        clock=time.monotonic,
        sleep=time.sleep,
    ):
        self._cache = cache if cache is not None else caches[config.get_setting(config.CACHE_NAME)]
        self.key_prefix = key_prefix or config.get_setting(config.CACHE_KEY_PREFIX)
        self.timeout = timeout if timeout is not None else config.get_setting(config.CACHE_TIMEOUT)
        self.lock_expiry = lock_expiry if lock_expiry is not None else config.get_setting(config.LOCK_EXPIRY)
        self.lock_wait = lock_wait if lock_wait is not None else config.get_setting(config.LOCK_WAIT)
        self.poll_interval = (
            poll_interval if poll_interval is not None else config.get_setting(config.LOCK_POLL_INTERVAL)
        )
        self._clock = clock
        self._sleep = sleep
        # Locks are held per thread; a process-wide store is shared by request threads.
        self._held = threading.local()

    def _data_key(self, key):
        return f'{self.key_prefix}.data.{key}'

    def _floor_key(self, key):
        return f'{self.key_prefix}.floor.{key}'

    def _lock_key(self, key):
        return f'{self.key_prefix}.lock.{key}'

    def _held_locks(self):
        if not hasattr(self._held, 'locks'):
            self._held.locks = {}
        return self._held.locks

    def get_floor(self, key):
        """
        Returns the minimum version currently accepted for key.
        """
        return self._cache.get(self._floor_key(key), 0)

    def get_versioned(self, key, min_version):
        """
        Returns the payload stored for key, or None when there is no entry
        or when its version is lower than min_version or the key's floor.
        """
        entry = self._cache.get(self._data_key(key))
        if entry is None:
            return None
        required = max(min_version or 0, self.get_floor(key))
        if entry['version'] < required:
            log.debug(
                'Stale entry for %s: version %s, required %s.', key, entry['version'], required
            )
            return None
        return entry['data']

    def set_versioned(self, key, version, payload):
        """
        Stores payload under key for the given version, replacing any
        existing entry.
        """
        self._cache.set(self._data_key(key), {'version': version, 'data': payload}, self.timeout)

    def peek(self, key):
        """
        Returns the stored payload for key regardless of its version, or None.
        """
        entry = self._cache.get(self._data_key(key))
        return entry['data'] if entry is not None else None

    def invalidate(self, key, min_version=None):
        """
        Marks the entry for key stale without removing it.

        The floor is raised to min_version, or to one past the stored
        version when min_version is not given. Returns the resulting floor.

        The read and the write of the floor are not atomic, so of two
        concurrent calls for one key the lower floor may win. Purges bump
        the course cacherev in the data source before calling this, and
        builds never store below that cacherev, so a lost floor only costs
        the late-write rejection for that one race.
        """
        floor = self.get_floor(key)
        if min_version is None:
            entry = self._cache.get(self._data_key(key))
            current = entry['version'] if entry is not None else 0
            min_version = max(current, floor) + 1
        floor = max(floor, min_version)
        self._cache.set(self._floor_key(key), floor, None)
        return floor

    def delete(self, key):
        """
        Removes the entry for key. The version floor is kept.
        """
        self._cache.delete(self._data_key(key))

    def acquire_lock(self, key):
        """
        Acquires the lock for key, waiting up to ``lock_wait`` seconds.

        A thread that already holds the lock acquires it again without
        waiting; it must then release it as many times.

        Raises:
            LockTimeout: when the lock could not be acquired in time
        """
        held = self._held_locks()
        if key in held:
            token, count = held[key]
            if self._cache.get(self._lock_key(key)) == token:
                held[key] = (token, count + 1)
                return True
            # Our lock expired underneath us.
            del held[key]

        token = uuid4().hex
        deadline = self._clock() + self.lock_wait
        contended = False
        while not self._cache.add(self._lock_key(key), token, self.lock_expiry):
            if not contended:
                log.info("Lock on '%s' is held elsewhere, waiting.", key)
                contended = True
            if self._clock() >= deadline:
                log.warning("Timed out waiting for the lock on '%s'.", key)
                monitor_lock_timeout(key, self.lock_wait)
                raise LockTimeout(key, self.lock_wait)
            self._sleep(self.poll_interval)
        held[key] = (token, 1)
        return True

    def release_lock(self, key):
        """
        Releases the lock for key. Returns False if this thread did not hold it.
        """
        held = self._held_locks()
        if key not in held:
            return False
        token, count = held[key]
        if count > 1:
            held[key] = (token, count - 1)
            return True
        del held[key]
        if self._cache.get(self._lock_key(key)) != token:
            log.warning("Lock on '%s' expired before it was released.", key)
            return False
        self._cache.delete(self._lock_key(key))
        return True

    def check_lock_state(self, key):
        """
        Returns True if this thread currently holds the lock for key.
        """
        held = self._held_locks()
        if key not in held:
            return False
        token, _count = held[key]
        return self._cache.get(self._lock_key(key)) == token

    @contextmanager
    def lock(self, key):
        """
        Holds the lock for key for the duration of the with block.
        """
        self.acquire_lock(key)
        try:
            yield
        finally:
            self.release_lock(key)
