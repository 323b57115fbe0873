"""
Advisory locks on session identifiers, held in Redis.

A lock is a key (``prefix + session_id + '.lock'``) whose value is a random
token generated for each acquisition. Acquisition is a bounded spin-wait on
``SET NX``. Release runs a server-side script that deletes the key only if it
still holds our token, so a holder whose lock has expired or been reclaimed
cannot delete the lock of whoever holds it now.
"""

import math
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generator, Optional

import logging

from .exceptions import LockAlreadyHeld, LockTimeout
from .store import Redis, unavailable_on_failure

logger = logging.getLogger(__name__)

LOCK_SUFFIX = '.lock'

COMPARE_AND_DELETE = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
else
    return 0
end
"""


def _generate_token() -> str:
    return uuid.uuid4().hex


@dataclass
class LockState:
    """What a single :class:`.LockManager` knows about the lock it holds."""

    held: bool = False
    token: Optional[str] = None
    lock_key: Optional[str] = None

    def clear(self) -> None:
        self.held = False
        self.token = None
        self.lock_key = None


class LockManager(object):
    """
    Acquires and releases a lock on one session identifier at a time.

    Each instance owns its own :class:`.LockState`; there is no shared table
    of held locks. Instances are meant to be used by one request (one thread)
    at a time.
    """

    def __init__(self, redis: Redis, prefix: str = '',
                 lock_ttl: Optional[int] = None) -> None:
        """
        Parameters
        ----------
        redis : :class:`redis.StrictRedis`
        prefix : str
            Prepended to every lock key.
        lock_ttl : int or None
            If set, lock keys expire after this many seconds even if they are
            never released.

        """
        self._redis = redis
        self._prefix = prefix
        self._lock_ttl = lock_ttl
        self._state = LockState()
        self._compare_and_delete = redis.register_script(COMPARE_AND_DELETE)

    @property
    def held(self) -> bool:
        return self._state.held

    @property
    def token(self) -> Optional[str]:
        return self._state.token

    @property
    def lock_key(self) -> Optional[str]:
        return self._state.lock_key

    def key_for(self, session_id: str) -> str:
        """Get the lock key for ``session_id``."""
        return self._prefix + session_id + LOCK_SUFFIX

    def acquire(self, session_id: str, max_wait: float,
                spin_wait: int) -> bool:
        """
        Try to acquire the lock on ``session_id``, waiting up to ``max_wait``.

        Parameters
        ----------
        session_id : str
        max_wait : float
            Maximum time to wait for the lock, in seconds.
        spin_wait : int
            Time to sleep between attempts, in microseconds.

        Returns
        -------
        bool
            True if the lock was acquired. If False, nothing is recorded.

        Raises
        ------
        :class:`.LockAlreadyHeld`
            If this manager is still holding a lock.
        :class:`.StoreUnavailable`
            If Redis cannot be reached. Not retried.

        """
        if self._state.held:
            raise LockAlreadyHeld(f'Already holding {self._state.lock_key}')

        key = self.key_for(session_id)
        token = _generate_token()
        attempts = max(1, math.ceil(max_wait * 1000000 / spin_wait))

        for attempt in range(attempts):
            with unavailable_on_failure('acquire lock'):
                success = self._redis.set(key, token, nx=True,
                                          ex=self._lock_ttl)
            if success:
                self._state.held = True
                self._state.token = token
                self._state.lock_key = key
                logger.debug('Acquired %s after %i attempt(s)', key,
                             attempt + 1)
                return True
            if attempt < attempts - 1:
                time.sleep(spin_wait / 1000000)

        logger.info('Gave up on %s after %i attempts', key, attempts)
        return False

    def release(self) -> bool:
        """
        Release the held lock, if it still belongs to us.

        Local state is cleared whether or not the key was deleted, and even if
        Redis cannot be reached.

        Returns
        -------
        bool
            True if the lock key was deleted; False if nothing was held or the
            key no longer carried our token.

        """
        if not self._state.held:
            return False

        key, token = self._state.lock_key, self._state.token
        try:
            with unavailable_on_failure('release lock'):
                deleted = self._compare_and_delete(keys=[key], args=[token])
        finally:
            self._state.clear()

        if not deleted:
            logger.warning('Lock %s expired or was taken over before it was'
                           ' released', key)
            return False
        logger.debug('Released %s', key)
        return True

    @contextmanager
    def hold(self, session_id: str, max_wait: float,
             spin_wait: int) -> Generator['LockManager', None, None]:
        """
        Hold the lock on ``session_id`` for the duration of a ``with`` block.

        Raises
        ------
        :class:`.LockTimeout`
            If the lock cannot be acquired within ``max_wait`` seconds.

        """
        if not self.acquire(session_id, max_wait, spin_wait):
            raise LockTimeout(f'Could not lock {session_id} within'
                              f' {max_wait} seconds')
        try:
            yield self
        finally:
            self.release()
