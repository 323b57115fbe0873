"""
Session lifecycle handler backed by Redis, with per-session locking.

A :class:`.SessionHandler` follows the usual save-handler contract (``open``,
``read``, ``write``, ``close``, ``destroy``, ``gc``). Reading a session takes
the lock on its identifier, and the lock is kept until the handler is closed,
so at most one request at a time can work with a given session.

.. code-block:: python

   with SessionHandler(redis, HandlerConfig(key_prefix='sess_')) as handler:
       data = handler.read(session_id)
       if data is None:
           ...     # Session is locked by someone else; could not read.
       handler.write(session_id, new_data)

"""

from typing import Any, Mapping, NamedTuple, Optional, Union

import logging

from .exceptions import ConfigurationError, LockNotHeld
from .lock import LockManager
from .store import Redis, unavailable_on_failure

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = 'session_key'
DEFAULT_TTL = 7200
DEFAULT_SPIN_WAIT = 200000
DEFAULT_MAX_WAIT = 20.0
MAX_WAIT_FACTOR = 0.7
"""Share of the request time budget that may be spent waiting for a lock."""


def _as_int(config: Mapping[str, Any], key: str, default: int) -> int:
    value = config.get(key)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f'{key} must be an integer, not {value!r}') \
            from e


def _as_bool(config: Mapping[str, Any], key: str) -> bool:
    value = config.get(key, False)
    if isinstance(value, str):
        return value.lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


def max_wait_for(execution_time: Optional[Union[str, float]]) -> float:
    """
    Get the lock wait budget for a request time budget, in seconds.

    If there is no time budget (missing, empty, or zero), fall back to
    :data:`DEFAULT_MAX_WAIT`.
    """
    if not execution_time:
        return DEFAULT_MAX_WAIT
    try:
        seconds = float(execution_time)
    except (TypeError, ValueError) as e:
        raise ConfigurationError('MAX_EXECUTION_TIME must be a number, not'
                                 f' {execution_time!r}') from e
    if not seconds:
        return DEFAULT_MAX_WAIT
    return seconds * MAX_WAIT_FACTOR


class HandlerConfig(NamedTuple):
    """Configuration for a :class:`.SessionHandler`."""

    key_prefix: str = DEFAULT_PREFIX
    """Prepended to session identifiers to get store keys."""

    ttl: int = DEFAULT_TTL
    """Session lifetime in seconds. Zero or less means no expiry."""

    spin_wait: int = DEFAULT_SPIN_WAIT
    """Time between attempts to acquire a lock, in microseconds."""

    max_wait: float = DEFAULT_MAX_WAIT
    """Maximum time to wait for a lock, in seconds."""

    lock_ttl: Optional[int] = None
    """If set, lock keys expire on their own after this many seconds."""

    strict_writes: bool = False
    """If True, :meth:`SessionHandler.write` requires the session lock."""

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'HandlerConfig':
        """
        Build a :class:`.HandlerConfig` from a Flask-style config mapping.

        Values may be strings, as they are when read from the environment.
        """
        lock_ttl = _as_int(config, 'SESSION_LOCK_TTL', 0)
        handler_config = cls(
            key_prefix=config.get('SESSION_KEY_PREFIX', DEFAULT_PREFIX) or '',
            ttl=_as_int(config, 'SESSION_DURATION', DEFAULT_TTL),
            spin_wait=_as_int(config, 'SESSION_LOCK_SPIN_WAIT',
                              DEFAULT_SPIN_WAIT),
            max_wait=max_wait_for(config.get('MAX_EXECUTION_TIME')),
            lock_ttl=lock_ttl if lock_ttl > 0 else None,
            strict_writes=_as_bool(config, 'SESSION_STRICT_WRITES')
        )
        handler_config.validate()
        return handler_config

    def validate(self) -> None:
        """Raise :class:`.ConfigurationError` if a value is out of range."""
        if self.spin_wait <= 0:
            raise ConfigurationError('Spin wait must be a positive number of'
                                     ' microseconds')
        if self.max_wait < 0:
            raise ConfigurationError('Max wait must not be negative')


class SessionHandler(object):
    """
    Reads and writes serialized sessions, holding a lock while in use.

    The handler is either unlocked (initially, and after :meth:`close` or
    :meth:`destroy`) or locked (after a successful :meth:`read`). Use it as a
    context manager, or call :meth:`close` when the request is done; if
    neither happens, the lock is released when the handler is garbage
    collected.
    """

    def __init__(self, redis: Redis,
                 config: Optional[HandlerConfig] = None) -> None:
        if config is None:
            config = HandlerConfig()
        config.validate()
        self._redis = redis
        self._prefix = config.key_prefix
        self._ttl = config.ttl
        self._spin_wait = config.spin_wait
        self._max_wait = config.max_wait
        self._strict_writes = config.strict_writes
        self._lock = LockManager(redis, config.key_prefix,
                                 lock_ttl=config.lock_ttl)

    def __enter__(self) -> 'SessionHandler':
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __del__(self) -> None:
        lock: Optional[LockManager] = getattr(self, '_lock', None)
        if lock is None or not lock.held:
            return
        try:
            self.close()
        except Exception as e:
            logger.error('Failed to release %s on teardown: %s',
                         lock.lock_key, e)

    @property
    def locked(self) -> bool:
        """Whether this handler currently holds a session lock."""
        return self._lock.held

    @property
    def ttl(self) -> int:
        return self._ttl

    @property
    def max_wait(self) -> float:
        return self._max_wait

    def set_ttl(self, ttl: int) -> None:
        """Set the session lifetime in seconds; zero or less never expires."""
        self._ttl = int(ttl)

    def get_max_wait(self) -> float:
        """Get the maximum time to wait for a session lock, in seconds."""
        return self._max_wait

    def set_max_wait(self, max_wait: float) -> None:
        """Set the maximum time to wait for a session lock, in seconds."""
        if max_wait < 0:
            raise ConfigurationError('Max wait must not be negative')
        self._max_wait = max_wait

    def key_for(self, session_id: str) -> str:
        """Get the store key for ``session_id``."""
        return self._prefix + session_id

    def open(self, save_path: str, session_name: str) -> bool:
        return True

    def read(self, session_id: str) -> Optional[bytes]:
        """
        Lock the session, and load its serialized data.

        Parameters
        ----------
        session_id : str

        Returns
        -------
        bytes or None
            The stored session data, or ``b''`` if there is none. ``None`` if
            the session lock could not be acquired in time.

        Raises
        ------
        :class:`.StoreUnavailable`

        """
        if not self._lock.held:
            if not self._lock.acquire(session_id, self._max_wait,
                                      self._spin_wait):
                logger.info('Session %s is locked; could not read',
                            session_id)
                return None

        with unavailable_on_failure('read session'):
            data: Optional[bytes] = self._redis.get(self.key_for(session_id))
        return data if data is not None else b''

    def write(self, session_id: str, data: Union[str, bytes]) -> bool:
        """
        Store serialized session data, with the configured lifetime.

        Raises
        ------
        :class:`.LockNotHeld`
            If strict writes are enabled and this handler does not hold the
            lock on ``session_id``.
        :class:`.StoreUnavailable`

        """
        if self._strict_writes \
                and self._lock.lock_key != self._lock.key_for(session_id):
            raise LockNotHeld(f'Session {session_id} is not locked')

        key = self.key_for(session_id)
        with unavailable_on_failure('write session'):
            if self._ttl > 0:
                self._redis.set(key, data, ex=self._ttl)
            else:
                self._redis.set(key, data)
        return True

    def close(self) -> bool:
        """Release the session lock, if held."""
        if self._lock.held:
            self._lock.release()
        return True

    def destroy(self, session_id: str) -> bool:
        """Delete the session data, and release the session lock."""
        try:
            with unavailable_on_failure('destroy session'):
                self._redis.delete(self.key_for(session_id))
        finally:
            self.close()
        return True

    def gc(self, max_lifetime: int) -> bool:
        """Sessions expire on their own in Redis; nothing to collect."""
        return True
