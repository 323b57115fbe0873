"""
Redis-backed session storage with per-session locking.

This package stores serialized web sessions in Redis, and guarantees that at
most one request at a time (across processes and hosts) works with a given
session. Reading a session takes a lock on its identifier; the lock is held
until the handler is closed.

Quick start
-----------

.. code-block:: python

   from session_handler import HandlerConfig, SessionHandler, get_redis

   redis = get_redis('localhost', 6379)
   with SessionHandler(redis, HandlerConfig(key_prefix='sess_')) as handler:
       data = handler.read(session_id)
       if data is None:
           ...     # Someone else held the lock for too long.
       handler.write(session_id, data + b'...')

Flask applications can install :class:`.ext.SessionHandlerExtension` and use
:func:`.ext.current_handler` to get a handler that is closed automatically at
the end of each request.
"""

from .exceptions import SessionHandlerError, StoreUnavailable, LockTimeout, \
    LockAlreadyHeld, LockNotHeld, ConfigurationError
from .handler import HandlerConfig, SessionHandler
from .lock import LockManager, LockState
from .store import get_redis
