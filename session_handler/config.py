"""Flask configuration for the Redis session handler."""

import os

REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = os.environ.get('REDIS_PORT', '6379')
REDIS_DATABASE = os.environ.get('REDIS_DATABASE', '0')
REDIS_CLUSTER = os.environ.get('REDIS_CLUSTER', '0')
"""If ``'1'``, ``REDIS_HOST`` and ``REDIS_PORT`` are a cluster startup node."""

SESSION_KEY_PREFIX = os.environ.get('SESSION_KEY_PREFIX', 'session_key')
"""Prepended to session identifiers; must not collide with raw identifiers."""

SESSION_DURATION = os.environ.get('SESSION_DURATION', '7200')
"""Session lifetime in seconds. Zero or less means sessions never expire."""

MAX_EXECUTION_TIME = os.environ.get('MAX_EXECUTION_TIME', '')
"""
Time budget for a request, in seconds.

Requests wait at most 70% of this for a session lock, or 20 seconds if it is
not set.
"""

SESSION_LOCK_SPIN_WAIT = os.environ.get('SESSION_LOCK_SPIN_WAIT', '200000')
"""Time between attempts to acquire a session lock, in microseconds."""

SESSION_LOCK_TTL = os.environ.get('SESSION_LOCK_TTL', '')
"""If set, session locks expire on their own after this many seconds."""

SESSION_STRICT_WRITES = os.environ.get('SESSION_STRICT_WRITES', '0')
"""If ``'1'``, writing a session requires holding its lock."""

LOGLEVEL = int(os.environ.get('LOGLEVEL', '20'))
