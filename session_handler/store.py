"""
Connections to the Redis key-value store.

The StrictRedis instance is thread safe, and connections are attached at the
time a command is executed, so a single client may be shared by many
handlers. Each handler still tracks its own lock state.
"""

from contextlib import contextmanager
from typing import Generator, Union

import logging

import redis
from redis.cluster import RedisCluster

from .exceptions import StoreUnavailable

logger = logging.getLogger(__name__)

Redis = Union[redis.StrictRedis, RedisCluster]


def get_redis(host: str, port: int, db: int = 0,
              cluster: bool = False) -> Redis:
    """
    Get a new connection to Redis.

    Parameters
    ----------
    host : str
    port : int
    db : int
        Ignored for cluster deployments, which only have database 0.
    cluster : bool
        If True, connect to a Redis cluster using ``host`` and ``port`` as
        the startup node.

    Returns
    -------
    :class:`redis.StrictRedis` or :class:`redis.cluster.RedisCluster`

    """
    logger.debug('New Redis connection at %s, port %s', host, port)
    if cluster:
        return RedisCluster(host=host, port=port)
    return redis.StrictRedis(host=host, port=port, db=db)


@contextmanager
def unavailable_on_failure(action: str) -> Generator[None, None, None]:
    """Translate communication failures with Redis to :class:`.StoreUnavailable`."""
    try:
        yield
    except (redis.exceptions.ConnectionError,
            redis.exceptions.TimeoutError) as e:
        logger.error('Redis unavailable while trying to %s: %s', action, e)
        raise StoreUnavailable(f'Failed to {action}: {e}') from e
