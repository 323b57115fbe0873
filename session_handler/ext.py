"""
Integration with Flask applications.

Each request gets its own :class:`.SessionHandler`, and the handler is closed
when the request is torn down (whether or not it raised), so a session lock
never outlives the request that took it.

.. code-block:: python

   from flask import Flask
   from session_handler.ext import SessionHandlerExtension, current_handler


   def create_web_app() -> Flask:
       app = Flask('someapp')
       app.config.from_pyfile('config.py')
       SessionHandlerExtension(app)
       return app

"""

from typing import Any, Dict, Mapping, Optional

import logging

from flask import Flask, current_app, g, has_app_context

from . import config as default_config
from .handler import HandlerConfig, SessionHandler
from .store import Redis, get_redis

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'session_handler'
REDIS_KEY = 'session_handler.redis'


def _defaults() -> Dict[str, Any]:
    return {key: getattr(default_config, key)
            for key in dir(default_config) if key.isupper()}


class SessionHandlerExtension(object):
    """Attaches a per-request :class:`.SessionHandler` to a Flask app."""

    def __init__(self, app: Optional[Flask] = None) -> None:
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """
        Set configuration defaults and register the teardown hook.

        Parameters
        ----------
        app : :class:`Flask`

        """
        for key, value in _defaults().items():
            app.config.setdefault(key, value)
        HandlerConfig.from_config(app.config)   # Fail early if invalid.
        app.extensions[EXTENSION_KEY] = self

        @app.teardown_request
        def close_session_handler(exception: Optional[BaseException]) -> None:
            handler: Optional[SessionHandler] = g.pop(EXTENSION_KEY, None)
            if handler is None:
                return
            if exception is not None:
                logger.debug('Request failed, releasing session lock: %s',
                             exception)
            handler.close()


def redis_from_config(config: Mapping[str, Any]) -> Redis:
    """Get a new connection to Redis using application config."""
    return get_redis(
        config.get('REDIS_HOST', 'localhost'),
        int(config.get('REDIS_PORT', '6379')),
        int(config.get('REDIS_DATABASE', '0')),
        cluster=str(config.get('REDIS_CLUSTER', '0')) == '1'
    )


def get_handler(config: Mapping[str, Any],
                redis: Optional[Redis] = None) -> SessionHandler:
    """Get a new :class:`.SessionHandler` using application config."""
    if redis is None:
        redis = redis_from_config(config)
    return SessionHandler(redis, HandlerConfig.from_config(config))


def current_handler() -> SessionHandler:
    """
    Get/create the :class:`.SessionHandler` for this request.

    Outside of an application context, a new handler configured from the
    environment is returned; the caller is responsible for closing it.
    """
    if not has_app_context():
        return get_handler(_defaults())
    if EXTENSION_KEY not in g:
        if REDIS_KEY not in current_app.extensions:
            current_app.extensions[REDIS_KEY] = \
                redis_from_config(current_app.config)
        setattr(g, EXTENSION_KEY,
                get_handler(current_app.config,
                            current_app.extensions[REDIS_KEY]))
    handler: SessionHandler = getattr(g, EXTENSION_KEY)
    return handler
