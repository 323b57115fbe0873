"""Exceptions."""


class SessionHandlerError(RuntimeError):
    """Base class for session handler errors."""


class StoreUnavailable(SessionHandlerError):
    """Could not communicate with the key-value store."""


class LockTimeout(SessionHandlerError):
    """The session lock could not be acquired within the wait budget."""


class LockAlreadyHeld(SessionHandlerError):
    """This lock manager already holds a lock."""


class LockNotHeld(SessionHandlerError):
    """A write was attempted without holding the session lock."""


class ConfigurationError(SessionHandlerError):
    """A configuration parameter is missing or invalid."""
