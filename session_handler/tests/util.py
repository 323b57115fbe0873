"""Testing helpers."""

import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple


class Clock(object):
    """A clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _encode(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode('utf-8')
    return str(value).encode('utf-8')


class InMemoryRedis(object):
    """
    Stands in for :class:`redis.StrictRedis` in tests.

    Supports only the commands used by the session handler. Each command is
    atomic with respect to the others, as it would be in Redis. Keys with an
    expiry disappear once ``clock`` passes it.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self._data: Dict[bytes, Tuple[bytes, Optional[float]]] = {}
        self._mutex = threading.Lock()
        self.scripts: List[str] = []

    def _live(self, key: bytes) -> Optional[bytes]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires = entry
        if expires is not None and expires <= self.clock():
            del self._data[key]
            return None
        return value

    def set(self, name: Any, value: Any, ex: Optional[int] = None,
            nx: bool = False) -> Optional[bool]:
        key = _encode(name)
        with self._mutex:
            if nx and self._live(key) is not None:
                return None
            expires = self.clock() + ex if ex is not None else None
            self._data[key] = (_encode(value), expires)
            return True

    def get(self, name: Any) -> Optional[bytes]:
        with self._mutex:
            return self._live(_encode(name))

    def delete(self, *names: Any) -> int:
        deleted = 0
        with self._mutex:
            for name in names:
                key = _encode(name)
                if self._live(key) is not None:
                    del self._data[key]
                    deleted += 1
        return deleted

    def exists(self, name: Any) -> bool:
        with self._mutex:
            return self._live(_encode(name)) is not None

    def ttl(self, name: Any) -> int:
        """Seconds until ``name`` expires; -1 if it never does, -2 if absent."""
        with self._mutex:
            key = _encode(name)
            if self._live(key) is None:
                return -2
            expires = self._data[key][1]
            if expires is None:
                return -1
            return int(round(expires - self.clock()))

    def register_script(self, script: str) -> Callable[..., int]:
        """Only the compare-and-delete script is understood."""
        self.scripts.append(script)

        def compare_and_delete(keys: List[Any], args: List[Any]) -> int:
            key = _encode(keys[0])
            with self._mutex:
                if self._live(key) == _encode(args[0]):
                    del self._data[key]
                    return 1
                return 0
        return compare_and_delete
