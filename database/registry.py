from __future__ import annotations

import atexit
import logging
import threading
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Tuple

from database.errors import UnknownHandleError

if TYPE_CHECKING:
    from database.connection import Connection

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Nickname -> connection map shared by everything that looks handles up by name."""

    def __init__(self):
        self._handles: Dict[str, "Connection"] = {}
        self._lock = threading.RLock()

    def bind(self, nickname: str, connection: "Connection") -> None:
        with self._lock:
            previous = self._handles.get(nickname)
            self._handles[nickname] = connection
        if previous is not None and previous is not connection:
            logger.debug("nickname %r rebound to %r", nickname, connection)
        connection.registry = self

    def unbind(self, nickname: str) -> Optional["Connection"]:
        with self._lock:
            return self._handles.pop(nickname, None)

    def get(self, nickname: str) -> Optional["Connection"]:
        with self._lock:
            return self._handles.get(nickname)

    def find(self, nickname: str = "") -> "Connection":
        with self._lock:
            connection = self._handles.get(nickname)
        if connection is None:
            raise UnknownHandleError(f"Unknown database handle {nickname!r}")
        return connection

    def names(self) -> List[str]:
        with self._lock:
            return list(self._handles)

    def items(self) -> List[Tuple[str, "Connection"]]:
        with self._lock:
            return list(self._handles.items())

    def __contains__(self, nickname: object) -> bool:
        with self._lock:
            return nickname in self._handles

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def shutdown_all(self) -> None:
        seen = set()
        for nickname, connection in self.items():
            if id(connection) in seen:
                continue
            seen.add(id(connection))
            logger.debug("shutting down %r (%s)", connection, nickname)
            connection.shutdown()
        with self._lock:
            self._handles.clear()


default_registry = ConnectionRegistry()
atexit.register(default_registry.shutdown_all)


def find(nickname: str = "") -> "Connection":
    return default_registry.find(nickname)
