from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from database.connection import Connection


class Statement(ABC):
    """One prepared query and, once executed, its pending result set.

    ``handle`` is whatever the engine hands back for an executed query. It
    stays ``None`` until ``execute`` succeeds, which is how the connection
    tells a usable statement from a failed one. Callers must ``finish`` a
    statement once they are done with its rows.
    """

    def __init__(self, connection: "Connection", query_text: str):
        self.connection = connection
        self.query_text = query_text
        self.sql: Optional[str] = None
        self.handle: Any = None
        self.columns: List[str] = []
        # Seconds the engine itself spent on execute, as far as the adapter can tell.
        self.engine_time = 0.0

    @abstractmethod
    def execute(self, args: Sequence[Any]) -> bool:
        raise NotImplementedError

    @abstractmethod
    def fetch_row(self) -> Optional[Tuple[Any, ...]]:
        raise NotImplementedError

    @abstractmethod
    def num_rows(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def insert_id(self) -> Optional[int]:
        raise NotImplementedError

    @abstractmethod
    def affected_rows(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def finish(self) -> None:
        raise NotImplementedError

    def fetch_assoc(self) -> Optional[Dict[str, Any]]:
        row = self.fetch_row()
        if row is None:
            return None
        return dict(zip(self.columns, row))

    def column_index(self, key: Any) -> int:
        if isinstance(key, int):
            return key
        try:
            return self.columns.index(key)
        except ValueError:
            raise KeyError(f"Column {key!r} is not in the result set") from None

    def __iter__(self):
        while True:
            row = self.fetch_row()
            if row is None:
                return
            yield row
