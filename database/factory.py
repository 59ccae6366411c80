from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping, Optional, Union

from database.registry import ConnectionRegistry, default_registry

if TYPE_CHECKING:
    from database.connection import Connection

logger = logging.getLogger(__name__)


def connect(
    database: str,
    login: Optional[str] = None,
    password: Optional[str] = None,
    host: str = "localhost",
    port: Optional[Union[int, str]] = None,
    adapter: str = "mysql_detect",
    options: Optional[Mapping[str, Any]] = None,
    nickname: Optional[str] = "",
    registry: Optional[ConnectionRegistry] = None,
) -> "Connection":
    """Open a connection through the named adapter and register it.

    ``adapter`` is a registered adapter name, or ``mysql_detect`` to pick
    whichever MySQL driver is installed. The connection is bound under
    ``nickname`` in ``registry`` (the process default unless given),
    replacing any previous binding; pass ``nickname=None`` to skip that.
    """
    from adapters.factory import get_adapter_class

    options = dict(options or {})
    adapter_class = get_adapter_class(adapter)
    dbh = adapter_class(database, login, password, host, port, options)

    if not dbh.error_state and options.get("pconnect"):
        # A reused handle may carry a transaction or locks from its last owner.
        dbh.reset_session()
    elif dbh.error_state:
        logger.error("DB Error: %s", dbh.error_state.message)

    if nickname is not None:
        target = default_registry if registry is None else registry
        target.bind(nickname, dbh)
    return dbh
