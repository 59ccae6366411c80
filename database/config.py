from __future__ import annotations

import os
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field

from database.factory import connect
from database.registry import ConnectionRegistry
from utils.env_loader import env_flag, load_environments


class ConnectionSettings(BaseModel):
    database: str = Field(..., min_length=1)
    login: Optional[str] = None
    password: Optional[str] = None
    host: str = "localhost"
    port: Optional[Union[int, str]] = None
    adapter: str = "mysql_detect"
    options: Dict[str, Any] = Field(default_factory=dict)
    nickname: Optional[str] = ""


def settings_from_env(prefix: str = "DB_") -> ConnectionSettings:
    load_environments()
    database = os.getenv(f"{prefix}NAME")
    adapter = (os.getenv(f"{prefix}ADAPTER") or "mysql_detect").strip().lower()
    login = os.getenv(f"{prefix}USER")
    if not database:
        raise ValueError(f"{prefix}NAME is required")
    if not login and adapter != "sqlite":
        raise ValueError(f"{prefix}USER is required")

    options: Dict[str, Any] = {}
    if env_flag(f"{prefix}PCONNECT"):
        options["pconnect"] = True

    return ConnectionSettings(
        database=database,
        login=login,
        password=os.getenv(f"{prefix}PASSWORD"),
        host=os.getenv(f"{prefix}HOST") or "localhost",
        port=os.getenv(f"{prefix}PORT") or None,
        adapter=adapter,
        options=options,
        nickname=os.getenv(f"{prefix}NICKNAME", ""),
    )


def connect_from_settings(settings: ConnectionSettings, registry: Optional[ConnectionRegistry] = None):
    return connect(
        settings.database,
        settings.login,
        settings.password,
        host=settings.host,
        port=settings.port,
        adapter=settings.adapter,
        options=settings.options,
        nickname=settings.nickname,
        registry=registry,
    )
