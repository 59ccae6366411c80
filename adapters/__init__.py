"""Concrete engine adapters for the database core."""

from adapters.base import AdapterError, DBAPIConnection, DBAPIStatement
from adapters.factory import ADAPTERS, get_adapter_class, register_adapter

__all__ = ["ADAPTERS", "AdapterError", "DBAPIConnection", "DBAPIStatement", "get_adapter_class", "register_adapter"]
