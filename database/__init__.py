"""Portable query interface over interchangeable database adapters."""

from database.args import flatten
from database.connection import Connection
from database.errors import (
    ContractViolation,
    DatabaseError,
    ErrorState,
    FatalQueryError,
    InvalidDirectionError,
    InvalidFieldError,
    NoStatementError,
    PlaceholderMismatchError,
    UnknownHandleError,
)
from database.escaping import Literal
from database.factory import connect
from database.registry import ConnectionRegistry, default_registry, find
from database.statement import Statement

__all__ = [
    "Connection",
    "ConnectionRegistry",
    "ContractViolation",
    "DatabaseError",
    "ErrorState",
    "FatalQueryError",
    "InvalidDirectionError",
    "InvalidFieldError",
    "Literal",
    "NoStatementError",
    "PlaceholderMismatchError",
    "Statement",
    "UnknownHandleError",
    "connect",
    "default_registry",
    "find",
    "flatten",
]
