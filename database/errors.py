from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass
class ErrorState:
    message: Optional[str] = None
    errstr: Optional[str] = None
    errno: Optional[Union[int, str]] = None
    backtrace: Optional[str] = None

    def __bool__(self) -> bool:
        return self.message is not None


class DatabaseError(RuntimeError):
    pass


class FatalQueryError(DatabaseError):
    def __init__(self, state: ErrorState):
        super().__init__(state.message)
        self.state = state


class ContractViolation(DatabaseError):
    pass


class UnknownHandleError(ContractViolation, LookupError):
    pass


class PlaceholderMismatchError(ContractViolation):
    pass


class InvalidFieldError(ContractViolation):
    pass


class InvalidDirectionError(ContractViolation):
    pass


class NoStatementError(ContractViolation):
    pass
