"""Quoting of values and identifiers for inclusion in query text."""

from __future__ import annotations

from typing import Any, Callable

from database.errors import InvalidDirectionError, InvalidFieldError


class Literal:
    """SQL text emitted as-is by the escaper, e.g. ``Literal("NOW()")``."""

    __slots__ = ("text",)

    def __init__(self, text: str):
        self.text = str(text)

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        return f"Literal({self.text!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Literal) and other.text == self.text

    def __hash__(self) -> int:
        return hash((Literal, self.text))


def to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (bytes, bytearray)):
        try:
            return bytes(value).decode("utf-8")
        except UnicodeDecodeError:
            # latin-1 maps every byte to one code point, so nothing is lost.
            return bytes(value).decode("latin-1")
    return str(value)


def quote(value: Any, escape_string: Callable[[str], str], escape_question_marks: bool = True) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, Literal):
        return value.text
    escaped = "'" + escape_string(to_text(value)) + "'"
    if not escape_question_marks:
        return escaped
    # Keeps pre-escaped text from being read as placeholders when bound later.
    return escaped.replace("?", "\\?")


def escape_field(*parts: str, quote_char: str = "`") -> str:
    if len(parts) > 3:
        raise InvalidFieldError("Does not appear to be a valid field")
    doubled = quote_char * 2
    return ".".join(f"{quote_char}{str(part).replace(quote_char, doubled)}{quote_char}" for part in parts)


def escape_direction(direction: str) -> str:
    normalized = str(direction).strip().upper()
    if normalized in {"ASC", "DESC"}:
        return normalized
    raise InvalidDirectionError(f"Invalid Direction: {direction!r}")
