from __future__ import annotations

import re
from typing import Any, Callable, List, Sequence

from database.errors import PlaceholderMismatchError

_PLACEHOLDER = re.compile(r"(?<!\\)\?")


def split_placeholders(sql: str) -> List[str]:
    # An escaped "\?" is a literal question mark, not a placeholder.
    return [segment.replace("\\?", "?") for segment in _PLACEHOLDER.split(sql)]


def bind_placeholders(sql: str, args: Sequence[Any], quote: Callable[[Any], str]) -> str:
    segments = split_placeholders(sql)
    expected = len(segments) - 1
    if expected != len(args):
        raise PlaceholderMismatchError(
            f"Query has {expected} placeholder(s) but {len(args)} argument(s) were given"
        )
    parts = [segments[0]]
    for value, segment in zip(args, segments[1:]):
        parts.append(quote(value))
        parts.append(segment)
    return "".join(parts)
