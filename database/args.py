from __future__ import annotations

from typing import Any, Iterator, List, Mapping


def _children(value: Any) -> Iterator[Any]:
    if isinstance(value, Mapping):
        return iter(value.values())
    return iter(value)


def _is_bundle(value: Any) -> bool:
    return isinstance(value, (list, tuple, Mapping))


def flatten(args: Any) -> List[Any]:
    """Squash nested lists, tuples and mapping values into one flat list.

    Leaves come out depth-first in encounter order, which is the order the
    ``?`` placeholders of the query they belong to are bound in. The walk
    keeps its own stack, so nesting depth is not bounded by recursion.
    """
    if not _is_bundle(args):
        return [args]
    out: List[Any] = []
    stack = [_children(args)]
    while stack:
        for item in stack[-1]:
            if _is_bundle(item):
                stack.append(_children(item))
                break
            out.append(item)
        else:
            stack.pop()
    return out
