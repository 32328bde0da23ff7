"""
Field Alias Resolver - Find a semantic field under any of its known names.

Providers rename fields between API versions (balance, rest, available,
funds, ...). A projection declares an ordered list of candidate keys per
field and the resolver returns the first usable value:

1. Candidate keys are tried in priority order on the container itself.
2. Only if none matches, nested objects and arrays are searched
   depth-first with the same candidate list. Scalar elements of nested
   arrays are tested directly; object elements are descended into.

Each container is visited at most once, so replayed payloads with shared
or self-referencing nodes cannot loop.
"""

from decimal import Decimal
from typing import Any, Callable, Iterator, Optional, Sequence, TypeVar

from balance_sources.coercion import coerce_decimal


T = TypeVar("T")

_EXHAUSTED = object()


def accept_string(value: Any) -> Optional[str]:
    """Non-blank strings only, surrounding whitespace removed."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def resolve(
    container: Any,
    candidate_keys: Sequence[str],
    accept: Callable[[Any], Optional[T]],
    shallow: bool = False,
) -> Optional[T]:
    """
    Resolve the first value accepted under any candidate key.

    Args:
        container: dict or list from a parsed JSON payload
        candidate_keys: key names in priority order
        accept: returns the usable value, or None to keep searching
        shallow: only look at the container's own keys

    Returns:
        First accepted value, or None if nothing in the subtree matches
    """
    if not isinstance(container, (dict, list)):
        return None

    visited: set[int] = set()
    stack: list[Iterator[Any]] = [iter((container,))]

    while stack:
        node = next(stack[-1], _EXHAUSTED)
        if node is _EXHAUSTED:
            stack.pop()
            continue
        if id(node) in visited:
            continue
        visited.add(id(node))

        if isinstance(node, dict):
            for key in candidate_keys:
                if key in node:
                    hit = accept(node[key])
                    if hit is not None:
                        return hit
            if shallow:
                return None
            stack.append(iter(_dict_children(node, candidate_keys)))
        else:
            children = []
            for element in node:
                if isinstance(element, dict):
                    children.append(element)
                elif not isinstance(element, list):
                    hit = accept(element)
                    if hit is not None:
                        return hit
            stack.append(iter(children))

    return None


def _dict_children(node: dict, candidate_keys: Sequence[str]) -> list[Any]:
    # Candidate-key containers are searched before unrelated ones
    ordered = [node[key] for key in candidate_keys if isinstance(node.get(key), (dict, list))]
    seen = {id(child) for child in ordered}
    for value in node.values():
        if isinstance(value, (dict, list)) and id(value) not in seen:
            ordered.append(value)
            seen.add(id(value))
    return ordered


def resolve_string(container: Any, candidate_keys: Sequence[str], shallow: bool = False) -> Optional[str]:
    return resolve(container, candidate_keys, accept_string, shallow=shallow)


def resolve_decimal(container: Any, candidate_keys: Sequence[str], shallow: bool = False) -> Optional[Decimal]:
    return resolve(container, candidate_keys, coerce_decimal, shallow=shallow)
