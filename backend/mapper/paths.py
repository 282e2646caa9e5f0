"""Dotted field-path helpers.

A field-path addresses nested raw data with dot-separated segments:
``users.1.email`` is the ``email`` key of the second element of ``users``.
A ``*`` segment in a declared path stands for every element of the
collection found at that position.
"""
from __future__ import annotations

from typing import Any, Iterator, Mapping

from .types import MISSING

WILDCARD = "*"


def split_path(path: str) -> list[str]:
    return path.split(".") if path else []


def is_wildcard(path: str) -> bool:
    return WILDCARD in split_path(path)


def _step(container: Any, segment: str) -> Any:
    if isinstance(container, Mapping):
        return container.get(segment, MISSING)
    if isinstance(container, (list, tuple)):
        if segment.isascii() and segment.isdigit():
            index = int(segment)
            if index < len(container):
                return container[index]
    return MISSING


def _lookup(node: Any, segments: list[str]) -> Any:
    if not segments:
        return node
    if isinstance(node, Mapping):
        # Longest key first, so keys that themselves contain dots stay addressable
        for size in range(len(segments), 0, -1):
            key = ".".join(segments[:size])
            if key in node:
                found = _lookup(node[key], segments[size:])
                if found is not MISSING:
                    return found
        return MISSING
    child = _step(node, segments[0])
    if child is MISSING:
        return MISSING
    return _lookup(child, segments[1:])


def get_path(data: Mapping[str, Any], path: str) -> Any:
    """Value at ``path`` or ``MISSING`` when any segment is absent.

    A mapping key containing dots matches the joined segments, so
    ``meta.a.b`` finds ``{"meta": {"a.b": ...}}``.
    """
    return _lookup(data, split_path(path))


def has_path(data: Mapping[str, Any], path: str) -> bool:
    return get_path(data, path) is not MISSING


def _children(container: Any) -> Iterator[str]:
    if isinstance(container, Mapping):
        yield from (str(key) for key in container)
    elif isinstance(container, (list, tuple)):
        yield from (str(index) for index in range(len(container)))


def expand(data: Mapping[str, Any], declared_path: str) -> list[str]:
    """Concrete paths a declared path addresses in ``data``.

    Paths without wildcards expand to themselves. A wildcard whose prefix is
    absent or not a collection expands to nothing. Leaves after the last
    wildcard need not exist; ``users.*.email`` yields ``users.0.email`` even
    when the first user has no email, so presence rules can report it.
    """
    segments = split_path(declared_path)
    if WILDCARD not in segments:
        return [declared_path]

    results: list[str] = []

    def walk(index: int, prefix: list[str], node: Any) -> None:
        if index == len(segments):
            results.append(".".join(prefix))
            return
        segment = segments[index]
        if segment == WILDCARD:
            for child in _children(node):
                walk(index + 1, [*prefix, child], _step(node, child))
            return
        if WILDCARD in segments[index:]:
            walk(index + 1, [*prefix, segment], _step(node, segment))
        else:
            results.append(".".join([*prefix, *segments[index:]]))

    walk(0, [], data)
    return results
