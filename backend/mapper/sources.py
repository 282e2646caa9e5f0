"""Raw Data Source

Two read-only views over one request:

- body view: JSON object, or form fields merged with uploaded files
  (a file wins when it shares a key with a field)
- query view: the query string alone

Form and query keys in bracket notation are expanded, so
``users[0][name]=Jan&tags[]=a&tags[]=b`` arrives as
``{"users": [{"name": "Jan"}], "tags": ["a", "b"]}``. A plain key that
repeats becomes a list.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Any, Iterable, Mapping

from starlette.datastructures import UploadFile
from starlette.requests import Request

from core.errors import invalid_json, raise_error
from core.logging import mapper_logger

log = mapper_logger()

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


class _Repeated(list):
    """Values collected from a key sent more than once."""


def _parse_key(key: str) -> list[str]:
    if "[" not in key or not key.endswith("]"):
        return [key]
    head, _, rest = key.partition("[")
    if not head:
        return [key]
    return [head, *rest[:-1].split("][")]


def _is_index(key: str) -> bool:
    return key.isascii() and key.isdigit()


def _index_order(key: str) -> tuple[int, str]:
    # Numeric order without int(), which refuses very long digit strings
    digits = key.lstrip("0") or "0"
    return len(digits), digits


def _next_index(node: dict) -> str:
    return str(sum(1 for k in node if _is_index(k)))


def _finalize(node: Any) -> Any:
    if isinstance(node, _Repeated):
        return [_finalize(item) for item in node]
    if isinstance(node, dict):
        items = {k: _finalize(v) for k, v in node.items()}
        if items and all(_is_index(k) for k in items):
            return [items[k] for k in sorted(items, key=_index_order)]
        return items
    return node


def expand_brackets(pairs: Iterable[tuple[str, Any]]) -> dict[str, Any]:
    """Build nested data from flat ``(key, value)`` pairs."""
    root: dict[str, Any] = {}
    for key, value in pairs:
        segments = _parse_key(key)
        node = root
        for position, segment in enumerate(segments):
            if segment == "":
                segment = _next_index(node)
            if position == len(segments) - 1:
                if segment in node:
                    existing = node[segment]
                    if isinstance(existing, _Repeated):
                        existing.append(value)
                    else:
                        node[segment] = _Repeated([existing, value])
                else:
                    node[segment] = value
            else:
                child = node.get(segment)
                if not isinstance(child, dict):
                    child = {}
                    node[segment] = child
                node = child
    return {key: _finalize(value) for key, value in root.items()}


def merge_files(fields: Mapping[str, Any], files: Mapping[str, Any]) -> dict[str, Any]:
    """Overlay uploaded files onto body fields; files win on collision."""
    merged = dict(fields)
    for key, value in files.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            merged[key] = merge_files(current, value)
        else:
            merged[key] = value
    return merged


class RequestDataSource:
    """Body and query views of one request.

    Build one from a Starlette request with ``await from_request(request)``
    or directly from mappings in tests and non-HTTP callers.
    """

    __slots__ = ("_body", "_query", "_files")

    def __init__(
        self,
        body: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | None = None,
        files: Mapping[str, Any] | None = None,
    ):
        self._files = dict(files or {})
        self._body = MappingProxyType(merge_files(body or {}, self._files))
        self._query = MappingProxyType(dict(query or {}))

    def body_view(self) -> Mapping[str, Any]:
        return self._body

    def query_view(self) -> Mapping[str, Any]:
        return self._query

    def files(self) -> Mapping[str, Any]:
        return MappingProxyType(self._files)

    @classmethod
    async def from_request(cls, request: Request) -> RequestDataSource:
        """Read query string and body (JSON or form) of ``request``."""
        query = expand_brackets(request.query_params.multi_items())
        content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()

        body: dict[str, Any] = {}
        files: dict[str, Any] = {}

        if content_type == "application/json" or content_type.endswith("+json"):
            body = await cls._read_json(request)
        elif content_type in _FORM_TYPES:
            form = await request.form()
            field_pairs = []
            file_pairs = []
            for key, value in form.multi_items():
                if isinstance(value, UploadFile):
                    # browsers send an unnamed part for an empty file input
                    if value.filename:
                        file_pairs.append((key, value))
                else:
                    field_pairs.append((key, value))
            body = expand_brackets(field_pairs)
            files = expand_brackets(file_pairs)

        log.debug(
            "request_data_read",
            content_type=content_type or None,
            body_keys=sorted(body),
            file_keys=sorted(files),
            query_keys=sorted(query),
        )
        return cls(body=body, query=query, files=files)

    @staticmethod
    async def _read_json(request: Request) -> dict[str, Any]:
        raw = await request.body()
        if not raw.strip():
            return {}
        try:
            payload = await request.json()
        except ValueError as e:
            raise_error(invalid_json(str(e), origin="mapper.sources").error)
        if not isinstance(payload, dict):
            raise_error(invalid_json(
                f"expected an object at the top level, got {type(payload).__name__}",
                origin="mapper.sources",
            ).error)
        return payload
