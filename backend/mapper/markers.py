"""Parameter markers selecting where a DTO's raw data comes from.

Usage:
    async def index(filters: Annotated[UserFilterDTO, MapQueryString()]): ...
    async def store(dto: Annotated[CreateUserDTO, MapRequestPayload(validate=False)]): ...
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .types import ResolutionOptions


class DataSourceKind(str, Enum):
    PAYLOAD = "payload"
    QUERY = "query"


@dataclass(frozen=True)
class DtoMarker:
    validate: bool = True
    stop_on_first_failure: bool = False

    source: DataSourceKind = DataSourceKind.PAYLOAD

    @property
    def options(self) -> ResolutionOptions:
        return ResolutionOptions(
            validate=self.validate,
            stop_on_first_failure=self.stop_on_first_failure,
        )


@dataclass(frozen=True)
class MapRequestPayload(DtoMarker):
    """Fill the DTO from the request body (JSON or form fields plus files)."""
    source: DataSourceKind = DataSourceKind.PAYLOAD


@dataclass(frozen=True)
class MapQueryString(DtoMarker):
    """Fill the DTO from the query string."""
    source: DataSourceKind = DataSourceKind.QUERY


DEFAULT_MARKER = MapRequestPayload()
