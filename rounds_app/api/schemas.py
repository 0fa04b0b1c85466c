"""Request and error models for the HTTP API; fields use camelCase aliases on the wire."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IssueQueryModel(_CamelModel):
    facility: str | None = None
    shift: str | None = None
    year: int | None = None
    month_from: int | None = None
    month_to: int | None = None
    issue_types: list[str] = Field(default_factory=list)
    issue_sub_types: list[str] = Field(default_factory=list)
    statuses: list[str] = Field(default_factory=list)
    search: str | None = None
    page: int | None = None
    page_size: int | None = None
    order_by: str | None = None
    order_asc: bool = False
    count_only: bool = False

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)


class FacilityComparisonModel(_CamelModel):
    # Empty list compares every facility from the filter options
    facilities: list[str] = Field(default_factory=list)
    year_a: int | None = None
    month_a: int | None = Field(default=None, ge=1, le=12)
    year_b: int | None = None
    month_b: int | None = Field(default=None, ge=1, le=12)


class ErrorResponse(BaseModel):
    error: str
    type: str
