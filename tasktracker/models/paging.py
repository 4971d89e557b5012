"""Pagination and sorting models."""

import math
from enum import Enum
from typing import Any, Generic, Mapping, Optional, TypeVar
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from tasktracker.utils.app_config import AppConfig
from tasktracker.utils.errors import ValidationFailure


T = TypeVar("T")

SORTABLE_FIELDS = frozenset({
    "id",
    "title",
    "description",
    "status",
    "priority",
    "assignee",
    "due_date",
    "created_at",
    "updated_at",
})

# camelCase names used by HTTP clients
SORT_FIELD_ALIASES = {
    "dueDate": "due_date",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

DEFAULT_SORT_FIELD = "created_at"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class PageParams(BaseModel):
    """Page index (zero-based), page size and sort specification."""
    page: int = Field(0, ge=0)
    size: int = Field(default_factory=lambda: AppConfig.DEFAULT_PAGE_SIZE, ge=1)
    sort_by: str = DEFAULT_SORT_FIELD
    direction: SortDirection = SortDirection.DESC

    @field_validator("size")
    @classmethod
    def _size_within_limit(cls, value: int) -> int:
        if value > AppConfig.MAX_PAGE_SIZE:
            raise ValueError(f"Page size must be at most {AppConfig.MAX_PAGE_SIZE}")
        return value

    @field_validator("sort_by", mode="before")
    @classmethod
    def _known_sort_field(cls, value: Any) -> Any:
        if value is None or value == "":
            return DEFAULT_SORT_FIELD
        value = SORT_FIELD_ALIASES.get(value, value)
        if value not in SORTABLE_FIELDS:
            raise ValueError(f"Cannot sort by '{value}'")
        return value

    @field_validator("direction", mode="before")
    @classmethod
    def _normalize_direction(cls, value: Any) -> Any:
        if isinstance(value, SortDirection):
            return value
        # Anything other than "asc" means descending
        if isinstance(value, str) and value.lower() == "asc":
            return SortDirection.ASC
        return SortDirection.DESC

    @property
    def offset(self) -> int:
        return self.page * self.size

    @property
    def descending(self) -> bool:
        return self.direction == SortDirection.DESC

    @classmethod
    def of(cls, page: int = 0, size: Optional[int] = None, sort_by: Optional[str] = None,
           direction: Any = SortDirection.DESC) -> "PageParams":
        """Build page params, raising ValidationFailure on bad input."""
        data: dict[str, Any] = {"page": page, "sort_by": sort_by, "direction": direction}
        if size is not None:
            data["size"] = size
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ValidationFailure.from_pydantic(e) from e

    @classmethod
    def from_query(cls, query: Mapping[str, Any]) -> "PageParams":
        """Build page params from HTTP query parameters (page, size, sortBy, sortDir)."""
        field_errors: dict[str, str] = {}
        numbers: dict[str, Optional[int]] = {}
        for key in ("page", "size"):
            raw = query.get(key)
            try:
                numbers[key] = int(raw) if raw not in (None, "") else None
            except (TypeError, ValueError):
                field_errors[key] = "must be an integer"
        if field_errors:
            raise ValidationFailure(field_errors)
        return cls.of(
            page=numbers["page"] if numbers["page"] is not None else 0,
            size=numbers["size"],
            sort_by=query.get("sortBy") or query.get("sort_by"),
            direction=query.get("sortDir") or query.get("direction") or SortDirection.DESC,
        )


class Page(BaseModel, Generic[T]):
    """One page of results plus totals."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    content: list[T] = Field(default_factory=list)
    page: int
    size: int
    total_elements: int
    total_pages: int
    first: bool
    last: bool

    @classmethod
    def build(cls, content: list[Any], params: PageParams, total_elements: int) -> "Page":
        total_pages = math.ceil(total_elements / params.size) if total_elements else 0
        return cls(
            content=content,
            page=params.page,
            size=params.size,
            total_elements=total_elements,
            total_pages=total_pages,
            first=params.page == 0,
            last=params.page >= total_pages - 1,
        )
