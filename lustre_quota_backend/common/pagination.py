"""Pagination of API results."""

from dataclasses import dataclass, field
from typing import Any, Optional, TypeVar
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pydantic import BaseModel, Field, field_validator

T = TypeVar("T")

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class PagingParams(BaseModel):
    """Paging query parameters.

    Invalid or missing values fall back to defaults.
    The page_size cap is applied by `from_query`, which knows the configured maximum.
    """

    paging: bool = Field(default=True, description="Whether results are paginated")
    page: int = Field(default=DEFAULT_PAGE, description="Page number, starting from 1")
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, description="Items per page")

    @field_validator("page", mode="before")
    @classmethod
    def default_page(cls, v: Any) -> int:
        """Use the first page for missing or non-positive values."""
        try:
            v = int(v)
        except (TypeError, ValueError):
            return DEFAULT_PAGE
        return v if v > 0 else DEFAULT_PAGE

    @field_validator("page_size", mode="before")
    @classmethod
    def default_page_size(cls, v: Any) -> int:
        """Use the default size for missing or non-positive values."""
        try:
            v = int(v)
        except (TypeError, ValueError):
            return DEFAULT_PAGE_SIZE
        return v if v > 0 else DEFAULT_PAGE_SIZE

    @classmethod
    def from_query(
        cls,
        query: dict[str, Any],
        default_size: int = DEFAULT_PAGE_SIZE,
        max_size: int = MAX_PAGE_SIZE,
    ) -> "PagingParams":
        """Build paging parameters from raw query values, capping page_size at max_size."""
        raw_paging = query.get("paging", True)
        if isinstance(raw_paging, str):
            raw_paging = raw_paging.strip().lower() not in ("false", "0", "no")
        params = cls(
            paging=bool(raw_paging),
            page=query.get("page", DEFAULT_PAGE),
            page_size=query.get("page_size", default_size),
        )
        if max_size > 0 and params.page_size > max_size:
            params.page_size = max_size
        return params

    @property
    def offset(self) -> int:
        """Index of the first item of the page."""
        return (self.page - 1) * self.page_size


def paginate(items: list[T], paging: Optional[PagingParams]) -> list[T]:
    """Returns the page of the flattened list, empty if the page is out of range."""
    if paging is None or not paging.paging:
        return list(items)
    start = paging.offset
    if start >= len(items):
        return []
    return items[start : start + paging.page_size]


def build_page_links(base_url: str, page: int, page_size: int, total: int) -> tuple[str, str]:
    """Returns URLs of the previous and the next pages, empty if there is none."""
    if not base_url or page_size <= 0:
        return "", ""
    last_page = (total + page_size - 1) // page_size
    parts = urlsplit(base_url)

    def make_url(number: int) -> str:
        query = dict(parse_qsl(parts.query, keep_blank_values=True))
        query["page"] = str(max(number, 1))
        query["page_size"] = str(page_size)
        return urlunsplit(parts._replace(query=urlencode(query)))

    previous_url = make_url(page - 1) if page > 1 else ""
    next_url = make_url(page + 1) if page < last_page else ""
    return previous_url, next_url


@dataclass
class PageResponse:
    """Response envelope returned to the dashboard."""

    count: int = 0
    previous: str = ""
    next: str = ""
    results: Any = field(default_factory=list)
    detail: str = ""

    @classmethod
    def build(
        cls,
        results: list,
        total: int,
        paging: Optional[PagingParams] = None,
        base_url: str = "",
    ) -> "PageResponse":
        """Build a response, with page links if paging is enabled."""
        if paging is None or not paging.paging:
            return cls(count=total, results=results)
        previous_url, next_url = build_page_links(base_url, paging.page, paging.page_size, total)
        return cls(count=total, previous=previous_url, next=next_url, results=results)

    def to_dict(self) -> dict[str, Any]:
        """JSON representation of the envelope."""
        results = self.results
        if isinstance(results, list):
            results = [item.to_dict() if hasattr(item, "to_dict") else item for item in results]
        return {
            "count": self.count,
            "previous": self.previous,
            "next": self.next,
            "results": results,
            "detail": self.detail,
        }
