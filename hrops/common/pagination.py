"""Page/sort query parameters and the ``{"data", "meta"}`` list envelope."""

import math
from typing import Any, Generic, Mapping, Optional, Sequence, TypeVar

from fastapi import Query
from pydantic import BaseModel
from sqlalchemy import Select, func
from sqlalchemy.ext.asyncio import AsyncSession

from hrops.common.exceptions import ValidationException

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


class PaginationParams:
    """Inject via ``Depends()`` on list endpoints."""

    def __init__(
        self,
        page: int = Query(default=1, ge=1),
        page_size: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
        sort: Optional[str] = Query(
            default=None,
            description='Sortable field, "-" prefix for descending (e.g. "-target_date")',
        ),
    ) -> None:
        self.page = page
        self.page_size = page_size
        self.sort = sort

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class PaginationMeta(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, params: PaginationParams, total: int) -> "PaginationMeta":
        pages = math.ceil(total / params.page_size) if total else 0
        return cls(
            page=params.page,
            page_size=params.page_size,
            total=total,
            total_pages=pages,
            has_next=params.page < pages,
            has_prev=params.page > 1,
        )


class PaginatedResponse(BaseModel, Generic[T]):
    data: Sequence[T]
    meta: PaginationMeta


def apply_sort(query: Select, sort: Optional[str], sortable: Mapping[str, Any]) -> Select:
    """Replace the query's ordering with the requested column.

    Only names listed in *sortable* are accepted; anything else is a 422 so a
    typo does not silently fall back to the default order.
    """
    if not sort:
        return query
    name = sort.lstrip("-")
    column = sortable.get(name)
    if column is None:
        raise ValidationException(
            {"sort": [f"Cannot sort by '{name}'. Allowed: {', '.join(sorted(sortable))}"]}
        )
    ordered = column.desc() if sort.startswith("-") else column.asc()
    return query.order_by(None).order_by(ordered)


async def paginate(
    session: AsyncSession,
    query: Select,
    params: PaginationParams,
    *,
    sortable: Optional[Mapping[str, Any]] = None,
) -> tuple[Sequence[Any], PaginationMeta]:
    """Run *query* for one page and count the full result set."""
    query = apply_sort(query, params.sort, sortable or {})

    total: int = (
        await session.execute(query.with_only_columns(func.count()).order_by(None))
    ).scalar_one()
    rows = (
        await session.execute(query.offset(params.offset).limit(params.page_size))
    ).scalars().all()

    return rows, PaginationMeta.build(params, total)
