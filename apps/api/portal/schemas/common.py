"""Shared response shapes."""

from typing import Any

from pydantic import BaseModel


class PageMeta(BaseModel):
    total: int
    per_page: int
    current_page: int
    last_page: int


class Page(BaseModel):
    """Paginated list: ``{data, meta}``."""
    data: list[Any]
    meta: PageMeta


class MessageResponse(BaseModel):
    message: str


def build_page(items: list[Any], total: int, page: int, per_page: int) -> Page:
    last_page = max((total + per_page - 1) // per_page, 1) if per_page > 0 else 1
    return Page(
        data=items,
        meta=PageMeta(total=total, per_page=per_page, current_page=page, last_page=last_page),
    )
