# investdesk/utils/listing.py
"""
List plumbing shared by every index endpoint:

- read search / filter / sort / direction / page from query args
- apply an allow-listed ORDER BY
- turn a Flask-SQLAlchemy Pagination into the JSON metadata block
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from flask import request, url_for

SORT_DIRECTIONS = ("asc", "desc")


@dataclass
class ListParams:
    search: str = ""
    filters: dict[str, str] = field(default_factory=dict)
    sort: str = "created_at"
    direction: str = "desc"
    page: int = 1

    @classmethod
    def from_args(
        cls,
        args: Mapping[str, Any],
        *,
        filter_keys: tuple[str, ...] = (),
        default_sort: str = "created_at",
    ) -> "ListParams":
        search = (args.get("search") or "").strip()
        filters = {k: (args.get(k) or "").strip() for k in filter_keys}

        sort = (args.get("sort") or default_sort).strip()
        direction = (args.get("direction") or "desc").strip().lower()
        if direction not in SORT_DIRECTIONS:
            direction = "desc"

        try:
            page = int(args.get("page", 1))
        except (TypeError, ValueError):
            page = 1

        return cls(
            search=search,
            filters=filters,
            sort=sort,
            direction=direction,
            page=max(page, 1),
        )

    def echo(self) -> dict[str, Any]:
        """The 'filters' block sent back so the caller can redraw its controls."""
        return {
            "search": self.search,
            **self.filters,
            "sort": self.sort,
            "direction": self.direction,
        }


def apply_sort(query, params: ListParams, sorters: Mapping[str, Callable], *, tiebreak, default: str = "created_at"):
    """
    ``sorters`` maps an allowed sort key to a callable(query) -> (query, column).
    Unknown keys fall back to ``default``; ``tiebreak`` (the row id) keeps pages stable.
    """
    key = params.sort if params.sort in sorters else default
    query, column = sorters[key](query)
    ordered = column.asc() if params.direction == "asc" else column.desc()
    return query.order_by(ordered, tiebreak.desc())


def paginate(query, params: ListParams, per_page: int):
    return query.paginate(page=params.page, per_page=per_page, error_out=False)


def pagination_meta(pagination, *, endpoint: str | None = None) -> dict[str, Any]:
    """Paginator metadata with navigation links (query string kept)."""
    endpoint = endpoint or request.endpoint
    args = {k: v for k, v in request.args.items() if k != "page"}
    view_args = dict(request.view_args or {})

    def link(page: int | None) -> str | None:
        if page is None:
            return None
        return url_for(endpoint, page=page, **view_args, **args)

    last_page = max(pagination.pages, 1)
    first_index = (pagination.page - 1) * pagination.per_page + 1 if pagination.total else None
    last_index = first_index + len(pagination.items) - 1 if first_index else None

    return {
        "current_page": pagination.page,
        "last_page": last_page,
        "per_page": pagination.per_page,
        "total": pagination.total,
        "from": first_index,
        "to": last_index,
        "links": {
            "first": link(1),
            "last": link(last_page),
            "prev": link(pagination.prev_num) if pagination.has_prev else None,
            "next": link(pagination.next_num) if pagination.has_next else None,
        },
    }
