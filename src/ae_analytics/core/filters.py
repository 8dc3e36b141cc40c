"""
Search filters and their compilation into query predicates.

The Analytics Engine SQL API has no parameter binding, so filter values are
spliced into the query as quoted literals. Only allow-listed fields ever
reach the query text, and every literal is escaped first.
"""
from collections.abc import Mapping

from pydantic import BaseModel

from .schema import FILTERABLE_FIELDS, column_for


class SearchFilters(BaseModel):
    """Exact-match dimension filters applied to every dashboard query.

    Multiple filters are AND'd together.
    """
    path: str | None = None
    referrer: str | None = None
    browserName: str | None = None
    country: str | None = None
    deviceModel: str | None = None

    @classmethod
    def from_params(cls, params: Mapping[str, str | None]) -> "SearchFilters":
        """Build filters from request parameters, ignoring unknown keys.

        A parameter that is present but empty filters on the empty string.
        """
        return cls(**{
            field: params.get(field) or ""
            for field in FILTERABLE_FIELDS
            if field in params
        })

    def is_empty(self) -> bool:
        """Check if all filters are None."""
        return all(
            getattr(self, field) is None
            for field in self.__class__.model_fields.keys()
        )

    def active_filters(self) -> dict[str, str]:
        """Return dict of active (non-None) filters."""
        return {
            k: v for k, v in self.model_dump().items()
            if v is not None
        }


def escape_literal(value: str) -> str:
    """Escape a value for use inside a single-quoted SQL literal."""
    return str(value).replace("\\", "\\\\").replace("'", "''")


def quote_literal(value: str) -> str:
    return f"'{escape_literal(value)}'"


def compile_filters(filters: SearchFilters | Mapping[str, str | None] | None) -> str:
    """Build the ``AND column = 'value'`` predicate fragment for ``filters``.

    Clauses follow the allow-list order, not the caller's insertion order,
    so equal filter sets always compile to identical text. Keys outside the
    allow-list are ignored.
    """
    if filters is None:
        return ""

    if isinstance(filters, SearchFilters):
        values = filters.active_filters()
    else:
        values = {k: v for k, v in filters.items() if v is not None}

    clauses = []
    for field in FILTERABLE_FIELDS:
        if field in values:
            clauses.append(f"AND {column_for(field)} = {quote_literal(values[field])}")

    return " ".join(clauses)
