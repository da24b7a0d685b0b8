"""Query translation for the bhajan signup API.

A validated request is turned into a ``QueryPlan``: a list of ``Filter``
constraints, an optional ``Ordering`` and an optional ``PageSlice``.  The plan
is datastore-neutral; ``build_where_clause()``, ``build_order_clause()`` and
``build_limit_clause()`` render it to parameterized SQLite SQL for
``utils.database.Table``.

Which columns can be filtered, and how, is fixed here by the
``SIGNUP_FILTERS`` and ``CATALOG_FILTERS`` declarations.  A request cannot pick
its own comparison operator and cannot reach a column that is not declared.

Nothing in this module validates input; callers run ``utils.validation``
first.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Sequence

# Comparison operators
EQ = "eq"
ILIKE = "ilike"
GTE = "gte"
LTE = "lte"

_SQL_OPERATORS = {
    EQ: "=",
    ILIKE: "LIKE",  # SQLite LIKE is case-insensitive for ASCII
    GTE: ">=",
    LTE: "<=",
}

_PSEUDO_OPERATORS = {
    EQ: "=",
    ILIKE: "ILIKE",
    GTE: ">=",
    LTE: "<=",
}

SIGNUPS_TABLE = "Bhajan_Signups"
CATALOG_TABLE = "Bhajans"


# ── Filterable fields ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FilterField:
    """A request filter bound to a column and a comparison operator.

    ``kind`` tells the validator what values are legal: ``deity``, ``tempo``
    and ``offering_status`` are checked against the vocabulary, ``date`` must
    parse as ISO-8601, ``boolean`` must be a real bool, ``text`` must be a
    string.
    """
    name: str
    column: str
    op: str = EQ
    kind: str = "text"
    aliases: tuple[str, ...] = ()

    def matches(self, key: str) -> bool:
        return key == self.name or key in self.aliases


# Declaration order is also the order the validator checks them in.
SIGNUP_FILTERS: tuple[FilterField, ...] = (
    FilterField("diety", "diety", kind="deity", aliases=("deity",)),
    FilterField("tempo", "tempo", kind="tempo"),
    FilterField("offeringStatus", "offeringStatus", kind="offering_status"),
    FilterField("created_at", "created_at", kind="date"),
    FilterField("offering_on", "offering_on", kind="date"),
    FilterField("signedUp", "signedUp", kind="boolean"),
    FilterField("singer", "singer", op=ILIKE),
)

CATALOG_FILTERS: tuple[FilterField, ...] = (
    FilterField("title", "title", op=ILIKE),
    FilterField("deity", "deity"),
    FilterField("tempo", "tempo"),
    FilterField("language", "language"),
    FilterField("level", "level"),
    FilterField("raga", "raga"),
    FilterField("beat", "beat"),
)


def find_filter_field(key: str, fields: Iterable[FilterField]) -> FilterField | None:
    """Return the declared field matching *key* (name or alias), or None."""
    for f in fields:
        if f.matches(key):
            return f
    return None


def filter_names(fields: Iterable[FilterField]) -> list[str]:
    """All accepted filter keys, aliases included."""
    names: list[str] = []
    for f in fields:
        names.append(f.name)
        names.extend(f.aliases)
    return names


# ── Query plan ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Filter:
    field: str
    op: str
    value: Any


@dataclass(frozen=True)
class Ordering:
    field: str
    descending: bool = False


@dataclass(frozen=True)
class PageSlice:
    offset: int
    limit: int


@dataclass
class QueryPlan:
    """Datastore-neutral description of one table query."""
    filters: list[Filter] = field(default_factory=list)
    ordering: Ordering | None = None
    page: PageSlice | None = None

    def applied_filters(self) -> list[dict[str, Any]]:
        """Filters as plain dicts, for logging."""
        return [
            {"field": f.field, "operator": _PSEUDO_OPERATORS[f.op], "value": f.value}
            for f in self.filters
        ]

    def to_pseudo_sql(self, table: str, columns: str = "*") -> str:
        """Render the plan as readable SQL with inlined values.

        Only for logs; never execute the result.
        """
        sql = f'SELECT {columns} FROM "{table}"'
        if self.filters:
            sql += " WHERE " + " AND ".join(
                f"\"{f.field}\" {_PSEUDO_OPERATORS[f.op]} '{f.value}'"
                for f in self.filters
            )
        if self.ordering:
            direction = "DESC" if self.ordering.descending else "ASC"
            sql += f' ORDER BY "{self.ordering.field}" {direction}'
        if self.page:
            sql += f" LIMIT {self.page.limit} OFFSET {self.page.offset}"
        return sql


def translate(query: Any, fields: Sequence[FilterField]) -> QueryPlan:
    """Translate a validated query into a QueryPlan.

    Args:
        query: A ``SignupQuery`` or ``CatalogQuery`` from utils.validation.
            Its ``filters`` are keyed by canonical FilterField name.
        fields: The filter declarations for the target table.

    Returns:
        QueryPlan with one Filter per supplied filter, in declaration order.
    """
    plan = QueryPlan()
    for f in fields:
        if f.name not in query.filters:
            continue
        value = query.filters[f.name]
        if f.op == ILIKE:
            value = f"%{value}%"
        plan.filters.append(Filter(f.column, f.op, value))

    sort = getattr(query, "sort", None)
    if sort is not None:
        plan.ordering = Ordering(sort.field, descending=sort.order == "desc")

    if query.pagination is not None:
        page, page_size = query.pagination.page, query.pagination.page_size
        plan.page = PageSlice(offset=(page - 1) * page_size, limit=page_size)
    return plan


def day_window(column: str, day: date) -> list[Filter]:
    """Constrain *column* to the inclusive timestamp range covering *day*."""
    iso = day.isoformat()
    return [
        Filter(column, GTE, f"{iso}T00:00:00"),
        Filter(column, LTE, f"{iso}T23:59:59"),
    ]


# ── SQL rendering ─────────────────────────────────────────────────────────────

def quote_identifier(name: str) -> str:
    """Double-quote a column or table name for SQLite."""
    return '"' + name.replace('"', '""') + '"'


def build_where_clause(filters: Sequence[Filter]) -> tuple[str, list[Any]]:
    """Build a SQL WHERE clause from plan filters.

    Returns:
        Tuple of (where_clause_string, params_list). The where_clause_string
        starts with "WHERE " if any conditions exist, or is "" if none.
    """
    conditions: list[str] = []
    params: list[Any] = []
    for f in filters:
        conditions.append(f"{quote_identifier(f.field)} {_SQL_OPERATORS[f.op]} ?")
        params.append(f.value)
    where = "WHERE " + " AND ".join(conditions) if conditions else ""
    return where, params


def build_order_clause(ordering: Ordering | None, tiebreaker: str = "id") -> str:
    """Build an ORDER BY clause that always ends on *tiebreaker*.

    The tiebreaker keeps page contents stable when the sort column has
    duplicate values.
    """
    parts: list[str] = []
    if ordering is not None:
        direction = "DESC" if ordering.descending else "ASC"
        parts.append(f"{quote_identifier(ordering.field)} {direction}")
    if ordering is None or ordering.field != tiebreaker:
        parts.append(f"{quote_identifier(tiebreaker)} ASC")
    return "ORDER BY " + ", ".join(parts)


def build_limit_clause(page: PageSlice | None) -> tuple[str, list[Any]]:
    """Build a LIMIT/OFFSET clause, or ("", []) when the plan is unpaginated."""
    if page is None:
        return "", []
    return "LIMIT ? OFFSET ?", [page.limit, page.offset]
