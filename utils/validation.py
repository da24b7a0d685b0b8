"""Request validation for the bhajan signup API.

Provides:
- Query validators for the signup and catalog list endpoints
  (fail-fast: the first broken rule is raised)
- The signup-creation validator (reports every missing field at once)
- The single-day validator used by the distribution reports
- Small type predicates shared by the validators

Each validator returns a frozen, parsed request object on success and raises
a ``utils.errors.ValidationError`` subclass otherwise.  Nothing here touches
the datastore.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Mapping, Sequence

from utils.errors import (
    InvalidDateFormat,
    InvalidEnumValue,
    InvalidPagination,
    InvalidRequestFormat,
    InvalidSortField,
    InvalidSortOrder,
    InvalidType,
    MissingRequiredFields,
)
from utils.query import (
    CATALOG_FILTERS,
    SIGNUP_FILTERS,
    FilterField,
    filter_names,
    find_filter_field,
)
from utils.vocabulary import Vocabulary

MAX_PAGE_SIZE = 100
SORT_ORDERS = ("asc", "desc")
DEFAULT_OFFERING_STATUS = "PENDING"

REQUIRED_SIGNUP_FIELDS = ("title", "singer", "diety", "tempo", "offering_on")

_DAY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


# ── Parsed requests ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Pagination:
    page: int
    page_size: int


@dataclass(frozen=True)
class Sort:
    field: str
    order: str


@dataclass(frozen=True)
class SignupQuery:
    """A validated POST /api/bhajan-signups body.

    ``filters`` is keyed by canonical filter name (``diety`` even when the
    client sent ``deity``); ``raw_filters`` is the section as received.
    """
    filters: dict[str, Any] = field(default_factory=dict)
    pagination: Pagination | None = None
    sort: Sort | None = None
    raw_filters: dict[str, Any] | None = None


@dataclass(frozen=True)
class CatalogQuery:
    """A validated POST /api/bhajans body."""
    filters: dict[str, Any] = field(default_factory=dict)
    pagination: Pagination | None = None
    raw_filters: dict[str, Any] | None = None

    @property
    def sort(self) -> None:
        return None


@dataclass(frozen=True)
class NewSignup:
    """A validated signup-creation request."""
    title: str
    singer: str
    diety: str
    tempo: str
    offering_on: str
    offering_status: str
    position: int = 0
    details: str | None = None

    def to_row(self, signup_id: str, created_at: str) -> dict[str, Any]:
        """Column values for the Bhajan_Signups insert.

        ``signedUp`` is always true; icons are not stored.
        """
        return {
            "id": signup_id,
            "created_at": created_at,
            "title": self.title,
            "position": self.position,
            "singer": self.singer,
            "details": self.details,
            "signedUp": True,
            "tempo": self.tempo,
            "diety": self.diety,
            "offering_on": self.offering_on,
            "offeringStatus": self.offering_status,
        }


# ── Type predicates ───────────────────────────────────────────────────────────

def as_strict_int(value: Any) -> int | None:
    """Return *value* as an int if it is integral, else None.

    Integral floats (``2.0``) are accepted because JSON clients often send
    them; booleans are rejected even though bool is a subclass of int.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def parse_iso_datetime(value: Any) -> datetime | None:
    """Parse an ISO-8601 date or timestamp string, or return None.

    Accepts ``2024-05-12``, ``2024-05-12T10:30:00``, offsets such as
    ``+05:30`` and a trailing ``Z``.
    """
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if text[-1] in "Zz":
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def normalize_timestamp(value: datetime) -> str:
    """Format *value* as naive ``YYYY-MM-DDTHH:MM:SS`` (UTC if it had an offset).

    All stored timestamps share this shape so text comparisons order them
    correctly.
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(timespec="seconds")


# ── Section checks ────────────────────────────────────────────────────────────

def _require_body(body: Any, sections: Sequence[str]) -> Mapping[str, Any]:
    """Reject bodies that are not objects or whose sections are not objects."""
    if body is None:
        return {}
    if not isinstance(body, Mapping):
        raise InvalidRequestFormat("Request body must be a JSON object")
    for name in sections:
        value = body.get(name)
        if value is not None and not isinstance(value, Mapping):
            raise InvalidRequestFormat(f"'{name}' must be a JSON object")
    return body


def _resolve_filters(raw: Mapping[str, Any],
                     fields: Sequence[FilterField]) -> dict[str, tuple[str, Any]]:
    """Map client keys to canonical filter names; reject unknown keys.

    Returns:
        Dict of canonical name -> (key as sent by the client, value).
        Filters whose value is null are dropped.
    """
    resolved: dict[str, tuple[str, Any]] = {}
    for key, value in raw.items():
        f = find_filter_field(key, fields)
        if f is None:
            raise InvalidRequestFormat(
                f"Unknown filter field '{key}'", valid_values=filter_names(fields)
            )
        if value is None:
            continue
        if f.name in resolved:
            raise InvalidRequestFormat(f"Filter '{f.name}' was given more than once")
        resolved[f.name] = (key, value)
    return resolved


def _check_filter_value(f: FilterField, key: str, value: Any,
                        vocabulary: Vocabulary | None) -> None:
    if f.kind in ("deity", "tempo", "offering_status"):
        valid = {
            "deity": vocabulary.deities,
            "tempo": vocabulary.tempos,
            "offering_status": vocabulary.offering_statuses,
        }[f.kind]
        if not isinstance(value, str) or value not in valid:
            message = ("Invalid offering status" if f.kind == "offering_status"
                       else None)
            raise InvalidEnumValue(key, valid, message)
    elif f.kind == "date":
        if parse_iso_datetime(value) is None:
            raise InvalidDateFormat(key)
    elif f.kind == "boolean":
        if not isinstance(value, bool):
            raise InvalidType(key, "boolean")
    elif not isinstance(value, str):
        raise InvalidType(key, "string")


def _validate_filters(raw: Mapping[str, Any] | None,
                      fields: Sequence[FilterField],
                      vocabulary: Vocabulary | None) -> dict[str, Any]:
    if not raw:
        return {}
    resolved = _resolve_filters(raw, fields)
    filters: dict[str, Any] = {}
    # Check in declaration order so the reported error does not depend on
    # the key order of the client's JSON.
    for f in fields:
        if f.name not in resolved:
            continue
        key, value = resolved[f.name]
        _check_filter_value(f, key, value, vocabulary)
        if f.kind == "date":
            # Stored timestamps are normalized; compare in the same shape.
            value = normalize_timestamp(parse_iso_datetime(value))
        filters[f.name] = value
    return filters


def validate_pagination(raw: Mapping[str, Any] | None,
                        max_page_size: int = MAX_PAGE_SIZE) -> Pagination | None:
    """Validate a ``{page, pageSize}`` section.

    Raises:
        InvalidPagination: If either value is missing or not an integer,
            ``page < 1``, or ``pageSize`` is outside ``[1, max_page_size]``.
    """
    if raw is None:
        return None
    page = as_strict_int(raw.get("page"))
    page_size = as_strict_int(raw.get("pageSize"))
    if (
        page is None
        or page_size is None
        or page < 1
        or page_size < 1
        or page_size > max_page_size
    ):
        raise InvalidPagination(max_page_size)
    return Pagination(page=page, page_size=page_size)


def validate_sort(raw: Mapping[str, Any] | None,
                  sortable_fields: Sequence[str]) -> Sort | None:
    """Validate a ``{field, order}`` section against *sortable_fields*."""
    if raw is None:
        return None
    sort_field = raw.get("field")
    if not isinstance(sort_field, str) or sort_field not in sortable_fields:
        raise InvalidSortField(sort_field, sortable_fields)
    order = raw.get("order")
    if order not in SORT_ORDERS:
        raise InvalidSortOrder(order)
    return Sort(field=sort_field, order=order)


# ── Endpoint validators ───────────────────────────────────────────────────────

def validate_signup_query(body: Any, vocabulary: Vocabulary) -> SignupQuery:
    """Validate a POST /api/bhajan-signups body.

    Args:
        body: Decoded JSON body (None for an empty body).
        vocabulary: Legal deity/tempo/status values and sortable fields.

    Returns:
        SignupQuery ready for ``utils.query.translate``.

    Raises:
        ValidationError: The first rule the body breaks.
    """
    body = _require_body(body, ("filters", "pagination", "sort"))
    raw_filters = body.get("filters")
    filters = _validate_filters(raw_filters, SIGNUP_FILTERS, vocabulary)
    pagination = validate_pagination(body.get("pagination"))
    sort = validate_sort(body.get("sort"), vocabulary.sortable_fields)
    return SignupQuery(
        filters=filters,
        pagination=pagination,
        sort=sort,
        raw_filters=dict(raw_filters) if raw_filters is not None else None,
    )


def validate_catalog_query(body: Any) -> CatalogQuery:
    """Validate a POST /api/bhajans body.

    Catalog deity/tempo values are free text, so no vocabulary is needed.
    """
    body = _require_body(body, ("filters", "pagination"))
    raw_filters = body.get("filters")
    filters = _validate_filters(raw_filters, CATALOG_FILTERS, None)
    pagination = validate_pagination(body.get("pagination"))
    return CatalogQuery(
        filters=filters,
        pagination=pagination,
        raw_filters=dict(raw_filters) if raw_filters is not None else None,
    )


def _field_value(body: Mapping[str, Any], name: str) -> Any:
    """Read a create-request field, unwrapping ``{"value": ...}`` objects."""
    value = body.get(name)
    if value is None and name == "diety":
        value = body.get("deity")
    if isinstance(value, Mapping):
        value = value.get("value")
    return value


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_create_signup(body: Any, vocabulary: Vocabulary) -> NewSignup:
    """Validate a POST /api/bhajan-signup/create body.

    Unlike the query validators, every missing required field is collected
    before raising, so the client can fix them all in one round trip.

    Raises:
        MissingRequiredFields: One or more of title, singer, diety, tempo,
            offering_on is absent or blank.
        InvalidEnumValue / InvalidDateFormat / InvalidType: A supplied value
            is not legal.
    """
    body = _require_body(body, ())
    values = {name: _field_value(body, name) for name in REQUIRED_SIGNUP_FIELDS}
    missing = [name for name, value in values.items() if _is_missing(value)]
    if missing:
        raise MissingRequiredFields(missing)

    for name in ("title", "singer"):
        if not isinstance(values[name], str):
            raise InvalidType(name, "string")
    if values["diety"] not in vocabulary.deities:
        raise InvalidEnumValue("diety", vocabulary.deities)
    if values["tempo"] not in vocabulary.tempos:
        raise InvalidEnumValue("tempo", vocabulary.tempos)

    offering_on = parse_iso_datetime(values["offering_on"])
    if offering_on is None:
        raise InvalidDateFormat("offering_on")

    status = body.get("offeringStatus")
    if status is None:
        status = (DEFAULT_OFFERING_STATUS
                  if DEFAULT_OFFERING_STATUS in vocabulary.offering_statuses
                  else vocabulary.offering_statuses[-1])
    elif status not in vocabulary.offering_statuses:
        raise InvalidEnumValue("offeringStatus", vocabulary.offering_statuses,
                               "Invalid offering status")

    position = body.get("position")
    if position is None:
        position = 0
    else:
        position = as_strict_int(position)
        if position is None:
            raise InvalidType("position", "integer")

    details = body.get("details")
    if details is not None and not isinstance(details, str):
        raise InvalidType("details", "string")

    return NewSignup(
        title=values["title"].strip(),
        singer=values["singer"].strip(),
        diety=values["diety"],
        tempo=values["tempo"],
        offering_on=normalize_timestamp(offering_on),
        offering_status=status,
        position=position,
        details=details,
    )


def validate_day(value: str | None) -> date | None:
    """Validate the ``offering_on`` query parameter of the distribution reports.

    Returns:
        The parsed day, or None when no day was given.

    Raises:
        InvalidDateFormat: *value* is not a real ``YYYY-MM-DD`` date.
    """
    if not value:
        return None
    if not _DAY_PATTERN.match(value):
        raise InvalidDateFormat("offering_on", "Invalid date format. Use YYYY-MM-DD")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise InvalidDateFormat(
            "offering_on", "Invalid date format. Use YYYY-MM-DD"
        ) from None
