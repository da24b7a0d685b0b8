"""
Bhajan signup endpoints.

POST /api/bhajan-signups                         → filtered, sorted, paginated list
POST /api/bhajan-signup/create                   → create a signup (signedUp forced true)
GET  /api/bhajan-signups/deity-distribution      → signed-up count per deity
GET  /api/bhajan-signups/tempo-distribution      → signed-up count per tempo

Request bodies and query parameters are validated by dependencies declared
ahead of get_db, so a bad request is rejected before a connection is opened.
Datastore failures surface as UpstreamError (500) with the sqlite message as
details.
"""

import logging
import sqlite3
import time
import uuid
from datetime import date, datetime, timezone
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, status

from api.database import get_db, get_vocabulary
from api.models import (
    CreateSignupIn,
    CreateSignupResponse,
    DeityDistributionResponse,
    ErrorResponse,
    SignupListResponse,
    SignupQueryIn,
    TempoDistributionResponse,
    request_body,
)
from utils.aggregation import deity_distribution, tempo_distribution
from utils.database import Table
from utils.errors import DuplicateEntry, UpstreamError
from utils.formatting import format_duration_ms, format_signup
from utils.query import SIGNUP_FILTERS, SIGNUPS_TABLE, QueryPlan, day_window, translate
from utils.validation import (
    NewSignup,
    SignupQuery,
    normalize_timestamp,
    validate_create_signup,
    validate_day,
    validate_signup_query,
)
from utils.vocabulary import Vocabulary

router = APIRouter(tags=["signups"])

logger = logging.getLogger("bhajan_api.signups")

_ERRORS = {
    400: {"model": ErrorResponse, "description": "Validation error"},
    500: {"model": ErrorResponse, "description": "Datastore error"},
}


# ── Request dependencies ──────────────────────────────────────────────────────

def signup_query(
    body: Any = Body(None),
    vocabulary: Vocabulary = Depends(get_vocabulary),
) -> SignupQuery:
    """Validated body of POST /bhajan-signups."""
    return validate_signup_query(body, vocabulary)


def new_signup(
    body: Any = Body(None),
    vocabulary: Vocabulary = Depends(get_vocabulary),
) -> NewSignup:
    """Validated body of POST /bhajan-signup/create."""
    return validate_create_signup(body, vocabulary)


def offering_day(
    offering_on: str | None = Query(None, description="Limit to one day, YYYY-MM-DD"),
) -> date | None:
    """Validated ``offering_on`` of the distribution reports."""
    return validate_day(offering_on)


# ── Routes ────────────────────────────────────────────────────────────────────

@router.post(
    "/bhajan-signups",
    summary="List bhajan signups",
    responses={200: {"model": SignupListResponse}, **_ERRORS},
    openapi_extra=request_body(SignupQueryIn),
)
def list_signups(
    query: SignupQuery = Depends(signup_query),
    conn: sqlite3.Connection = Depends(get_db),
    vocabulary: Vocabulary = Depends(get_vocabulary),
) -> dict:
    """Return signups matching the filters, with the total match count."""
    start = time.perf_counter()
    plan = translate(query, SIGNUP_FILTERS)
    logger.info("signups filters=%s sort=%s page=%s",
                plan.applied_filters(), plan.ordering, plan.page)
    logger.info("signups pseudo_sql=%s", plan.to_pseudo_sql(SIGNUPS_TABLE))

    try:
        rows, total = Table(conn, SIGNUPS_TABLE).select(plan, count=True)
    except sqlite3.Error as exc:
        logger.exception("signups query failed")
        raise UpstreamError("Failed to fetch Bhajan signups", str(exc)) from exc

    data = [format_signup(row, vocabulary) for row in rows]
    execution_time = format_duration_ms(time.perf_counter() - start)
    logger.info("signups results=%d total=%d time=%s",
                len(data), total, execution_time)

    return {
        "data": data,
        "total": total or 0,
        "page": query.pagination.page if query.pagination else 1,
        "pageSize": query.pagination.page_size if query.pagination else len(data),
        "debug": {
            "executionTime": execution_time,
            "appliedFilters": query.raw_filters,
            "resultCount": len(data),
        },
    }


@router.post(
    "/bhajan-signup/create",
    status_code=status.HTTP_201_CREATED,
    summary="Create a bhajan signup",
    responses={
        201: {"model": CreateSignupResponse},
        409: {"model": ErrorResponse, "description": "Duplicate signup"},
        **_ERRORS,
    },
    openapi_extra=request_body(CreateSignupIn),
)
def create_signup(
    signup: NewSignup = Depends(new_signup),
    conn: sqlite3.Connection = Depends(get_db),
    vocabulary: Vocabulary = Depends(get_vocabulary),
) -> dict:
    """Store a new signup and return it formatted."""
    start = time.perf_counter()
    row = signup.to_row(
        signup_id=str(uuid.uuid4()),
        created_at=normalize_timestamp(datetime.now(timezone.utc)),
    )

    try:
        stored = Table(conn, SIGNUPS_TABLE).insert(row)
    except DuplicateEntry:
        logger.warning("signup duplicate singer=%r title=%r offering_on=%s",
                       row["singer"], row["title"], row["offering_on"])
        raise
    except sqlite3.Error as exc:
        logger.exception("signup insert failed")
        raise UpstreamError("Failed to create Bhajan signup", str(exc)) from exc

    execution_time = format_duration_ms(time.perf_counter() - start)
    logger.info("signup created id=%s time=%s", row["id"], execution_time)
    return {
        "data": format_signup(stored, vocabulary),
        "debug": {"executionTime": execution_time, "insertedId": row["id"]},
    }


def _signed_up_rows(conn: sqlite3.Connection, column: str,
                    day: date | None) -> list[dict]:
    """Fetch (column, signedUp, offering_on) for the optional day."""
    plan = QueryPlan(filters=day_window("offering_on", day) if day else [])
    if day:
        logger.info("distribution window %s", plan.to_pseudo_sql(SIGNUPS_TABLE))
    rows, _ = Table(conn, SIGNUPS_TABLE).select(
        plan, columns=[column, "signedUp", "offering_on"]
    )
    return rows


def _day_label(day: date | None) -> str | None:
    return day.isoformat() if day else None


@router.get(
    "/bhajan-signups/deity-distribution",
    summary="Signed-up count per deity",
    responses={200: {"model": DeityDistributionResponse}, **_ERRORS},
)
def get_deity_distribution(
    day: date | None = Depends(offering_day),
    conn: sqlite3.Connection = Depends(get_db),
    vocabulary: Vocabulary = Depends(get_vocabulary),
) -> dict:
    """Return one entry per known deity, in vocabulary order, zero-filled."""
    try:
        rows = _signed_up_rows(conn, "diety", day)
    except sqlite3.Error as exc:
        logger.exception("deity distribution query failed")
        raise UpstreamError("Failed to fetch deity distribution", str(exc)) from exc
    data = deity_distribution(rows, vocabulary)
    logger.info("deity distribution date=%s counts=%s",
                _day_label(day) or "all dates",
                {d["diety"]: d["count"] for d in data})
    return {
        "status": "success",
        "data": data,
        "filters": {"offering_on": _day_label(day)},
    }


@router.get(
    "/bhajan-signups/tempo-distribution",
    summary="Signed-up count per tempo",
    responses={200: {"model": TempoDistributionResponse}, **_ERRORS},
)
def get_tempo_distribution(
    day: date | None = Depends(offering_day),
    conn: sqlite3.Connection = Depends(get_db),
    vocabulary: Vocabulary = Depends(get_vocabulary),
) -> dict:
    """Return one entry per known tempo, in vocabulary order, zero-filled."""
    try:
        rows = _signed_up_rows(conn, "tempo", day)
    except sqlite3.Error as exc:
        logger.exception("tempo distribution query failed")
        raise UpstreamError("Failed to fetch tempo distribution", str(exc)) from exc
    data = tempo_distribution(rows, vocabulary)
    logger.info("tempo distribution date=%s counts=%s",
                _day_label(day) or "all dates",
                {d["tempo"]: d["count"] for d in data})
    return {
        "status": "success",
        "data": data,
        "filters": {"offering_on": _day_label(day)},
    }
