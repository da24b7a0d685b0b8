"""
Bhajan catalog endpoint.

POST /api/bhajans → filtered, paginated catalog listing.

Catalog deity/tempo columns are free text, so filters are matched as given
and icons are attached only when the value is a known vocabulary member.
"""

import logging
import sqlite3
from typing import Any

from fastapi import APIRouter, Body, Depends

from api.database import get_db, get_vocabulary
from api.models import CatalogListResponse, CatalogQueryIn, ErrorResponse, request_body
from utils.database import Table
from utils.errors import UpstreamError
from utils.formatting import format_catalog_entry
from utils.query import CATALOG_FILTERS, CATALOG_TABLE, translate
from utils.validation import CatalogQuery, validate_catalog_query
from utils.vocabulary import Vocabulary

router = APIRouter(tags=["bhajans"])

logger = logging.getLogger("bhajan_api.bhajans")


def catalog_query(body: Any = Body(None)) -> CatalogQuery:
    """Validated body of POST /bhajans, checked before get_db opens a connection."""
    return validate_catalog_query(body)


@router.post(
    "/bhajans",
    summary="List catalog bhajans",
    responses={
        200: {"model": CatalogListResponse},
        400: {"model": ErrorResponse, "description": "Validation error"},
        500: {"model": ErrorResponse, "description": "Datastore error"},
    },
    openapi_extra=request_body(CatalogQueryIn),
)
def list_bhajans(
    query: CatalogQuery = Depends(catalog_query),
    conn: sqlite3.Connection = Depends(get_db),
    vocabulary: Vocabulary = Depends(get_vocabulary),
) -> dict:
    """Return catalog entries matching the filters, in id order."""
    plan = translate(query, CATALOG_FILTERS)
    logger.info("bhajans pseudo_sql=%s", plan.to_pseudo_sql(CATALOG_TABLE))

    try:
        rows, total = Table(conn, CATALOG_TABLE).select(plan, count=True)
    except sqlite3.Error as exc:
        logger.exception("bhajans query failed")
        raise UpstreamError("Failed to fetch bhajans", str(exc)) from exc

    data = [format_catalog_entry(row, vocabulary) for row in rows]
    return {
        "data": data,
        "total": total or 0,
        "page": query.pagination.page if query.pagination else 1,
        "pageSize": query.pagination.page_size if query.pagination else len(data),
    }
