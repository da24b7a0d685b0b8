"""
Pydantic request/response models for the API.

These models document the JSON contract in the OpenAPI schema at /docs.
Routes validate request bodies with utils.validation (so every rejection
carries a specific error code) and return plain dicts.  Request models are
attached through ``openapi_extra=request_body(...)``; response models through
``responses=`` rather than ``response_model=`` so rows are not re-shaped on
the way out (a column that is null stays null, a column that is absent stays
absent).
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.json_schema import models_json_schema


# ── Shared pieces ─────────────────────────────────────────────────────────────

class TaggedValue(BaseModel):
    """A category value with its display icon."""
    value: str | None = Field(None, description="Stored value", examples=["Fast"])
    icon: str | None = Field(None, description="Derived display icon", examples=["🚀"])


class PaginationIn(BaseModel):
    page: int = Field(..., ge=1, description="1-based page number", examples=[1])
    pageSize: int = Field(..., ge=1, le=100, description="Rows per page", examples=[20])


class SortIn(BaseModel):
    field: str = Field(..., description="Sortable signup column", examples=["offering_on"])
    order: Literal["asc", "desc"] = Field(..., examples=["desc"])


# ── Signups ───────────────────────────────────────────────────────────────────

class SignupFiltersIn(BaseModel):
    """Signup filters. ``singer`` is a case-insensitive substring match; all others are exact."""
    created_at: str | None = Field(None, description="ISO-8601 timestamp")
    singer: str | None = Field(None, examples=["lakshmi"])
    diety: str | None = Field(None, description="Deity (alias: deity)", examples=["Shiva"])
    tempo: str | None = Field(None, examples=["Fast"])
    offering_on: str | None = Field(None, description="ISO-8601 date or timestamp")
    offeringStatus: str | None = Field(None, examples=["NEXT-SUNDAY"])
    signedUp: bool | None = None


class SignupQueryIn(BaseModel):
    """Body of POST /api/bhajan-signups."""
    filters: SignupFiltersIn | None = None
    pagination: PaginationIn | None = None
    sort: SortIn | None = None


class CreateSignupIn(BaseModel):
    """Body of POST /api/bhajan-signup/create. ``signedUp`` is always stored as true."""
    title: str = Field(..., examples=["Om Namah Shivaya"])
    singer: str = Field(..., examples=["Lakshmi"])
    diety: TaggedValue = Field(..., description="Deity; only ``value`` is read")
    tempo: TaggedValue = Field(..., description="Tempo; only ``value`` is read")
    offering_on: str = Field(..., description="ISO-8601 date or timestamp", examples=["2024-05-12T18:00:00"])
    offeringStatus: str | None = Field(None, description="Defaults to PENDING")
    position: int | None = Field(None, description="Ordering hint; defaults to 0")
    details: str | None = None


class SignupOut(BaseModel):
    """A formatted Bhajan_Signups row."""
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Opaque unique id")
    created_at: str = Field(..., description="Creation timestamp")
    title: str | None = None
    position: int = 0
    singer: str | None = None
    details: str | None = None
    signedUp: bool = False
    tempo: TaggedValue
    diety: TaggedValue
    offering_on: str | None = None
    offeringStatus: str


class QueryDebug(BaseModel):
    executionTime: str = Field(..., examples=["3.41ms"])
    appliedFilters: dict[str, Any] | None = Field(None, description="Filters as received")
    resultCount: int = Field(..., description="Rows in this page")


class SignupListResponse(BaseModel):
    data: list[SignupOut]
    total: int = Field(..., description="Rows matching the filters, ignoring pagination")
    page: int
    pageSize: int
    debug: QueryDebug


class CreateDebug(BaseModel):
    executionTime: str
    insertedId: str


class CreateSignupResponse(BaseModel):
    data: SignupOut
    debug: CreateDebug


# ── Catalog ───────────────────────────────────────────────────────────────────

class CatalogFiltersIn(BaseModel):
    """Catalog filters. ``title`` is a case-insensitive substring match; all others are exact."""
    title: str | None = None
    deity: str | None = None
    tempo: str | None = None
    language: str | None = None
    level: str | None = None
    raga: str | None = None
    beat: str | None = None


class CatalogQueryIn(BaseModel):
    """Body of POST /api/bhajans."""
    filters: CatalogFiltersIn | None = None
    pagination: PaginationIn | None = None


class CatalogEntryOut(BaseModel):
    """A formatted Bhajans row. Icons are null when the free-text value is not recognised."""
    model_config = ConfigDict(extra="allow")

    id: int
    title: str
    lyrics: str | None = None
    meaning: str | None = None
    deity: TaggedValue
    tempo: TaggedValue
    language: str | None = None
    level: str | None = None
    raga: str | None = None
    beat: str | None = None
    gents_pitch: str | None = None
    ladies_pitch: str | None = None
    lyrics_link: str | None = None
    audio_link: str | None = None


class CatalogListResponse(BaseModel):
    data: list[CatalogEntryOut]
    total: int
    page: int
    pageSize: int


# ── Distributions ─────────────────────────────────────────────────────────────

class DeityCount(BaseModel):
    diety: str
    icon: str
    count: int


class TempoCount(BaseModel):
    tempo: str
    icon: str
    count: int


class DistributionFilters(BaseModel):
    offering_on: str | None = Field(None, description="Day the report was limited to")


class DeityDistributionResponse(BaseModel):
    status: str = Field(..., examples=["success"])
    data: list[DeityCount]
    filters: DistributionFilters


class TempoDistributionResponse(BaseModel):
    status: str = Field(..., examples=["success"])
    data: list[TempoCount]
    filters: DistributionFilters


# ── Meta ──────────────────────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str = Field(..., examples=["healthy"])
    validDieties: list[str]
    validTempos: list[str]
    validOfferingStatuses: list[str]
    vocabularyVersion: str


# ── Error model ───────────────────────────────────────────────────────────────

class ErrorResponse(BaseModel):
    """Standard error response body."""
    error: str = Field(..., description="Human-readable error", examples=["Invalid diety value"])
    code: str = Field(..., description="Error code", examples=["InvalidEnumValue"])
    status_code: int = Field(..., ge=400, le=599, description="HTTP status code", examples=[400])
    details: str | None = Field(None, description="Extended error detail")
    field: str | None = Field(None, description="Offending request field")
    validValues: list[str] | None = Field(None, description="Legal values for the field")
    missingFields: list[str] | None = Field(None, description="Every absent required field")


# ── Request body documentation ────────────────────────────────────────────────

REQUEST_MODELS = (SignupQueryIn, CreateSignupIn, CatalogQueryIn)

_COMPONENT_REF = "#/components/schemas/{model}"


def request_body(model: type[BaseModel]) -> dict[str, Any]:
    """``openapi_extra`` fragment naming *model* as the JSON request body.

    Routes still receive the raw body and validate it with utils.validation;
    this only documents the shape at /docs.
    """
    return {
        "requestBody": {
            "content": {
                "application/json": {
                    "schema": {"$ref": _COMPONENT_REF.format(model=model.__name__)},
                },
            },
        },
    }


def request_schemas() -> dict[str, Any]:
    """JSON schemas of REQUEST_MODELS and their nested models, keyed by name."""
    _, top = models_json_schema(
        [(model, "validation") for model in REQUEST_MODELS],
        ref_template=_COMPONENT_REF,
    )
    return top.get("$defs", {})
