"""Shared utilities for the bhajan signup API."""

# Vocabulary
from utils.vocabulary import Vocabulary, load_vocabulary

# Error taxonomy
from utils.errors import (
    ApiError,
    ValidationError,
    InvalidEnumValue,
    InvalidDateFormat,
    InvalidType,
    InvalidPagination,
    InvalidSortField,
    InvalidSortOrder,
    MissingRequiredFields,
    InvalidRequestFormat,
    ConflictError,
    DuplicateEntry,
    UpstreamError,
    UnknownError,
)

# Request validation
from utils.validation import (
    validate_signup_query,
    validate_catalog_query,
    validate_create_signup,
    validate_day,
)

# Query translation
from utils.query import (
    SIGNUP_FILTERS,
    CATALOG_FILTERS,
    QueryPlan,
    translate,
    day_window,
    build_where_clause,
    build_order_clause,
    build_limit_clause,
)

# Output formatting
from utils.formatting import (
    deity_icon,
    tempo_icon,
    format_signup,
    format_catalog_entry,
    format_duration_ms,
)

# Distributions
from utils.aggregation import deity_distribution, tempo_distribution

# Database utilities
from utils.database import (
    Table,
    init_pragmas,
    init_schema,
    batch_insert,
    table_exists,
    query_to_dicts,
)

# Configuration
from utils.config import Config, AppConfig

__all__ = [
    # Vocabulary
    "Vocabulary",
    "load_vocabulary",
    # Errors
    "ApiError",
    "ValidationError",
    "InvalidEnumValue",
    "InvalidDateFormat",
    "InvalidType",
    "InvalidPagination",
    "InvalidSortField",
    "InvalidSortOrder",
    "MissingRequiredFields",
    "InvalidRequestFormat",
    "ConflictError",
    "DuplicateEntry",
    "UpstreamError",
    "UnknownError",
    # Validation
    "validate_signup_query",
    "validate_catalog_query",
    "validate_create_signup",
    "validate_day",
    # Query
    "SIGNUP_FILTERS",
    "CATALOG_FILTERS",
    "QueryPlan",
    "translate",
    "day_window",
    "build_where_clause",
    "build_order_clause",
    "build_limit_clause",
    # Formatting
    "deity_icon",
    "tempo_icon",
    "format_signup",
    "format_catalog_entry",
    "format_duration_ms",
    # Aggregation
    "deity_distribution",
    "tempo_distribution",
    # Database
    "Table",
    "init_pragmas",
    "init_schema",
    "batch_insert",
    "table_exists",
    "query_to_dicts",
    # Config
    "Config",
    "AppConfig",
]
