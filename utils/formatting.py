"""Output formatting for bhajan signup and catalog rows.

Provides:
- Icon lookups for deity and tempo values
- Row formatters that wrap ``tempo``/``diety`` (signups) and
  ``deity``/``tempo`` (catalog) into ``{"value": ..., "icon": ...}``
- Execution-time formatting for response debug blocks

Formatters are pure: they return a new dict and leave the source row alone.
Columns other than the wrapped ones pass through unchanged, keeping the
difference between a null column and an absent one.
"""

from __future__ import annotations

from typing import Any, Mapping

from utils.vocabulary import Vocabulary


def deity_icon(value: Any, vocabulary: Vocabulary) -> str:
    """Icon for a signup deity, or the fallback glyph when unknown."""
    if not isinstance(value, str):
        return vocabulary.fallback_deity_icon
    return vocabulary.deity_icons.get(value, vocabulary.fallback_deity_icon)


def tempo_icon(value: Any, vocabulary: Vocabulary) -> str:
    """Icon for a signup tempo, or the fallback glyph when unknown."""
    if not isinstance(value, str):
        return vocabulary.fallback_tempo_icon
    return vocabulary.tempo_icons.get(value, vocabulary.fallback_tempo_icon)


def format_signup(row: Mapping[str, Any], vocabulary: Vocabulary) -> dict[str, Any]:
    """Shape a Bhajan_Signups row for the API response.

    Examples:
        {"tempo": "Fast", "diety": "Shiva", ...} ->
        {"tempo": {"value": "Fast", "icon": "🚀"},
         "diety": {"value": "Shiva", "icon": "🕉️"}, ...}
    """
    out = dict(row)
    out["tempo"] = {"value": row.get("tempo"),
                    "icon": tempo_icon(row.get("tempo"), vocabulary)}
    out["diety"] = {"value": row.get("diety"),
                    "icon": deity_icon(row.get("diety"), vocabulary)}
    # SQLite hands booleans back as 0/1.
    if out.get("signedUp") is not None:
        out["signedUp"] = bool(out["signedUp"])
    return out


def _catalog_tag(value: Any, icons: Mapping[str, str]) -> dict[str, Any]:
    icon = icons.get(value) if isinstance(value, str) else None
    return {"value": value, "icon": icon}


def format_catalog_entry(row: Mapping[str, Any],
                         vocabulary: Vocabulary) -> dict[str, Any]:
    """Shape a Bhajans row for the API response.

    Catalog deity/tempo values are free text, so an unmatched value gets
    ``icon: None`` rather than a fallback glyph.
    """
    out = dict(row)
    out["deity"] = _catalog_tag(row.get("deity"), vocabulary.deity_icons)
    out["tempo"] = _catalog_tag(row.get("tempo"), vocabulary.tempo_icons)
    return out


def format_duration_ms(seconds: float) -> str:
    """Format an elapsed time for debug output.

    Examples:
        format_duration_ms(0.01234) -> "12.34ms"
    """
    return f"{seconds * 1000:.2f}ms"
