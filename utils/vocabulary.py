"""Domain vocabulary for bhajan signups.

Holds the fixed enumerations (deities, tempos, offering statuses), the set of
sortable signup fields, and the icon lookup tables derived from them.

A ``Vocabulary`` is built once at process start and never mutated; the API
stores it on ``app.state`` and hands it to the validator, formatter and
aggregation helpers instead of those modules reading module-level globals.

The enumerations drift over time (``Sai`` was added after the first release),
so each vocabulary carries a ``version`` label and can be overridden from a
JSON file::

    {
        "version": "2025.1",
        "deities": ["Sai", "Ganesha", ...],
        "tempo_icons": {"Very Fast": "⚡⚡"}
    }

Keys that are absent from the file keep their default values.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping


DEFAULT_VERSION = "2024.1"

DEITIES: tuple[str, ...] = (
    "Sai",
    "Ganesha",
    "Shiva",
    "Rama",
    "Krishna",
    "Sarva Dharma",
    "Rama, Krishna",
    "Multi Faith",
    "Other",
)

TEMPOS: tuple[str, ...] = (
    "Slow",
    "Medium",
    "Fast",
    "Very Fast",
)

OFFERING_STATUSES: tuple[str, ...] = (
    "SUNDAY-THISWEEK",
    "THURSDAY-THISWEEK",
    "NEXT-SUNDAY",
    "NEXT-THURSDAY",
    "PENDING",
)

# Icon tables are wider than the enumerations: "Medium Slow" and "Medium Fast"
# still appear in older rows and catalog entries.
DEITY_ICONS: dict[str, str] = {
    "Sai": "🙏",
    "Shiva": "🕉️",
    "Ganesha": "🐘",
    "Rama": "🏹",
    "Krishna": "🎺",
    "Sarva Dharma": "✨",
    "Rama, Krishna": "✨",
    "Multi Faith": "✨",
}

TEMPO_ICONS: dict[str, str] = {
    "Slow": "🐢",
    "Medium Slow": "🚶",
    "Medium": "⚡",
    "Medium Fast": "🏃",
    "Fast": "🚀",
}

FALLBACK_DEITY_ICON = "🙏"
FALLBACK_TEMPO_ICON = "⏱️"

SORTABLE_FIELDS: tuple[str, ...] = (
    "id",
    "created_at",
    "title",
    "position",
    "singer",
    "details",
    "signedUp",
    "tempo",
    "diety",
    "offering_on",
    "offeringStatus",
)

_LIST_KEYS = ("deities", "tempos", "offering_statuses", "sortable_fields")
_MAP_KEYS = ("deity_icons", "tempo_icons")


@dataclass(frozen=True)
class Vocabulary:
    """Immutable set of legal values and icon mappings."""

    version: str = DEFAULT_VERSION
    deities: tuple[str, ...] = DEITIES
    tempos: tuple[str, ...] = TEMPOS
    offering_statuses: tuple[str, ...] = OFFERING_STATUSES
    sortable_fields: tuple[str, ...] = SORTABLE_FIELDS
    deity_icons: Mapping[str, str] = field(default_factory=lambda: DEITY_ICONS)
    tempo_icons: Mapping[str, str] = field(default_factory=lambda: TEMPO_ICONS)
    fallback_deity_icon: str = FALLBACK_DEITY_ICON
    fallback_tempo_icon: str = FALLBACK_TEMPO_ICON

    def __post_init__(self) -> None:
        # Freeze the containers so a shared instance cannot be edited in place.
        for name in _LIST_KEYS:
            object.__setattr__(self, name, tuple(getattr(self, name)))
        for name in _MAP_KEYS:
            object.__setattr__(
                self, name, MappingProxyType(dict(getattr(self, name)))
            )

    @classmethod
    def default(cls) -> "Vocabulary":
        """Return the built-in vocabulary."""
        return cls()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Vocabulary":
        """Build a vocabulary from *data*, falling back to defaults per key.

        Args:
            data: Mapping with any subset of the dataclass field names.

        Returns:
            A new Vocabulary.

        Raises:
            ValueError: If *data* has unknown keys or wrongly-typed values.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(
                f"Unknown vocabulary keys: {', '.join(sorted(unknown))}"
            )
        overrides: dict[str, Any] = {}
        for key, value in data.items():
            if key in _LIST_KEYS:
                if not isinstance(value, list) or not all(
                    isinstance(v, str) for v in value
                ):
                    raise ValueError(f"Vocabulary '{key}' must be a list of strings")
                if not value:
                    raise ValueError(f"Vocabulary '{key}' must not be empty")
            elif key in _MAP_KEYS:
                if not isinstance(value, dict) or not all(
                    isinstance(k, str) and isinstance(v, str)
                    for k, v in value.items()
                ):
                    raise ValueError(
                        f"Vocabulary '{key}' must map strings to strings"
                    )
            elif not isinstance(value, str):
                raise ValueError(f"Vocabulary '{key}' must be a string")
            overrides[key] = value
        return replace(cls(), **overrides)

    @classmethod
    def from_file(cls, path: Path) -> "Vocabulary":
        """Load a vocabulary override from a JSON file."""
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError(f"Vocabulary file {path} must contain a JSON object")
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to plain JSON-compatible types."""
        return {
            "version": self.version,
            "deities": list(self.deities),
            "tempos": list(self.tempos),
            "offering_statuses": list(self.offering_statuses),
            "sortable_fields": list(self.sortable_fields),
            "deity_icons": dict(self.deity_icons),
            "tempo_icons": dict(self.tempo_icons),
            "fallback_deity_icon": self.fallback_deity_icon,
            "fallback_tempo_icon": self.fallback_tempo_icon,
        }


def load_vocabulary(path: Path | None = None) -> Vocabulary:
    """Return the vocabulary at *path*, or the default one when *path* is None."""
    if path is None:
        return Vocabulary.default()
    return Vocabulary.from_file(path)
