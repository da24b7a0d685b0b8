"""Count-by-category reports over bhajan signups.

A distribution is zero-filled and follows the vocabulary's declaration order:
every known deity (or tempo) appears exactly once, even with a zero count, so
a chart can be drawn without filling in missing categories.  Only rows whose
``signedUp`` flag is truthy are counted; values outside the vocabulary are
skipped.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Sequence

from utils.formatting import deity_icon, tempo_icon
from utils.vocabulary import Vocabulary


def distribution(
    rows: Iterable[Mapping[str, Any]],
    column: str,
    members: Sequence[str],
    icon_for: Callable[[str], str],
    label: str | None = None,
) -> list[dict[str, Any]]:
    """Count signed-up rows per enumeration member.

    Args:
        rows: Rows carrying at least *column* and ``signedUp``.
        column: Row key holding the category value.
        members: Enumeration members, in output order.
        icon_for: Returns the icon for a member.
        label: Output key for the member (defaults to *column*).

    Returns:
        One ``{label, "icon", "count"}`` dict per member.
    """
    label = label or column
    counts = dict.fromkeys(members, 0)
    for row in rows:
        if not row.get("signedUp"):
            continue
        value = row.get(column)
        if value in counts:
            counts[value] += 1
    return [
        {label: member, "icon": icon_for(member), "count": counts[member]}
        for member in members
    ]


def deity_distribution(rows: Iterable[Mapping[str, Any]],
                       vocabulary: Vocabulary) -> list[dict[str, Any]]:
    return distribution(
        rows, "diety", vocabulary.deities,
        lambda member: deity_icon(member, vocabulary),
    )


def tempo_distribution(rows: Iterable[Mapping[str, Any]],
                       vocabulary: Vocabulary) -> list[dict[str, Any]]:
    """Signed-up count per tempo.

    Tempos without an icon of their own (``Very Fast`` by default) get the
    same fallback glyph as formatted signups, ``vocabulary.fallback_tempo_icon``.
    """
    return distribution(
        rows, "tempo", vocabulary.tempos,
        lambda member: tempo_icon(member, vocabulary),
    )
