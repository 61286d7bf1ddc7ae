"""
core/merger.py -- Fold partial results into a UnifiedProfile.

Union with precedence: sources are applied in SOURCE_PRIORITY order and a
field is only written while it is still empty. Sections no source filled keep
their zero value (None / empty tuple). History lists are re-sorted newest
first so ordering holds no matter what a backend returned.

No side effects. No I/O.
"""

from datetime import date, datetime
from typing import Any, Iterable, Optional, Sequence, TypeVar

from core.models import PartialProfile, PersonRecord, SourceOutcome, UnifiedProfile

# System of record first, then the contact directory for shared fallback
# fields (display name). Sources not listed merge after these, by name.
SOURCE_PRIORITY: tuple[str, ...] = ("person", "contact", "position", "badge", "key", "loan", "credential")

# history field -> date attribute it is ordered by
HISTORY_ORDER: dict[str, str] = {
    "badges": "applied_date",
    "keys": "issued_date",
    "loans": "loan_date",
}

_PROFILE_FIELDS = ("display_name", "contact", "employment", "badges", "keys", "loans", "credential")

T = TypeVar("T")


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == ()


def _sort_key(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    # date but not datetime
    return datetime(value.year, value.month, value.day)


def newest_first(items: Iterable[T], date_attr: str) -> tuple[T, ...]:
    """Sort by date_attr descending. Undated items go last, in their original order."""
    items = list(items)
    dated = [i for i in items if isinstance(getattr(i, date_attr, None), (date, datetime))]
    undated = [i for i in items if not isinstance(getattr(i, date_attr, None), (date, datetime))]
    # sorted() is stable, so equal dates keep backend order
    dated = sorted(dated, key=lambda i: _sort_key(getattr(i, date_attr)), reverse=True)
    return tuple(dated + undated)


def _priority(source: str) -> tuple[int, str]:
    try:
        return SOURCE_PRIORITY.index(source), source
    except ValueError:
        return len(SOURCE_PRIORITY), source


def merge_partials(partials: Iterable[PartialProfile]) -> dict[str, Any]:
    """First non-empty value wins, in source priority order. Unknown fields are ignored."""
    merged: dict[str, Any] = {}
    for partial in sorted(partials, key=lambda p: _priority(p.source)):
        for name, value in partial.fields.items():
            if name not in _PROFILE_FIELDS or _is_empty(value):
                continue
            if _is_empty(merged.get(name)):
                merged[name] = value
    return merged


def build_profile(
    person: PersonRecord,
    partials: Iterable[PartialProfile],
    outcomes: Sequence[SourceOutcome] = (),
) -> UnifiedProfile:
    """Assemble the profile for a resolved person from whatever the adapters returned."""
    record = PartialProfile(source="person", fields={"display_name": _person_display_name(person)})
    merged = merge_partials([record, *partials])

    for name, date_attr in HISTORY_ORDER.items():
        if name in merged:
            merged[name] = newest_first(merged[name], date_attr)

    return UnifiedProfile(person=person, sources=tuple(outcomes), **merged)


def _person_display_name(person: PersonRecord) -> Optional[str]:
    if person.display_full_name:
        return person.display_full_name
    composed = f"{person.display_first_name or ''} {person.display_last_name or ''}".strip()
    return composed or None
