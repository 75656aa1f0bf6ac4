"""
Effective-dated catalog entries.

Plan quota defaults, plan rates and add-on rates are versioned by
effective date: an entry becomes current on its date and stays current
until a later-dated entry takes over. Entries dated in the future are
ignored until their date arrives.
"""

from datetime import datetime
from itertools import groupby
from typing import (
    Callable,
    Dict,
    Hashable,
    Iterable,
    List,
    Optional,
    Protocol,
    Sequence,
    TypeVar,
)

from common.core.clock import ensure_utc


class EffectiveDated(Protocol):
    effective_date: datetime


E = TypeVar("E", bound=EffectiveDated)


def current_of(entries: Sequence[E], now: datetime) -> Optional[E]:
    """
    Return the latest entry whose effective date is not after `now`.

    `entries` must be ordered by effective date ascending. Returns None when
    the list is empty or every entry is still in the future.
    """
    now = ensure_utc(now)
    current = None
    for entry in entries:
        if ensure_utc(entry.effective_date) > now:
            break
        current = entry
    return current


def current_per_key(
    entries: Iterable[E], key: Callable[[E], Hashable], now: datetime
) -> Dict[Hashable, E]:
    """Apply current_of separately within each group of entries sharing `key`."""
    ordered = sorted(entries, key=lambda e: (key(e), ensure_utc(e.effective_date)))
    result = {}
    for group_key, group in groupby(ordered, key=key):
        current = current_of(list(group), now)
        if current is not None:
            result[group_key] = current
    return result


def duplicate_dates(
    entries: Iterable[E], key: Callable[[E], Hashable] = lambda e: None
) -> List[datetime]:
    """Effective dates that occur more than once within the same key."""
    seen = set()
    duplicates = []
    for entry in entries:
        marker = (key(entry), ensure_utc(entry.effective_date))
        if marker in seen:
            duplicates.append(entry.effective_date)
        seen.add(marker)
    return duplicates
