"""Tiered phone matching against the set of still-pending targets."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable, Iterator

# Suffix comparison needs both numbers at least this long...
SUFFIX_MIN_DIGITS = 8
# ...and compares at most this many trailing digits (national number length)
SUFFIX_DIGITS = 10


class MatchTier(str, enum.Enum):
    EXACT = "exact"
    SUFFIX = "suffix"
    SUBSTRING = "substring"


@dataclass(frozen=True)
class PhoneMatch:
    target: str
    tier: MatchTier


class TargetSet:
    """Insertion-ordered set of normalized phones that only ever shrinks."""

    def __init__(self, phones: Iterable[str] = ()):
        self._phones: dict[str, None] = dict.fromkeys(phones)

    def __contains__(self, phone: object) -> bool:
        return phone in self._phones

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._phones))

    def __len__(self) -> int:
        return len(self._phones)

    def __bool__(self) -> bool:
        return bool(self._phones)

    def __repr__(self) -> str:
        return f"TargetSet({list(self._phones)!r})"

    def discard(self, phone: str) -> None:
        self._phones.pop(phone, None)


def suffix_match(a: str, b: str) -> bool:
    """Compare trailing digits, tolerating a missing or extra country code."""
    if min(len(a), len(b)) < SUFFIX_MIN_DIGITS:
        return False
    return a[-SUFFIX_DIGITS:] == b[-SUFFIX_DIGITS:]


def substring_match(a: str, b: str) -> bool:
    """Either number contains the other.

    Loosest tier: two unrelated numbers sharing a long digit run (area code
    plus exchange) can match here.
    """
    return a in b or b in a


def match_phone(
    record_phone: str | None, pending: TargetSet | set[str]
) -> PhoneMatch | None:
    """Match a record's normalized phone against ``pending``.

    An exact hit on any target wins. Otherwise targets are tried in order,
    each first by suffix then by substring. The matched target is removed
    from ``pending``, so a record consumes at most one target.
    """
    if not record_phone:
        return None

    match = _find_match(record_phone, pending)
    if match is not None:
        pending.discard(match.target)
    return match


def _find_match(record_phone: str, pending: Iterable[str]) -> PhoneMatch | None:
    targets = list(pending)

    if record_phone in targets:
        return PhoneMatch(record_phone, MatchTier.EXACT)

    for target in targets:
        if suffix_match(record_phone, target):
            return PhoneMatch(target, MatchTier.SUFFIX)
        if substring_match(record_phone, target):
            return PhoneMatch(target, MatchTier.SUBSTRING)
    return None
