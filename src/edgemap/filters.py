"""Include/exclude filtering of locales and listed pages."""

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from functools import lru_cache
from typing import TypeVar

from edgemap.models import Filter, FilterRules, Locale

T = TypeVar("T")


@dataclass(frozen=True)
class Candidate:
    """The attributes of a listed item that filter predicates can test.

    Attributes left as ``None`` are not tested, so a rule category that
    targets them is treated as absent for this kind of item.
    """

    id: str | None = None
    url: str | None = None
    categories: tuple[str, ...] | None = None
    provider: str | None = None
    locale: str | None = None


@lru_cache(maxsize=512)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


def _category_results(rules: FilterRules, candidate: Candidate) -> list[bool]:
    """Evaluate every category that is both named and testable."""
    results: list[bool] = []
    if rules.ids and candidate.id is not None:
        results.append(candidate.id in rules.ids)
    if rules.urls and candidate.url is not None:
        results.append(any(_compile(p).search(candidate.url) for p in rules.urls))
    if rules.categories and candidate.categories is not None:
        results.append(any(c in candidate.categories for c in rules.categories))
    if rules.providers and candidate.provider is not None:
        results.append(candidate.provider in rules.providers)
    if rules.locales and candidate.locale is not None:
        results.append(candidate.locale in rules.locales)
    return results


def is_kept(filter_: Filter, candidate: Candidate) -> bool:
    """
    Decide whether a candidate survives the filter.

    A rule-set is satisfied when any applicable category matches. Include
    keeps satisfying candidates, exclude drops them. A rule-set with no
    applicable category keeps everything.

    Args:
        filter_: Include or exclude filter.
        candidate: Item attributes.

    Returns:
        True if the candidate is kept.
    """
    rules = filter_.rules
    if rules is None:
        return True
    results = _category_results(rules, candidate)
    if not results:
        return True
    satisfied = any(results)
    return satisfied if filter_.is_include else not satisfied


def apply_filter(filter_: Filter, items: Iterable[T], to_candidate: Callable[[T], Candidate]) -> list[T]:
    """Keep the items that survive the filter, preserving order."""
    return [item for item in items if is_kept(filter_, to_candidate(item))]


def filter_locales(filter_: Filter, locales: Iterable[Locale]) -> list[Locale]:
    """Apply the ``locales`` category of a filter to a list of locale codes."""
    return apply_filter(filter_, locales, lambda code: Candidate(locale=code))
