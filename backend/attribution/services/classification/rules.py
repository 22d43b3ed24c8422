"""Ordered (predicate, result) tables with first-match-wins evaluation."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Generic, Iterable, Optional, Sequence, TypeVar

T = TypeVar("T")

Predicate = Callable[[str], bool]


@dataclass(frozen=True)
class Rule(Generic[T]):
    predicate: Predicate
    result: T


def pattern(regex: str, result: T, flags: int = re.IGNORECASE) -> Rule[T]:
    """Rule that fires when ``regex`` is found anywhere in the input."""
    compiled = re.compile(regex, flags)
    return Rule(predicate=lambda text: compiled.search(text) is not None, result=result)


def patterns(regexes: Iterable[str], result: T, flags: int = re.IGNORECASE) -> list[Rule[T]]:
    return [pattern(regex, result, flags) for regex in regexes]


def first_match(rules: Sequence[Rule[T]], text: Optional[str]) -> Optional[T]:
    """Return the result of the first rule whose predicate accepts ``text``."""
    if not text:
        return None
    for rule in rules:
        if rule.predicate(text):
            return rule.result
    return None


def first_match_any(rules: Sequence[Rule[T]], texts: Iterable[Optional[str]]) -> Optional[T]:
    """Try every text in order against the whole table before moving on."""
    for text in texts:
        result = first_match(rules, text)
        if result is not None:
            return result
    return None


def matches_any(rules: Sequence[Rule[object]], text: Optional[str]) -> bool:
    return first_match(rules, text) is not None
