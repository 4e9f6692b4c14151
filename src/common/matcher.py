"""Pattern matchers used for changing-module detection, module rules and artifact filters."""

from __future__ import annotations

import fnmatch
import re
from typing import Dict, Optional

from constants import Matchers

ANY_EXPRESSION = "*"


class Matcher:
    """Tests a single string against a compiled expression."""

    def matches(self, value: Optional[str]) -> bool:  # pragma: no cover - interface
        raise NotImplementedError

    @property
    def is_exact(self) -> bool:
        return False


class NoMatcher(Matcher):
    """Never matches; used when no pattern is configured."""

    def matches(self, value: Optional[str]) -> bool:
        return False

    @property
    def is_exact(self) -> bool:
        return True


class AnyMatcher(Matcher):
    """Matches everything, including None."""

    def matches(self, value: Optional[str]) -> bool:
        return True


class _ExactMatcher(Matcher):
    def __init__(self, expression: str):
        self._expression = expression

    def matches(self, value: Optional[str]) -> bool:
        return value is not None and value == self._expression

    @property
    def is_exact(self) -> bool:
        return True


class _RegexpMatcher(Matcher):
    def __init__(self, expression: str):
        self._pattern = re.compile(expression)

    def matches(self, value: Optional[str]) -> bool:
        return value is not None and self._pattern.fullmatch(value) is not None


class PatternMatcher:
    """A named matching algorithm producing Matchers from expressions."""

    name = ""

    def get_matcher(self, expression: str) -> Matcher:
        if expression == ANY_EXPRESSION:
            return AnyMatcher()
        return self._compile(expression)

    def _compile(self, expression: str) -> Matcher:  # pragma: no cover - interface
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name})"


class ExactPatternMatcher(PatternMatcher):
    name = Matchers.EXACT.value

    def _compile(self, expression: str) -> Matcher:
        return _ExactMatcher(expression)


class RegexpPatternMatcher(PatternMatcher):
    name = Matchers.REGEXP.value

    def _compile(self, expression: str) -> Matcher:
        return _RegexpMatcher(expression)


class GlobPatternMatcher(PatternMatcher):
    name = Matchers.GLOB.value

    def _compile(self, expression: str) -> Matcher:
        return _RegexpMatcher(fnmatch.translate(expression))


class ExactOrRegexpPatternMatcher(PatternMatcher):
    """Matches when the value equals the expression or fully matches it as a regex."""

    name = Matchers.EXACT_OR_REGEXP.value

    def _compile(self, expression: str) -> Matcher:
        exact = _ExactMatcher(expression)
        try:
            regexp: Matcher = _RegexpMatcher(expression)
        except re.error:
            return exact
        return _EitherMatcher(exact, regexp)


class _EitherMatcher(Matcher):
    def __init__(self, first: Matcher, second: Matcher):
        self._first = first
        self._second = second

    def matches(self, value: Optional[str]) -> bool:
        return self._first.matches(value) or self._second.matches(value)


def default_matchers() -> Dict[str, PatternMatcher]:
    """Return a fresh name -> PatternMatcher registry with the built-in matchers."""
    matchers = [
        ExactPatternMatcher(),
        RegexpPatternMatcher(),
        GlobPatternMatcher(),
        ExactOrRegexpPatternMatcher(),
    ]
    return {m.name: m for m in matchers}
