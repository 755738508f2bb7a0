"""Branch reference matching and GitOps branch classification."""

import re
from dataclasses import dataclass

from gitops_runner.errors import InvalidArgument
from gitops_runner.models import DEVELOPMENT, PRODUCTION, TEST, UNCLASSIFIED


@dataclass(frozen=True)
class BranchPatterns:
    development: re.Pattern
    test: re.Pattern
    production: re.Pattern

    def ordered(self) -> list[tuple[str, re.Pattern]]:
        """Patterns in the order they are tested; the first match wins."""
        return [
            (DEVELOPMENT, self.development),
            (TEST, self.test),
            (PRODUCTION, self.production),
        ]

    @classmethod
    def compile(cls, development: str, test: str, production: str) -> "BranchPatterns":
        for name, value in (("development", development), ("test", test), ("production", production)):
            if not value:
                raise InvalidArgument(f"The {name} branch pattern must not be empty")
        try:
            return cls(re.compile(development), re.compile(test), re.compile(production))
        except re.error as e:
            raise InvalidArgument(f"Invalid branch pattern: {e}") from e


def is_valid_ref(reference: str, pattern: re.Pattern | str) -> bool:
    """Return True if the whole reference matches the pattern."""
    if not reference:
        raise InvalidArgument("reference must not be empty")
    if pattern is None or not getattr(pattern, "pattern", pattern):
        raise InvalidArgument("pattern must not be empty")
    return re.fullmatch(pattern, reference) is not None


def classify(reference: str, patterns: BranchPatterns) -> str:
    """Classify a reference as development, test, production or unclassified.

    Overlapping patterns are resolved by testing development, then test, then
    production.
    """
    if not reference:
        raise InvalidArgument("reference must not be empty")
    if patterns is None:
        raise InvalidArgument("branch patterns must be provided")

    for branch_class, pattern in patterns.ordered():
        if is_valid_ref(reference, pattern):
            return branch_class
    return UNCLASSIFIED
