"""Tests for branch reference matching and classification."""

import re

import pytest

from gitops_runner.core.branches import BranchPatterns, classify, is_valid_ref
from gitops_runner.errors import ErrorKind, InvalidArgument
from gitops_runner.models import DEVELOPMENT, PRODUCTION, TEST, UNCLASSIFIED


@pytest.fixture
def patterns():
    return BranchPatterns.compile("develop", "test", "master")


class TestIsValidRef:
    def test_full_match(self):
        assert is_valid_ref("develop", "develop")

    def test_substring_does_not_match(self):
        assert not is_valid_ref("feature/develop", "develop")
        assert not is_valid_ref("develop-2", "develop")

    def test_compiled_pattern(self):
        assert is_valid_ref("release/1.2", re.compile(r"release/\d+\.\d+"))
        assert not is_valid_ref("release/next", re.compile(r"release/\d+\.\d+"))

    def test_empty_reference(self):
        with pytest.raises(InvalidArgument) as exc_info:
            is_valid_ref("", "develop")
        assert exc_info.value.kind is ErrorKind.INVALID_ARGUMENT

    def test_empty_pattern(self):
        with pytest.raises(InvalidArgument):
            is_valid_ref("develop", "")


class TestClassify:
    def test_each_class(self, patterns):
        assert classify("develop", patterns) == DEVELOPMENT
        assert classify("test", patterns) == TEST
        assert classify("master", patterns) == PRODUCTION

    def test_unclassified(self, patterns):
        assert classify("feature/x", patterns) == UNCLASSIFIED

    def test_deterministic(self, patterns):
        results = {classify("master", patterns) for _ in range(10)}
        assert results == {PRODUCTION}

    def test_overlapping_patterns_prefer_development_then_test(self):
        overlapping = BranchPatterns.compile(r"release/.*", r"release/rc.*", r".*")
        assert classify("release/rc1", overlapping) == DEVELOPMENT
        assert classify("hotfix", overlapping) == PRODUCTION

        test_first = BranchPatterns.compile("develop", r"rc-.*", r".*")
        assert classify("rc-1", test_first) == TEST

    def test_regex_patterns(self):
        regex = BranchPatterns.compile(r"dev(elop)?", r"(qa|test)", r"(main|master)")
        assert classify("dev", regex) == DEVELOPMENT
        assert classify("qa", regex) == TEST
        assert classify("main", regex) == PRODUCTION
        assert classify("mainline", regex) == UNCLASSIFIED

    def test_empty_reference(self, patterns):
        with pytest.raises(InvalidArgument):
            classify("", patterns)

    def test_missing_patterns(self):
        with pytest.raises(InvalidArgument):
            classify("develop", None)


class TestBranchPatterns:
    def test_ordered(self, patterns):
        assert [name for name, _ in patterns.ordered()] == [DEVELOPMENT, TEST, PRODUCTION]

    def test_empty_pattern_rejected(self):
        with pytest.raises(InvalidArgument, match="test branch pattern"):
            BranchPatterns.compile("develop", "", "master")

    def test_invalid_regex_rejected(self):
        with pytest.raises(InvalidArgument, match="Invalid branch pattern"):
            BranchPatterns.compile("develop", "test(", "master")
