#!/usr/bin/env python3
"""
Unit tests for change entry normalization and categorization
"""

import pytest

from conftest import REPO_URL
from utils.changelog import Changelog
from utils.changelog_models import ChangeCategory
from utils.normalization import (
    get_all_change_descriptions,
    get_all_logged_pr_numbers,
    get_category,
    normalize_change_entry,
)


class TestGetCategory:
    @pytest.mark.parametrize(
        "description, expected",
        [
            ("feat: Add export", ChangeCategory.ADDED),
            ("feat(api)!: Drop v1 endpoints", ChangeCategory.ADDED),
            ("FIX: Handle empty input", ChangeCategory.FIXED),
            ("fix(parser): Accept CRLF", ChangeCategory.FIXED),
            ("chore: Bump deps", ChangeCategory.UNCATEGORIZED),
            ("Plain message", ChangeCategory.UNCATEGORIZED),
        ],
    )
    def test_conventional_prefixes(self, description, expected):
        assert get_category(description) == expected

    def test_disabled(self):
        assert get_category("feat: Add export", auto_categorize=False) == ChangeCategory.UNCATEGORIZED


class TestNormalizeChangeEntry:
    def test_strips_backticks_and_prefix(self):
        assert normalize_change_entry("  `feat(ui): show progress bar`  ") == "Show progress bar"

    def test_keeps_plain_text(self):
        assert normalize_change_entry("Improve docs") == "Improve docs"


class TestLoggedEntries:
    def test_descriptions_and_pr_numbers(self, released_changelog):
        released_changelog.add_change(ChangeCategory.ADDED, f"Manual entry ([#9]({REPO_URL}/pull/9)) (#1)")

        assert set(get_all_change_descriptions(released_changelog)) == {
            "Fix typo in help text",
            f"Manual entry ([#9]({REPO_URL}/pull/9)) (#1)",
            "Improve startup time",
            "Fix crash on empty input",
            "Initial release",
        }
        assert get_all_logged_pr_numbers(released_changelog) == ["9", "1", "3", "4", "2"]

    def test_empty_changelog(self):
        changelog = Changelog(repo_url=REPO_URL)
        assert get_all_change_descriptions(changelog) == []
        assert get_all_logged_pr_numbers(changelog) == []

    def test_short_link_groups_with_several_prs(self):
        changelog = Changelog(repo_url=REPO_URL)
        changelog.add_change(ChangeCategory.ADDED, "Widget (#3, #4)")
        changelog.add_change(ChangeCategory.FIXED, "Gadget (#5,#6) (#7)")
        assert get_all_logged_pr_numbers(changelog) == ["3", "4", "5", "6", "7"]
