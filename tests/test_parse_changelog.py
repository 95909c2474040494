#!/usr/bin/env python3
"""
Unit tests for changelog parsing and PR link extraction
"""

import pytest

from conftest import DESCRIPTION, REPO_URL
from utils.changelog_errors import (
    ChangelogParseError,
    InvalidCategoryError,
    InvalidReleaseVersionError,
    MalformedCategoryHeaderError,
    MalformedReleaseHeaderError,
    MissingCategoryError,
    MissingUnreleasedHeaderError,
    MissingUnreleasedLinkError,
    UnrecognizedLineError,
)
from utils.changelog_models import ChangeCategory, is_valid_change_category
from utils.parse_changelog import extract_pr_links, parse_changelog


def document(body, links=f"[Unreleased]: {REPO_URL}/\n"):
    """Wrap a releases block in the standard title, description and links."""
    return f"# Changelog\n{DESCRIPTION}\n\n{body}\n\n{links}"


def descriptions(changes, category):
    return [c.description for c in changes.get(category, [])]


class TestParseChangelog:
    def test_empty_changelog(self):
        changelog = parse_changelog(document("## [Unreleased]"), repo_url=REPO_URL)
        assert changelog.get_releases() == []
        assert changelog.get_unreleased_changes() == {}

    def test_releases_and_changes(self):
        text = document(
            "## [Unreleased]\n"
            "### Added\n"
            "- New thing\n"
            "\n"
            "## [1.0.0] - 2020-01-01 [WITHDRAWN]\n"
            "### Uncategorized\n"
            "- Old thing\n"
            "\n"
            "### Fixed\n"
            "- Bug one\n"
            "- Bug two",
            links=(
                f"[Unreleased]: {REPO_URL}/compare/v1.0.0...HEAD\n"
                f"[1.0.0]: {REPO_URL}/releases/tag/v1.0.0\n"
            ),
        )
        changelog = parse_changelog(text, repo_url=REPO_URL)

        release = changelog.get_release("1.0.0")
        assert release.date == "2020-01-01"
        assert release.status == "WITHDRAWN"
        assert descriptions(changelog.get_unreleased_changes(), ChangeCategory.ADDED) == ["New thing"]
        changes = changelog.get_release_changes("1.0.0")
        assert descriptions(changes, ChangeCategory.UNCATEGORIZED) == ["Old thing"]
        assert descriptions(changes, ChangeCategory.FIXED) == ["Bug one", "Bug two"]
        assert changelog.to_string() == text

    def test_multi_line_entries_are_preserved(self):
        text = document(
            "## [Unreleased]\n"
            "### Changed\n"
            "- Rework configuration\n"
            "  - Options are now read from the environment\n"
            "\n"
            "  More details in the docs\n"
            "- Second change"
        )
        changelog = parse_changelog(text, repo_url=REPO_URL)
        assert descriptions(changelog.get_unreleased_changes(), ChangeCategory.CHANGED) == [
            "Rework configuration\n  - Options are now read from the environment\n\n  More details in the docs",
            "Second change",
        ]
        assert changelog.to_string() == text

    def test_multi_line_entry_before_category_header(self):
        """The blank line before a header is not part of the entry above it."""
        text = document(
            "## [Unreleased]\n"
            "### Added\n"
            "- Something\n"
            "  - detail\n"
            "\n"
            "### Fixed\n"
            "- Other"
        )
        changelog = parse_changelog(text, repo_url=REPO_URL)
        changes = changelog.get_unreleased_changes()
        assert descriptions(changes, ChangeCategory.ADDED) == ["Something\n  - detail"]
        assert descriptions(changes, ChangeCategory.FIXED) == ["Other"]
        assert changelog.to_string() == text

    def test_windows_line_endings(self):
        text = document("## [Unreleased]\n### Added\n- Something").replace("\n", "\r\n")
        changelog = parse_changelog(text, repo_url=REPO_URL)
        assert descriptions(changelog.get_unreleased_changes(), ChangeCategory.ADDED) == ["Something"]

    def test_missing_unreleased_header(self):
        with pytest.raises(MissingUnreleasedHeaderError, match="Failed to find Unreleased header"):
            parse_changelog("# Changelog\n", repo_url=REPO_URL)

    def test_missing_unreleased_link(self):
        with pytest.raises(MissingUnreleasedLinkError):
            parse_changelog("# Changelog\n\n## [Unreleased]\n", repo_url=REPO_URL)

    def test_unrecognized_line(self):
        text = document("## [Unreleased]\n### Added\n* Something")
        with pytest.raises(UnrecognizedLineError, match=r"Unrecognized line: '\* Something'"):
            parse_changelog(text, repo_url=REPO_URL)

    def test_long_lines_are_truncated_in_errors(self):
        long_line = "x" * 100
        text = document(f"## [Unreleased]\n{long_line}")
        with pytest.raises(UnrecognizedLineError) as exc_info:
            parse_changelog(text, repo_url=REPO_URL)
        assert str(exc_info.value) == f"Unrecognized line: '{'x' * 80}...'"
        assert exc_info.value.line == long_line

    def test_change_without_category(self):
        text = document("## [Unreleased]\n- Something")
        with pytest.raises(MissingCategoryError):
            parse_changelog(text, repo_url=REPO_URL)

    def test_invalid_category(self):
        text = document("## [Unreleased]\n### Fixes\n- Something")
        with pytest.raises(InvalidCategoryError, match="Invalid change category: 'Fixes'"):
            parse_changelog(text, repo_url=REPO_URL)

    @pytest.mark.parametrize(
        "category, valid",
        [("Added", True), ("Uncategorized", True), ("Fixes", False), ("added", False), (None, False)],
    )
    def test_category_registry(self, category, valid):
        assert is_valid_change_category(category) is valid

    def test_malformed_category_header(self):
        text = document("## [Unreleased]\n### Bug fixes\n- Something")
        with pytest.raises(MalformedCategoryHeaderError):
            parse_changelog(text, repo_url=REPO_URL)

    @pytest.mark.parametrize(
        "header",
        ["## [1.0.0] 2020-01-01", "## [1.0.0] - 01/01/2020", "## [1.0.0] - 2020-01-01 trailing"],
    )
    def test_malformed_release_header(self, header):
        with pytest.raises(MalformedReleaseHeaderError):
            parse_changelog(document(f"## [Unreleased]\n\n{header}"), repo_url=REPO_URL)

    @pytest.mark.parametrize("version", ["1.0", "v1.0.0", "next"])
    def test_invalid_release_version(self, version):
        with pytest.raises(InvalidReleaseVersionError):
            parse_changelog(document(f"## [Unreleased]\n\n## [{version}]"), repo_url=REPO_URL)

    def test_duplicate_release_is_rejected(self):
        with pytest.raises(ValueError):
            parse_changelog(document("## [Unreleased]\n\n## [1.0.0]\n\n## [1.0.0]"), repo_url=REPO_URL)

    def test_parse_errors_share_a_base(self):
        with pytest.raises(ChangelogParseError) as exc_info:
            parse_changelog("", repo_url=REPO_URL)
        assert exc_info.value.code == "PARSE"

    def test_extracts_pr_links_when_enabled(self):
        text = document(
            "## [Unreleased]\n"
            "### Fixed\n"
            f"- Fix crash ([#12]({REPO_URL}/pull/12))\n"
            "- Fix typo (#13, #14)"
        )
        changelog = parse_changelog(text, repo_url=REPO_URL, should_extract_pr_links=True)
        fixed = changelog.get_unreleased_changes()[ChangeCategory.FIXED]
        assert [(c.description, c.pr_numbers) for c in fixed] == [
            ("Fix crash", ("12",)),
            ("Fix typo", ("13", "14")),
        ]

    def test_pr_links_kept_when_disabled(self):
        text = document("## [Unreleased]\n### Fixed\n" f"- Fix crash ([#12]({REPO_URL}/pull/12))")
        changelog = parse_changelog(text, repo_url=REPO_URL)
        change = changelog.get_unreleased_changes()[ChangeCategory.FIXED][0]
        assert change.pr_numbers == ()
        assert change.description == f"Fix crash ([#12]({REPO_URL}/pull/12))"


class TestExtractPrLinks:
    def test_long_group(self):
        entry = f"Fix bug ([#1]({REPO_URL}/pull/1), [#2]({REPO_URL}/pull/2))"
        assert extract_pr_links(entry, REPO_URL) == ("Fix bug", ["1", "2"])

    def test_several_groups_are_deduplicated(self):
        entry = f"Fix bug ([#1]({REPO_URL}/pull/1)) ([#2]({REPO_URL}/pull/2)) (#1)"
        assert extract_pr_links(entry, REPO_URL) == ("Fix bug", ["1", "2"])

    def test_short_group(self):
        assert extract_pr_links("Fix bug (#12, #13)", REPO_URL) == ("Fix bug", ["12", "13"])

    def test_other_repository_is_literal(self):
        entry = "Fix bug ([#1](https://github.com/other-org/other-repo/pull/1))"
        assert extract_pr_links(entry, REPO_URL) == (entry, [])

    def test_mismatched_number_is_literal(self):
        entry = f"Fix bug ([#1]({REPO_URL}/pull/2))"
        assert extract_pr_links(entry, REPO_URL) == (entry, [])

    def test_links_mid_line_are_literal(self):
        entry = f"Fix ([#1]({REPO_URL}/pull/1)) in the parser"
        assert extract_pr_links(entry, REPO_URL) == (entry, [])

    def test_only_first_line_is_searched(self):
        entry = f"Fix bug ([#1]({REPO_URL}/pull/1))\n  - Follow-up ([#2]({REPO_URL}/pull/2))"
        assert extract_pr_links(entry, REPO_URL) == (
            f"Fix bug\n  - Follow-up ([#2]({REPO_URL}/pull/2))",
            ["1"],
        )

    def test_trailing_slash_repo_url(self):
        entry = f"Fix bug ([#1]({REPO_URL}/pull/1))"
        assert extract_pr_links(entry, f"{REPO_URL}/") == ("Fix bug", ["1"])

    def test_no_links(self):
        assert extract_pr_links("Fix bug (see docs)", REPO_URL) == ("Fix bug (see docs)", [])
