#!/usr/bin/env python3
from __future__ import annotations

from typing import Dict, List, Optional

from utils.changelog import Formatter
from utils.changelog_models import Change, ChangeCategory, PackageRename
from utils.dependency_bumps import DependencyChange, DependencyCheckResult, find_dependency_entry
from utils.parse_changelog import parse_changelog


class ValidationCode:
	FORMAT = "FORMAT"
	UNRELEASED = "UNRELEASED"
	UNCATEGORIZED = "UNCATEGORIZED"
	MISSING_VERSION = "MISSING_VERSION"
	MISSING_PR_LINKS = "MISSING_PR_LINKS"
	MISSING_DEPENDENCY_ENTRIES = "MISSING_DEPENDENCY_ENTRIES"


class InvalidChangelogError(Exception):
	"""Indicates that the changelog is invalid."""

	def __init__(self, message: str, code: str = ValidationCode.FORMAT):
		super().__init__(message)
		self.code = code


class UnreleasedChangesError(InvalidChangelogError):
	def __init__(self):
		super().__init__("Unreleased changes present in the changelog", code=ValidationCode.UNRELEASED)


class UncategorizedChangesError(InvalidChangelogError):
	def __init__(self):
		super().__init__("Uncategorized changes present in the changelog", code=ValidationCode.UNCATEGORIZED)


class MissingCurrentVersionError(InvalidChangelogError):
	def __init__(self, current_version: str):
		super().__init__(f"Current version missing from changelog: '{current_version}'", code=ValidationCode.MISSING_VERSION)


class MissingPullRequestLinksError(InvalidChangelogError):
	def __init__(self, change: Change, release_version: str):
		super().__init__(
			f"Pull request link(s) missing for change: '{change.description}' (in {release_version})",
			code=ValidationCode.MISSING_PR_LINKS,
		)
		self.change = change
		self.release_version = release_version


class MissingDependencyEntriesError(InvalidChangelogError):
	def __init__(self, missing_entries: List[DependencyChange]):
		deps = ", ".join(entry.dependency for entry in missing_entries)
		super().__init__(
			f"Missing changelog entries for dependency bumps: {deps}",
			code=ValidationCode.MISSING_DEPENDENCY_ENTRIES,
		)
		self.missing_entries = missing_entries


class ChangelogFormattingError(InvalidChangelogError):
	"""The changelog parses, but is not in canonical form."""

	def __init__(self, valid_changelog: str, invalid_changelog: str):
		super().__init__("Changelog is not well-formatted", code=ValidationCode.FORMAT)
		self.data: Dict[str, str] = {
			"valid_changelog": valid_changelog,
			"invalid_changelog": invalid_changelog,
		}


def validate_changelog(
	changelog_content: str,
	repo_url: str,
	is_release_candidate: bool,
	current_version: Optional[str] = None,
	*,
	tag_prefix: str = "v",
	formatter: Optional[Formatter] = None,
	package_rename: Optional[PackageRename] = None,
	ensure_valid_pr_links_present: bool = False,
	use_short_pr_link: bool = False,
	dependency_result: Optional[DependencyCheckResult] = None,
) -> None:
	"""Validate that a changelog is well-formatted.

	This does not check that the changelog is complete, or that each change is
	in the right section. Contents are left for manual review.

	Raises:
		ValueError: If `is_release_candidate` is set without a version
		ChangelogParseError: If the changelog cannot be parsed
		MissingCurrentVersionError: Release candidate has no header for its version
		UnreleasedChangesError: Release candidate still has unreleased changes
		UncategorizedChangesError: Release candidate has uncategorized changes
		MissingPullRequestLinksError: A released change has no PR link
		MissingDependencyEntriesError: A dependency bump in `dependency_result`
			has no `Changed` entry in its section
		ChangelogFormattingError: The text differs from its canonical form
	"""
	changelog = parse_changelog(
		changelog_content,
		repo_url=repo_url,
		tag_prefix=tag_prefix,
		formatter=formatter,
		package_rename=package_rename,
		should_extract_pr_links=ensure_valid_pr_links_present,
	)

	if is_release_candidate:
		if not current_version:
			raise ValueError("A version must be specified if 'is_release_candidate' is set.")
		if changelog.get_release(current_version) is None:
			raise MissingCurrentVersionError(current_version)
		if changelog.has_unreleased_changes():
			raise UnreleasedChangesError()
		release_changes = changelog.get_release_changes(current_version) or {}
		if release_changes.get(ChangeCategory.UNCATEGORIZED):
			raise UncategorizedChangesError()

	if ensure_valid_pr_links_present:
		for release in changelog.get_releases():
			for changes in (changelog.get_release_changes(release.version) or {}).values():
				for change in changes:
					if not change.pr_numbers:
						raise MissingPullRequestLinksError(change, release.version)

	if dependency_result is not None and dependency_result.dependency_changes:
		# Bumps belong to the new version when the project version moved too
		if dependency_result.version_bump:
			section = changelog.get_release_changes(dependency_result.version_bump) or {}
		else:
			section = changelog.get_unreleased_changes()
		missing = [
			change for change in dependency_result.dependency_changes
			if not find_dependency_entry(section, change)[0]
		]
		if missing:
			raise MissingDependencyEntriesError(missing)

	valid_changelog = changelog.to_string(use_short_pr_link=use_short_pr_link)
	if valid_changelog != changelog_content:
		raise ChangelogFormattingError(valid_changelog=valid_changelog, invalid_changelog=changelog_content)
