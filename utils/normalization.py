#!/usr/bin/env python3
from __future__ import annotations

import re
from typing import List

from utils.changelog import Changelog
from utils.changelog_models import ChangeCategory, ConventionalCommitType

_CONVENTIONAL_TYPES = "|".join(t.value for t in ConventionalCommitType)
_CONVENTIONAL_PREFIX_RE = re.compile(rf"^({_CONVENTIONAL_TYPES})(\([^)]*\))?!?:\s*", re.IGNORECASE)
_LONG_PR_RE = re.compile(r"\[#(\d+)\]")
# A short link group such as "(#3)" or "(#3, #4)"
_SHORT_PR_GROUP_RE = re.compile(r"\(\s*#\d+(?:\s*,\s*#\d+)*\s*\)")
_PR_NUMBER_RE = re.compile(r"#(\d+)")


def remove_outer_backticks(message: str) -> str:
	if not message:
		return message
	return re.sub(r"^`(.*)`$", r"\1", message)


def remove_conventional_commit_prefix(message: str) -> str:
	if not message:
		return message
	return _CONVENTIONAL_PREFIX_RE.sub("", message)


def capitalize_first(message: str) -> str:
	if not message:
		return message
	return message[0].upper() + message[1:]


def normalize_change_entry(message: str) -> str:
	"""Clean up a hand-written `CHANGELOG entry:` line."""
	entry = remove_outer_backticks(message.strip())
	entry = remove_conventional_commit_prefix(entry)
	return capitalize_first(entry)


def get_category(description: str, auto_categorize: bool = True) -> ChangeCategory:
	"""Map a conventional commit prefix to a change category."""
	if not auto_categorize or ":" not in description:
		return ChangeCategory.UNCATEGORIZED
	prefix = description.split(":", 1)[0].strip()
	# Allow scoped prefixes such as "fix(parser)"
	prefix = re.sub(r"\(.*\)!?$|!$", "", prefix).lower()
	if prefix == ConventionalCommitType.FEAT.value:
		return ChangeCategory.ADDED
	if prefix == ConventionalCommitType.FIX.value:
		return ChangeCategory.FIXED
	return ChangeCategory.UNCATEGORIZED


def get_all_change_descriptions(changelog: Changelog) -> List[str]:
	sections = [changelog.get_unreleased_changes()]
	for release in changelog.get_releases():
		sections.append(changelog.get_release_changes(release.version) or {})
	out: List[str] = []
	for section in sections:
		for changes in section.values():
			out.extend(c.description for c in changes)
	return out


def get_all_logged_pr_numbers(changelog: Changelog) -> List[str]:
	"""Collect PR numbers already referenced anywhere in the changelog."""
	numbers: List[str] = []
	sections = [changelog.get_unreleased_changes()]
	for release in changelog.get_releases():
		sections.append(changelog.get_release_changes(release.version) or {})
	for section in sections:
		for changes in section.values():
			for change in changes:
				numbers.extend(change.pr_numbers)
				numbers.extend(_LONG_PR_RE.findall(change.description))
				for group in _SHORT_PR_GROUP_RE.findall(change.description):
					numbers.extend(_PR_NUMBER_RE.findall(group))
	# dedupe, keep first-seen order
	return list(dict.fromkeys(numbers))
