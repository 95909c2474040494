#!/usr/bin/env python3
from __future__ import annotations

from typing import Dict, List, Optional

from utils.changelog_models import (
	Change,
	ChangeCategory,
	ORDERED_CHANGE_CATEGORIES,
	ReleaseMetadata,
)

CHANGELOG_TITLE = "# Changelog"
CHANGELOG_DESCRIPTION = (
	"All notable changes to this project will be documented in this file.\n"
	"\n"
	"The format is based on [Keep a Changelog](https://keepachangelog.com/en/1.0.0/),\n"
	"and this project adheres to [Semantic Versioning](https://semver.org/spec/v2.0.0.html)."
)


def pull_request_url(repo_url: str, pr_number: str) -> str:
	return f"{repo_url.rstrip('/')}/pull/{pr_number}"


def pr_links(pr_numbers, repo_url: str, *, use_short_pr_link: bool = False) -> str:
	if not pr_numbers:
		return ""
	if use_short_pr_link:
		links = ", ".join(f"#{n}" for n in pr_numbers)
	else:
		links = ", ".join(f"[#{n}]({pull_request_url(repo_url, n)})" for n in pr_numbers)
	return f" ({links})"


def bullet(change: Change, repo_url: str, *, use_short_pr_link: bool = False) -> str:
	# PR links belong to the first line; later lines are emitted verbatim
	first_line, *other_lines = change.description.split("\n")
	suffix = pr_links(change.pr_numbers, repo_url, use_short_pr_link=use_short_pr_link)
	return "\n".join([f"- {first_line}{suffix}", *other_lines])


def stringify_category(category: ChangeCategory, changes: List[Change], repo_url: str, *, use_short_pr_link: bool = False) -> str:
	header = f"### {category.value}"
	body = "\n".join(bullet(c, repo_url, use_short_pr_link=use_short_pr_link) for c in changes)
	return f"{header}\n{body}" if body else header


def release_header(label: str, release: Optional[ReleaseMetadata] = None) -> str:
	date_suffix = f" - {release.date}" if release and release.date else ""
	status_suffix = f" [{release.status}]" if release and release.status else ""
	return f"## [{label}]{date_suffix}{status_suffix}"


def stringify_release(
	label: str,
	categories: Dict[ChangeCategory, List[Change]],
	repo_url: str,
	release: Optional[ReleaseMetadata] = None,
	*,
	use_short_pr_link: bool = False,
) -> str:
	header = release_header(label, release)
	# Registry order, never insertion order; empty categories are dropped
	sections = [
		stringify_category(cat, categories[cat], repo_url, use_short_pr_link=use_short_pr_link)
		for cat in ORDERED_CHANGE_CATEGORIES
		if categories.get(cat)
	]
	if not sections:
		return header
	return header + "\n" + "\n\n".join(sections)


def render_changelog(releases_block: str, links_block: str) -> str:
	"""Assemble title, description, release sections and link definitions."""
	return f"{CHANGELOG_TITLE}\n{CHANGELOG_DESCRIPTION}\n\n{releases_block}\n\n{links_block}"
