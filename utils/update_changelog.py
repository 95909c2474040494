#!/usr/bin/env python3
"""Add new changes to an existing changelog.

New entries go to "Unreleased", or to the current release when preparing a
release candidate. Entries are either passed in by the caller or collected
from git history.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from utils.changelog import Formatter
from utils.changelog_models import PackageRename
from utils.git_history import GitError, GitHistory
from utils.normalization import get_all_change_descriptions, get_all_logged_pr_numbers, get_category
from utils.parse_changelog import parse_changelog

logger = logging.getLogger(__name__)


def update_changelog(
    changelog_content: str,
    repo_url: str,
    is_release_candidate: bool,
    current_version: Optional[str] = None,
    new_entries: Optional[Sequence[str]] = None,
    *,
    tag_prefixes: Sequence[str] = ("v",),
    formatter: Optional[Formatter] = None,
    package_rename: Optional[PackageRename] = None,
    auto_categorize: bool = False,
    git_history: Optional[GitHistory] = None,
    root_directory: Optional[str] = None,
    use_changelog_entry: bool = False,
    use_short_pr_link: bool = False,
    require_pr_numbers: bool = False,
) -> Optional[str]:
    """Update a changelog with the changes made since the last release.

    Args:
        changelog_content: The current changelog text
        repo_url: Repository URL of the project
        is_release_candidate: Put new changes (and any unreleased changes)
            under the `current_version` header, creating it if needed
        current_version: Current project version; required for release candidates
        new_entries: Change descriptions, newest first. When omitted they are
            read from the commits since the most recent tag
        tag_prefixes: Tag prefixes to look for; the first is the intended one,
            the rest are fallbacks
        auto_categorize: Categorize entries from conventional commit prefixes
            instead of filing them as Uncategorized

    Returns:
        The updated changelog text, or None if nothing changed

    Raises:
        ValueError: If a release candidate has no version, or its version is
            already tagged
        ChangelogError: If the existing changelog cannot be parsed
    """
    if not tag_prefixes:
        raise ValueError("At least one tag prefix is required")
    if is_release_candidate and not current_version:
        raise ValueError("A version must be specified if 'is_release_candidate' is set.")

    changelog = parse_changelog(
        changelog_content,
        repo_url=repo_url,
        tag_prefix=tag_prefixes[0],
        formatter=formatter,
        package_rename=package_rename,
    )

    if new_entries is None:
        history = git_history or GitHistory()
        most_recent_tag = history.get_most_recent_tag(tag_prefixes)
        if is_release_candidate and most_recent_tag == f"{tag_prefixes[0]}{current_version}":
            raise ValueError(
                f"Current version already has a tag ('{most_recent_tag}'), which is unexpected for a release candidate."
            )
    else:
        history = None
        most_recent_tag = None

    if is_release_candidate:
        if changelog.get_release(current_version) is None:
            changelog.add_release(version=current_version)
        if changelog.has_unreleased_changes():
            changelog.migrate_unreleased_changes_to_release(current_version)

    if history is not None:
        try:
            new_entries = history.get_new_change_entries(
                most_recent_tag,
                repo_url,
                get_all_logged_pr_numbers(changelog),
                get_all_change_descriptions(changelog),
                root_directory=root_directory,
                use_changelog_entry=use_changelog_entry,
                use_short_pr_link=use_short_pr_link,
                require_pr_numbers=require_pr_numbers,
            )
        except GitError as e:
            logger.error(f"Failed to read git history: {e}")
            raise

    else:
        logged = set(get_all_change_descriptions(changelog))
        new_entries = [d for d in new_entries if d and d not in logged]

    logger.info(f"New entries count: {len(new_entries)}")
    # Entries are newest first and each one is prepended, so add oldest first
    for description in reversed(list(new_entries)):
        changelog.add_change(
            category=get_category(description, auto_categorize),
            description=description,
            version=current_version if is_release_candidate else None,
        )

    new_content = changelog.to_string(use_short_pr_link=use_short_pr_link)
    return new_content if new_content != changelog_content else None
