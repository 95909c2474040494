#!/usr/bin/env python3
"""Parse Keep a Changelog text back into a `Changelog`.

The text is replayed top-to-bottom through the same mutations used to build
a changelog by hand, so re-rendering a well-formed file reproduces it.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Tuple

from utils.changelog import Changelog, Formatter
from utils.changelog_errors import (
    InvalidCategoryError,
    InvalidReleaseVersionError,
    MalformedCategoryHeaderError,
    MalformedReleaseHeaderError,
    MissingCategoryError,
    MissingUnreleasedHeaderError,
    MissingUnreleasedLinkError,
    UnrecognizedLineError,
)
from utils.changelog_models import ChangeCategory, PackageRename, UNRELEASED_LABEL, coerce_category, is_valid_change_category
from utils.markdown_renderer import pull_request_url
from utils.versions import is_valid_version

logger = logging.getLogger(__name__)

UNRELEASED_HEADER = f"## [{UNRELEASED_LABEL}]"
UNRELEASED_LINK_PREFIX = f"[{UNRELEASED_LABEL}]:"

RELEASE_HEADER_RE = re.compile(r"^## \[([^\[\]]+)\](?: - (\d{4}-\d{2}-\d{2}))?(?: \[(\w+)\])?$")
CATEGORY_HEADER_RE = re.compile(r"^### (\w+)$")

# " ([#1](<url>), [#2](<url>))" at the end of a line
LONG_PR_GROUP_RE = re.compile(r"\s+\(\s*(?:\[#\d+\]\([^()\s]+\)\s*,?\s*)+\)\s*$")
LONG_PR_LINK_RE = re.compile(r"\[#(\d+)\]\(([^()\s]+)\)")
# " (#1, #2)" at the end of a line
SHORT_PR_GROUP_RE = re.compile(r"\s+\(\s*#\d+(?:\s*,?\s*#\d+)*\s*\)\s*$")
SHORT_PR_LINK_RE = re.compile(r"#(\d+)")


def _split_lines(content: str) -> List[str]:
    # Windows or Unix line endings
    return re.split(r"\r?\n", content)


def _long_group_numbers(group: str, repo_url: str) -> Optional[List[str]]:
    numbers = []
    for match in LONG_PR_LINK_RE.finditer(group):
        number, url = match.group(1), match.group(2)
        if url != pull_request_url(repo_url, number):
            return None
        numbers.append(number)
    return numbers


def extract_pr_links(change_entry: str, repo_url: str) -> Tuple[str, List[str]]:
    """Pull trailing pull request links off the first line of a change entry.

    Groups are stripped from the end of the first line only, one at a time,
    as long as they are either `([#N](<repo>/pull/N), ...)` pointing at this
    repository or `(#N, ...)`. Links elsewhere, links to other repositories
    and malformed links are left in the description.

    Args:
        change_entry: Full text of the change entry
        repo_url: Repository URL that pull request links must point at

    Returns:
        The description without the stripped links, and the de-duplicated
        pull request numbers in the order they appeared
    """
    first_line, *other_lines = change_entry.split("\n")
    groups: List[List[str]] = []
    while True:
        match = LONG_PR_GROUP_RE.search(first_line)
        if match:
            numbers = _long_group_numbers(match.group(0), repo_url)
        else:
            match = SHORT_PR_GROUP_RE.search(first_line)
            numbers = SHORT_PR_LINK_RE.findall(match.group(0)) if match else None
        if not match or numbers is None:
            break
        groups.insert(0, numbers)
        first_line = first_line[: match.start()]

    pr_numbers = list(dict.fromkeys(n for group in groups for n in group))
    return "\n".join([first_line, *other_lines]), pr_numbers


class _ChangelogReplay:
    """Line-by-line state while replaying changelog text."""

    def __init__(self, changelog: Changelog, should_extract_pr_links: bool):
        self.changelog = changelog
        self.should_extract_pr_links = should_extract_pr_links
        self.release: Optional[str] = None
        self.category: Optional[ChangeCategory] = None
        self.entry: Optional[str] = None

    def finalize_change(self, remove_trailing_newline: bool = False) -> None:
        # Entries may span several lines, so they are only committed once the
        # next bullet, header or the end of the content is reached
        if self.entry is None:
            return
        entry = self.entry
        if remove_trailing_newline and entry.endswith("\n"):
            entry = entry[:-1]
        pr_numbers: List[str] = []
        if self.should_extract_pr_links:
            entry, pr_numbers = extract_pr_links(entry, self.changelog.repo_url)
        self.changelog.add_change(
            category=self.category,
            description=entry,
            version=self.release,
            add_to_start=False,
            pr_numbers=pr_numbers,
        )
        self.entry = None

    def feed(self, line: str) -> None:
        if line.startswith("## ["):
            self._release_header(line)
        elif line.startswith("### "):
            self._category_header(line)
        elif line.startswith("- "):
            if self.category is None:
                raise MissingCategoryError(line)
            self.finalize_change()
            self.entry = line[2:]
        elif self.entry is not None:
            self.entry += f"\n{line}"
        elif line == "":
            return
        else:
            raise UnrecognizedLineError(line)

    def _release_header(self, line: str) -> None:
        match = RELEASE_HEADER_RE.match(line)
        if match is None:
            raise MalformedReleaseHeaderError(line)
        version, date, status = match.groups()
        if not is_valid_version(version):
            raise InvalidReleaseVersionError(line)
        # The blank line before a release header is not part of the change
        self.finalize_change(remove_trailing_newline=True)
        self.changelog.add_release(version=version, date=date, status=status, add_to_start=False)
        self.release = version
        self.category = None

    def _category_header(self, line: str) -> None:
        match = CATEGORY_HEADER_RE.match(line)
        if match is None:
            raise MalformedCategoryHeaderError(line)
        self.finalize_change(remove_trailing_newline=True)
        if not is_valid_change_category(match.group(1)):
            raise InvalidCategoryError(line, match.group(1))
        self.category = coerce_category(match.group(1))


def parse_changelog(
    changelog_content: str,
    repo_url: str,
    tag_prefix: str = "v",
    formatter: Optional[Formatter] = None,
    package_rename: Optional[PackageRename] = None,
    should_extract_pr_links: bool = False,
) -> Changelog:
    """Construct a `Changelog` that represents the given changelog text.

    Args:
        changelog_content: The changelog text to parse
        repo_url: Repository URL of the project
        tag_prefix: Prefix used in tags before the version number
        formatter: Optional formatter for the returned changelog
        package_rename: Version and tag prefix used before a package rename
        should_extract_pr_links: Strip trailing PR links from the first line
            of each entry and record their numbers

    Returns:
        A changelog reflecting the releases and changes in the text

    Raises:
        ChangelogParseError: If the text does not follow the changelog grammar
    """
    lines = _split_lines(changelog_content)
    changelog = Changelog(
        repo_url=repo_url,
        tag_prefix=tag_prefix,
        formatter=formatter,
        package_rename=package_rename,
    )

    try:
        unreleased_header_index = lines.index(UNRELEASED_HEADER)
    except ValueError:
        raise MissingUnreleasedHeaderError() from None
    unreleased_link_index = next(
        (i for i, line in enumerate(lines) if line.startswith(UNRELEASED_LINK_PREFIX)),
        None,
    )
    if unreleased_link_index is None:
        raise MissingUnreleasedLinkError()

    replay = _ChangelogReplay(changelog, should_extract_pr_links)
    for line in lines[unreleased_header_index + 1:unreleased_link_index]:
        replay.feed(line)
    # The link reference block is separated by a blank line
    replay.finalize_change(remove_trailing_newline=True)

    logger.debug(f"Parsed changelog with {len(changelog.get_releases())} releases")
    return changelog
