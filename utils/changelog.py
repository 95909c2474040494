#!/usr/bin/env python3
"""In-memory changelog following the Keep a Changelog conventions.

A `Changelog` starts out empty and only changes through `add_release`,
`add_change` and `migrate_unreleased_changes_to_release`, so it stays
well-formed at all times. It can be built from scratch, or replayed from
existing text by `utils.parse_changelog.parse_changelog`.
"""

from __future__ import annotations

import inspect
import logging
import re
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Union

from utils.changelog_errors import (
    CategoryRequiredError,
    DescriptionRequiredError,
    DuplicateReleaseError,
    InvalidDateError,
    InvalidStatusError,
    InvalidVersionError,
    UnknownReleaseError,
    UnrecognizedCategoryError,
    VersionRequiredError,
)
from utils.changelog_models import (
    Change,
    ChangeCategory,
    PackageRename,
    RELEASE_DATE_PATTERN,
    RELEASE_STATUS_PATTERN,
    ReleaseMetadata,
    SectionKey,
    UNRELEASED,
    UNRELEASED_LABEL,
    coerce_category,
)
from utils.link_references import stringify_link_reference_definitions
from utils.markdown_renderer import render_changelog, stringify_release
from utils.versions import is_valid_version

logger = logging.getLogger(__name__)

# Formats the rendered changelog; may return the text or an awaitable of it
Formatter = Callable[[str], Union[str, Awaitable[str]]]

ReleaseChanges = Dict[ChangeCategory, List[Change]]


def _identity(changelog: str) -> str:
    return changelog


class Changelog:
    """A changelog made of releases and categorized changes."""

    def __init__(
        self,
        repo_url: str,
        tag_prefix: str = "v",
        formatter: Optional[Formatter] = None,
        package_rename: Optional[PackageRename] = None,
    ):
        """Construct an empty changelog.

        Args:
            repo_url: Repository URL used for comparison, tag and PR links
            tag_prefix: Prefix placed before a version to form its tag name
            formatter: Optional function applied to the rendered text
            package_rename: Version and tag prefix used before a package rename
        """
        if is_valid_version(UNRELEASED_LABEL):
            raise RuntimeError(f"'{UNRELEASED_LABEL}' must not be a valid version")
        self._releases: List[ReleaseMetadata] = []
        self._changes: Dict[SectionKey, ReleaseChanges] = {UNRELEASED: {}}
        self._repo_url = repo_url
        self._tag_prefix = tag_prefix
        self._formatter: Formatter = formatter or _identity
        self._package_rename = package_rename

    @property
    def repo_url(self) -> str:
        return self._repo_url

    @property
    def tag_prefix(self) -> str:
        return self._tag_prefix

    @property
    def package_rename(self) -> Optional[PackageRename]:
        return self._package_rename

    # -------- Mutations --------
    def add_release(
        self,
        version: Optional[str],
        date: Optional[str] = None,
        status: Optional[str] = None,
        add_to_start: bool = True,
    ) -> ReleaseMetadata:
        """Add an empty release section.

        Args:
            version: SemVer version of the release
            date: ISO-8601 release date (YYYY-MM-DD)
            status: Status token such as 'WITHDRAWN' or 'DEPRECATED'
            add_to_start: Prepend the release (reverse-chronological editing);
                set to False when replaying a changelog top-to-bottom

        Returns:
            The metadata of the new release

        Raises:
            VersionRequiredError: If no version is given
            InvalidVersionError: If the version is not valid SemVer
            DuplicateReleaseError: If the version is already present
            InvalidDateError: If the date is not YYYY-MM-DD
            InvalidStatusError: If the status is not a single word
        """
        if not version:
            raise VersionRequiredError()
        if not is_valid_version(version):
            raise InvalidVersionError(version)
        if version in self._changes:
            raise DuplicateReleaseError(version)
        if date is not None and not re.fullmatch(RELEASE_DATE_PATTERN, date):
            raise InvalidDateError(date)
        if status is not None and not re.fullmatch(RELEASE_STATUS_PATTERN, status):
            raise InvalidStatusError(status)

        release = ReleaseMetadata(version=version, date=date, status=status)
        self._changes[version] = {}
        if add_to_start:
            self._releases.insert(0, release)
        else:
            self._releases.append(release)
        logger.debug(f"Added release {version}")
        return release

    def add_change(
        self,
        category: Union[str, ChangeCategory, None],
        description: Optional[str],
        version: Optional[str] = None,
        add_to_start: bool = True,
        pr_numbers: Iterable[str] = (),
    ) -> Change:
        """Add a change to a release, or to Unreleased when no version is given.

        Raises:
            CategoryRequiredError: If no category is given
            UnrecognizedCategoryError: If the category is not in the registry
            DescriptionRequiredError: If the description is empty
            UnknownReleaseError: If `version` is not a release of this changelog
        """
        if not category:
            raise CategoryRequiredError()
        resolved = coerce_category(category)
        if resolved is None:
            raise UnrecognizedCategoryError(str(category))
        if not description:
            raise DescriptionRequiredError()
        if version is not None and (version == UNRELEASED or version not in self._changes):
            raise UnknownReleaseError(str(version))

        section = self._changes[UNRELEASED if version is None else version]
        change = Change(description=description, pr_numbers=tuple(str(n) for n in pr_numbers))
        entries = section.setdefault(resolved, [])
        if add_to_start:
            entries.insert(0, change)
        else:
            entries.append(change)
        return change

    def migrate_unreleased_changes_to_release(self, version: str) -> None:
        """Move all unreleased changes into a release.

        Changes keep their category and are placed above any changes the
        release already has in that category.
        """
        if version == UNRELEASED or version not in self._changes:
            raise UnknownReleaseError(str(version))
        release_changes = self._changes[version]
        for category, entries in self._changes[UNRELEASED].items():
            release_changes[category] = entries + release_changes.get(category, [])
        self._changes[UNRELEASED] = {}
        logger.debug(f"Migrated unreleased changes to {version}")

    # -------- Accessors --------
    def get_releases(self) -> List[ReleaseMetadata]:
        """Return release metadata in document order."""
        return list(self._releases)

    def get_release(self, version: str) -> Optional[ReleaseMetadata]:
        for release in self._releases:
            if release.version == version:
                return release
        return None

    def get_release_changes(self, version: str) -> Optional[ReleaseChanges]:
        """Return the changes of a release by category, or None if it does not exist."""
        if version == UNRELEASED or version not in self._changes:
            return None
        return self._copy_changes(self._changes[version])

    def get_unreleased_changes(self) -> ReleaseChanges:
        return self._copy_changes(self._changes[UNRELEASED])

    def has_unreleased_changes(self) -> bool:
        return any(self._changes[UNRELEASED].values())

    def get_stringified_release(self, version: str, use_short_pr_link: bool = False) -> str:
        release = self.get_release(version)
        if release is None:
            raise UnknownReleaseError(version)
        return stringify_release(
            version,
            self._changes[version],
            self._repo_url,
            release,
            use_short_pr_link=use_short_pr_link,
        )

    @staticmethod
    def _copy_changes(changes: ReleaseChanges) -> ReleaseChanges:
        # Change models are frozen, so copying the containers is enough
        return {category: list(entries) for category, entries in changes.items()}

    # -------- Rendering --------
    def stringify(self, use_short_pr_link: bool = False) -> str:
        """Render the canonical changelog text, without the formatter."""
        sections = [
            stringify_release(
                UNRELEASED_LABEL,
                self._changes[UNRELEASED],
                self._repo_url,
                use_short_pr_link=use_short_pr_link,
            )
        ]
        for release in self._releases:
            sections.append(
                stringify_release(
                    release.version,
                    self._changes[release.version],
                    self._repo_url,
                    release,
                    use_short_pr_link=use_short_pr_link,
                )
            )
        links = stringify_link_reference_definitions(
            self._repo_url,
            self._tag_prefix,
            self._releases,
            self._package_rename,
        )
        return render_changelog("\n\n".join(sections), links)

    def to_string(self, use_short_pr_link: bool = False) -> str:
        """Render the changelog and apply a synchronous formatter.

        Raises:
            TypeError: If the formatter is asynchronous; use `to_string_async`
        """
        formatted = self._formatter(self.stringify(use_short_pr_link))
        if inspect.isawaitable(formatted):
            # Avoid "coroutine was never awaited" warnings
            close = getattr(formatted, "close", None)
            if close is not None:
                close()
            raise TypeError("Formatter is asynchronous; use to_string_async()")
        return formatted

    async def to_string_async(self, use_short_pr_link: bool = False) -> str:
        """Render the changelog and await the formatter if it is asynchronous."""
        formatted = self._formatter(self.stringify(use_short_pr_link))
        if inspect.isawaitable(formatted):
            formatted = await formatted
        return formatted

    def __str__(self) -> str:
        return self.stringify()


def create_empty_changelog(repo_url: str, tag_prefix: str = "v") -> str:
    """Return the text of a new, empty changelog."""
    return Changelog(repo_url=repo_url, tag_prefix=tag_prefix).to_string()
