#!/usr/bin/env python3
"""Typed errors raised while building or parsing a changelog.

Parse errors abort parsing at the first offending line. Mutation errors are
raised by `Changelog` when a caller breaks one of its contracts.
"""

from __future__ import annotations

from typing import Optional

from configs.config import Config


def truncated(line: str, max_chars: Optional[int] = None) -> str:
    """Shorten a line for use in an error message."""
    limit = max_chars or Config.ERROR_LINE_MAX_CHARS
    return f"{line[:limit]}..." if len(line) > limit else line


class ChangelogError(Exception):
    def __init__(self, message: str, code: str = "UNKNOWN"):
        super().__init__(message)
        self.code = code


# -------- Parse errors --------
class ChangelogParseError(ChangelogError):
    """Raised when changelog text does not follow the changelog grammar."""

    def __init__(self, message: str, line: Optional[str] = None):
        super().__init__(message, code="PARSE")
        self.line = line


class MissingUnreleasedHeaderError(ChangelogParseError):
    def __init__(self) -> None:
        super().__init__("Failed to find Unreleased header")


class MissingUnreleasedLinkError(ChangelogParseError):
    def __init__(self) -> None:
        super().__init__("Failed to find Unreleased link reference definition")


class MalformedReleaseHeaderError(ChangelogParseError):
    def __init__(self, line: str):
        super().__init__(f"Malformed release header: '{truncated(line)}'", line=line)


class InvalidReleaseVersionError(ChangelogParseError):
    def __init__(self, line: str):
        super().__init__(f"Invalid SemVer version in release header: '{truncated(line)}'", line=line)


class MalformedCategoryHeaderError(ChangelogParseError):
    def __init__(self, line: str):
        super().__init__(f"Malformed category header: '{truncated(line)}'", line=line)


class InvalidCategoryError(ChangelogParseError):
    def __init__(self, line: str, category: str):
        super().__init__(f"Invalid change category: '{category}'", line=line)
        self.category = category


class MissingCategoryError(ChangelogParseError):
    def __init__(self, line: str):
        super().__init__(f"Category missing for change: '{truncated(line)}'", line=line)


class UnrecognizedLineError(ChangelogParseError):
    def __init__(self, line: str):
        super().__init__(f"Unrecognized line: '{truncated(line)}'", line=line)


# -------- Mutation errors --------
class ChangelogMutationError(ChangelogError, ValueError):
    """Raised when a mutation would leave the changelog inconsistent."""

    def __init__(self, message: str):
        super().__init__(message, code="MUTATION")


class VersionRequiredError(ChangelogMutationError):
    def __init__(self) -> None:
        super().__init__("Version required")


class InvalidVersionError(ChangelogMutationError):
    def __init__(self, version: str):
        super().__init__(f"Not a valid semver version: '{version}'")
        self.version = version


class InvalidDateError(ChangelogMutationError):
    def __init__(self, date: str):
        super().__init__(f"Not a valid release date (YYYY-MM-DD): '{date}'")
        self.date = date


class InvalidStatusError(ChangelogMutationError):
    def __init__(self, status: str):
        super().__init__(f"Not a valid release status: '{status}'")
        self.status = status


class DuplicateReleaseError(ChangelogMutationError):
    def __init__(self, version: str):
        super().__init__(f"Release already exists: '{version}'")
        self.version = version


class CategoryRequiredError(ChangelogMutationError):
    def __init__(self) -> None:
        super().__init__("Category required")


class UnrecognizedCategoryError(ChangelogMutationError):
    def __init__(self, category: str):
        super().__init__(f"Unrecognized category: '{category}'")
        self.category = category


class DescriptionRequiredError(ChangelogMutationError):
    def __init__(self) -> None:
        super().__init__("Description required")


class UnknownReleaseError(ChangelogMutationError):
    def __init__(self, version: str):
        super().__init__(f"Specified release version does not exist: '{version}'")
        self.version = version
