#!/usr/bin/env python3
"""Changelog models and the change category registry.

These models are shared by the parser, the renderer and the validation
helpers. They are frozen, so a `Changelog` can hand them out without
risking its own invariants.
"""
from enum import Enum
from typing import List, Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict, Field, constr


class ChangeCategory(str, Enum):
	"""Change categories.

	Most of these come from Keep a Changelog. "Uncategorized" holds changes
	from older releases that would be difficult to categorize.
	"""
	ADDED = "Added"
	CHANGED = "Changed"
	DEPRECATED = "Deprecated"
	FIXED = "Fixed"
	REMOVED = "Removed"
	SECURITY = "Security"
	UNCATEGORIZED = "Uncategorized"


# Order in which categories are listed within a release section
ORDERED_CHANGE_CATEGORIES: List[ChangeCategory] = [
	ChangeCategory.UNCATEGORIZED,
	ChangeCategory.ADDED,
	ChangeCategory.CHANGED,
	ChangeCategory.DEPRECATED,
	ChangeCategory.REMOVED,
	ChangeCategory.FIXED,
	ChangeCategory.SECURITY,
]


class Unreleased(Enum):
	"""Key of the section holding changes not yet attached to a release."""
	UNRELEASED = "Unreleased"

	def __str__(self) -> str:
		return self.value


UNRELEASED = Unreleased.UNRELEASED
UNRELEASED_LABEL = UNRELEASED.value

# A section key is either the Unreleased sentinel or a concrete version
SectionKey = Union[Unreleased, str]


class ConventionalCommitType(str, Enum):
	"""Conventional commit prefixes recognized when categorizing new changes."""
	FEAT = "feat"
	FIX = "fix"


def coerce_category(value: Union[str, ChangeCategory, None]) -> Optional[ChangeCategory]:
	"""Return the registry member for `value`, or None if it is unrecognized."""
	if isinstance(value, ChangeCategory):
		return value
	for category in ORDERED_CHANGE_CATEGORIES:
		if category.value == value:
			return category
	return None


def is_valid_change_category(value: Union[str, ChangeCategory, None]) -> bool:
	return coerce_category(value) is not None


class _FrozenModel(BaseModel):
	model_config = ConfigDict(extra="forbid", frozen=True)


class Change(_FrozenModel):
	"""A single change entry within a category."""

	description: constr(min_length=1)
	pr_numbers: Tuple[str, ...] = Field(default_factory=tuple)


# Release dates are ISO-8601 calendar dates; a status is a single word
RELEASE_DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
RELEASE_STATUS_PATTERN = r"^\w+$"


class ReleaseMetadata(_FrozenModel):
	"""Header information of one release section."""

	version: constr(min_length=1)
	date: Optional[constr(pattern=RELEASE_DATE_PATTERN)] = None
	status: Optional[constr(pattern=RELEASE_STATUS_PATTERN)] = None


class PackageRename(_FrozenModel):
	"""Version and tag prefix in use before the package was renamed."""

	version_before_rename: constr(min_length=1)
	tag_prefix_before_rename: str
