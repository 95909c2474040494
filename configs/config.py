import os
from typing import Dict, Any, Optional

from utils.changelog_models import PackageRename


class Config:
	"""Configuration for the changelog tooling."""

	# Changelog location and repository
	CHANGELOG_FILE = os.getenv("CHANGELOG_FILE", "CHANGELOG.md")
	CHANGELOG_REPO_URL = os.getenv("CHANGELOG_REPO_URL", "").rstrip("/")
	CHANGELOG_TAG_PREFIX = os.getenv("CHANGELOG_TAG_PREFIX", "v")

	# Package rename (both or neither)
	PACKAGE_RENAME_VERSION = os.getenv("PACKAGE_RENAME_VERSION", "")
	PACKAGE_RENAME_TAG_PREFIX = os.getenv("PACKAGE_RENAME_TAG_PREFIX", "")

	# Entry behavior
	CHANGELOG_EXTRACT_PR_LINKS = bool(int(os.getenv("CHANGELOG_EXTRACT_PR_LINKS", "0")))
	CHANGELOG_SHORT_PR_LINKS = bool(int(os.getenv("CHANGELOG_SHORT_PR_LINKS", "0")))
	CHANGELOG_AUTO_CATEGORIZE = bool(int(os.getenv("CHANGELOG_AUTO_CATEGORIZE", "0")))

	# Git
	GIT_TIMEOUT_S = int(os.getenv("GIT_TIMEOUT_S", "30"))
	GIT_FETCH_TAGS = bool(int(os.getenv("GIT_FETCH_TAGS", "1")))
	GIT_REMOTE = os.getenv("GIT_REMOTE", "origin")
	# Defaults to <remote>/main when empty
	GIT_BASE_BRANCH = os.getenv("GIT_BASE_BRANCH", "")

	# Diagnostics
	ERROR_LINE_MAX_CHARS = int(os.getenv("ERROR_LINE_MAX_CHARS", "80"))

	@classmethod
	def get_package_rename(cls) -> Optional[PackageRename]:
		"""Return rename metadata, or None unless both settings are present."""
		if not cls.PACKAGE_RENAME_VERSION or not cls.PACKAGE_RENAME_TAG_PREFIX:
			return None
		return PackageRename(
			version_before_rename=cls.PACKAGE_RENAME_VERSION,
			tag_prefix_before_rename=cls.PACKAGE_RENAME_TAG_PREFIX,
		)

	@classmethod
	def get_changelog_config(cls) -> Dict[str, Any]:
		"""Get changelog settings.

		Returns:
			Mapping with file path, repository URL, tag prefix and rename metadata.
		"""
		return {
			"file": cls.CHANGELOG_FILE,
			"repo_url": cls.CHANGELOG_REPO_URL,
			"tag_prefix": cls.CHANGELOG_TAG_PREFIX,
			"package_rename": cls.get_package_rename(),
		}

	@classmethod
	def get_git_config(cls) -> Dict[str, Any]:
		return {
			"timeout_s": cls.GIT_TIMEOUT_S,
			"fetch_tags": cls.GIT_FETCH_TAGS,
			"remote": cls.GIT_REMOTE,
			"base_branch": cls.GIT_BASE_BRANCH or None,
		}
