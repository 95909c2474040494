#!/usr/bin/env python3
"""Link reference definitions for the bottom of a changelog.

Every section gets one `[label]: url` line. "Unreleased" compares the highest
released version against HEAD; each release compares against the nearest
lower version further down the document, or links to its tag when it is the
lowest release of its line.
"""

from __future__ import annotations

from typing import List, Optional

from utils.changelog_models import PackageRename, ReleaseMetadata, UNRELEASED_LABEL
from utils.versions import compare_versions, find_previous_version, highest_version

HEAD_REF = "HEAD"


def with_trailing_slash(url: str) -> str:
    return url if url.endswith("/") else f"{url}/"


def get_compare_url(repo_url: str, first_ref: str, second_ref: str) -> str:
    return f"{with_trailing_slash(repo_url)}compare/{first_ref}...{second_ref}"


def get_tag_url(repo_url: str, tag: str) -> str:
    return f"{with_trailing_slash(repo_url)}releases/tag/{tag}"


def get_tag_name(version: str, tag_prefix: str, package_rename: Optional[PackageRename] = None) -> str:
    """Build the tag for a version, using the old prefix for pre-rename releases."""
    if package_rename and compare_versions(version, package_rename.version_before_rename) <= 0:
        return f"{package_rename.tag_prefix_before_rename}{version}"
    return f"{tag_prefix}{version}"


def get_unreleased_link_reference_definition(
    repo_url: str,
    tag_prefix: str,
    releases: List[ReleaseMetadata],
    package_rename: Optional[PackageRename] = None,
) -> str:
    # Unreleased covers everything after the *highest* release, which is not
    # necessarily the most recent one (e.g. a 1.0.1 backport after 2.0.0).
    latest = highest_version(r.version for r in releases)
    if latest is None:
        url = with_trailing_slash(repo_url)
    else:
        url = get_compare_url(repo_url, get_tag_name(latest, tag_prefix, package_rename), HEAD_REF)
    return f"[{UNRELEASED_LABEL}]: {url}"


def get_release_link_reference_definitions(
    repo_url: str,
    tag_prefix: str,
    releases: List[ReleaseMetadata],
    package_rename: Optional[PackageRename] = None,
) -> List[str]:
    versions = [r.version for r in releases]
    definitions: List[str] = []
    for index, version in enumerate(versions):
        current_tag = get_tag_name(version, tag_prefix, package_rename)
        previous = find_previous_version(versions, index)
        if previous is None:
            url = get_tag_url(repo_url, current_tag)
        else:
            url = get_compare_url(repo_url, get_tag_name(previous, tag_prefix, package_rename), current_tag)
        definitions.append(f"[{version}]: {url}")
    return definitions


def stringify_link_reference_definitions(
    repo_url: str,
    tag_prefix: str,
    releases: List[ReleaseMetadata],
    package_rename: Optional[PackageRename] = None,
) -> str:
    lines = [get_unreleased_link_reference_definition(repo_url, tag_prefix, releases, package_rename)]
    lines.extend(get_release_link_reference_definitions(repo_url, tag_prefix, releases, package_rename))
    return "\n".join(lines) + "\n"
