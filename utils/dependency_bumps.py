#!/usr/bin/env python3
"""Detect dependency bumps in pyproject.toml and check the changelog lists them.

A bump is a runtime dependency whose version specifier differs between two
git references. Each bump needs a `Changed` entry reading
"Bump `name` from `old` to `new`", either in the Unreleased section or, when
the project version was bumped as well, in the section of the new version.
"""

from __future__ import annotations

import logging
import re
import tomllib
from typing import Any, Dict, List, Optional, Sequence, Tuple

from packaging.requirements import Requirement
from packaging.utils import canonicalize_name
from pydantic import BaseModel, Field

from utils.changelog import Formatter, ReleaseChanges
from utils.changelog_models import ChangeCategory, PackageRename
from utils.git_history import GitError, GitHistory
from utils.markdown_renderer import pr_links
from utils.parse_changelog import parse_changelog

logger = logging.getLogger(__name__)

MANIFEST_NAME = "pyproject.toml"

_PR_NUMBER_RE = re.compile(r"#(\d+)")


class DependencyChange(BaseModel):
    """One dependency whose version specifier changed."""

    dependency: str = Field(..., description="Normalized distribution name")
    old_version: str = Field(..., description="Version specifier before the change")
    new_version: str = Field(..., description="Version specifier after the change")

    model_config = {"frozen": True}


class DependencyCheckResult(BaseModel):
    dependency_changes: List[DependencyChange] = Field(default_factory=list)
    version_bump: Optional[str] = Field(None, description="New project version, if it changed")


def parse_manifest(manifest: str) -> Tuple[Dict[str, str], Optional[str]]:
    """Read runtime dependencies and the project version from a pyproject.toml.

    Both PEP 621 `[project]` tables and Poetry's `[tool.poetry]` tables are
    read. Dependencies map to their version specifier, or "*" if unpinned.

    Raises:
        tomllib.TOMLDecodeError: If the text is not valid TOML
        InvalidRequirement: If a PEP 508 dependency string is malformed
    """
    data: Dict[str, Any] = tomllib.loads(manifest)
    project = data.get("project", {})
    poetry = data.get("tool", {}).get("poetry", {})

    dependencies: Dict[str, str] = {}
    for line in project.get("dependencies", []):
        requirement = Requirement(line)
        dependencies[canonicalize_name(requirement.name)] = str(requirement.specifier) or requirement.url or "*"
    for name, spec in poetry.get("dependencies", {}).items():
        if name.lower() == "python":
            continue
        if isinstance(spec, dict):
            spec = spec.get("version", "*")
        dependencies[canonicalize_name(name)] = str(spec)

    return dependencies, project.get("version") or poetry.get("version")


def get_dependency_changes(old_manifest: Optional[str], new_manifest: Optional[str]) -> DependencyCheckResult:
    """Compare two pyproject.toml texts; a missing manifest has no dependencies.

    Added and removed dependencies are not bumps and are ignored.
    """
    old_deps, old_version = parse_manifest(old_manifest) if old_manifest else ({}, None)
    new_deps, new_version = parse_manifest(new_manifest) if new_manifest else ({}, None)
    changes = [
        DependencyChange(dependency=name, old_version=old_deps[name], new_version=spec)
        for name, spec in new_deps.items()
        if name in old_deps and old_deps[name] != spec
    ]
    version_bump = new_version if new_version and new_version != old_version else None
    return DependencyCheckResult(dependency_changes=changes, version_bump=version_bump)


def get_dependency_changes_for_manifest(
    history: GitHistory,
    manifest_path: str = MANIFEST_NAME,
    from_ref: Optional[str] = None,
    to_ref: str = "HEAD",
    remote: str = "origin",
    base_branch: Optional[str] = None,
) -> Optional[DependencyCheckResult]:
    """Find the dependency bumps in a manifest between two git references.

    Without `from_ref`, the merge base of HEAD and `base_branch` (by default
    `<remote>/main`) is used.

    Returns:
        The bumps found, or None if `from_ref` could not be auto-detected
        because HEAD is on the base branch or has no merge base with it
    """
    base = base_branch or f"{remote}/main"
    if not from_ref:
        current = history.get_current_branch()
        local_base = base[len(remote) + 1:] if base.startswith(f"{remote}/") else base
        logger.info(f"Current branch: '{current}'")
        if current in (base, local_base):
            logger.warning(f"On the base branch {base}; no reference to compare against")
            return None
        try:
            from_ref = history.get_merge_base(base)
        except GitError as e:
            logger.warning(f"Could not find merge base with {base}: {e}")
            return None
        if not from_ref:
            return None
        logger.info(f"Comparing against merge base with {base}: {from_ref[:8]}")

    result = get_dependency_changes(
        history.get_file_at_ref(from_ref, manifest_path),
        history.get_file_at_ref(to_ref, manifest_path),
    )
    logger.info(f"Found {len(result.dependency_changes)} dependency bumps from {from_ref[:8]} to {to_ref}")
    return result


def bump_description(change: DependencyChange) -> str:
    return f"Bump `{change.dependency}` from `{change.old_version}` to `{change.new_version}`"


def find_dependency_entry(changes: ReleaseChanges, change: DependencyChange) -> Tuple[bool, Optional[str]]:
    """Look for the `Changed` entry describing a bump.

    Returns:
        Whether an entry names the exact versions, and the text of the entry
        found (exact, or for the same dependency with other versions)
    """
    entries = [c.description for c in changes.get(ChangeCategory.CHANGED, [])]
    exact = re.compile(re.escape(bump_description(change)))
    for entry in entries:
        if exact.search(entry):
            return True, entry
    any_version = re.compile(rf"Bump `{re.escape(change.dependency)}` from `[^`]+` to `[^`]+`")
    for entry in entries:
        if any_version.search(entry):
            return False, entry
    return False, None


def add_dependency_entries(
    changelog_content: str,
    dependency_changes: Sequence[DependencyChange],
    repo_url: str,
    pr_number: str,
    *,
    version: Optional[str] = None,
    tag_prefix: str = "v",
    formatter: Optional[Formatter] = None,
    package_rename: Optional[PackageRename] = None,
    use_short_pr_link: bool = False,
) -> str:
    """Add missing bump entries under `Changed`, linked to `pr_number`.

    Entries go to the release `version` (created if missing), or to
    Unreleased. An entry for the same dependency with other versions is
    rewritten to the new versions and keeps its PR links.
    """
    changelog = parse_changelog(
        changelog_content, repo_url=repo_url, tag_prefix=tag_prefix,
        formatter=formatter, package_rename=package_rename,
    )
    if version and changelog.get_release(version) is None:
        changelog.add_release(version=version)
    section = changelog.get_release_changes(version) if version else changelog.get_unreleased_changes()

    to_add: List[DependencyChange] = []
    updated_content = changelog.stringify(use_short_pr_link=use_short_pr_link)
    rewritten = 0
    for change in dependency_changes:
        exact, existing = find_dependency_entry(section or {}, change)
        if exact:
            continue
        if existing is None:
            to_add.append(change)
            continue
        old_bump = re.search(r"Bump `[^`]+` from `[^`]+` to `[^`]+`", existing)
        numbers = list(dict.fromkeys(_PR_NUMBER_RE.findall(existing[old_bump.end():])))
        if pr_number not in numbers:
            numbers.append(pr_number)
        new_entry = bump_description(change) + pr_links(numbers, repo_url, use_short_pr_link=use_short_pr_link)
        updated_content = updated_content.replace(f"- {existing}", f"- {new_entry}", 1)
        rewritten += 1

    if rewritten:
        changelog = parse_changelog(
            updated_content, repo_url=repo_url, tag_prefix=tag_prefix,
            formatter=formatter, package_rename=package_rename,
        )
    # Each entry is prepended, so add the last one first
    for change in reversed(to_add):
        changelog.add_change(ChangeCategory.CHANGED, bump_description(change), version=version, pr_numbers=[pr_number])
    logger.info(f"Added {len(to_add)} and updated {rewritten} dependency entries")
    return changelog.to_string(use_short_pr_link=use_short_pr_link)
