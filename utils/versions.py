#!/usr/bin/env python3
"""Semantic version helpers (SemVer 2.0.0).

Release ordering in the link reference block depends on version precedence,
not on the order releases appear in the document.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

import semver


def is_valid_version(version: Optional[str]) -> bool:
    if not version or not isinstance(version, str):
        return False
    return semver.Version.is_valid(version)


def compare_versions(a: str, b: str) -> int:
    """Return -1, 0 or 1 as `a` is lower than, equal to, or greater than `b`."""
    return semver.Version.parse(a).compare(b)


def is_greater(a: str, b: str) -> bool:
    return compare_versions(a, b) > 0


def highest_version(versions: Iterable[str]) -> Optional[str]:
    """Return the version with the highest precedence, or None if empty."""
    highest: Optional[str] = None
    for version in versions:
        if highest is None or is_greater(version, highest):
            highest = version
    return highest


def find_previous_version(versions: List[str], index: int) -> Optional[str]:
    """Find the release that precedes `versions[index]` on its own version line.

    `versions` is in document order (newest entries first). The first entry
    after `index` with a strictly lower version is the previous release, so
    patch releases on older lines resolve against their own line.
    """
    current = versions[index]
    for candidate in versions[index + 1:]:
        if is_greater(current, candidate):
            return candidate
    return None
