"""
Shared pytest fixtures for the changelog tests.

Provides:
- Repository URL used across tests
- Canonical changelog text built through the Changelog API
- A scripted git runner for GitHistory
"""

from typing import Dict, List, Sequence, Tuple

import pytest

from utils.changelog import Changelog
from utils.changelog_models import ChangeCategory

REPO_URL = "https://github.com/example-org/example-repo"

DESCRIPTION = (
    "All notable changes to this project will be documented in this file.\n"
    "\n"
    "The format is based on [Keep a Changelog](https://keepachangelog.com/en/1.0.0/),\n"
    "and this project adheres to [Semantic Versioning](https://semver.org/spec/v2.0.0.html)."
)


class ScriptedGit:
    """Callable standing in for `run_git`; answers from a fixed table."""

    def __init__(self, responses: Dict[Tuple[str, ...], str]):
        self.responses = responses
        self.calls: List[Tuple[str, ...]] = []

    def __call__(self, args: Sequence[str]) -> str:
        key = tuple(args)
        self.calls.append(key)
        return self.responses.get(key, "")


@pytest.fixture
def repo_url() -> str:
    return REPO_URL


@pytest.fixture
def released_changelog() -> Changelog:
    """Two releases, one with PR links, plus an unreleased fix."""
    changelog = Changelog(repo_url=REPO_URL)
    changelog.add_release("1.0.0", date="2023-01-01")
    changelog.add_change(ChangeCategory.ADDED, "Initial release", version="1.0.0", pr_numbers=["1"])
    changelog.add_release("1.1.0", date="2023-02-01")
    changelog.add_change(ChangeCategory.CHANGED, "Improve startup time", version="1.1.0", pr_numbers=["3", "4"])
    changelog.add_change(ChangeCategory.FIXED, "Fix crash on empty input", version="1.1.0", pr_numbers=["2"])
    changelog.add_change(ChangeCategory.FIXED, "Fix typo in help text")
    return changelog
