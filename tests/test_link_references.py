#!/usr/bin/env python3
"""
Unit tests for link reference definitions
"""

from conftest import REPO_URL
from utils.changelog_models import PackageRename, ReleaseMetadata
from utils.link_references import (
    get_compare_url,
    get_release_link_reference_definitions,
    get_tag_name,
    get_tag_url,
    get_unreleased_link_reference_definition,
    stringify_link_reference_definitions,
)


def releases(*versions):
    return [ReleaseMetadata(version=v) for v in versions]


class TestUrls:
    def test_compare_url_adds_single_slash(self):
        assert get_compare_url(REPO_URL, "v1.0.0", "HEAD") == f"{REPO_URL}/compare/v1.0.0...HEAD"
        assert get_compare_url(f"{REPO_URL}/", "v1.0.0", "HEAD") == f"{REPO_URL}/compare/v1.0.0...HEAD"

    def test_tag_url(self):
        assert get_tag_url(REPO_URL, "v1.0.0") == f"{REPO_URL}/releases/tag/v1.0.0"


class TestTagName:
    def test_default_prefix(self):
        assert get_tag_name("1.0.0", "v") == "v1.0.0"

    def test_package_rename_boundary(self):
        rename = PackageRename(version_before_rename="1.0.0", tag_prefix_before_rename="old@")
        assert get_tag_name("0.9.0", "new@", rename) == "old@0.9.0"
        assert get_tag_name("1.0.0", "new@", rename) == "old@1.0.0"
        assert get_tag_name("1.0.1", "new@", rename) == "new@1.0.1"
        assert get_tag_name("1.0.0-rc.1", "new@", rename) == "old@1.0.0-rc.1"


class TestDefinitions:
    def test_unreleased_without_releases(self):
        assert get_unreleased_link_reference_definition(REPO_URL, "v", []) == f"[Unreleased]: {REPO_URL}/"

    def test_unreleased_uses_highest_version(self):
        definition = get_unreleased_link_reference_definition(REPO_URL, "v", releases("1.0.1", "2.0.0", "1.0.0"))
        assert definition == f"[Unreleased]: {REPO_URL}/compare/v2.0.0...HEAD"

    def test_release_definitions_follow_document_order(self):
        assert get_release_link_reference_definitions(REPO_URL, "v", releases("1.1.0", "1.0.0")) == [
            f"[1.1.0]: {REPO_URL}/compare/v1.0.0...v1.1.0",
            f"[1.0.0]: {REPO_URL}/releases/tag/v1.0.0",
        ]

    def test_stringified_block_ends_with_newline(self):
        block = stringify_link_reference_definitions(REPO_URL, "v", releases("1.0.0"))
        assert block == (
            f"[Unreleased]: {REPO_URL}/compare/v1.0.0...HEAD\n"
            f"[1.0.0]: {REPO_URL}/releases/tag/v1.0.0\n"
        )
