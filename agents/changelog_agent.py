#!/usr/bin/env python3
"""Changelog agent for validating and updating Keep a Changelog files.

Reads the changelog from disk, runs the requested command, and writes the
result back when asked to.
"""

import logging
import os
import sys
from functools import partial
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

# Load environment variables before Config reads them
load_dotenv()

from configs.config import Config
from utils.changelog import create_empty_changelog
from utils.changelog_errors import ChangelogError
from utils.changelog_models import PackageRename
from utils.dependency_bumps import MANIFEST_NAME, add_dependency_entries, get_dependency_changes_for_manifest
from utils.generate_diff import generate_diff
from utils.git_history import GitError, GitHistory, run_git
from utils.update_changelog import update_changelog
from utils.validation import (
	ChangelogFormattingError,
	InvalidChangelogError,
	MissingDependencyEntriesError,
	validate_changelog,
)
from utils.versions import is_valid_version

# Set up logging
logger = logging.getLogger(__name__)

UPDATE_EPILOG = """New commits will be added to the "Unreleased" section (or to the section
for the current release if the '--rc' flag is used) in reverse chronological
order. Any commits for PRs that are represented already in the changelog will
be ignored.

If the '--rc' flag is used and the section for the current release does not
yet exist, it will be created."""

VALIDATE_EPILOG = """This does not ensure that the changelog is complete, or that each change
is in the correct section. It just ensures that the formatting is correct.
Verification of the contents is left for manual review."""


def read_changelog(path: Path) -> str:
	with open(path, "r", encoding="utf-8", newline="") as f:
		return f.read()


def save_changelog(path: Path, content: str) -> None:
	# Atomic write via temp file and rename
	tmp = path.with_name(f".{path.name}.tmp")
	with open(tmp, "w", encoding="utf-8", newline="") as f:
		f.write(content)
		f.flush()
		os.fsync(f.fileno())
	os.replace(tmp, path)


def resolve_changelog_path(file: str, root: Optional[str]) -> Path:
	path = Path(file)
	if root and not path.is_absolute():
		path = Path(root) / path
	return path


def is_valid_url(value: str) -> bool:
	parsed = urlparse(value)
	return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def cmd_init(args) -> int:
	path = resolve_changelog_path(args.file, args.root)
	if path.exists():
		print(f"Error: {path} already exists", file=sys.stderr)
		return 1
	save_changelog(path, create_empty_changelog(args.repo, tag_prefix=args.tag_prefix))
	logger.info(f"Created {path}")
	return 0


def cmd_validate(args) -> int:
	path = resolve_changelog_path(args.file, args.root)
	content = read_changelog(path)
	dependency_result = None
	if args.check_deps:
		if args.fix and not args.current_pr:
			print("Error: --current-pr is required when --check-deps and --fix are both enabled.", file=sys.stderr)
			return 1
		manifest = resolve_changelog_path(args.manifest, args.root) if args.manifest else path.parent / MANIFEST_NAME
		# git resolves the manifest path relative to the directory it runs in
		history = GitHistory(partial(run_git, cwd=str(manifest.parent)), fetch_tags=False)
		dependency_result = get_dependency_changes_for_manifest(
			history,
			manifest.name,
			from_ref=args.from_ref,
			to_ref=args.to_ref,
			remote=args.remote,
			base_branch=args.base_branch,
		)
		if dependency_result is None:
			print("Error: Could not auto-detect git reference. Provide --from-ref or switch to a feature branch.", file=sys.stderr)
			return 1

	try:
		validate_changelog(
			content,
			repo_url=args.repo,
			is_release_candidate=args.rc,
			current_version=args.current_version,
			tag_prefix=args.tag_prefix,
			package_rename=args.package_rename,
			ensure_valid_pr_links_present=args.pr_links,
			use_short_pr_link=args.short_pr_links,
			dependency_result=dependency_result,
		)
	except ChangelogFormattingError as e:
		valid = e.data["valid_changelog"]
		if args.fix:
			save_changelog(path, valid)
			print(f"{path} reformatted.")
			return 0
		diff = generate_diff(valid, e.data["invalid_changelog"])
		print(f"Changelog not well-formatted. Diff:\n\n{diff}", file=sys.stderr)
		return 1
	except MissingDependencyEntriesError as e:
		if args.fix:
			save_changelog(path, add_dependency_entries(
				content,
				e.missing_entries,
				args.repo,
				args.current_pr,
				version=dependency_result.version_bump,
				tag_prefix=args.tag_prefix,
				package_rename=args.package_rename,
				use_short_pr_link=args.short_pr_links,
			))
			print(f"Added {len(e.missing_entries)} missing dependency changelog entries.")
			return 0
		deps = ", ".join(entry.dependency for entry in e.missing_entries)
		print(
			f"Changelog is missing dependency bump entries for: {deps}\n"
			"Run with --fix --current-pr <pr-number> to add them automatically.",
			file=sys.stderr,
		)
		return 1
	except InvalidChangelogError as e:
		print(f"Changelog is invalid: {e}", file=sys.stderr)
		return 1
	print(f"{path} is valid.")
	return 0


def cmd_update(args) -> int:
	path = resolve_changelog_path(args.file, args.root)
	content = read_changelog(path)
	new_content = update_changelog(
		content,
		repo_url=args.repo,
		is_release_candidate=args.rc,
		current_version=args.current_version,
		tag_prefixes=[args.tag_prefix, *args.fallback_tag_prefix],
		package_rename=args.package_rename,
		auto_categorize=args.auto_categorize,
		root_directory=args.root,
		use_changelog_entry=args.use_changelog_entry,
		use_short_pr_link=args.short_pr_links,
		require_pr_numbers=args.require_pr_numbers,
	)
	if new_content is None:
		print("There are no new commits to add to the changelog.")
		return 0
	save_changelog(path, new_content)
	print(f"{path} updated.")
	return 0


def build_parser():
	import argparse

	parser = argparse.ArgumentParser(
		description="Changelog Agent - Validate and update Keep a Changelog files",
		formatter_class=argparse.RawDescriptionHelpFormatter,
		epilog="""
Examples:
  python -m agents.changelog_agent init --repo https://github.com/o/r
  python -m agents.changelog_agent validate --repo https://github.com/o/r --rc --version 1.2.0
  python -m agents.changelog_agent update --repo https://github.com/o/r --auto-categorize
		"""
	)
	parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

	defaults = Config.get_changelog_config()
	common = argparse.ArgumentParser(add_help=False)
	common.add_argument("--file", default=defaults["file"], help="The changelog file path")
	common.add_argument("--repo", default=defaults["repo_url"] or None, help="The GitHub repository URL")
	common.add_argument("--root", default=None, help="The root project directory; the changelog path is resolved from it")
	common.add_argument("--tag-prefix", dest="tag_prefix", default=defaults["tag_prefix"], help="The prefix used in tags before the version number")
	common.add_argument("--short-pr-links", dest="short_pr_links", action="store_true", default=Config.CHANGELOG_SHORT_PR_LINKS, help="Render PR links as (#123)")
	common.add_argument("--version-before-package-rename", dest="version_before_package_rename", default=Config.PACKAGE_RENAME_VERSION or None, help="The last version released under the package's old name")
	common.add_argument("--tag-prefix-before-package-rename", dest="tag_prefix_before_package_rename", default=Config.PACKAGE_RENAME_TAG_PREFIX or None, help="The tag prefix used before the package rename")

	sub = parser.add_subparsers(dest="command", required=True)

	sub.add_parser("init", parents=[common], help="Create a new empty changelog")

	val = sub.add_parser("validate", parents=[common], help="Validate the changelog", epilog=VALIDATE_EPILOG)
	val.add_argument("--rc", action="store_true", help="Validate as a release candidate")
	val.add_argument("--version", dest="current_version", default=None, help="The current version of the project")
	val.add_argument("--fix", action="store_true", help="Rewrite the changelog in canonical form")
	val.add_argument("--pr-links", dest="pr_links", action="store_true", default=Config.CHANGELOG_EXTRACT_PR_LINKS, help="Require PR links on every released change")
	git_defaults = Config.get_git_config()
	val.add_argument("--check-deps", dest="check_deps", action="store_true", help="Require entries for dependency bumps in pyproject.toml")
	val.add_argument("--manifest", default=None, help="The pyproject.toml to check; defaults to the one beside the changelog")
	val.add_argument("--from-ref", dest="from_ref", default=None, help="Starting git reference; defaults to the merge base with the base branch")
	val.add_argument("--to-ref", dest="to_ref", default="HEAD", help="Ending git reference")
	val.add_argument("--remote", default=git_defaults["remote"], help="Remote used to find the base branch")
	val.add_argument("--base-branch", dest="base_branch", default=git_defaults["base_branch"], help="Base branch to compare against (defaults to <remote>/main)")
	val.add_argument("--current-pr", dest="current_pr", default=None, help="PR number for dependency entries added by --fix")

	upd = sub.add_parser("update", parents=[common], help="Add new commits to the changelog", epilog=UPDATE_EPILOG)
	upd.add_argument("--rc", action="store_true", help="Add changes under the current release header")
	upd.add_argument("--version", dest="current_version", default=None, help="The current version of the project")
	upd.add_argument("--auto-categorize", dest="auto_categorize", action="store_true", default=Config.CHANGELOG_AUTO_CATEGORIZE)
	upd.add_argument("--fallback-tag-prefix", dest="fallback_tag_prefix", action="append", default=[], help="Tag prefix to try if none match --tag-prefix (repeatable)")
	upd.add_argument("--use-changelog-entry", dest="use_changelog_entry", action="store_true", help="Use 'CHANGELOG entry:' lines from PR commit bodies")
	upd.add_argument("--require-pr-numbers", dest="require_pr_numbers", action="store_true", help="Skip commits without a PR number")
	return parser


def main(argv=None) -> int:
	"""CLI entry point for the changelog agent."""
	parser = build_parser()
	args = parser.parse_args(argv)

	# Set up logging
	log_level = logging.DEBUG if args.verbose else logging.INFO
	logging.basicConfig(
		level=log_level,
		format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
	)
	# Suppress verbose logs from libraries unless in debug mode
	if not args.verbose:
		logging.getLogger("utils.git_history").setLevel(logging.WARNING)
		logging.getLogger("utils.update_changelog").setLevel(logging.WARNING)
		logging.getLogger("utils.dependency_bumps").setLevel(logging.WARNING)

	if not args.repo:
		print("Error: A repository URL is required (--repo or CHANGELOG_REPO_URL)", file=sys.stderr)
		return 1
	if not is_valid_url(args.repo):
		print(f"Error: Invalid repo URL: '{args.repo}'", file=sys.stderr)
		return 1
	if getattr(args, "rc", False) and not args.current_version:
		print("Error: --version is required with --rc", file=sys.stderr)
		return 1
	current_version = getattr(args, "current_version", None)
	if current_version and not is_valid_version(current_version):
		print(f"Error: Current version is not valid SemVer: '{current_version}'", file=sys.stderr)
		return 1
	if bool(args.version_before_package_rename) != bool(args.tag_prefix_before_package_rename):
		print(
			"Error: --version-before-package-rename and --tag-prefix-before-package-rename "
			"must be given together or not at all.",
			file=sys.stderr,
		)
		return 1
	args.package_rename = None
	if args.version_before_package_rename:
		args.package_rename = PackageRename(
			version_before_rename=args.version_before_package_rename,
			tag_prefix_before_rename=args.tag_prefix_before_package_rename,
		)

	commands = {"init": cmd_init, "validate": cmd_validate, "update": cmd_update}
	try:
		return commands[args.command](args)
	except FileNotFoundError as e:
		print(f"Error: Changelog not found: {e.filename}", file=sys.stderr)
		return 1
	except ChangelogError as e:
		print(f"Error: {e}", file=sys.stderr)
		return 1
	except GitError as e:
		print(f"Error: {e}", file=sys.stderr)
		if args.verbose:
			logger.exception("Detailed error information:")
		return 1
	except ValueError as e:
		print(f"Error: {e}", file=sys.stderr)
		return 1
	except KeyboardInterrupt:
		print("\nOperation cancelled by user", file=sys.stderr)
		return 1


if __name__ == "__main__":
	sys.exit(main())
