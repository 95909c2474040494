#!/usr/bin/env python3
"""Read tags and commit messages from git for new changelog entries.

Squash-merge subjects (`Description (#123)`) and merge subjects
(`Merge pull request #123 from ...`) yield a PR number; other commits are
used as-is. Only the local `git` executable is used.
"""

from __future__ import annotations

import logging
import re
import subprocess
from typing import Callable, List, Optional, Sequence

from pydantic import BaseModel, Field

from configs.config import Config
from utils.markdown_renderer import pr_links
from utils.normalization import normalize_change_entry

logger = logging.getLogger(__name__)

CommandRunner = Callable[[Sequence[str]], str]

_SQUASH_PR_RE = re.compile(r"\(#(\d+)\)")
_SQUASH_DESCRIPTION_RE = re.compile(r"^(.+)\s\(#\d+\)")
_MERGE_PR_RE = re.compile(r"#(\d+)\sfrom")
_CHANGELOG_ENTRY_RE = re.compile(r"\nCHANGELOG entry:\s(\S.+?)\n\n", re.DOTALL)

# An entry of this text means "leave this commit out of the changelog"
NO_ENTRY = "null"


class GitError(Exception):
    def __init__(self, message: str, code: str = "UNKNOWN"):
        super().__init__(message)
        self.code = code


class CommitEntry(BaseModel):
    """A commit reduced to what a changelog entry needs."""

    subject: str = Field(..., description="Commit subject line")
    description: str = Field(..., description="Text to use as the change description")
    pr_number: Optional[str] = Field(None, description="Pull request number, if known")

    model_config = {"extra": "ignore"}


def run_git(args: Sequence[str], cwd: Optional[str] = None) -> str:
    """Run git and return its stdout.

    Raises:
        GitError: If git is missing, times out, or exits with an error
    """
    cmd = ["git", *args]
    logger.debug(f"Running {' '.join(cmd)}")
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
            timeout=Config.GIT_TIMEOUT_S,
        )
    except FileNotFoundError as e:
        raise GitError("git executable not found", code="NOT_FOUND") from e
    except subprocess.TimeoutExpired as e:
        raise GitError(f"git timed out after {Config.GIT_TIMEOUT_S}s: {' '.join(cmd)}", code="TIMEOUT") from e
    except subprocess.CalledProcessError as e:
        stderr = (e.stderr or "").strip()
        raise GitError(f"git failed ({e.returncode}): {' '.join(cmd)}: {stderr}", code="COMMAND") from e
    return result.stdout


def _split(output: str) -> List[str]:
    return [line for line in output.strip().split("\n") if line != ""]


class GitHistory:
    """Collect new changelog entries from the commits since the last tag."""

    def __init__(self, runner: Optional[CommandRunner] = None, *, fetch_tags: Optional[bool] = None):
        self._run: CommandRunner = runner or run_git
        git_config = Config.get_git_config()
        self.fetch_tags = git_config["fetch_tags"] if fetch_tags is None else fetch_tags

    def get_most_recent_tag(self, tag_prefixes: Sequence[str]) -> Optional[str]:
        """Return the most recent tag matching the first prefix that has any tags.

        Later prefixes are fallbacks, e.g. a package's name before a rename.
        """
        if self.fetch_tags:
            self._run(["fetch", "--tags"])
        commit_hash: Optional[str] = None
        for prefix in tag_prefixes:
            results = _split(self._run(["rev-list", f"--tags={prefix}*", "--max-count=1", "--date-order"]))
            if results:
                commit_hash = results[0]
                break
        if commit_hash is None:
            logger.info("No release tags found")
            return None
        tag = _split(self._run(["describe", "--tags", commit_hash]))[0]
        logger.info(f"Most recent tag: {tag}")
        return tag

    def get_commit_hashes(self, most_recent_tag: Optional[str], root_directory: Optional[str] = None) -> List[str]:
        commit_range = "HEAD" if most_recent_tag is None else f"{most_recent_tag}..HEAD"
        args = ["rev-list", commit_range]
        if root_directory:
            args.append(root_directory)
        return _split(self._run(args))

    def get_commit(self, commit_hash: str, use_changelog_entry: bool = False) -> Optional[CommitEntry]:
        """Describe one commit, or return None when it opts out of the changelog."""
        subject = self._run(["show", "-s", "--format=%s", commit_hash]).strip()
        if not subject:
            raise GitError(f'"git show" returned empty subject for commit "{commit_hash}"', code="EMPTY")

        pr_number: Optional[str] = None
        description = subject
        squash = _SQUASH_PR_RE.search(subject)
        if squash:
            pr_number = squash.group(1)
            short = _SQUASH_DESCRIPTION_RE.match(subject)
            description = short.group(1) if short else ""
            if use_changelog_entry:
                body = self._run(["show", "-s", "--format=%b", commit_hash])
                entry = _CHANGELOG_ENTRY_RE.search(body)
                if entry:
                    text = entry.group(1).replace("\n", " ", 1)
                    description = text if text == NO_ENTRY else normalize_change_entry(text)
        else:
            merge = _MERGE_PR_RE.search(subject)
            if merge:
                pr_number = merge.group(1)
                body_lines = _split(self._run(["show", "-s", "--format=%b", commit_hash]))
                description = body_lines[0] if body_lines else subject

        if description == NO_ENTRY:
            logger.debug(f"Skipping {commit_hash[:7]}: no changelog entry")
            return None
        return CommitEntry(subject=subject, description=description, pr_number=pr_number)

    def get_new_change_entries(
        self,
        most_recent_tag: Optional[str],
        repo_url: str,
        logged_pr_numbers: Sequence[str],
        logged_descriptions: Sequence[str],
        *,
        root_directory: Optional[str] = None,
        use_changelog_entry: bool = False,
        use_short_pr_link: bool = False,
        require_pr_numbers: bool = False,
    ) -> List[str]:
        """Return descriptions for commits not yet in the changelog, newest first.

        Commits with a PR number are skipped when that PR is already logged;
        other commits are skipped when their exact description is logged.
        """
        logged_prs = set(logged_pr_numbers)
        logged = set(logged_descriptions)
        entries: List[str] = []
        for commit_hash in self.get_commit_hashes(most_recent_tag, root_directory):
            commit = self.get_commit(commit_hash, use_changelog_entry=use_changelog_entry)
            if commit is None:
                continue
            if commit.pr_number:
                if commit.pr_number in logged_prs:
                    continue
            elif require_pr_numbers or commit.description in logged:
                continue
            entries.append(self._entry_text(commit, repo_url, use_short_pr_link))
        logger.info(f"Found {len(entries)} new changelog entries")
        return entries

    @staticmethod
    def _entry_text(commit: CommitEntry, repo_url: str, use_short_pr_link: bool) -> str:
        # Several "CHANGELOG entry:" lines in one PR body collapse into one
        description = commit.description.replace("CHANGELOG entry: ", "")
        if not commit.pr_number:
            return description
        suffix = pr_links([commit.pr_number], repo_url, use_short_pr_link=use_short_pr_link).strip()
        if not description:
            return suffix
        first_line, *other_lines = description.split("\n")
        return "\n".join([f"{first_line} {suffix}", *other_lines])

    def get_current_branch(self) -> str:
        return self._run(["rev-parse", "--abbrev-ref", "HEAD"]).strip()

    def get_merge_base(self, base_branch: str) -> str:
        return self._run(["merge-base", "HEAD", base_branch]).strip()

    def get_file_at_ref(self, ref: str, path: str) -> Optional[str]:
        """Return a file's contents at `ref`, or None if it did not exist there.

        `path` is relative to the directory git runs in.
        """
        if not _split(self._run(["ls-tree", "--name-only", ref, "--", path])):
            return None
        return self._run(["show", f"{ref}:./{path}"])
