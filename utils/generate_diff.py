#!/usr/bin/env python3
"""Line diff used to show why a changelog is not well-formatted."""

from __future__ import annotations

from difflib import SequenceMatcher
from typing import List, Tuple

NO_NEWLINE_NOTICE = "\\ No newline at end of file"
CONTEXT_LINES = 2


def _lines(value: str) -> Tuple[List[str], List[Tuple[str, bool]]]:
    """Split into lines, plus comparison keys that flag a missing final newline."""
    has_newline = value.endswith("\n")
    lines = (value[:-1] if has_newline else value).split("\n")
    keys = [(line, False) for line in lines]
    if not has_newline:
        keys[-1] = (lines[-1], True)
    return lines, keys


def generate_diff(before: str, after: str) -> str:
    """Diff two texts with '-'/'+' markers and up to two lines of context.

    Args:
        before: The base of the comparison (e.g. the canonical changelog)
        after: The text being compared (e.g. the changelog on disk)

    Returns:
        The diff, or an empty string if the texts are identical
    """
    a_lines, a_keys = _lines(before)
    b_lines, b_keys = _lines(after)
    out: List[str] = []
    matcher = SequenceMatcher(None, a_keys, b_keys, autojunk=False)
    for group in matcher.get_grouped_opcodes(CONTEXT_LINES):
        for tag, i1, i2, j1, j2 in group:
            if tag == "equal":
                out.extend(f" {line}" for line in a_lines[i1:i2])
                continue
            if tag in ("replace", "delete"):
                out.extend(f"-{line}" for line in a_lines[i1:i2])
                if a_keys[i2 - 1][1]:
                    out.append(NO_NEWLINE_NOTICE)
            if tag in ("replace", "insert"):
                out.extend(f"+{line}" for line in b_lines[j1:j2])
                if b_keys[j2 - 1][1]:
                    out.append(NO_NEWLINE_NOTICE)
    return "\n".join(out)
