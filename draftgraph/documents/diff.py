"""
draftgraph Version Diff — Unified diff between two node payloads.

The diff text is returned together with its hunks so callers can render
changes without parsing the text again.
"""

from __future__ import annotations

import difflib
import re
from typing import List

from draftgraph.documents.models import DiffHunk

DEFAULT_CONTEXT = 50
HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


def unified_diff(
    left: str,
    right: str,
    left_label: str = "a",
    right_label: str = "b",
    context: int = DEFAULT_CONTEXT,
) -> str:
    """Unified diff of ``left`` against ``right``. Identical inputs give ``""``."""
    lines = difflib.unified_diff(
        left.splitlines(keepends=True),
        right.splitlines(keepends=True),
        fromfile=left_label,
        tofile=right_label,
        n=context,
    )
    # A final line without a newline would run into the next diff line
    return "".join(line if line.endswith("\n") else line + "\n" for line in lines)


def parse_hunks(diff: str) -> List[DiffHunk]:
    hunks: List[DiffHunk] = []
    current = None
    for line in diff.splitlines():
        match = HUNK_HEADER_RE.match(line)
        if match:
            old_start, old_lines, new_start, new_lines = match.groups()
            # An omitted length means a single line
            current = DiffHunk(
                header=line,
                old_start=int(old_start),
                old_lines=int(old_lines) if old_lines is not None else 1,
                new_start=int(new_start),
                new_lines=int(new_lines) if new_lines is not None else 1,
            )
            hunks.append(current)
        elif current is not None:
            current.lines.append(line)
    return hunks
