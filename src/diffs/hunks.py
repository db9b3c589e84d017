"""
Line-addressed diff hunks and line classification for annotated diffs.

Two views of the same diff are produced:
- zero-context hunks whose headers are expanded into absolute line numbers
  (what the overlay looks attribution up for)
- a full-context rendering where every output line is classified and keyed
  by its running old/new line number
"""

from dataclasses import dataclass, field
from enum import Enum

from common.logger import get_logger
from gitops.git_utils import Repository, unquote_c_path

from .models import DiffLineKey, LineSide

logger = get_logger(__name__)


@dataclass
class DiffHunk:
    """One hunk of a zero-context diff.

    Attributes:
        file_path: Path on the new side (old side for deleted files)
        old_start, old_count: Hunk range in the old file
        new_start, new_count: Hunk range in the new file
        deleted_lines: Absolute line numbers removed from the old file
        added_lines: Absolute line numbers added to the new file
        old_file_path: Path on the old side (differs from file_path for renames)
    """

    file_path: str
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    deleted_lines: list[int] = field(default_factory=list)
    added_lines: list[int] = field(default_factory=list)
    old_file_path: str = ""


def _parse_side(part: str, marker: str) -> tuple[int, int] | None:
    """Parse ``-10,3`` / ``+15`` into (start, count); a missing count means 1."""
    if not part.startswith(marker):
        return None
    start, sep, count = part[1:].partition(",")
    try:
        return int(start), int(count) if sep else 1
    except ValueError:
        return None


def parse_hunk_header(line: str, file_path: str) -> DiffHunk | None:
    """
    Expand a hunk header into absolute line-number lists.

    Examples:
        ``@@ -10,3 +15,5 @@`` -> deleted 10..12, added 15..19
        ``@@ -7 +7 @@``       -> deleted [7], added [7]
        ``@@ -10,0 +11,2 @@`` -> deleted [], added [11, 12]

    Returns:
        DiffHunk, or None if the line is not a well-formed hunk header
    """
    parts = line.split()
    if len(parts) < 3 or parts[0] != "@@":
        return None

    old = _parse_side(parts[1], "-")
    new = _parse_side(parts[2], "+")
    if old is None or new is None:
        logger.debug(f"Ignoring malformed hunk header in {file_path}: {line!r}")
        return None

    old_start, old_count = old
    new_start, new_count = new
    return DiffHunk(
        file_path=file_path,
        old_start=old_start,
        old_count=old_count,
        new_start=new_start,
        new_count=new_count,
        deleted_lines=list(range(old_start, old_start + old_count)),
        added_lines=list(range(new_start, new_start + new_count)),
    )


def _path_from_header(line: str, prefix: str) -> str | None:
    path = line[len(prefix):]
    # git appends a TAB to names containing spaces
    if path.endswith("\t"):
        path = path[:-1]
    path = unquote_c_path(path)
    if path == "/dev/null":
        return None
    # a/ and b/ prefixes
    if len(path) > 2 and path[1] == "/" and path[0] in "ab":
        return path[2:]
    return path


def _diff_lines(diff_text: str) -> list[str]:
    """Split on LF only; CR, form feed and other separators stay inside the line."""
    lines = diff_text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def parse_diff_hunks(diff_text: str) -> list[DiffHunk]:
    """
    Collect every hunk of a unified diff.

    Hunks are attributed to the new-side path; a deleted file (new side
    ``/dev/null``) keeps its old path.
    """
    hunks: list[DiffHunk] = []
    old_file: str | None = None
    current_file = ""
    in_header = False

    for line in _diff_lines(diff_text):
        if line.startswith("diff --git"):
            old_file = None
            current_file = ""
            in_header = True
        elif in_header and line.startswith("--- "):
            old_file = _path_from_header(line, "--- ")
        elif in_header and line.startswith("+++ "):
            new_file = _path_from_header(line, "+++ ")
            current_file = new_file if new_file is not None else (old_file or "")
        elif line.startswith("@@ "):
            in_header = False
            hunk = parse_hunk_header(line, current_file)
            if hunk is not None:
                hunk.old_file_path = old_file or current_file
                hunks.append(hunk)

    return hunks


def get_diff_with_line_numbers(repo: Repository, from_rev: str, to_rev: str) -> list[DiffHunk]:
    """Zero-context hunks between two revisions."""
    hunks = parse_diff_hunks(repo.diff(from_rev, to_rev, context_lines=0))
    logger.debug(f"Parsed {len(hunks)} hunk(s) between {from_rev[:7]} and {to_rev[:7]}")
    return hunks


class LineType(Enum):
    DIFF_HEADER = "diff_header"
    HUNK_HEADER = "hunk_header"
    ADDITION = "addition"
    DELETION = "deletion"
    CONTEXT = "context"
    BINARY = "binary"
    OTHER = "other"


@dataclass
class AnnotatedLine:
    """A classified line of full-context diff output.

    ``key`` is set only for additions and deletions.
    """

    text: str
    line_type: LineType
    key: DiffLineKey | None = None


def _hunk_starts(line: str) -> tuple[int, int] | None:
    parts = line.split()
    if len(parts) < 3:
        return None
    old = _parse_side(parts[1], "-")
    new = _parse_side(parts[2], "+")
    if old is None or new is None:
        return None
    return old[0], new[0]


def annotate_diff(diff_text: str) -> list[AnnotatedLine]:
    """
    Classify each line of a full-context diff and key changed lines.

    Running counters: context lines advance both sides, deletions the old
    side, additions the new side; headers, binary markers and other lines
    (``\\ No newline at end of file``) advance neither.
    """
    annotated: list[AnnotatedLine] = []
    old_file: str | None = None
    current_file = ""
    old_line = 0
    new_line = 0
    in_header = False

    for line in _diff_lines(diff_text):
        if line.startswith("diff --git"):
            annotated.append(AnnotatedLine(line, LineType.DIFF_HEADER))
            old_file = None
            current_file = ""
            old_line = new_line = 0
            in_header = True
        elif in_header and line.startswith("--- "):
            old_file = _path_from_header(line, "--- ")
            current_file = old_file or ""
            annotated.append(AnnotatedLine(line, LineType.DIFF_HEADER))
        elif in_header and line.startswith("+++ "):
            new_file = _path_from_header(line, "+++ ")
            current_file = new_file if new_file is not None else (old_file or "")
            annotated.append(AnnotatedLine(line, LineType.DIFF_HEADER))
        elif line.startswith("@@ "):
            starts = _hunk_starts(line)
            if starts is not None:
                old_line, new_line = starts
            in_header = False
            annotated.append(AnnotatedLine(line, LineType.HUNK_HEADER))
        elif in_header:
            if line.startswith("Binary files"):
                annotated.append(AnnotatedLine(line, LineType.BINARY))
            else:
                annotated.append(AnnotatedLine(line, LineType.DIFF_HEADER))
        elif line.startswith("-"):
            key = DiffLineKey(file=current_file, line=old_line, side=LineSide.OLD)
            annotated.append(AnnotatedLine(line, LineType.DELETION, key))
            old_line += 1
        elif line.startswith("+"):
            key = DiffLineKey(file=current_file, line=new_line, side=LineSide.NEW)
            annotated.append(AnnotatedLine(line, LineType.ADDITION, key))
            new_line += 1
        elif line.startswith(" "):
            annotated.append(AnnotatedLine(line, LineType.CONTEXT))
            old_line += 1
            new_line += 1
        elif line.startswith("Binary files"):
            annotated.append(AnnotatedLine(line, LineType.BINARY))
        else:
            annotated.append(AnnotatedLine(line, LineType.OTHER))

    return annotated
