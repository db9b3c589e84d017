"""Git access for attribution queries.

All version-control plumbing (revision resolution, diffs, blob reads,
blame, notes lookup, fetch) goes through ``Repository`` so the attribution
code never shells out on its own.
"""

import subprocess
from dataclasses import dataclass
from pathlib import Path

from common.constants import EMPTY_TREE_SHA
from common.env import env
from common.logger import get_logger

from .errors import BackingStoreError, UnresolvedCommitError

logger = get_logger(__name__)

# stderr fragments git prints when a path is missing from an otherwise valid commit
_ABSENT_PATH_MARKERS = ("does not exist in", "exists on disk, but not in")

_C_ESCAPES = {
    "a": 0x07,
    "b": 0x08,
    "t": 0x09,
    "n": 0x0A,
    "v": 0x0B,
    "f": 0x0C,
    "r": 0x0D,
    '"': 0x22,
    "\\": 0x5C,
}


def unquote_c_path(text: str) -> str:
    """Undo git's C-style quoting of a path (``"a\\tb"`` -> ``a<TAB>b``).

    Unquoted text is returned as is. Octal escapes are collected as raw
    bytes and decoded as UTF-8 together.
    """
    if len(text) < 2 or not (text.startswith('"') and text.endswith('"')):
        return text

    body = text[1:-1]
    out = bytearray()
    i = 0
    while i < len(body):
        ch = body[i]
        if ch != "\\" or i + 1 >= len(body):
            out.extend(ch.encode("utf-8"))
            i += 1
            continue
        nxt = body[i + 1]
        octal = body[i + 1:i + 4]
        if nxt in _C_ESCAPES:
            out.append(_C_ESCAPES[nxt])
            i += 2
        elif len(octal) == 3 and all(c in "01234567" for c in octal):
            out.append(int(octal, 8) & 0xFF)
            i += 4
        else:
            out.extend(ch.encode("utf-8"))
            i += 1
    return out.decode("utf-8", errors="replace")


@dataclass
class BlameLine:
    """Origin of one line of a file, as reported by git blame."""

    final_line: int
    origin_commit: str
    origin_line: int
    origin_path: str


@dataclass
class TreeEntry:
    """A single entry of a git tree object."""

    mode: str
    object_type: str
    object_id: str
    name: str


class Repository:
    """A git working copy driven through the ``git`` command line."""

    def __init__(self, path: Path):
        """Initialize repository wrapper.

        Args:
            path: Any path inside the working tree (or the git dir itself)
        """
        self.path = Path(path)
        self._empty_tree: str | None = None

    @classmethod
    def discover(cls, start_path: Path) -> "Repository":
        """Find the repository containing ``start_path``.

        Raises:
            BackingStoreError: If start_path is not inside a git repository
        """
        try:
            result = subprocess.run(
                ["git", "rev-parse", "--show-toplevel"],
                cwd=start_path,
                capture_output=True,
                text=True,
            )
        except OSError as e:
            raise BackingStoreError(f"Not a git repository: {start_path}", str(e)) from e
        if result.returncode != 0:
            raise BackingStoreError(f"Not a git repository: {start_path}", result.stderr)
        return cls(Path(result.stdout.strip()))

    # -------------------------------------------------------------------
    # Subprocess plumbing
    # -------------------------------------------------------------------

    def run_git(
        self,
        *args: str,
        check: bool = True,
        input_text: str | None = None,
    ) -> subprocess.CompletedProcess:
        """Run a git command in this repository.

        Args:
            *args: Arguments after ``git``
            check: Raise BackingStoreError on non-zero exit
            input_text: Optional text written to stdin

        Returns:
            Completed process with text stdout/stderr

        Raises:
            BackingStoreError: If git cannot be run, times out, or fails with check=True
        """
        # Bytes in, decoded below; text mode would rewrite a lone "\r"
        try:
            raw = subprocess.run(
                ["git", "-c", "core.quotePath=false", *args],
                cwd=self.path,
                capture_output=True,
                input=input_text.encode() if input_text is not None else None,
                timeout=env.git_timeout(),
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise BackingStoreError(f"git {args[0] if args else ''} failed", str(e)) from e

        result = subprocess.CompletedProcess(
            raw.args,
            raw.returncode,
            raw.stdout.decode("utf-8", errors="replace"),
            raw.stderr.decode("utf-8", errors="replace"),
        )

        if check and result.returncode != 0:
            raise BackingStoreError(f"git {' '.join(args)} exited {result.returncode}", result.stderr)
        return result

    def git_dir(self) -> Path:
        """Absolute path of the repository's git directory."""
        return Path(self.run_git("rev-parse", "--absolute-git-dir").stdout.strip())

    # -------------------------------------------------------------------
    # Revisions
    # -------------------------------------------------------------------

    def resolve_commit(self, rev: str) -> str:
        """Resolve a revision to a full commit id.

        Raises:
            UnresolvedCommitError: If the revision does not name a commit
        """
        result = self.run_git("rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}", check=False)
        sha = result.stdout.strip()
        if result.returncode != 0 or not sha:
            raise UnresolvedCommitError(f"Could not resolve commit: {rev}")
        return sha

    def try_resolve(self, rev: str) -> str | None:
        """Resolve any revision (ref, tree, blob), or None if it does not exist."""
        result = self.run_git("rev-parse", "--verify", "--quiet", rev, check=False)
        sha = result.stdout.strip()
        return sha if result.returncode == 0 and sha else None

    def empty_tree(self) -> str:
        """Object id of the empty tree for this repository's hash format."""
        if self._empty_tree is None:
            result = self.run_git("hash-object", "-t", "tree", "--stdin", input_text="", check=False)
            self._empty_tree = result.stdout.strip() if result.returncode == 0 else EMPTY_TREE_SHA
        return self._empty_tree

    def resolve_parent(self, commit_sha: str) -> str:
        """First parent of a commit, or the empty tree for a root commit."""
        parent = self.try_resolve(f"{commit_sha}^")
        if parent is None:
            logger.debug(f"{commit_sha[:7]} has no parent, diffing against the empty tree")
            return self.empty_tree()
        return parent

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        """Whether ``ancestor`` is reachable from ``descendant``."""
        result = self.run_git("merge-base", "--is-ancestor", ancestor, descendant, check=False)
        if result.returncode in (0, 1):
            return result.returncode == 0
        raise BackingStoreError("git merge-base --is-ancestor failed", result.stderr)

    def rev_list(self, start: str, end: str) -> list[str]:
        """Commits reachable from ``end`` but not ``start``, oldest first."""
        out = self.run_git("rev-list", "--reverse", f"{start}..{end}").stdout
        return [line for line in out.splitlines() if line]

    def commit_authors(self, commit_shas: list[str]) -> dict[str, str]:
        """Map each commit id to its author name."""
        if not commit_shas:
            return {}
        out = self.run_git("show", "-s", "--format=%H%x00%an", *commit_shas).stdout
        authors: dict[str, str] = {}
        for line in out.splitlines():
            if "\x00" in line:
                sha, name = line.split("\x00", 1)
                authors[sha] = name
        return authors

    # -------------------------------------------------------------------
    # Content
    # -------------------------------------------------------------------

    def diff_changed_files(self, from_commit: str, to_commit: str) -> list[str]:
        """Paths that differ between two trees (new-side names for renames)."""
        out = self.run_git("diff", "--name-only", "-z", "--no-ext-diff", from_commit, to_commit).stdout
        return [path for path in out.split("\x00") if path]

    def read_file(self, commit_sha: str, file_path: str) -> str | None:
        """File content at a commit, or None when the file is absent there.

        Raises:
            BackingStoreError: If git fails for any other reason, such as a bad
                revision or a corrupt object
        """
        result = self.run_git("cat-file", "blob", f"{commit_sha}:{file_path}", check=False)
        if result.returncode == 0:
            return result.stdout
        if any(marker in result.stderr for marker in _ABSENT_PATH_MARKERS):
            return None
        raise BackingStoreError(f"Failed to read {file_path} at {commit_sha[:7]}", result.stderr)

    def diff(self, from_rev: str, to_rev: str, context_lines: int | None = None) -> str:
        """Unified diff text between two revisions.

        Args:
            from_rev: Old side (commit or tree)
            to_rev: New side (commit or tree)
            context_lines: Lines of context (None keeps git's default)
        """
        args = ["diff", "--no-color", "--no-ext-diff"]
        if context_lines is not None:
            args.append(f"-U{context_lines}")
        return self.run_git(*args, from_rev, to_rev).stdout

    def diff_numstat(self, from_rev: str, to_rev: str) -> str:
        """Position-free ``added<TAB>deleted<TAB>path`` summary between two revisions."""
        return self.run_git("diff", "--numstat", "--no-ext-diff", from_rev, to_rev).stdout

    def blame(self, commit_sha: str, file_path: str) -> list[BlameLine]:
        """Blame every line of a file as of ``commit_sha``."""
        out = self.run_git("blame", "--line-porcelain", commit_sha, "--", file_path).stdout
        return parse_blame_porcelain(out)

    # -------------------------------------------------------------------
    # Trees, notes, remotes
    # -------------------------------------------------------------------

    def ls_tree(self, tree_id: str) -> list[TreeEntry]:
        """Direct entries of a tree object."""
        out = self.run_git("ls-tree", "-z", tree_id).stdout
        entries = []
        for record in out.split("\x00"):
            if not record:
                continue
            meta, name = record.split("\t", 1)
            mode, object_type, object_id = meta.split(" ")
            entries.append(TreeEntry(mode=mode, object_type=object_type, object_id=object_id, name=name))
        return entries

    def notes_list(self, notes_ref: str) -> dict[str, str]:
        """Map annotated commit id to note blob id for a notes ref."""
        if self.try_resolve(notes_ref) is None:
            return {}
        out = self.run_git("notes", f"--ref={notes_ref}", "list").stdout
        notes: dict[str, str] = {}
        for line in out.splitlines():
            parts = line.split()
            if len(parts) == 2:
                blob_id, commit_sha = parts
                notes[commit_sha] = blob_id
        return notes

    def show_note(self, notes_ref: str, commit_sha: str) -> str | None:
        """Note text attached to a commit, or None if there is no note."""
        result = self.run_git("notes", f"--ref={notes_ref}", "show", commit_sha, check=False)
        if result.returncode == 0:
            return result.stdout
        if "no note found" in result.stderr.lower() or self.try_resolve(notes_ref) is None:
            return None
        raise BackingStoreError(f"git notes show {commit_sha} failed", result.stderr)

    def grep_notes(self, notes_ref: str, needle: str) -> list[str]:
        """Paths inside the notes tree whose note text contains ``needle``."""
        if self.try_resolve(notes_ref) is None:
            return []
        result = self.run_git("grep", "-l", "-F", "-e", needle, notes_ref, check=False)
        if result.returncode == 1:
            return []
        if result.returncode != 0:
            raise BackingStoreError("git grep over notes failed", result.stderr)
        prefix = f"{notes_ref}:"
        return [line[len(prefix):] if line.startswith(prefix) else line for line in result.stdout.splitlines()]

    def remotes(self) -> list[str]:
        """Configured remote names."""
        return [line for line in self.run_git("remote").stdout.splitlines() if line]

    def fetch(self, remote: str, refspec: str) -> None:
        """Fetch a refspec from a remote.

        Raises:
            BackingStoreError: If the fetch fails
        """
        result = self.run_git("fetch", remote, refspec, check=False)
        if result.returncode != 0:
            raise BackingStoreError(f"Failed to fetch {refspec} from {remote}", result.stderr)
        logger.debug(f"[green]✓[/green] Fetched {refspec} from {remote}")


def parse_blame_porcelain(output: str) -> list[BlameLine]:
    """Parse ``git blame --line-porcelain`` output.

    Every blamed line starts with ``<sha> <orig_line> <final_line>[ <count>]``,
    followed by key/value headers (including ``filename``) and finally the
    line content prefixed with a TAB.
    """
    lines: list[BlameLine] = []
    header: tuple[str, int, int] | None = None
    filename = ""

    for raw in output.split("\n"):
        if raw.startswith("\t"):
            if header is not None:
                sha, orig_line, final_line = header
                lines.append(
                    BlameLine(
                        final_line=final_line,
                        origin_commit=sha,
                        origin_line=orig_line,
                        origin_path=filename,
                    )
                )
            header = None
            continue

        if header is None:
            parts = raw.split(" ")
            if len(parts) >= 3 and len(parts[0]) >= 40 and parts[1].isdigit() and parts[2].isdigit():
                header = (parts[0], int(parts[1]), int(parts[2]))
            continue

        if raw.startswith("filename "):
            filename = unquote_c_path(raw[len("filename "):])

    return lines
