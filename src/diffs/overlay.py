"""
Attach attribution to the changed lines of a diff.

Per call, the old commit's log is loaded at most once and only if some hunk
deletes lines; the new commit's log likewise for added lines. Prompts
recorded in other commits are looked up once and shared for the whole call.
"""

from authorship.models import AuthorshipLog, PromptRecord
from authorship.notes import get_authorship_log
from common.logger import get_logger
from gitops.errors import DecodeError, MissingNoteError
from gitops.git_utils import Repository

from .hunks import DiffHunk
from .models import Attribution, DiffLineKey, LineSide

logger = get_logger(__name__)


class _LazyLog:
    """Single-flight loader for one commit's stored log."""

    def __init__(self, repo: Repository, commit_sha: str):
        self.repo = repo
        self.commit_sha = commit_sha
        self.loaded = False
        self._log: AuthorshipLog | None = None

    def get(self) -> AuthorshipLog | None:
        if not self.loaded:
            self.loaded = True
            try:
                self._log = get_authorship_log(self.repo, self.commit_sha)
            except MissingNoteError:
                logger.debug(f"No authorship log on {self.commit_sha[:7]}")
            except DecodeError as e:
                logger.warning(f"Unreadable authorship log on {self.commit_sha[:7]}: {e}")
        return self._log


def line_attribution(
    repo: Repository,
    log: AuthorshipLog | None,
    file_path: str,
    line: int,
    foreign_prompts_cache: dict[str, PromptRecord | None],
) -> Attribution:
    if log is None:
        return Attribution.no_data()
    found = log.get_line_attribution(repo, file_path, line, foreign_prompts_cache)
    if found is None:
        return Attribution.no_data()
    author, _prompt_id, prompt = found
    if prompt is not None:
        return Attribution.ai(prompt.agent_id.tool)
    return Attribution.human(author.username)


def overlay_diff_attributions(
    repo: Repository,
    from_commit: str,
    to_commit: str,
    hunks: list[DiffHunk],
) -> dict[DiffLineKey, Attribution]:
    """
    Attribution for every deleted and added line of the hunks.

    Deleted lines are looked up in ``from_commit``'s log (by their old path),
    added lines in ``to_commit``'s. A side without a readable log yields
    no data for its lines.

    Args:
        repo: Repository to read logs from
        from_commit: Old side of the diff
        to_commit: New side of the diff
        hunks: Zero-context hunks between the two

    Returns:
        Mapping of (file, line, side) to Attribution
    """
    old_log = _LazyLog(repo, from_commit)
    new_log = _LazyLog(repo, to_commit)
    foreign_prompts_cache: dict[str, PromptRecord | None] = {}
    attributions: dict[DiffLineKey, Attribution] = {}

    for hunk in hunks:
        if hunk.deleted_lines:
            log = old_log.get()
            old_path = hunk.old_file_path or hunk.file_path
            for line in hunk.deleted_lines:
                key = DiffLineKey(file=hunk.file_path, line=line, side=LineSide.OLD)
                attributions[key] = line_attribution(repo, log, old_path, line, foreign_prompts_cache)

        if hunk.added_lines:
            log = new_log.get()
            for line in hunk.added_lines:
                key = DiffLineKey(file=hunk.file_path, line=line, side=LineSide.NEW)
                attributions[key] = line_attribution(repo, log, hunk.file_path, line, foreign_prompts_cache)

    return attributions
