"""Reading stored authorship logs from git notes."""

from common.env import env
from common.logger import get_logger
from gitops.errors import DecodeError, MissingNoteError
from gitops.git_utils import Repository

from .log_io import deserialize_authorship_log
from .models import AuthorshipLog, CommitAuthorship, Log, NoLog, PromptRecord

logger = get_logger(__name__)


def _stamp_prompt_commits(log: AuthorshipLog, commit_sha: str) -> AuthorshipLog:
    """Prompts stored without an originating commit belong to the annotated one."""
    for prompt in log.metadata.prompts.values():
        if not prompt.commit_sha:
            prompt.commit_sha = commit_sha
    return log


def get_authorship_log(
    repo: Repository,
    commit_sha: str,
    notes_ref: str | None = None,
) -> AuthorshipLog:
    """
    Load the authorship log stored for a commit.

    Args:
        repo: Repository to read from
        commit_sha: Annotated commit
        notes_ref: Notes ref (defaults to GIT_AI_NOTES_REF)

    Returns:
        Parsed AuthorshipLog

    Raises:
        MissingNoteError: If the commit has no note
        DecodeError: If the note is not a valid authorship log
        BackingStoreError: If git fails
    """
    text = repo.show_note(notes_ref or env.notes_ref(), commit_sha)
    if text is None:
        raise MissingNoteError(commit_sha)
    return _stamp_prompt_commits(deserialize_authorship_log(text), commit_sha)


def get_commits_with_notes_from_list(
    repo: Repository,
    commit_shas: list[str],
    notes_ref: str | None = None,
) -> list[CommitAuthorship]:
    """
    Classify commits by whether they carry a stored log.

    A note that cannot be decoded is reported and the commit is treated as
    having no log.

    Args:
        repo: Repository to read from
        commit_shas: Commits to classify, in the order to report them

    Returns:
        One ``Log`` or ``NoLog`` per commit
    """
    notes_ref = notes_ref or env.notes_ref()
    annotated = repo.notes_list(notes_ref)
    authors = repo.commit_authors(commit_shas)

    result: list[CommitAuthorship] = []
    for sha in commit_shas:
        git_author = authors.get(sha, "")
        if sha in annotated:
            try:
                result.append(Log(sha=sha, git_author=git_author, log=get_authorship_log(repo, sha, notes_ref)))
                continue
            except DecodeError as e:
                logger.warning(f"Ignoring unreadable authorship log on {sha[:7]}: {e}")
        result.append(NoLog(sha=sha, git_author=git_author))
    return result


def _commit_from_note_path(path: str) -> str:
    # Notes trees fan out as ab/cdef..., so strip the separators
    return path.replace("/", "")


def find_foreign_prompt(
    repo: Repository,
    prompt_id: str,
    notes_ref: str | None = None,
) -> PromptRecord | None:
    """
    Find a prompt recorded in some other commit's log.

    Args:
        repo: Repository whose notes are searched
        prompt_id: Prompt identifier to find

    Returns:
        The first PromptRecord found, or None
    """
    notes_ref = notes_ref or env.notes_ref()
    for path in repo.grep_notes(notes_ref, f'"{prompt_id}"'):
        commit_sha = _commit_from_note_path(path)
        try:
            log = get_authorship_log(repo, commit_sha, notes_ref)
        except (MissingNoteError, DecodeError) as e:
            logger.debug(f"Skipping note {path} while looking for prompt {prompt_id}: {e}")
            continue
        prompt = log.metadata.prompts.get(prompt_id)
        if prompt is not None:
            logger.debug(f"Resolved foreign prompt {prompt_id} from {commit_sha[:7]}")
            return prompt
    return None


class AuthorshipLogCache:
    """Request-scoped cache of stored logs, keyed by commit.

    The set of annotated commits is listed once, so commits without a note
    never cost a subprocess. Undecodable notes are cached as missing.
    """

    def __init__(self, repo: Repository, notes_ref: str | None = None):
        self.repo = repo
        self.notes_ref = notes_ref or env.notes_ref()
        self._annotated: dict[str, str] | None = None
        self._logs: dict[str, AuthorshipLog | None] = {}

    def _annotated_commits(self) -> dict[str, str]:
        if self._annotated is None:
            self._annotated = self.repo.notes_list(self.notes_ref)
        return self._annotated

    def has_any_notes(self) -> bool:
        return bool(self._annotated_commits())

    def has_note(self, commit_sha: str) -> bool:
        return commit_sha in self._annotated_commits()

    def get(self, commit_sha: str) -> AuthorshipLog | None:
        """Stored log for a commit, or None if it has none (or it is unreadable)."""
        if commit_sha in self._logs:
            return self._logs[commit_sha]

        log = None
        if self.has_note(commit_sha):
            try:
                log = get_authorship_log(self.repo, commit_sha, self.notes_ref)
            except (MissingNoteError, DecodeError) as e:
                logger.warning(f"Ignoring authorship log on {commit_sha[:7]}: {e}")
        self._logs[commit_sha] = log
        return log
