"""AI-vs-human line statistics derived from authorship logs."""

from dataclasses import dataclass, field

from common.logger import get_logger
from gitops.errors import MissingNoteError
from gitops.git_utils import Repository

from .models import AuthorshipLog
from .notes import get_authorship_log

logger = get_logger(__name__)


@dataclass
class CommitStats:
    """Line contribution totals for a commit or a squashed range.

    Attributes:
        git_diff_added_lines: Lines added according to git's numeric diff
        git_diff_deleted_lines: Lines deleted according to git's numeric diff
        ai_additions: Lines the authorship log credits to AI prompts
        human_additions: Added lines not credited to AI
        tool_model_breakdown: AI lines per ``tool/model``
    """

    git_diff_added_lines: int = 0
    git_diff_deleted_lines: int = 0
    ai_additions: int = 0
    human_additions: int = 0
    tool_model_breakdown: dict[str, int] = field(default_factory=dict)


def parse_numstat(numstat_output: str) -> tuple[int, int]:
    """
    Total added and deleted lines from ``git diff --numstat`` output.

    Binary files report ``-`` instead of counts and are left out.

    Args:
        numstat_output: Lines of ``added<TAB>deleted<TAB>path``

    Returns:
        Tuple of (added_lines, deleted_lines)
    """
    added_lines = 0
    deleted_lines = 0

    for line in numstat_output.splitlines():
        if not line.strip():
            continue
        parts = line.split("\t")
        if len(parts) < 2:
            continue
        if parts[0].isdigit():
            added_lines += int(parts[0])
        if parts[1] != "-" and parts[1].isdigit():
            deleted_lines += int(parts[1])

    return added_lines, deleted_lines


def stats_from_authorship_log(
    log: AuthorshipLog | None,
    git_diff_added_lines: int,
    git_diff_deleted_lines: int,
) -> CommitStats:
    """
    Combine a log's AI attribution with git's numeric diff totals.

    The log may know about fewer lines than git reports (lines with no data
    count as human); the two sources are never required to agree.

    Args:
        log: Authorship log, or None when there is none
        git_diff_added_lines: Added lines from the numeric diff
        git_diff_deleted_lines: Deleted lines from the numeric diff

    Returns:
        CommitStats
    """
    stats = CommitStats(
        git_diff_added_lines=git_diff_added_lines,
        git_diff_deleted_lines=git_diff_deleted_lines,
    )
    if log is not None:
        for attestation in log.attestations:
            for entry in attestation.entries:
                if entry.is_human:
                    continue
                count = entry.line_count()
                stats.ai_additions += count
                prompt = log.metadata.prompts.get(entry.reference)
                key = f"{prompt.agent_id.tool}/{prompt.agent_id.model}" if prompt else "unknown"
                stats.tool_model_breakdown[key] = stats.tool_model_breakdown.get(key, 0) + count

    stats.human_additions = max(git_diff_added_lines - stats.ai_additions, 0)
    return stats


def stats_for_commit_stats(repo: Repository, commit_sha: str) -> CommitStats:
    """
    Stats for a single commit from its own stored log.

    The commit is diffed against its parent (or the empty tree for a root
    commit). A commit without a note reports every added line as human.

    Raises:
        DecodeError: If the commit's note is not a valid authorship log
    """
    parent = repo.resolve_parent(commit_sha)
    added, deleted = parse_numstat(repo.diff_numstat(parent, commit_sha))

    try:
        log = get_authorship_log(repo, commit_sha)
    except MissingNoteError:
        logger.debug(f"{commit_sha[:7]} has no authorship log")
        log = None

    return stats_from_authorship_log(log, added, deleted)


def _percent(part: int, whole: int) -> str:
    return f"{(100 * part / whole):.0f}%" if whole else "0%"


def format_stats_lines(stats: CommitStats) -> list[str]:
    """Plain text summary of commit stats, one line per item."""
    total = stats.ai_additions + stats.human_additions
    lines = [
        f"  +{stats.git_diff_added_lines} / -{stats.git_diff_deleted_lines} lines changed",
        f"  AI:    {stats.ai_additions:>6} ({_percent(stats.ai_additions, total)})",
        f"  Human: {stats.human_additions:>6} ({_percent(stats.human_additions, total)})",
    ]
    for tool_model, count in sorted(stats.tool_model_breakdown.items(), key=lambda kv: (-kv[1], kv[0])):
        lines.append(f"    {tool_model}: {count}")
    return lines
