"""
Authorship statistics for a commit range.

A multi-commit range is treated as if it had been squashed: attribution is
reconstructed at both endpoints, restricted to AI activity that happened in
the range's own commits, and merged over the final file contents.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from common.env import env
from common.logger import get_logger
from gitops.commit_range import CommitRange
from gitops.git_utils import Repository

from .models import AuthorshipLog, Log, NoLog
from .notes import get_commits_with_notes_from_list
from .stats import (
    CommitStats,
    format_stats_lines,
    parse_numstat,
    stats_for_commit_stats,
    stats_from_authorship_log,
)
from .virtual_attribution import VirtualAttributions, merge_attributions_favoring_first

logger = get_logger(__name__)

NOT_PARTICIPATING_MESSAGE = "Committers are not using git-ai"


@dataclass
class RangeAuthorshipStatsData:
    """Which commits of a range carry their own authorship log."""

    total_commits: int = 0
    commits_with_authorship: int = 0
    authors_committing_authorship: set[str] = field(default_factory=set)
    authors_not_committing_authorship: set[str] = field(default_factory=set)
    commits_without_authorship: list[str] = field(default_factory=list)
    commits_without_authorship_with_authors: list[tuple[str, str]] = field(default_factory=list)
    stored_ai_additions: int = 0


@dataclass
class RangeAuthorshipStats:
    authorship_stats: RangeAuthorshipStatsData
    range_stats: CommitStats

    @property
    def is_participating(self) -> bool:
        """False when neither the range nor any commit's own log shows AI lines."""
        return self.range_stats.ai_additions > 0 or self.authorship_stats.stored_ai_additions > 0

    @property
    def all_commits_have_authorship(self) -> bool:
        return self.authorship_stats.commits_with_authorship == self.authorship_stats.total_commits


def resolve_fetch_target(refname: str, default_remote: str) -> tuple[str, str]:
    """
    Work out which remote and refspec to fetch for a ref name.

    Examples:
        refs/remotes/upstream/feature -> (upstream, refs/heads/feature)
        refs/heads/feature            -> (default_remote, refs/heads/feature)
        upstream/feature              -> (upstream, refs/heads/feature)
        feature                       -> (default_remote, refs/heads/feature)
    """
    if refname.startswith("refs/remotes/"):
        remote, sep, branch = refname[len("refs/remotes/"):].partition("/")
        if sep:
            return remote, f"refs/heads/{branch}"
        return default_remote, refname
    if refname.startswith("refs/heads/"):
        return default_remote, refname
    if "/" in refname and not refname.startswith("refs/"):
        remote, _, branch = refname.partition("/")
        return remote, f"refs/heads/{branch}"
    return default_remote, f"refs/heads/{refname}"


def get_default_remote(repo: Repository) -> str:
    """Prefer 'origin', then the first configured remote, then the configured default."""
    remotes = repo.remotes()
    if "origin" in remotes:
        return "origin"
    if remotes:
        return remotes[0]
    return env.default_remote()


def get_committed_files_content(
    repo: Repository,
    commit_sha: str,
    file_paths: list[str],
) -> dict[str, str]:
    """Contents of the given files at a commit; files absent there are left out."""
    files: dict[str, str] = {}
    for file_path in file_paths:
        content = repo.read_file(commit_sha, file_path)
        if content is not None:
            files[file_path] = content
    return files


def create_authorship_log_for_range(
    repo: Repository,
    start_sha: str,
    end_sha: str,
    commit_shas: list[str],
) -> AuthorshipLog:
    """
    Build an in-memory authorship log for ``start..end`` as if it were squashed.

    Steps:
    1. List files changed between the endpoints (none -> empty log)
    2. Reconstruct attribution at start and end (concurrently)
    3. Keep only AI attribution from commits inside the range
    4. Read the final contents at end
    5. Merge, preferring the end reconstruction
    6. Convert to an AuthorshipLog based at end

    Args:
        repo: Repository to read from
        start_sha: Older endpoint
        end_sha: Newer endpoint
        commit_shas: Commits belonging to the range

    Returns:
        AuthorshipLog with ``base_commit_sha == end_sha``
    """
    logger.debug(f"Calculating authorship log for range: {start_sha[:7]} -> {end_sha[:7]}")

    changed_files = repo.diff_changed_files(start_sha, end_sha)
    if not changed_files:
        logger.debug("No files changed in range")
        return AuthorshipLog.empty(end_sha)

    logger.debug(f"Processing {len(changed_files)} changed file(s) for range authorship")

    with ThreadPoolExecutor(max_workers=2) as executor:
        start_future = executor.submit(VirtualAttributions.new_for_base_commit, repo, start_sha, changed_files)
        end_future = executor.submit(VirtualAttributions.new_for_base_commit, repo, end_sha, changed_files)
        start_va = start_future.result()
        end_va = end_future.result()

    commit_set = set(commit_shas)
    start_va.filter_to_commits(commit_set)
    end_va.filter_to_commits(commit_set)

    committed_files = get_committed_files_content(repo, end_sha, changed_files)
    logger.debug(f"Read {len(committed_files)} committed file(s) from end commit")

    merged = merge_attributions_favoring_first(end_va, start_va, committed_files)
    authorship_log = merged.to_authorship_log()
    authorship_log.metadata.base_commit_sha = end_sha

    logger.debug(
        f"Created authorship log with {len(authorship_log.attestations)} attestation(s), "
        f"{len(authorship_log.metadata.prompts)} prompt(s)"
    )
    return authorship_log


def calculate_range_stats_direct(repo: Repository, commit_range: CommitRange) -> CommitStats:
    """AI vs human line totals for a range.

    A single-commit range is exactly that commit's own stats.
    """
    start_sha = commit_range.start_oid
    end_sha = commit_range.end_oid
    if start_sha == end_sha:
        return stats_for_commit_stats(repo, end_sha)

    added, deleted = parse_numstat(repo.diff_numstat(start_sha, end_sha))
    authorship_log = create_authorship_log_for_range(repo, start_sha, end_sha, list(commit_range))
    return stats_from_authorship_log(authorship_log, added, deleted)


def range_authorship(commit_range: CommitRange, pre_fetch_contents: bool = False) -> RangeAuthorshipStats:
    """
    Full authorship report for a commit range.

    Args:
        commit_range: Range to analyze
        pre_fetch_contents: Fetch the range's ref from its remote first

    Returns:
        RangeAuthorshipStats

    Raises:
        InvalidRangeError: If the range is not a valid ancestry interval
        BackingStoreError: If fetching or any git read fails
    """
    commit_range.validate()
    repo = commit_range.repo

    if pre_fetch_contents:
        remote, refspec = resolve_fetch_target(commit_range.refname, get_default_remote(repo))
        repo.fetch(remote, refspec)

    commit_shas = list(commit_range)
    commit_authorship = get_commits_with_notes_from_list(repo, commit_shas)

    data = RangeAuthorshipStatsData(total_commits=len(commit_authorship))
    for item in commit_authorship:
        if isinstance(item, Log):
            data.commits_with_authorship += 1
            data.authors_committing_authorship.add(item.git_author)
            data.stored_ai_additions += item.log.ai_line_count()
        elif isinstance(item, NoLog):
            data.authors_not_committing_authorship.add(item.git_author)
            data.commits_without_authorship.append(item.sha)
            data.commits_without_authorship_with_authors.append((item.sha, item.git_author))

    return RangeAuthorshipStats(
        authorship_stats=data,
        range_stats=calculate_range_stats_direct(repo, commit_range),
    )


def format_range_authorship_stats(stats: RangeAuthorshipStats) -> list[str]:
    """
    Text report for range stats.

    Returns the not-participating message alone when nobody in the range
    used AI; otherwise the stats, followed by the commits lacking their own
    log when there are any.
    """
    if not stats.is_participating:
        return [NOT_PARTICIPATING_MESSAGE]

    lines = format_stats_lines(stats.range_stats)

    if not stats.all_commits_have_authorship:
        without = stats.authorship_stats.total_commits - stats.authorship_stats.commits_with_authorship
        commit_word = "commit" if without == 1 else "commits"
        lines.append(f"  {without} {commit_word} without Authorship Logs")
        for sha, author in stats.authorship_stats.commits_without_authorship_with_authors:
            lines.append(f"    {sha[:7]} {author}")

    return lines
