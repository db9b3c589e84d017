"""Commit ranges: validated ancestry intervals between two commits."""

from dataclasses import dataclass, field

from common.logger import get_logger

from .errors import InvalidRangeError
from .git_utils import Repository

logger = get_logger(__name__)


def parse_range_spec(spec: str) -> tuple[str, str]:
    """Split ``<start>..<end>`` into its two revisions.

    Raises:
        InvalidRangeError: If either side is empty or the spec has no ``..``
    """
    if ".." not in spec or "..." in spec:
        raise InvalidRangeError(f"Invalid commit range format: {spec!r}. Expected: <commit>..<commit>")
    start, end = spec.split("..", 1)
    if not start or not end:
        raise InvalidRangeError(f"Invalid commit range format: {spec!r}. Expected: <commit>..<commit>")
    return start, end


@dataclass
class CommitRange:
    """An ancestry interval ``start..end`` of a repository.

    Attributes:
        repo: Repository the commits live in
        start_oid: Resolved start commit (excluded from ``commits`` unless start == end)
        end_oid: Resolved end commit
        refname: Ref the range was taken from (used for pre-fetching)
        commits: Intervening commits, oldest first
    """

    repo: Repository
    start_oid: str
    end_oid: str
    refname: str
    commits: list[str] = field(default_factory=list)

    @classmethod
    def resolve(
        cls,
        repo: Repository,
        start: str,
        end: str,
        refname: str | None = None,
    ) -> "CommitRange":
        """Resolve both endpoints, validate ancestry and list the commits.

        Raises:
            UnresolvedCommitError: If either revision does not resolve
            InvalidRangeError: If start is not an ancestor of end
        """
        commit_range = cls(
            repo=repo,
            start_oid=repo.resolve_commit(start),
            end_oid=repo.resolve_commit(end),
            refname=refname or end,
        )
        commit_range.validate()
        commit_range.commits = commit_range.all_commits()
        logger.debug(
            f"Range {commit_range.start_oid[:7]}..{commit_range.end_oid[:7]} "
            f"spans {len(commit_range.commits)} commit(s)"
        )
        return commit_range

    @property
    def is_single_commit(self) -> bool:
        return self.start_oid == self.end_oid

    def validate(self) -> None:
        """Check that the range is a valid ancestry interval.

        Raises:
            InvalidRangeError: If start is not an ancestor of end
        """
        if self.is_single_commit:
            return
        if not self.repo.is_ancestor(self.start_oid, self.end_oid):
            raise InvalidRangeError(
                f"{self.start_oid[:7]} is not an ancestor of {self.end_oid[:7]}"
            )

    def all_commits(self) -> list[str]:
        """Commits in the range; a single-commit range contains just that commit."""
        if self.is_single_commit:
            return [self.end_oid]
        return self.repo.rev_list(self.start_oid, self.end_oid)

    def __iter__(self):
        return iter(self.commits or self.all_commits())
