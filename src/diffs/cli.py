#!/usr/bin/env python3
"""CLI for diffs annotated with AI/human authorship."""

import argparse
from dataclasses import dataclass
from pathlib import Path

from common.logger import error, get_logger, setup_logging
from gitops.commit_range import parse_range_spec
from gitops.errors import GitAiError
from gitops.git_utils import Repository

from .hunks import get_diff_with_line_numbers
from .models import Attribution, DiffLineKey
from .overlay import overlay_diff_attributions
from .render import print_annotated_diff

logger = get_logger(__name__)


@dataclass
class SingleCommit:
    """A commit diffed against its parent."""

    commit: str


@dataclass
class TwoCommit:
    """Two commits diffed against each other."""

    start: str
    end: str


DiffSpec = SingleCommit | TwoCommit


def parse_diff_args(arg: str) -> DiffSpec:
    """
    Interpret a diff argument.

    ``a..b`` compares two commits, anything else is a single commit.

    Raises:
        InvalidRangeError: If a range is missing either side
    """
    if ".." in arg:
        start, end = parse_range_spec(arg)
        return TwoCommit(start=start, end=end)
    return SingleCommit(commit=arg)


def resolve_diff_endpoints(repo: Repository, spec: DiffSpec) -> tuple[str, str]:
    """(from, to) for a diff spec; a root commit is compared with the empty tree."""
    if isinstance(spec, TwoCommit):
        return repo.resolve_commit(spec.start), repo.resolve_commit(spec.end)
    to_commit = repo.resolve_commit(spec.commit)
    return repo.resolve_parent(to_commit), to_commit


def compute_diff_attributions(
    repo: Repository, from_commit: str, to_commit: str
) -> dict[DiffLineKey, Attribution]:
    hunks = get_diff_with_line_numbers(repo, from_commit, to_commit)
    return overlay_diff_attributions(repo, from_commit, to_commit, hunks)


def execute_diff(repo: Repository, spec: DiffSpec) -> None:
    """
    Print the full-context diff for a spec with authorship annotations.

    Raises:
        UnresolvedCommitError: If a revision does not resolve
        BackingStoreError: If git fails
    """
    from_commit, to_commit = resolve_diff_endpoints(repo, spec)
    logger.debug(f"Annotating diff {from_commit[:7]}..{to_commit[:7]}")

    attributions = compute_diff_attributions(repo, from_commit, to_commit)
    print_annotated_diff(repo.diff(from_commit, to_commit), attributions)


def main():
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(description="Show a diff annotated with AI/human authorship")
    parser.add_argument("spec", help="<commit> (against its parent) or <commit>..<commit>")
    parser.add_argument(
        "--repo",
        type=Path,
        default=Path("."),
        help="Path inside the repository (default: current directory)",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")

    args = parser.parse_args()
    setup_logging(args.log_level)

    try:
        repo = Repository.discover(args.repo)
        execute_diff(repo, parse_diff_args(args.spec))
        return 0
    except GitAiError as e:
        error(str(e))
        return 1


if __name__ == "__main__":
    exit(main())
