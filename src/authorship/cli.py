#!/usr/bin/env python3
"""CLI for authorship statistics and AI-touched file inventory."""

import argparse
import json
from dataclasses import asdict
from pathlib import Path

from common.logger import error, setup_logging
from gitops.commit_range import CommitRange, parse_range_spec
from gitops.errors import GitAiError
from gitops.git_utils import Repository

from .range_authorship import format_range_authorship_stats, range_authorship
from .stats import format_stats_lines, stats_for_commit_stats
from .traversal import load_all_ai_touched_files


def cmd_stats(args):
    """Show AI vs human stats for a single commit.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    repo = Repository.discover(args.repo)
    commit_sha = repo.resolve_commit(args.commit)
    stats = stats_for_commit_stats(repo, commit_sha)

    if args.format == "json":
        print(json.dumps(asdict(stats), indent=2))
    else:
        print(f"Commit {commit_sha[:7]}")
        print("\n".join(format_stats_lines(stats)))
    return 0


def cmd_range(args):
    """Show authorship stats for a commit range."""
    repo = Repository.discover(args.repo)
    start, end = parse_range_spec(args.range)
    commit_range = CommitRange.resolve(repo, start, end, refname=args.refname)
    result = range_authorship(commit_range, pre_fetch_contents=args.fetch)

    if args.format == "json":
        data = asdict(result)
        data["authorship_stats"]["authors_committing_authorship"] = sorted(
            result.authorship_stats.authors_committing_authorship
        )
        data["authorship_stats"]["authors_not_committing_authorship"] = sorted(
            result.authorship_stats.authors_not_committing_authorship
        )
        data["is_participating"] = result.is_participating
        print(json.dumps(data, indent=2))
    else:
        print(f"Range {commit_range.start_oid[:7]}..{commit_range.end_oid[:7]}")
        print("\n".join(format_range_authorship_stats(result)))
    return 0


def cmd_touched_files(args):
    """List every file path recorded in any authorship log."""
    repo = Repository.discover(args.repo)
    files = sorted(load_all_ai_touched_files(repo, max_workers=args.workers))

    if args.format == "json":
        print(json.dumps(files, indent=2, ensure_ascii=False))
    else:
        for file_path in files:
            print(file_path)
    return 0


def main():
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(description="AI authorship statistics for git history")
    parser.add_argument(
        "--repo",
        type=Path,
        default=Path("."),
        help="Path inside the repository (default: current directory)",
    )
    parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Single commit
    stats_parser = subparsers.add_parser("stats", help="AI vs human lines for one commit")
    stats_parser.add_argument("commit", help="Commit to analyze")
    stats_parser.set_defaults(func=cmd_stats)

    # Commit range
    range_parser = subparsers.add_parser("range", help="AI vs human lines for <start>..<end>")
    range_parser.add_argument("range", help="Commit range, e.g. main..feature")
    range_parser.add_argument(
        "--refname",
        default=None,
        help="Ref the range was taken from (default: the end revision)",
    )
    range_parser.add_argument(
        "--fetch",
        action="store_true",
        help="Fetch the ref from its remote before analyzing",
    )
    range_parser.set_defaults(func=cmd_range)

    # Inventory
    touched_parser = subparsers.add_parser("touched-files", help="All files any authorship log mentions")
    touched_parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Parallel workers (default: GIT_AI_TRAVERSAL_WORKERS or 64)",
    )
    touched_parser.set_defaults(func=cmd_touched_files)

    args = parser.parse_args()
    setup_logging(args.log_level)

    try:
        return args.func(args)
    except GitAiError as e:
        error(str(e))
        return 1


if __name__ == "__main__":
    exit(main())
