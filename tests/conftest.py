"""
Shared fixtures: throwaway git repositories with authorship notes.
"""

import subprocess
from pathlib import Path

import pytest

from authorship.log_io import serialize_authorship_log
from authorship.models import (
    AgentId,
    AttestationEntry,
    AuthorshipLog,
    AuthorshipMetadata,
    FileAttestation,
    PromptRecord,
    compress_lines,
)
from gitops.git_utils import Repository

NOTES_REF = "refs/notes/ai"


def run_git(repo_path: Path, *args: str, input_text: str | None = None) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=repo_path,
        check=True,
        capture_output=True,
        text=True,
        input=input_text,
    )
    return result.stdout


class GitRepoBuilder:
    """Small helper for building test histories."""

    def __init__(self, path: Path):
        self.path = path
        self.repo = Repository(path)

    def write(self, file_path: str, lines: list[str]) -> None:
        target = self.path / file_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text("".join(f"{line}\n" for line in lines))

    def commit(self, message: str = "commit", author: str | None = None) -> str:
        """Add all changes and commit; returns the new commit id."""
        run_git(self.path, "add", "-A")
        args = ["commit", "-q", "--allow-empty", "-m", message]
        if author:
            args.append(f"--author={author} <{author.lower().replace(' ', '.')}@example.com>")
        run_git(self.path, *args)
        return self.head()

    def head(self) -> str:
        return run_git(self.path, "rev-parse", "HEAD").strip()

    def add_note(self, commit_sha: str, text: str) -> None:
        run_git(self.path, "notes", f"--ref={NOTES_REF}", "add", "-f", "-F", "-", commit_sha, input_text=text)

    def add_log(self, commit_sha: str, log: AuthorshipLog) -> None:
        self.add_note(commit_sha, serialize_authorship_log(log))


def make_prompt(prompt_id: str, tool: str = "claude", model: str = "sonnet", commit_sha: str | None = None) -> PromptRecord:
    return PromptRecord(
        prompt_id=prompt_id,
        agent_id=AgentId(tool=tool, id=f"session-{prompt_id}", model=model),
        human_author="Test User",
        commit_sha=commit_sha,
    )


def make_log(
    base_commit_sha: str,
    files: dict[str, dict[str, list[int]]],
    prompts: list[PromptRecord] | None = None,
) -> AuthorshipLog:
    """Build a log from ``{path: {reference: [lines]}}``."""
    attestations = []
    for file_path, entries in files.items():
        attestation = FileAttestation(file_path=file_path)
        for reference, lines in entries.items():
            attestation.add_entry(AttestationEntry(reference=reference, line_ranges=compress_lines(lines)))
        attestations.append(attestation)
    return AuthorshipLog(
        attestations=attestations,
        metadata=AuthorshipMetadata(
            base_commit_sha=base_commit_sha,
            prompts={p.prompt_id: p for p in prompts or []},
        ),
    )


@pytest.fixture
def temp_git_repo(tmp_path):
    """
    Create a temporary git repository with proper git config.
    Returns the repo path.
    """
    repo_path = tmp_path / "test_repo"
    repo_path.mkdir()

    run_git(repo_path, "init", "-q")
    run_git(repo_path, "config", "user.name", "Test User")
    run_git(repo_path, "config", "user.email", "test@example.com")
    run_git(repo_path, "config", "commit.gpgsign", "false")

    return repo_path


@pytest.fixture
def git_repo(temp_git_repo):
    """A GitRepoBuilder over a fresh repository."""
    return GitRepoBuilder(temp_git_repo)
