"""Shared exceptions for git access and authorship decoding."""


class GitAiError(Exception):
    """Base exception for attribution operations."""

    pass


class InvalidRangeError(GitAiError):
    """Commit range is malformed or start is not an ancestor of end."""

    pass


class UnresolvedCommitError(GitAiError):
    """A revision does not resolve to a commit."""

    pass


class MissingNoteError(GitAiError):
    """No authorship note is stored for a commit."""

    def __init__(self, commit_sha: str):
        super().__init__(f"No authorship log found for commit {commit_sha}")
        self.commit_sha = commit_sha


class DecodeError(GitAiError):
    """Authorship log content could not be parsed."""

    pass


class BackingStoreError(GitAiError):
    """A git subprocess or object store read failed."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(f"{message}: {stderr.strip()}" if stderr.strip() else message)
        self.stderr = stderr
