"""Data models for authorship logs.

An ``AuthorshipLog`` is the per-commit record stored as a git note: for each
file, which line ranges came from which AI prompt (or from a human author),
plus metadata about the prompts themselves.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from common.constants import AUTHORSHIP_SCHEMA_VERSION, HUMAN_PREFIX, TOOL_VERSION
from common.logger import get_logger

if TYPE_CHECKING:
    from gitops.git_utils import Repository

logger = get_logger(__name__)


@dataclass(frozen=True)
class LineRange:
    """Inclusive, 1-based range of lines."""

    start: int
    end: int

    def __post_init__(self):
        if self.start < 1 or self.end < self.start:
            raise ValueError(f"Invalid line range {self.start}-{self.end}")

    def contains(self, line: int) -> bool:
        return self.start <= line <= self.end

    def overlaps(self, other: "LineRange") -> bool:
        return self.start <= other.end and other.start <= self.end

    def lines(self) -> range:
        return range(self.start, self.end + 1)

    def __len__(self) -> int:
        return self.end - self.start + 1

    def __str__(self) -> str:
        return str(self.start) if self.start == self.end else f"{self.start}-{self.end}"


def compress_lines(lines: list[int]) -> list[LineRange]:
    """Collapse line numbers into the minimal list of contiguous ranges.

    Example:
        >>> [str(r) for r in compress_lines([5, 1, 2, 3, 7])]
        ['1-3', '5', '7']
    """
    ranges: list[LineRange] = []
    for line in sorted(set(lines)):
        if ranges and ranges[-1].end == line - 1:
            ranges[-1] = LineRange(ranges[-1].start, line)
        else:
            ranges.append(LineRange(line, line))
    return ranges


@dataclass
class AgentId:
    """Identity of the AI agent behind a prompt."""

    tool: str
    id: str = ""
    model: str = ""


@dataclass
class PromptRecord:
    """Metadata identifying one AI interaction."""

    prompt_id: str
    agent_id: AgentId
    human_author: str | None = None
    timestamp: str | None = None
    commit_sha: str | None = None


@dataclass
class Author:
    """The person a line is credited to."""

    username: str


def human_reference(author: str) -> str:
    """Attribution reference marking lines written by a human."""
    return f"{HUMAN_PREFIX}{author}"


def is_human_reference(reference: str) -> bool:
    return reference.startswith(HUMAN_PREFIX)


@dataclass
class AttestationEntry:
    """Line ranges of one file credited to a single reference.

    ``reference`` is either a prompt id (AI-authored) or ``human:<author>``.
    """

    reference: str
    line_ranges: list[LineRange]

    @property
    def is_human(self) -> bool:
        return is_human_reference(self.reference)

    @property
    def human_author(self) -> str | None:
        return self.reference[len(HUMAN_PREFIX):] if self.is_human else None

    def contains(self, line: int) -> bool:
        return any(r.contains(line) for r in self.line_ranges)

    def line_count(self) -> int:
        return sum(len(r) for r in self.line_ranges)


@dataclass
class FileAttestation:
    """Attestation entries for one file; entries never overlap."""

    file_path: str
    entries: list[AttestationEntry] = field(default_factory=list)

    def add_entry(self, entry: AttestationEntry) -> None:
        """Append an entry, rejecting ranges that overlap existing ones.

        Raises:
            ValueError: If the entry overlaps an existing entry
        """
        for new_range in entry.line_ranges:
            for existing in self.entries:
                if any(new_range.overlaps(r) for r in existing.line_ranges):
                    raise ValueError(
                        f"{self.file_path}: range {new_range} of {entry.reference!r} "
                        f"overlaps {existing.reference!r}"
                    )
        self.entries.append(entry)

    def entry_for_line(self, line: int) -> AttestationEntry | None:
        for entry in self.entries:
            if entry.contains(line):
                return entry
        return None


@dataclass
class AuthorshipMetadata:
    """Metadata trailer of an authorship log."""

    base_commit_sha: str
    prompts: dict[str, PromptRecord] = field(default_factory=dict)
    schema_version: str = AUTHORSHIP_SCHEMA_VERSION
    tool_version: str | None = TOOL_VERSION


# (author, prompt id or None, resolved prompt or None)
LineAttributionResult = tuple[Author, str | None, PromptRecord | None]


@dataclass
class AuthorshipLog:
    """Complete per-commit authorship record."""

    attestations: list[FileAttestation]
    metadata: AuthorshipMetadata

    @classmethod
    def empty(cls, base_commit_sha: str) -> "AuthorshipLog":
        return cls(attestations=[], metadata=AuthorshipMetadata(base_commit_sha=base_commit_sha))

    def get_attestation(self, file_path: str) -> FileAttestation | None:
        for attestation in self.attestations:
            if attestation.file_path == file_path:
                return attestation
        return None

    def entry_for_line(self, file_path: str, line: int) -> AttestationEntry | None:
        attestation = self.get_attestation(file_path)
        return attestation.entry_for_line(line) if attestation else None

    def resolve_prompt(
        self,
        repo: "Repository | None",
        prompt_id: str,
        foreign_prompts_cache: dict[str, PromptRecord | None],
    ) -> PromptRecord | None:
        """Find a prompt in this log, or in another commit's log.

        Prompts recorded by a different commit ("foreign" prompts) are looked
        up once through the repository's notes and remembered in
        ``foreign_prompts_cache`` (including misses).
        """
        prompt = self.metadata.prompts.get(prompt_id)
        if prompt is not None:
            return prompt
        if prompt_id in foreign_prompts_cache:
            return foreign_prompts_cache[prompt_id]
        if repo is None:
            return None

        from .notes import find_foreign_prompt

        prompt = find_foreign_prompt(repo, prompt_id)
        foreign_prompts_cache[prompt_id] = prompt
        return prompt

    def get_line_attribution(
        self,
        repo: "Repository | None",
        file_path: str,
        line: int,
        foreign_prompts_cache: dict[str, PromptRecord | None],
    ) -> LineAttributionResult | None:
        """Who wrote a line, according to this log.

        Args:
            repo: Repository used for foreign prompt lookups (None disables them)
            file_path: Path of the file within the commit
            line: 1-based line number
            foreign_prompts_cache: Request-scoped cache of prompt id -> record

        Returns:
            ``(author, prompt_id, prompt)`` for AI lines, ``(author, None, None)``
            for human lines, or None when the line has no data or its prompt
            cannot be resolved
        """
        entry = self.entry_for_line(file_path, line)
        if entry is None:
            return None

        if entry.is_human:
            return Author(username=entry.human_author or ""), None, None

        prompt = self.resolve_prompt(repo, entry.reference, foreign_prompts_cache)
        if prompt is None:
            logger.debug(f"Prompt {entry.reference} referenced by {file_path}:{line} not found")
            return None
        return Author(username=prompt.human_author or "unknown"), entry.reference, prompt

    def ai_line_count(self) -> int:
        """Number of lines credited to AI prompts."""
        return sum(
            entry.line_count()
            for attestation in self.attestations
            for entry in attestation.entries
            if not entry.is_human
        )

    def file_paths(self) -> list[str]:
        return [attestation.file_path for attestation in self.attestations]


@dataclass
class Log:
    """A commit that carries a stored authorship log."""

    sha: str
    git_author: str
    log: AuthorshipLog


@dataclass
class NoLog:
    """A commit without a stored authorship log."""

    sha: str
    git_author: str


CommitAuthorship = Log | NoLog
