"""In-memory reconstruction and merging of line attribution.

A ``VirtualAttributions`` answers "what would the authorship log say at this
commit?" for commits that may never have received a note of their own (for
example the endpoints of a rebased or squashed range). Each line of each
requested file is traced back with git blame to the commit that introduced
it, and that commit's stored log (if any) supplies the attribution.
"""

from dataclasses import dataclass
from difflib import SequenceMatcher

from common.logger import get_logger
from gitops.git_utils import Repository

from .models import (
    AttestationEntry,
    AuthorshipLog,
    AuthorshipMetadata,
    FileAttestation,
    PromptRecord,
    compress_lines,
    is_human_reference,
)
from .notes import AuthorshipLogCache

logger = get_logger(__name__)


@dataclass(frozen=True)
class LineAttribution:
    """Attribution of one line plus where it came from.

    Attributes:
        reference: Prompt id (AI) or ``human:<author>``
        origin_commit: Commit whose stored log supplied the attribution
        prompt: Resolved prompt for AI lines (None for human lines)
    """

    reference: str
    origin_commit: str
    prompt: PromptRecord | None = None

    @property
    def is_ai(self) -> bool:
        return not is_human_reference(self.reference)

    @property
    def originating_commit(self) -> str:
        """Commit in which the AI activity behind this line happened."""
        if self.prompt is not None and self.prompt.commit_sha:
            return self.prompt.commit_sha
        return self.origin_commit


def split_lines(content: str) -> list[str]:
    """Split file content into lines the way git numbers them."""
    lines = content.split("\n")
    if lines and lines[-1] == "":
        lines = lines[:-1]
    return lines


def map_lines(old_content: str, new_content: str) -> dict[int, int]:
    """
    Map 1-based line numbers of ``old_content`` onto ``new_content``.

    Only lines that survive unchanged are mapped; rewritten, inserted and
    deleted lines have no counterpart.
    """
    if old_content == new_content:
        return {n: n for n in range(1, len(split_lines(new_content)) + 1)}

    matcher = SequenceMatcher(None, split_lines(old_content), split_lines(new_content), autojunk=False)
    mapping: dict[int, int] = {}
    for block in matcher.get_matching_blocks():
        for offset in range(block.size):
            mapping[block.a + offset + 1] = block.b + offset + 1
    return mapping


class VirtualAttributions:
    """Per-file, per-line attribution reconstructed for a base commit."""

    def __init__(
        self,
        repo: Repository,
        base_commit: str,
        attributions: dict[str, dict[int, LineAttribution]] | None = None,
        file_contents: dict[str, str] | None = None,
    ):
        self.repo = repo
        self.base_commit = base_commit
        self.attributions: dict[str, dict[int, LineAttribution]] = attributions or {}
        self.file_contents: dict[str, str] = file_contents or {}

    @classmethod
    def new_for_base_commit(
        cls,
        repo: Repository,
        base_commit: str,
        changed_files: list[str],
        notes_ref: str | None = None,
    ) -> "VirtualAttributions":
        """
        Reconstruct attribution for ``changed_files`` as of ``base_commit``.

        Files absent at the base commit are skipped. Every other line is
        blamed to the commit that introduced it; the line's attribution is
        whatever that commit's stored log records for the line's original
        position. Lines from commits without a log, or without an entry,
        have no data.

        Args:
            repo: Repository to read from
            base_commit: Commit to reconstruct attribution for
            changed_files: Paths to reconstruct
            notes_ref: Notes ref holding stored logs

        Returns:
            A new VirtualAttributions (owning its own caches)
        """
        logs = AuthorshipLogCache(repo, notes_ref)
        foreign_prompts: dict[str, PromptRecord | None] = {}
        va = cls(repo, base_commit)

        for file_path in changed_files:
            content = repo.read_file(base_commit, file_path)
            if content is None:
                logger.debug(f"{file_path} is absent at {base_commit[:7]}")
                continue

            va.file_contents[file_path] = content
            lines: dict[int, LineAttribution] = {}

            # Without any stored notes there is nothing to trace back to
            if logs.has_any_notes():
                for blamed in repo.blame(base_commit, file_path):
                    log = logs.get(blamed.origin_commit)
                    if log is None:
                        continue
                    entry = log.entry_for_line(blamed.origin_path, blamed.origin_line)
                    if entry is None:
                        continue
                    prompt = None
                    if not entry.is_human:
                        prompt = log.resolve_prompt(repo, entry.reference, foreign_prompts)
                        # An AI line whose prompt cannot be found carries no data
                        if prompt is None:
                            continue
                    lines[blamed.final_line] = LineAttribution(
                        reference=entry.reference,
                        origin_commit=blamed.origin_commit,
                        prompt=prompt,
                    )

            va.attributions[file_path] = lines

        logger.debug(
            f"Reconstructed {sum(len(v) for v in va.attributions.values())} attributed line(s) "
            f"across {len(va.file_contents)} file(s) at {base_commit[:7]}"
        )
        return va

    def filter_to_commits(self, commits: set[str]) -> None:
        """
        Drop AI attributions whose originating commit is not in ``commits``.

        Dropped lines become "no data"; human attributions are kept. Filtering
        only ever removes entries, so it is idempotent and a later, narrower
        filter cannot bring anything back.
        """
        removed = 0
        for file_path, lines in self.attributions.items():
            kept = {
                line: attribution
                for line, attribution in lines.items()
                if not attribution.is_ai or attribution.originating_commit in commits
            }
            removed += len(lines) - len(kept)
            self.attributions[file_path] = kept
        if removed:
            logger.debug(f"Filtered {removed} AI line(s) from outside the commit set at {self.base_commit[:7]}")

    def project_onto(self, file_path: str, content: str) -> dict[int, LineAttribution]:
        """Attribution of this file carried onto the lines of ``content``."""
        lines = self.attributions.get(file_path)
        source = self.file_contents.get(file_path)
        if not lines or source is None:
            return {}
        mapping = map_lines(source, content)
        return {mapping[line]: attribution for line, attribution in lines.items() if line in mapping}

    def ai_line_count(self) -> int:
        return sum(1 for lines in self.attributions.values() for a in lines.values() if a.is_ai)

    def to_authorship_log(self) -> AuthorshipLog:
        """
        Convert the reconstruction into a standard authorship log.

        Returns:
            Log whose base commit is this reconstruction's base commit and
            whose prompts are exactly those referenced by retained AI lines
        """
        attestations: list[FileAttestation] = []
        prompts: dict[str, PromptRecord] = {}

        for file_path, lines in self.attributions.items():
            by_reference: dict[str, list[int]] = {}
            for line, attribution in sorted(lines.items()):
                if attribution.is_ai:
                    if attribution.prompt is None:
                        continue
                    prompts[attribution.reference] = attribution.prompt
                by_reference.setdefault(attribution.reference, []).append(line)

            if not by_reference:
                continue

            entries = [
                AttestationEntry(reference=reference, line_ranges=compress_lines(line_numbers))
                for reference, line_numbers in by_reference.items()
            ]
            entries.sort(key=lambda e: e.line_ranges[0].start)
            attestations.append(FileAttestation(file_path=file_path, entries=entries))

        return AuthorshipLog(
            attestations=attestations,
            metadata=AuthorshipMetadata(base_commit_sha=self.base_commit, prompts=prompts),
        )


def merge_attributions_favoring_first(
    preferred: VirtualAttributions,
    fallback: VirtualAttributions,
    committed_files: dict[str, str],
) -> VirtualAttributions:
    """
    Merge two reconstructions over the final committed content.

    For every line of every file in ``committed_files``, the attribution is
    taken from ``preferred`` when it has one for that line, otherwise from
    ``fallback``, otherwise the line stays unattributed. Both sides are first
    carried onto the committed text by matching unchanged lines.

    Args:
        preferred: Reconstruction that wins on conflicts (the newer state)
        fallback: Reconstruction consulted for lines ``preferred`` lacks
        committed_files: Final file contents keyed by path

    Returns:
        Reconstruction based at ``preferred.base_commit``
    """
    merged = VirtualAttributions(preferred.repo, preferred.base_commit)

    for file_path, content in committed_files.items():
        preferred_lines = preferred.project_onto(file_path, content)
        fallback_lines = fallback.project_onto(file_path, content)

        lines: dict[int, LineAttribution] = {}
        for line in range(1, len(split_lines(content)) + 1):
            if line in preferred_lines:
                lines[line] = preferred_lines[line]
            elif line in fallback_lines:
                lines[line] = fallback_lines[line]

        merged.file_contents[file_path] = content
        merged.attributions[file_path] = lines

    return merged
