"""Serialization of authorship logs to and from their note text.

Format:

    src/app.py
      3f9a1c0d2e4b5a67 1-4,9
      human:Jane Doe 5-8
    "  path with leading spaces"
      3f9a1c0d2e4b5a67 2
    ---
    {"schema_version": "authorship/3.0.0", "base_commit_sha": "...", "prompts": {...}}

File paths sit at column zero (JSON-quoted when they would be ambiguous),
entries are indented by two spaces and end with their comma-separated line
ranges. A line holding only ``---`` separates attestations from the JSON
metadata trailer.
"""

import json
from typing import Any

from common.constants import ATTESTATION_DIVIDER, AUTHORSHIP_SCHEMA_VERSION
from gitops.errors import DecodeError

from .models import (
    AgentId,
    AttestationEntry,
    AuthorshipLog,
    AuthorshipMetadata,
    FileAttestation,
    LineRange,
    PromptRecord,
)

ENTRY_INDENT = "  "


def _needs_quoting(file_path: str) -> bool:
    return (
        not file_path
        or file_path[0] in (" ", "\t", '"')
        or "\n" in file_path
        or file_path == ATTESTATION_DIVIDER
    )


def _format_ranges(line_ranges: list[LineRange]) -> str:
    return ",".join(str(r) for r in sorted(line_ranges, key=lambda r: r.start))


def _parse_ranges(text: str) -> list[LineRange]:
    ranges = []
    for part in text.split(","):
        start, sep, end = part.partition("-")
        try:
            ranges.append(LineRange(int(start), int(end) if sep else int(start)))
        except ValueError as e:
            raise DecodeError(f"Invalid line range {part!r}") from e
    return ranges


def _prompt_to_dict(prompt: PromptRecord) -> dict[str, Any]:
    return {
        "agent_id": {
            "tool": prompt.agent_id.tool,
            "id": prompt.agent_id.id,
            "model": prompt.agent_id.model,
        },
        "human_author": prompt.human_author,
        "timestamp": prompt.timestamp,
        "commit_sha": prompt.commit_sha,
    }


def _prompt_from_dict(prompt_id: str, data: Any) -> PromptRecord:
    if not isinstance(data, dict):
        raise DecodeError(f"Prompt {prompt_id} is not an object")
    agent = data.get("agent_id") or {}
    if not isinstance(agent, dict):
        raise DecodeError(f"Prompt {prompt_id} has an invalid agent_id")
    return PromptRecord(
        prompt_id=prompt_id,
        agent_id=AgentId(
            tool=agent.get("tool") or "unknown",
            id=agent.get("id") or "",
            model=agent.get("model") or "",
        ),
        human_author=data.get("human_author"),
        timestamp=data.get("timestamp"),
        commit_sha=data.get("commit_sha"),
    )


def serialize_authorship_log(log: AuthorshipLog) -> str:
    """
    Render an authorship log as note text.

    Args:
        log: Log to serialize

    Returns:
        Attestations section, divider and pretty-printed JSON metadata
    """
    lines: list[str] = []
    for attestation in log.attestations:
        path = attestation.file_path
        lines.append(json.dumps(path, ensure_ascii=False) if _needs_quoting(path) else path)
        for entry in attestation.entries:
            lines.append(f"{ENTRY_INDENT}{entry.reference} {_format_ranges(entry.line_ranges)}")

    metadata: dict[str, Any] = {"schema_version": log.metadata.schema_version}
    if log.metadata.tool_version is not None:
        metadata["git_ai_version"] = log.metadata.tool_version
    metadata["base_commit_sha"] = log.metadata.base_commit_sha
    metadata["prompts"] = {
        prompt_id: _prompt_to_dict(prompt)
        for prompt_id, prompt in sorted(log.metadata.prompts.items())
    }

    lines.append(ATTESTATION_DIVIDER)
    lines.append(json.dumps(metadata, indent=2, ensure_ascii=False))
    return "\n".join(lines)


def split_sections(text: str) -> tuple[str, str] | None:
    """Split note text into (attestations, metadata) at the first divider line.

    Returns:
        The two sections, or None if the text has no divider
    """
    lines = text.split("\n")
    for index, line in enumerate(lines):
        if line.rstrip("\r") == ATTESTATION_DIVIDER:
            return "\n".join(lines[:index]), "\n".join(lines[index + 1:])
    return None


def _parse_attestations(section: str) -> list[FileAttestation]:
    attestations: list[FileAttestation] = []
    current: FileAttestation | None = None

    for number, raw in enumerate(section.split("\n"), start=1):
        line = raw.rstrip("\r")
        if not line.strip():
            continue

        if line.startswith(ENTRY_INDENT):
            if current is None:
                raise DecodeError(f"Attestation entry before any file path (line {number})")
            reference, sep, ranges = line[len(ENTRY_INDENT):].rpartition(" ")
            if not sep or not reference:
                raise DecodeError(f"Malformed attestation entry on line {number}: {line!r}")
            try:
                current.add_entry(AttestationEntry(reference=reference, line_ranges=_parse_ranges(ranges)))
            except ValueError as e:
                raise DecodeError(str(e)) from e
            continue

        if line.startswith('"'):
            try:
                file_path = json.loads(line)
            except json.JSONDecodeError as e:
                raise DecodeError(f"Invalid quoted file path on line {number}") from e
        else:
            file_path = line
        current = FileAttestation(file_path=file_path)
        attestations.append(current)

    return attestations


def _parse_metadata(section: str) -> AuthorshipMetadata:
    try:
        data = json.loads(section)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Invalid metadata JSON: {e}") from e

    if not isinstance(data, dict):
        raise DecodeError("Metadata trailer must be a JSON object")

    schema_version = data.get("schema_version")
    if schema_version != AUTHORSHIP_SCHEMA_VERSION:
        raise DecodeError(f"Unsupported authorship schema version: {schema_version!r}")

    prompts = data.get("prompts") or {}
    if not isinstance(prompts, dict):
        raise DecodeError("Metadata 'prompts' must be a mapping")

    return AuthorshipMetadata(
        schema_version=schema_version,
        tool_version=data.get("git_ai_version"),
        base_commit_sha=data.get("base_commit_sha") or "",
        prompts={pid: _prompt_from_dict(pid, record) for pid, record in prompts.items()},
    )


def deserialize_authorship_log(text: str) -> AuthorshipLog:
    """
    Parse note text into an authorship log.

    Args:
        text: Full note content

    Returns:
        Parsed AuthorshipLog

    Raises:
        DecodeError: If the divider is missing or either section is malformed
    """
    sections = split_sections(text)
    if sections is None:
        raise DecodeError("Authorship log has no section divider")
    attestation_section, metadata_section = sections
    return AuthorshipLog(
        attestations=_parse_attestations(attestation_section),
        metadata=_parse_metadata(metadata_section),
    )


def minimal_metadata_trailer() -> str:
    """Smallest metadata trailer the parser accepts."""
    return json.dumps(
        {"schema_version": AUTHORSHIP_SCHEMA_VERSION, "base_commit_sha": "", "prompts": {}},
        separators=(",", ":"),
    )


def parse_attestations_only(text: str) -> list[FileAttestation]:
    """
    Parse just the attestations of a note, ignoring its real metadata.

    The metadata trailer is replaced by ``minimal_metadata_trailer()`` so a
    note with an unknown schema or damaged prompts still yields its files.

    Raises:
        DecodeError: If there is no divider or the attestations are malformed
    """
    sections = split_sections(text)
    if sections is None:
        raise DecodeError("Authorship log has no section divider")
    parseable = f"{sections[0]}\n{ATTESTATION_DIVIDER}\n{minimal_metadata_trailer()}"
    return deserialize_authorship_log(parseable).attestations
