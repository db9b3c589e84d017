"""
Collect every file path that appears in any stored authorship log.

The notes tree is walked once to list its blobs; the blobs are then split
into chunks and parsed by a pool of workers, each with its own private
object reader.
"""

import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

from common.env import env
from common.logger import get_logger
from gitops.errors import DecodeError
from gitops.git_utils import Repository
from gitops.object_reader import ObjectReader

from .log_io import parse_attestations_only

logger = get_logger(__name__)


def collect_blob_entries(repo: Repository, tree_id: str) -> list[tuple[str, str]]:
    """
    List every blob under a tree, recursively.

    Args:
        repo: Repository owning the tree
        tree_id: Root tree to walk

    Returns:
        List of (blob id, path within the tree)
    """
    blobs: list[tuple[str, str]] = []
    stack: list[tuple[str, str]] = [(tree_id, "")]

    while stack:
        current, prefix = stack.pop()
        for entry in repo.ls_tree(current):
            path = f"{prefix}{entry.name}"
            if entry.object_type == "tree":
                stack.append((entry.object_id, f"{path}/"))
            elif entry.object_type == "blob":
                blobs.append((entry.object_id, path))

    return blobs


def chunk_entries(entries: list, workers: int) -> list[list]:
    """Split entries into at most ``workers`` chunks of ceil(n / workers) items."""
    if not entries:
        return []
    size = max(1, math.ceil(len(entries) / max(1, workers)))
    return [entries[i:i + size] for i in range(0, len(entries), size)]


def extract_file_paths_from_batch(repo_path: Path, chunk: list[tuple[str, str]]) -> set[str]:
    """
    Parse a chunk of note blobs and return the file paths they attest.

    Blobs that are not UTF-8 or not valid authorship logs are skipped.
    """
    paths: set[str] = set()
    with ObjectReader(repo_path) as reader:
        for blob_id, note_path in chunk:
            data = reader.read_blob(blob_id)
            if data is None:
                logger.debug(f"Note blob {blob_id[:7]} ({note_path}) is missing")
                continue
            try:
                attestations = parse_attestations_only(data.decode("utf-8"))
            except (UnicodeDecodeError, DecodeError) as e:
                logger.debug(f"Skipping note {note_path}: {e}")
                continue
            paths.update(attestation.file_path for attestation in attestations)
    return paths


def load_all_ai_touched_files(
    repo: Repository,
    max_workers: int | None = None,
    notes_ref: str | None = None,
) -> set[str]:
    """
    Union of file paths across all stored authorship logs.

    The result does not depend on the number of workers. A worker that
    fails outright contributes nothing (and is reported) rather than
    aborting the whole traversal.

    Args:
        repo: Repository whose notes are read
        max_workers: Worker count (defaults to GIT_AI_TRAVERSAL_WORKERS)
        notes_ref: Notes ref (defaults to GIT_AI_NOTES_REF)

    Returns:
        Set of file paths; empty when the notes ref does not exist
    """
    notes_ref = notes_ref or env.notes_ref()
    workers = max_workers or env.traversal_workers()

    if repo.try_resolve(notes_ref) is None:
        logger.debug(f"Notes ref {notes_ref} does not exist")
        return set()

    tree_id = repo.try_resolve(f"{notes_ref}^{{tree}}")
    if tree_id is None:
        return set()

    entries = collect_blob_entries(repo, tree_id)
    chunks = chunk_entries(entries, workers)
    logger.debug(f"Scanning {len(entries)} note(s) in {len(chunks)} chunk(s)")

    all_files: set[str] = set()
    if not chunks:
        return all_files

    with ThreadPoolExecutor(max_workers=len(chunks)) as executor:
        futures = {executor.submit(extract_file_paths_from_batch, repo.path, chunk): i for i, chunk in enumerate(chunks)}
        for future in as_completed(futures):
            try:
                all_files.update(future.result())
            except Exception as e:
                logger.warning(f"Note traversal worker {futures[future]} failed: {e}")

    logger.debug(f"Found {len(all_files)} AI-touched file(s)")
    return all_files
