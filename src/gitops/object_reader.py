"""Private read-only handle onto a repository's object store.

Each ``ObjectReader`` owns one long-running ``git cat-file --batch`` process,
so concurrent workers can read blobs without sharing any state.
"""

import subprocess
from pathlib import Path

from .errors import BackingStoreError


class ObjectReader:
    """Read raw objects by id through ``git cat-file --batch``.

    Use as a context manager so the subprocess is always reaped:

        with ObjectReader(repo.path) as reader:
            data = reader.read_blob(blob_id)
    """

    def __init__(self, repo_path: Path):
        self.repo_path = Path(repo_path)
        self._process: subprocess.Popen | None = None

    def __enter__(self) -> "ObjectReader":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> None:
        """Start the batch process.

        Raises:
            BackingStoreError: If git cannot be started
        """
        try:
            self._process = subprocess.Popen(
                ["git", "cat-file", "--batch"],
                cwd=self.repo_path,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            raise BackingStoreError("Failed to open object database", str(e)) from e

    def close(self) -> None:
        """Stop the batch process."""
        if self._process is None:
            return
        process, self._process = self._process, None
        try:
            if process.stdin:
                process.stdin.close()
            process.wait(timeout=10)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
        finally:
            if process.stdout:
                process.stdout.close()

    def read_object(self, object_id: str) -> tuple[str, bytes] | None:
        """Read one object.

        Args:
            object_id: Full or abbreviated object id

        Returns:
            Tuple of (object type, raw content), or None if the object is missing

        Raises:
            BackingStoreError: If the batch process is not running or dies mid-read
        """
        process = self._process
        if process is None or process.stdin is None or process.stdout is None:
            raise BackingStoreError("Object reader is not open")

        try:
            process.stdin.write(f"{object_id}\n".encode())
            process.stdin.flush()
            header = process.stdout.readline().decode(errors="replace").rstrip("\n")
        except (OSError, ValueError) as e:
            raise BackingStoreError(f"Failed to read object {object_id}", str(e)) from e

        if not header:
            raise BackingStoreError(f"Object database closed while reading {object_id}")

        parts = header.split(" ")
        if len(parts) != 3:
            # "<id> missing" or "<id> ambiguous"
            return None

        _, object_type, size = parts
        data = process.stdout.read(int(size))
        process.stdout.read(1)  # trailing LF
        return object_type, data

    def read_blob(self, object_id: str) -> bytes | None:
        """Read a blob's content, or None if missing or not a blob."""
        found = self.read_object(object_id)
        if found is None or found[0] != "blob":
            return None
        return found[1]
