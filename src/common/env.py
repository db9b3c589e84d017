"""Environment configuration interface for git-ai attribution tools.

This module centralizes all environment variable access. Values may also
come from a ``.env`` file in the working directory.
"""

import os

from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()


class Environment:
    """Interface for accessing environment configuration."""

    @staticmethod
    def notes_ref() -> str:
        """Get the notes reference that stores authorship logs.

        Returns:
            Fully qualified ref name, defaults to 'refs/notes/ai'
        """
        return os.getenv("GIT_AI_NOTES_REF", "refs/notes/ai")

    @staticmethod
    def traversal_workers() -> int:
        """Get the worker pool size for scanning the notes tree.

        Returns:
            Number of workers, defaults to 64 (never less than 1)
        """
        return max(1, int(os.getenv("GIT_AI_TRAVERSAL_WORKERS", "64")))

    @staticmethod
    def default_remote() -> str:
        """Get the remote used when a ref name does not name one.

        Returns:
            Remote name, defaults to 'origin'
        """
        return os.getenv("GIT_AI_DEFAULT_REMOTE", "origin")

    @staticmethod
    def git_timeout() -> float:
        """Get the timeout applied to each git subprocess.

        Returns:
            Timeout in seconds, defaults to 60
        """
        return float(os.getenv("GIT_AI_GIT_TIMEOUT", "60"))


# Singleton instance for convenient access
env = Environment()
