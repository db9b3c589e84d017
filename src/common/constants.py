"""Shared constants for the git-ai attribution tools.

For environment-based configuration (notes ref, worker counts, etc.), use the env module:
    from common.env import env
    ref = env.notes_ref()
"""

# Version written into the metadata trailer of synthesized logs
TOOL_VERSION = "0.1.0"

# Authorship log wire format
AUTHORSHIP_SCHEMA_VERSION = "authorship/3.0.0"
ATTESTATION_DIVIDER = "---"
HUMAN_PREFIX = "human:"

# Object id of the empty tree in SHA-1 repositories
EMPTY_TREE_SHA = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"
