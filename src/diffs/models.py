"""Query-time structures for attributed diffs. Nothing here is persisted."""

from dataclasses import dataclass
from enum import Enum


class LineSide(Enum):
    """Which file a diff line number refers to."""

    OLD = "old"  # deleted lines
    NEW = "new"  # added lines


@dataclass(frozen=True)
class DiffLineKey:
    """Address of a changed line: the same number on each side is a different line."""

    file: str
    line: int
    side: LineSide


class AttributionKind(Enum):
    AI = "ai"
    HUMAN = "human"
    NO_DATA = "no_data"


@dataclass(frozen=True)
class Attribution:
    """Who wrote a changed line.

    ``name`` is the AI tool for AI lines and the username for human lines.
    """

    kind: AttributionKind
    name: str = ""

    @classmethod
    def ai(cls, tool: str) -> "Attribution":
        return cls(AttributionKind.AI, tool)

    @classmethod
    def human(cls, username: str) -> "Attribution":
        return cls(AttributionKind.HUMAN, username)

    @classmethod
    def no_data(cls) -> "Attribution":
        return cls(AttributionKind.NO_DATA)

    def format(self) -> str:
        if self.kind is AttributionKind.AI:
            return f"🤖{self.name}"
        if self.kind is AttributionKind.HUMAN:
            return f"👤{self.name}"
        return "[no-data]"
