"""
The per-resource results of a comparison, shared by the differ and the report writer.
"""

from dataclasses import dataclass, field
from enum import Enum

from helmdiff.manifest import ResourceIdentity

ELISION_MARKER = "..."


class Classification(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    CHANGED = "changed"
    UNCHANGED = "unchanged"


class LineTag(str, Enum):
    CONTEXT = " "
    ADDED = "+"
    REMOVED = "-"
    ELISION = "."


@dataclass(frozen=True)
class DiffLine:
    tag: LineTag
    text: str

    def render(self) -> str:
        if self.tag == LineTag.ELISION:
            return ELISION_MARKER
        return f"{self.tag.value} {self.text}"


@dataclass
class DiffRecord:
    """
    The outcome of comparing a single resource.
    """

    identity: ResourceIdentity
    classification: Classification
    lines: list[DiffLine] = field(default_factory=list)
    suppressed: bool = False

    @property
    def has_changes(self) -> bool:
        return self.classification != Classification.UNCHANGED

    @property
    def header(self) -> str:
        verb = {
            Classification.ADDED: "has been added",
            Classification.REMOVED: "has been removed",
            Classification.CHANGED: "has changed",
            Classification.UNCHANGED: "is unchanged",
        }[self.classification]
        return f"{self.identity} {verb}:"
