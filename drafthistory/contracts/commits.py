"""
Commit Contracts

Immutable records exchanged between the commit store, the timeline
and external collaborators (UI, persistence).

INVARIANTS:
- A Commit's document_state is never mutated after creation
- CommitInfo never carries a state blob
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


@dataclass(frozen=True)
class DocumentStats:
    """Derived text statistics for a document snapshot."""
    characters: int = 0
    characters_no_spaces: int = 0
    words: int = 0
    lines: int = 0
    paragraphs: int = 0

    def to_dict(self) -> dict:
        return {
            'characters': self.characters,
            'characters_no_spaces': self.characters_no_spaces,
            'words': self.words,
            'lines': self.lines,
            'paragraphs': self.paragraphs,
        }


@dataclass(frozen=True)
class DocumentMetadata:
    """Document metadata carried outside the replicated text."""
    title: str
    created_at: int
    last_modified: int
    version: int

    def to_dict(self) -> dict:
        return {
            'title': self.title,
            'created_at': self.created_at,
            'last_modified': self.last_modified,
            'version': self.version,
        }


@dataclass(frozen=True)
class HeadInfo:
    """Quick-preview projection of a document."""
    title: str
    preview: str
    stats: DocumentStats
    version: int
    last_modified: int
    created_at: int


@dataclass(frozen=True)
class Commit:
    """
    Immutable snapshot of document state.

    `word_count` and `character_count` are captured at commit time so
    history views and auto-commit checks never have to decode the blob.
    """
    id: str
    timestamp: int
    message: str
    document_state: bytes
    is_auto_commit: bool = False
    word_count: int = 0
    character_count: int = 0

    def info(self) -> CommitInfo:
        """Metadata-only projection."""
        return CommitInfo(
            id=self.id,
            timestamp=self.timestamp,
            message=self.message,
            is_auto_commit=self.is_auto_commit,
            word_count=self.word_count,
            character_count=self.character_count
        )


@dataclass(frozen=True)
class CommitInfo:
    """Read-only commit projection exposed to callers and the timeline."""
    id: str
    timestamp: int
    message: str
    is_auto_commit: bool = False
    word_count: Optional[int] = None
    character_count: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'timestamp': self.timestamp,
            'message': self.message,
            'is_auto_commit': self.is_auto_commit,
        }


# =============================================================================
# DIFF
# =============================================================================

class DiffChangeType(Enum):
    ADDED = "added"
    REMOVED = "removed"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class DiffChange:
    """A line of a line diff, or a run of characters of a character diff (no line number)."""
    type: DiffChangeType
    value: str
    line_number: Optional[int] = None


@dataclass(frozen=True)
class DiffResult:
    """Line diff between two document snapshots."""
    old_text: str
    new_text: str
    changes: Tuple[DiffChange, ...] = field(default_factory=tuple)

    @property
    def added_count(self) -> int:
        return sum(1 for c in self.changes if c.type == DiffChangeType.ADDED)

    @property
    def removed_count(self) -> int:
        return sum(1 for c in self.changes if c.type == DiffChangeType.REMOVED)

    @property
    def unchanged_count(self) -> int:
        return sum(1 for c in self.changes if c.type == DiffChangeType.UNCHANGED)
