"""
Document
========

A titled, versioned wrapper around one ReplicatedText.

GUARANTEES:
- Every mutation bumps version and last_modified
- Listeners are notified synchronously, in registration order,
  before the mutating call returns
"""

from __future__ import annotations
import re
from typing import List, Optional, Protocol, runtime_checkable

from loguru import logger

from ..contracts.base import Result
from ..contracts.commits import DocumentMetadata, DocumentStats, HeadInfo
from ..temporal.clock import Clock, LogicalClock
from .replicated import ReplicatedText


PREVIEW_LENGTH = 100
DEFAULT_TITLE = "Untitled"

_WHITESPACE = re.compile(r"\s+")
_BLANK_LINE = re.compile(r"\n\s*\n")


@runtime_checkable
class DocumentListener(Protocol):
    """Observer notified after every document mutation."""

    def on_document_changed(self, document: Document, content: str) -> None:
        ...


def count_words(text: str) -> int:
    return len([w for w in _WHITESPACE.split(text.strip()) if w])


def compute_stats(text: str) -> DocumentStats:
    """
    Derived statistics.

    Paragraphs are runs of text separated by blank lines.
    """
    return DocumentStats(
        characters=len(text),
        characters_no_spaces=len(_WHITESPACE.sub("", text)),
        words=count_words(text),
        lines=len(text.split("\n")),
        paragraphs=len([p for p in _BLANK_LINE.split(text) if p.strip()]),
    )


class Document:
    """Single flat text document with metadata and change notification."""

    def __init__(
        self,
        initial_text: str = "",
        title: str = DEFAULT_TITLE,
        clock: Optional[Clock] = None,
    ):
        self._clock = clock or LogicalClock.live()
        self._text = ReplicatedText(initial_text)
        now = self._clock.now_ms()
        self._title = title
        self._created_at = now
        self._last_modified = now
        self._version = 1
        self._listeners: List[DocumentListener] = []

    @classmethod
    def from_state(
        cls,
        blob: bytes,
        title: str = DEFAULT_TITLE,
        clock: Optional[Clock] = None,
        metadata: Optional[DocumentMetadata] = None,
    ) -> Result:
        """
        Deserialize a new Document from a state blob.

        With `metadata` the title, timestamps and version are restored too.
        Value is the Document on success; the failure carries INVALID_STATE.
        """
        replica = ReplicatedText.from_state(blob)
        if replica.is_failure:
            return replica
        document = cls(title=title, clock=clock)
        document._text = replica.value
        if metadata is not None:
            document._title = metadata.title
            document._created_at = metadata.created_at
            document._last_modified = metadata.last_modified
            document._version = metadata.version
        return Result.success(document)

    # =========================================================================
    # MUTATION
    # =========================================================================

    def insert_text(self, position: int, text: str) -> None:
        self._text.insert(position, text)
        self._touch()

    def delete_text(self, position: int, length: int) -> None:
        self._text.delete(position, length)
        self._touch()

    def replace_text(self, position: int, length: int, text: str) -> None:
        self._text.delete(position, length)
        self._text.insert(position, text)
        self._touch()

    def set_text(self, text: str) -> None:
        self._text.set_text(text)
        self._touch()

    def load_state(self, blob: bytes) -> Result:
        """Replace content with a state blob. Nothing changes on failure."""
        result = self._text.load_state(blob)
        if result.is_success:
            self._touch()
        return result

    def merge(self, other: Document) -> Result:
        """Integrate another document's edit history."""
        result = self._text.merge(other.get_operations())
        if result.is_success:
            self._touch()
        return result

    def apply_operations(self, operations: bytes) -> Result:
        result = self._text.merge(operations)
        if result.is_success:
            self._touch()
        return result

    def _touch(self) -> None:
        self._version += 1
        self._last_modified = self._clock.now_ms()
        self._notify()

    # =========================================================================
    # LISTENERS
    # =========================================================================

    def subscribe(self, listener: DocumentListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: DocumentListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listeners(self) -> List[DocumentListener]:
        return list(self._listeners)

    def _notify(self) -> None:
        content = self.get_text()
        for listener in list(self._listeners):
            listener.on_document_changed(self, content)

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_text(self) -> str:
        return self._text.get_text()

    def get_state(self) -> bytes:
        return self._text.get_state()

    def get_operations(self, since: Optional[bytes] = None) -> bytes:
        return self._text.get_operations(since)

    def get_hash(self) -> str:
        return self._text.hash()

    @property
    def title(self) -> str:
        return self._title

    @title.setter
    def title(self, value: str) -> None:
        self._title = value
        self._touch()

    @property
    def version(self) -> int:
        return self._version

    @property
    def created_at(self) -> int:
        return self._created_at

    @property
    def last_modified(self) -> int:
        return self._last_modified

    def get_metadata(self) -> DocumentMetadata:
        return DocumentMetadata(
            title=self._title,
            created_at=self._created_at,
            last_modified=self._last_modified,
            version=self._version
        )

    def get_stats(self) -> DocumentStats:
        return compute_stats(self.get_text())

    def get_head_info(self) -> HeadInfo:
        text = self.get_text()
        preview = text[:PREVIEW_LENGTH] + '...' if len(text) > PREVIEW_LENGTH else text
        return HeadInfo(
            title=self._title,
            preview=preview,
            stats=compute_stats(text),
            version=self._version,
            last_modified=self._last_modified,
            created_at=self._created_at
        )

    def is_empty(self) -> bool:
        return len(self._text) == 0

    def clone(self) -> Document:
        """Independent copy with the same history and title, no listeners."""
        copy = Document(title=self._title, clock=self._clock)
        copy._text = self._text.clone()
        logger.debug("Cloned document '{}' at version {}", self._title, self._version)
        return copy

    def __repr__(self) -> str:
        return f"Document(title={self._title!r}, version={self._version}, chars={len(self._text)})"
