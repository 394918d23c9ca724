"""
Commit Store
============

Linear commit history over a single live Document.

INVARIANTS:
- History is one insertion-ordered mapping (oldest first internally,
  exposed newest-first); there is no second index to drift from it
- A Commit is never mutated; checkout always builds a new Document
  from the commit's blob
- last_commit_hash is the content hash of the live document as of the
  last commit / checkout / import, so has_unsaved_changes() is O(1)

CHECKOUT GUARD:
===============
Before switching, pending edits are snapshotted only if the word count
moved by more than `checkout_guard_word_delta` against the newest commit.
Smaller edits are discarded. Set `snapshot_before_checkout` to snapshot
every pending edit instead.
"""

from __future__ import annotations
import secrets
import string
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from loguru import logger
from pydantic import ValidationError

from ..config import CommitStoreConfig
from ..contracts.base import (
    Result, ErrorCode, CommitStoreCorruptionError
)
from ..contracts.commits import Commit, CommitInfo, DiffChange, DiffResult, DocumentMetadata
from ..storage import StateStore
from ..temporal.clock import Clock, LogicalClock
from ..text.document import Document, compute_stats
from ..text.replicated import ReplicatedText
from .auto_commit import AutoCommitTimer, Scheduler
from .diff import diff_chars, diff_texts
from .payload import CommitRecord, ExportPayload, MetadataRecord


_BASE36 = string.digits + string.ascii_lowercase

CommitListener = Callable[[CommitInfo], None]
DirtyListener = Callable[[bool], None]


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


class CommitStore:
    """
    Commit manager for one document.

    Snapshots, restores and prunes document states, and runs an owned
    auto-commit timer. Every entry point runs synchronously to completion.
    """

    def __init__(
        self,
        initial_text: str = "",
        title: str = "Untitled",
        config: Optional[CommitStoreConfig] = None,
        clock: Optional[Clock] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        self._config = config or CommitStoreConfig()
        self._clock = clock or LogicalClock.live()
        self._scheduler = scheduler

        self._commits: Dict[str, Commit] = {}
        self._head_commit_id: Optional[str] = None
        self._timer: Optional[AutoCommitTimer] = None

        self._commit_listeners: List[CommitListener] = []
        self._dirty_listeners: List[DirtyListener] = []

        self._document = Document(initial_text, title, clock=self._clock)
        self._document.subscribe(self)
        self._current_hash = self._document.get_hash()
        self._last_commit_hash = self._current_hash
        self._dirty = False

        if self._config.create_initial_commit:
            self.create_commit(self._config.initial_commit_message, is_auto=True)

    # =========================================================================
    # LIVE DOCUMENT
    # =========================================================================

    @property
    def current_document(self) -> Document:
        return self._document

    @property
    def head_commit_id(self) -> Optional[str]:
        """Commit the live document was last committed as or checked out from."""
        return self._head_commit_id

    @property
    def last_commit_hash(self) -> str:
        return self._last_commit_hash

    def update_document(self, text: str) -> None:
        self._document.set_text(text)

    def on_document_changed(self, document: Document, content: str) -> None:
        self._current_hash = document.get_hash()
        self._refresh_dirty()

    def has_unsaved_changes(self) -> bool:
        return self._current_hash != self._last_commit_hash

    def _refresh_dirty(self) -> None:
        dirty = self.has_unsaved_changes()
        if dirty == self._dirty:
            return
        self._dirty = dirty
        for listener in list(self._dirty_listeners):
            listener(dirty)

    def _replace_document(self, document: Document) -> None:
        """Swap the live document, carrying external listeners over."""
        previous = self._document
        previous.unsubscribe(self)
        for listener in previous.listeners:
            previous.unsubscribe(listener)
            document.subscribe(listener)
        document.subscribe(self)
        self._document = document
        self._current_hash = document.get_hash()

    # =========================================================================
    # COMMITS
    # =========================================================================

    def _generate_commit_id(self, timestamp: int) -> str:
        """Time-based prefix plus random suffix, unique within this store."""
        prefix = _to_base36(timestamp)
        while True:
            suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
            commit_id = f"{prefix}-{suffix}"
            if commit_id not in self._commits:
                return commit_id

    def create_commit(self, message: str, is_auto: bool = False) -> str:
        """Snapshot the live document. Returns the new commit id."""
        timestamp = self._clock.now_ms()
        commit_id = self._generate_commit_id(timestamp)
        stats = compute_stats(self._document.get_text())
        commit = Commit(
            id=commit_id,
            timestamp=timestamp,
            message=message,
            document_state=self._document.get_state(),
            is_auto_commit=is_auto,
            word_count=stats.words,
            character_count=stats.characters
        )
        self._commits[commit_id] = commit
        self._head_commit_id = commit_id
        self._last_commit_hash = self._current_hash
        self._refresh_dirty()

        logger.debug(
            "Created {} commit {} ({} words): {}",
            "auto" if is_auto else "manual", commit_id, stats.words, message
        )
        info = commit.info()
        for listener in list(self._commit_listeners):
            listener(info)
        return commit_id

    def get_commit(self, commit_id: str) -> Optional[Commit]:
        return self._commits.get(commit_id)

    def get_commit_history(self) -> List[CommitInfo]:
        """Newest first, metadata only."""
        return [commit.info() for commit in reversed(self._commits.values())]

    def __len__(self) -> int:
        return len(self._commits)

    def __contains__(self, commit_id: object) -> bool:
        return commit_id in self._commits

    def _newest_commit(self) -> Optional[Commit]:
        if not self._commits:
            return None
        return next(reversed(self._commits.values()))

    def get_document_at_commit(self, commit_id: str) -> Optional[Document]:
        commit = self._commits.get(commit_id)
        if commit is None:
            return None
        result = Document.from_state(
            commit.document_state, title=self._document.title, clock=self._clock
        )
        if result.is_failure:
            logger.warning("Failed to load document at commit {}: {}", commit_id, result.error.message)
            return None
        return result.value

    def get_diff(self, from_commit_id: str, to_commit_id: str) -> Optional[DiffResult]:
        old_doc = self.get_document_at_commit(from_commit_id)
        new_doc = self.get_document_at_commit(to_commit_id)
        if old_doc is None or new_doc is None:
            return None
        return diff_texts(old_doc.get_text(), new_doc.get_text())

    def get_char_diff(self, from_commit_id: str, to_commit_id: str) -> Optional[Tuple[DiffChange, ...]]:
        old_doc = self.get_document_at_commit(from_commit_id)
        new_doc = self.get_document_at_commit(to_commit_id)
        if old_doc is None or new_doc is None:
            return None
        return diff_chars(old_doc.get_text(), new_doc.get_text())

    # =========================================================================
    # CHECKOUT
    # =========================================================================

    def checkout(self, commit_id: str) -> bool:
        """
        Replace the live document with the state captured by commit_id.

        Returns False (and changes nothing) when the commit is unknown
        or its state does not deserialize.
        """
        target = self.get_document_at_commit(commit_id)
        if target is None:
            logger.warning("Checkout rejected: commit {} unavailable", commit_id)
            return False

        self.guard_pending_changes()

        self._replace_document(target)
        self._head_commit_id = commit_id
        self._last_commit_hash = self._current_hash
        self._refresh_dirty()
        logger.debug("Checked out commit {}", commit_id)
        return True

    def guard_pending_changes(self) -> Optional[str]:
        """Apply the checkout guard to pending edits. Returns the safety commit id, if any."""
        if not self.has_unsaved_changes():
            return None
        if self._config.snapshot_before_checkout:
            return self.create_commit(self._config.pre_checkout_message, is_auto=True)

        newest = self._newest_commit()
        last_words = newest.word_count if newest else 0
        current_words = self._document.get_stats().words
        delta = abs(current_words - last_words)
        if delta > self._config.checkout_guard_word_delta:
            return self.create_commit(self._config.pre_checkout_message, is_auto=True)

        logger.info(
            "Discarding unsaved edit on checkout ({} word change, guard is {})",
            delta, self._config.checkout_guard_word_delta
        )
        return None

    # =========================================================================
    # AUTO-COMMIT
    # =========================================================================

    def should_auto_commit(self, word_threshold: int) -> bool:
        """Unsaved changes AND word increase since last commit >= threshold."""
        if not self.has_unsaved_changes():
            return False
        newest = self._newest_commit()
        last_words = newest.word_count if newest else 0
        return self._document.get_stats().words - last_words >= word_threshold

    def start_auto_commit(
        self,
        interval_seconds: Optional[float] = None,
        word_threshold: Optional[int] = None,
    ) -> None:
        self.stop_auto_commit()
        interval = (
            self._config.auto_commit_interval_seconds
            if interval_seconds is None else interval_seconds
        )
        threshold = (
            self._config.auto_commit_word_threshold
            if word_threshold is None else word_threshold
        )
        self._timer = AutoCommitTimer(
            lambda: self._auto_commit_tick(threshold),
            interval,
            scheduler=self._scheduler
        )
        self._timer.start()

    def stop_auto_commit(self) -> None:
        if self._timer is not None:
            self._timer.stop()
            self._timer = None

    @property
    def auto_commit_running(self) -> bool:
        return self._timer is not None and self._timer.is_running

    def _auto_commit_tick(self, word_threshold: int) -> Optional[str]:
        if not self.should_auto_commit(word_threshold):
            return None
        words = self._document.get_stats().words
        return self.create_commit(f"Auto-save - {words} words", is_auto=True)

    # =========================================================================
    # RETENTION
    # =========================================================================

    def cleanup_old_commits(self, keep_count: Optional[int] = None) -> int:
        """
        Keep only the newest keep_count commits. Returns how many were dropped.

        Dropped commits are unreachable afterwards; nothing is archived.
        """
        keep = self._config.default_keep_count if keep_count is None else keep_count
        if keep < 0:
            raise ValueError("keep_count must be non-negative")
        excess = len(self._commits) - keep
        if excess <= 0:
            return 0
        for commit_id in list(self._commits)[:excess]:
            del self._commits[commit_id]
        if self._head_commit_id not in self._commits:
            self._head_commit_id = None
        logger.info("Pruned {} commits, kept {}", excess, len(self._commits))
        return excess

    # =========================================================================
    # EXPORT / IMPORT
    # =========================================================================

    def _build_payload(self) -> ExportPayload:
        history = [c.id for c in reversed(self._commits.values())]
        return ExportPayload(
            current_document=self._document.get_state(),
            commits=[(cid, CommitRecord.from_commit(self._commits[cid])) for cid in history],
            commit_history=history,
            metadata=MetadataRecord(**self._document.get_metadata().to_dict())
        )

    def export_data(self) -> Dict[str, Any]:
        """Full dump: {current_document, commits, commit_history, metadata}."""
        return self._build_payload().model_dump()

    def import_data(self, data: Union[ExportPayload, Dict[str, Any]]) -> bool:
        """Restore from an export. All-or-nothing: on failure nothing changes."""
        result = self._import(data)
        if result.is_failure:
            logger.warning("Import failed: {}", result.error.message)
            return False
        return True

    def _import(self, data: Union[ExportPayload, Dict[str, Any]]) -> Result:
        try:
            payload = data if isinstance(data, ExportPayload) else ExportPayload.model_validate(data)
        except ValidationError as e:
            return Result.fail(ErrorCode.IMPORT_FAILED, str(e))

        metadata = DocumentMetadata(**payload.metadata.model_dump())
        document = Document.from_state(
            payload.current_document, clock=self._clock, metadata=metadata
        )
        if document.is_failure:
            return document

        records = dict(payload.commits)
        commits: Dict[str, Commit] = {}
        for commit_id in reversed(payload.commit_history):
            record = records[commit_id]
            decoded = ReplicatedText.from_state(record.document_state)
            if decoded.is_failure:
                return Result.fail(
                    ErrorCode.IMPORT_FAILED,
                    f"Commit {commit_id} has invalid state: {decoded.error.message}"
                )
            commits[commit_id] = record.to_commit()

        self._commits = commits
        self._head_commit_id = payload.commit_history[0] if payload.commit_history else None
        self._replace_document(document.value)
        self._last_commit_hash = self._current_hash
        self._refresh_dirty()
        logger.debug("Imported {} commits", len(commits))
        return Result.success()

    def save(self, store: StateStore, key: str = "document") -> None:
        store.save(key, self._build_payload().model_dump_json().encode('utf-8'))

    def load(self, store: StateStore, key: str = "document") -> Result:
        blob = store.load(key)
        if blob is None:
            return Result.fail(ErrorCode.STORAGE_MISS, f"Nothing stored under {key!r}")
        try:
            payload = ExportPayload.model_validate_json(blob)
        except ValidationError as e:
            return Result.fail(ErrorCode.IMPORT_FAILED, str(e))
        return self._import(payload)

    # =========================================================================
    # LISTENERS / LIFECYCLE
    # =========================================================================

    def add_commit_listener(self, listener: CommitListener) -> None:
        self._commit_listeners.append(listener)

    def remove_commit_listener(self, listener: CommitListener) -> None:
        if listener in self._commit_listeners:
            self._commit_listeners.remove(listener)

    def add_dirty_listener(self, listener: DirtyListener) -> None:
        self._dirty_listeners.append(listener)

    def remove_dirty_listener(self, listener: DirtyListener) -> None:
        if listener in self._dirty_listeners:
            self._dirty_listeners.remove(listener)

    def verify_integrity(self) -> bool:
        """Raise CommitStoreCorruptionError if the history index has drifted."""
        for commit_id, commit in self._commits.items():
            if commit_id != commit.id:
                raise CommitStoreCorruptionError(
                    f"Commit stored under {commit_id} carries id {commit.id}"
                )
        if self._head_commit_id is not None and self._head_commit_id not in self._commits:
            raise CommitStoreCorruptionError(f"Head {self._head_commit_id} is not a known commit")
        if self._current_hash != self._document.get_hash():
            raise CommitStoreCorruptionError("Cached content hash is stale")
        return True

    def destroy(self) -> None:
        self.stop_auto_commit()
        self._document.unsubscribe(self)
        self._commits.clear()
        self._head_commit_id = None
        self._commit_listeners.clear()
        self._dirty_listeners.clear()
