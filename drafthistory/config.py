"""
Configuration
=============

Per-layer dataclass configs, unified by EngineConfig.

Environment overrides (EngineConfig.from_env):
- DRAFTHISTORY_STORAGE_DIR           directory for FileStateStore
- DRAFTHISTORY_AUTO_COMMIT_INTERVAL  seconds between auto-commit checks
- DRAFTHISTORY_AUTO_COMMIT_WORDS     word increase that triggers a commit
"""

from __future__ import annotations
from dataclasses import dataclass
import os
from typing import Mapping, Optional


# Checkout safety snapshot: only when the word count moved by more than this
CHECKOUT_GUARD_WORD_DELTA = 10


@dataclass(frozen=True)
class DocumentConfig:
    title: str = "Untitled"
    initial_text: str = ""


@dataclass(frozen=True)
class CommitStoreConfig:
    create_initial_commit: bool = True
    initial_commit_message: str = "Initial version"
    checkout_guard_word_delta: int = CHECKOUT_GUARD_WORD_DELTA
    # Snapshot pending edits before every checkout, whatever their size
    snapshot_before_checkout: bool = False
    pre_checkout_message: str = "Auto-save before checkout"
    auto_commit_interval_seconds: float = 300.0
    auto_commit_word_threshold: int = 100
    default_keep_count: int = 50


@dataclass(frozen=True)
class TimelineConfig:
    node_spacing: float = 80
    branch_spacing: float = 60
    node_radius: float = 8


@dataclass(frozen=True)
class StorageConfig:
    backend_type: str = "memory"  # "memory" or "file"
    storage_dir: Optional[str] = None
    state_key: str = "document"


@dataclass
class EngineConfig:
    """Unified configuration for the engine."""
    document: DocumentConfig = None
    commits: CommitStoreConfig = None
    timeline: TimelineConfig = None
    storage: StorageConfig = None

    def __post_init__(self):
        self.document = self.document or DocumentConfig()
        self.commits = self.commits or CommitStoreConfig()
        self.timeline = self.timeline or TimelineConfig()
        self.storage = self.storage or StorageConfig()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> EngineConfig:
        env = os.environ if environ is None else environ

        storage = StorageConfig()
        storage_dir = env.get("DRAFTHISTORY_STORAGE_DIR")
        if storage_dir:
            storage = StorageConfig(backend_type="file", storage_dir=storage_dir)

        defaults = CommitStoreConfig()
        commits = CommitStoreConfig(
            auto_commit_interval_seconds=float(
                env.get("DRAFTHISTORY_AUTO_COMMIT_INTERVAL", defaults.auto_commit_interval_seconds)
            ),
            auto_commit_word_threshold=int(
                env.get("DRAFTHISTORY_AUTO_COMMIT_WORDS", defaults.auto_commit_word_threshold)
            ),
        )
        return cls(commits=commits, storage=storage)
