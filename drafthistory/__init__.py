"""
DraftHistory
============

Git-like version control for a single text document: CRDT-backed
content, snapshot commits, checkout, auto-commit, and a branching
history graph with merge, search, layout and statistics.

LAYERS:
=======
- text:     ReplicatedText (CRDT) and Document
- history:  CommitStore, auto-commit timer, diffs, export payload
- timeline: HistoryGraph, layout, search, statistics
- storage:  StateStore blob backends
- engine:   DraftHistoryEngine wiring history and timeline together
"""

from .config import (
    EngineConfig, DocumentConfig, CommitStoreConfig, TimelineConfig, StorageConfig,
)
from .contracts import (
    ErrorCode, Error, Result, OperationResult,
    DraftHistoryError, TimelineCorruptionError, BranchNotFoundError,
    CommitStoreCorruptionError, Commit, CommitInfo, DocumentStats,
    DocumentMetadata, DiffResult, NodeType, ConnectionType, SearchField,
    TimelineNode, TimelineConnection, TimelineBranch, TimelineSearchOptions,
    TimelineStats, DateRange,
)
from .engine import DraftHistoryEngine
from .history import CommitStore, AutoCommitTimer, diff_chars, diff_texts, format_diff
from .logging_config import configure_logging
from .storage import StateStore, InMemoryStateStore, FileStateStore, create_state_store
from .temporal import LogicalClock
from .text import ReplicatedText, Document
from .timeline import HistoryGraph

__version__ = "0.1.0"

__all__ = [
    'DraftHistoryEngine',
    'EngineConfig', 'DocumentConfig', 'CommitStoreConfig', 'TimelineConfig', 'StorageConfig',
    'ErrorCode', 'Error', 'Result', 'OperationResult',
    'DraftHistoryError', 'TimelineCorruptionError', 'BranchNotFoundError',
    'CommitStoreCorruptionError', 'Commit', 'CommitInfo', 'DocumentStats',
    'DocumentMetadata', 'DiffResult', 'NodeType', 'ConnectionType', 'SearchField',
    'TimelineNode', 'TimelineConnection', 'TimelineBranch', 'TimelineSearchOptions',
    'TimelineStats', 'DateRange',
    'CommitStore', 'AutoCommitTimer', 'diff_chars', 'diff_texts', 'format_diff',
    'configure_logging',
    'StateStore', 'InMemoryStateStore', 'FileStateStore', 'create_state_store',
    'LogicalClock',
    'ReplicatedText', 'Document',
    'HistoryGraph',
]
