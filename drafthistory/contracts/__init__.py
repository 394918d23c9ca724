"""
Contracts Module

Immutable data transfer objects shared by the text, history and
timeline layers. No layer imports another layer's implementation
to exchange data; they exchange these types.

DESIGN PRINCIPLES:
==================
1. All contract types are frozen dataclasses
2. Recoverable failures are values (Result / OperationResult)
3. Timestamps are integer epoch milliseconds (UTC)
"""

from .base import (
    ErrorCode, Error, Result, OperationResult,
    DraftHistoryError, TimelineCorruptionError, BranchNotFoundError,
    CommitStoreCorruptionError, DAY_MS, to_epoch_ms, from_epoch_ms,
)
from .commits import (
    Commit, CommitInfo, DocumentStats, DocumentMetadata, HeadInfo,
    DiffChange, DiffChangeType, DiffResult,
)
from .timeline import (
    NodeType, ConnectionType, SearchField,
    TimelineNode, TimelineConnection, TimelineBranch, TimelineLayout,
    TimelineViewState, TimelineMetadata, TimelineData, DateRange,
    TimelineSearchOptions, TimelineStats, LongestBranch, ActiveDay,
    WordCountPoint, MAIN_BRANCH_ID, MAIN_BRANCH_COLOR, BRANCH_PALETTE,
)

__all__ = [
    'ErrorCode', 'Error', 'Result', 'OperationResult',
    'DraftHistoryError', 'TimelineCorruptionError', 'BranchNotFoundError',
    'CommitStoreCorruptionError', 'DAY_MS', 'to_epoch_ms', 'from_epoch_ms',
    'Commit', 'CommitInfo', 'DocumentStats', 'DocumentMetadata', 'HeadInfo',
    'DiffChange', 'DiffChangeType', 'DiffResult',
    'NodeType', 'ConnectionType', 'SearchField',
    'TimelineNode', 'TimelineConnection', 'TimelineBranch', 'TimelineLayout',
    'TimelineViewState', 'TimelineMetadata', 'TimelineData', 'DateRange',
    'TimelineSearchOptions', 'TimelineStats', 'LongestBranch', 'ActiveDay',
    'WordCountPoint', 'MAIN_BRANCH_ID', 'MAIN_BRANCH_COLOR', 'BRANCH_PALETTE',
]
