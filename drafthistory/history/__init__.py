"""
History Layer
=============

Commit store, auto-commit policy, diffs and the persistence payload.
"""

from .auto_commit import AutoCommitTimer, Scheduler, TimerHandle
from .commit_store import CommitStore
from .diff import diff_chars, diff_stats, diff_texts, format_diff
from .payload import ExportPayload, CommitRecord, MetadataRecord, PAYLOAD_FORMAT_VERSION

__all__ = [
    'AutoCommitTimer',
    'Scheduler',
    'TimerHandle',
    'CommitStore',
    'diff_texts',
    'diff_chars',
    'diff_stats',
    'format_diff',
    'ExportPayload',
    'CommitRecord',
    'MetadataRecord',
    'PAYLOAD_FORMAT_VERSION',
]
