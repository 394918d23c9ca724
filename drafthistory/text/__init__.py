"""
Text Layer
==========

CRDT-backed text and the Document wrapper that adds metadata,
statistics and change notification.
"""

from .replicated import ReplicatedText, STATE_MAGIC, STATE_VERSION
from .document import Document, DocumentListener, compute_stats, count_words

__all__ = [
    'ReplicatedText',
    'STATE_MAGIC',
    'STATE_VERSION',
    'Document',
    'DocumentListener',
    'compute_stats',
    'count_words',
]
