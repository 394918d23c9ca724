"""
Timeline Layer
==============

History graph construction, branching, merging, search, layout
and statistics.
"""

from .graph import HistoryGraph, node_id_for_commit
from .layout import compute_layout
from .search import node_matches, search_nodes
from .stats import compute_stats

__all__ = [
    'HistoryGraph',
    'node_id_for_commit',
    'compute_layout',
    'node_matches',
    'search_nodes',
    'compute_stats',
]
