"""
Timeline Search
===============

A node matches when the query is a case-insensitive substring of at
least one requested field (message / tags / branch name), AND it falls
inside the optional date range, AND it is on one of the requested
branches (if any), AND it is one of the requested node types (if any).
"""

from __future__ import annotations
from typing import Iterable, List, Mapping

from ..contracts.base import to_epoch_ms
from ..contracts.timeline import SearchField, TimelineNode, TimelineSearchOptions


def _field_match(node: TimelineNode, options: TimelineSearchOptions, branch_name: str) -> bool:
    query = options.query.lower()
    fields = options.search_in
    if SearchField.MESSAGE in fields and query in node.message.lower():
        return True
    if SearchField.TAGS in fields and any(query in tag.lower() for tag in node.tags):
        return True
    if SearchField.BRANCH in fields and query in branch_name.lower():
        return True
    return False


def node_matches(
    node: TimelineNode,
    options: TimelineSearchOptions,
    branch_name: str,
) -> bool:
    if not _field_match(node, options, branch_name):
        return False

    if options.date_range is not None:
        start = to_epoch_ms(options.date_range.start)
        end = to_epoch_ms(options.date_range.end)
        if not start <= node.timestamp <= end:
            return False

    if options.branches and node.branch_id not in options.branches:
        return False

    if options.node_types and node.type not in options.node_types:
        return False

    return True


def search_nodes(
    nodes: Iterable[TimelineNode],
    options: TimelineSearchOptions,
    branch_names: Mapping[str, str],
) -> List[TimelineNode]:
    """Matching nodes, oldest first."""
    hits = [
        node for node in nodes
        if node_matches(node, options, branch_names.get(node.branch_id, node.branch_name))
    ]
    return sorted(hits, key=lambda n: (n.timestamp, n.id))
