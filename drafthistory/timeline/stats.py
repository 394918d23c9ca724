"""
Timeline Statistics
===================

Aggregates over the history graph:
- average commits per day = nodes / max(1, ceil(time span / 1 day))
- longest branch: most nodes, earliest-registered branch wins ties
- most active day: UTC calendar day with most nodes, earliest day wins ties
- word-count progression: chronological, nodes carrying a word count only
"""

from __future__ import annotations
import math
from typing import Dict, Iterable, List, Sequence

from ..contracts.base import DAY_MS, from_epoch_ms
from ..contracts.timeline import (
    ActiveDay, LongestBranch, TimelineBranch, TimelineNode, TimelineStats,
    WordCountPoint,
)


def time_span(nodes: Sequence[TimelineNode]) -> int:
    if not nodes:
        return 0
    timestamps = [n.timestamp for n in nodes]
    return max(timestamps) - min(timestamps)


def compute_stats(
    nodes: Iterable[TimelineNode],
    connection_count: int,
    branches: Sequence[TimelineBranch],
) -> TimelineStats:
    ordered: List[TimelineNode] = sorted(nodes, key=lambda n: (n.timestamp, n.id))

    days = max(1, math.ceil(time_span(ordered) / DAY_MS))
    average = len(ordered) / days

    per_branch: Dict[str, int] = {}
    for node in ordered:
        per_branch[node.branch_id] = per_branch.get(node.branch_id, 0) + 1
    longest = LongestBranch()
    for branch in branches:
        count = per_branch.get(branch.id, 0)
        if count > longest.node_count:
            longest = LongestBranch(branch_id=branch.id, node_count=count)

    per_day: Dict[str, int] = {}
    for node in ordered:
        day = from_epoch_ms(node.timestamp).date().isoformat()
        per_day[day] = per_day.get(day, 0) + 1
    most_active = ActiveDay()
    for day, count in per_day.items():
        if count > most_active.commit_count:
            most_active = ActiveDay(date=day, commit_count=count)

    progression = tuple(
        WordCountPoint(timestamp=n.timestamp, word_count=n.word_count)
        for n in ordered if n.word_count is not None
    )

    return TimelineStats(
        total_nodes=len(ordered),
        total_connections=connection_count,
        active_branches=sum(1 for b in branches if b.is_active),
        merged_branches=sum(1 for b in branches if not b.is_active),
        average_commits_per_day=average,
        longest_branch=longest,
        most_active_day=most_active,
        word_count_progression=progression,
    )
