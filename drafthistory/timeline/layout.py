"""
Timeline Layout
===============

Deterministic coordinates for the history graph. Produces data only;
nothing here renders.

RULES:
- Within a branch, nodes are ordered by timestamp ascending (node id
  breaks ties) and spaced node_spacing apart on x
- Each branch gets its own lane, branch_spacing apart on y, in
  branch-registration order
"""

from __future__ import annotations
from typing import Dict, Iterable, List, Sequence, Tuple

from ..contracts.timeline import TimelineLayout, TimelineNode


Coordinates = Dict[str, Tuple[float, float]]


def compute_layout(
    nodes: Iterable[TimelineNode],
    branch_order: Sequence[str],
    layout: TimelineLayout,
) -> Coordinates:
    """Map node id -> (x, y)."""
    by_branch: Dict[str, List[TimelineNode]] = {}
    for node in nodes:
        by_branch.setdefault(node.branch_id, []).append(node)

    lanes = list(branch_order)
    # nodes on branches that were never registered still get a lane
    lanes.extend(b for b in by_branch if b not in branch_order)

    coordinates: Coordinates = {}
    for lane, branch_id in enumerate(lanes):
        members = sorted(by_branch.get(branch_id, ()), key=lambda n: (n.timestamp, n.id))
        for position, node in enumerate(members):
            coordinates[node.id] = (
                position * layout.node_spacing,
                lane * layout.branch_spacing,
            )
    return coordinates
