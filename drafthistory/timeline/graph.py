"""
History Graph
=============

Directed graph of commit, merge and milestone nodes over a commit set,
with named branches and merge semantics.

INVARIANTS:
===========
1. Every connection's endpoints are existing nodes (violations raise
   TimelineCorruptionError; they are internal bugs, not user input)
2. A branch's end_node_id is set exactly when it becomes inactive
3. A merge node has exactly two incoming connections
4. Branch tips move only through _advance_tip

Connections are mirrored in a networkx DiGraph, which answers the
ancestry queries.

Recoverable failures (unknown branch, duplicate name, unknown node)
come back as OperationResult, never as exceptions.
"""

from __future__ import annotations
from dataclasses import replace
import secrets
from typing import Any, Dict, List, Optional, Set

import networkx as nx
from loguru import logger

from ..config import TimelineConfig
from ..contracts.base import (
    ErrorCode, OperationResult, TimelineCorruptionError, BranchNotFoundError,
)
from ..contracts.commits import CommitInfo
from ..contracts.timeline import (
    BRANCH_PALETTE, MAIN_BRANCH_COLOR, MAIN_BRANCH_ID,
    ConnectionType, NodeType, TimelineBranch, TimelineConnection, TimelineData,
    TimelineLayout, TimelineMetadata, TimelineNode, TimelineSearchOptions,
    TimelineStats, TimelineViewState,
)
from ..temporal.clock import Clock, LogicalClock
from .layout import compute_layout
from .search import search_nodes
from .stats import compute_stats, time_span


def node_id_for_commit(commit_id: str) -> str:
    return f"node_{commit_id}"


class HistoryGraph:
    """
    Timeline manager.

    Built from a commit history (build_from_commits) and/or fed live
    commit events (add_commit_node). Branch and merge operations act on
    node ids; the commit ids on those nodes resolve back to snapshots in
    the CommitStore.
    """

    def __init__(
        self,
        config: Optional[TimelineConfig] = None,
        clock: Optional[Clock] = None,
    ):
        config = config or TimelineConfig()
        self._clock = clock or LogicalClock.live()
        self._layout = TimelineLayout(
            node_radius=config.node_radius,
            node_spacing=config.node_spacing,
            branch_spacing=config.branch_spacing,
        )
        self._view_state = TimelineViewState()

        self._nodes: Dict[str, TimelineNode] = {}
        self._connections: Dict[str, TimelineConnection] = {}
        # Registration order is layout lane order
        self._branches: Dict[str, TimelineBranch] = {}
        self._graph = nx.DiGraph()

        self._init_main_branch()

    # =========================================================================
    # CONSTRUCTION
    # =========================================================================

    def _init_main_branch(self) -> None:
        self._branches[MAIN_BRANCH_ID] = TimelineBranch(
            id=MAIN_BRANCH_ID,
            name=MAIN_BRANCH_ID,
            color=MAIN_BRANCH_COLOR,
            start_node_id="",
            is_active=True,
            description="Main development branch",
        )

    def clear(self) -> None:
        self._nodes.clear()
        self._connections.clear()
        self._branches.clear()
        self._graph.clear()
        self._init_main_branch()

    def build_from_commits(self, commits: List[CommitInfo]) -> None:
        """Rebuild as a single linear "main" branch, oldest commit first."""
        self.clear()
        main = self._branches[MAIN_BRANCH_ID]
        for commit in sorted(commits, key=lambda c: c.timestamp):
            node = self._make_commit_node(commit, main)
            self._add_node(node)
            tip = self._branches[MAIN_BRANCH_ID].head_node_id
            if tip is None:
                self._branches[MAIN_BRANCH_ID] = replace(
                    self._branches[MAIN_BRANCH_ID], start_node_id=node.id
                )
            else:
                self._connect(tip, node.id, ConnectionType.LINEAR, main)
            self._advance_tip(MAIN_BRANCH_ID, node.id)
        self.update_layout()
        logger.debug("Built timeline from {} commits", len(commits))

    def _make_commit_node(self, commit: CommitInfo, branch: TimelineBranch) -> TimelineNode:
        return TimelineNode(
            id=node_id_for_commit(commit.id),
            type=NodeType.COMMIT,
            commit_id=commit.id,
            timestamp=commit.timestamp,
            message=commit.message,
            branch_id=branch.id,
            branch_name=branch.name,
            branch_color=branch.color,
            is_auto_commit=commit.is_auto_commit,
            word_count=commit.word_count,
            character_count=commit.character_count,
        )

    def _add_node(self, node: TimelineNode) -> None:
        if node.id in self._nodes:
            raise TimelineCorruptionError(f"Node {node.id} already exists")
        self._nodes[node.id] = node
        self._graph.add_node(node.id)

    def _connect(
        self,
        from_node_id: str,
        to_node_id: str,
        connection_type: ConnectionType,
        branch: TimelineBranch,
        prefix: str = "conn",
    ) -> TimelineConnection:
        if from_node_id not in self._nodes or to_node_id not in self._nodes:
            raise TimelineCorruptionError(
                f"Connection {from_node_id} -> {to_node_id} references a missing node"
            )
        connection = TimelineConnection(
            id=f"{prefix}_{from_node_id}_{to_node_id}",
            from_node_id=from_node_id,
            to_node_id=to_node_id,
            type=connection_type,
            branch_id=branch.id,
            color=branch.color,
        )
        self._connections[connection.id] = connection
        self._graph.add_edge(from_node_id, to_node_id, connection_id=connection.id)
        return connection

    def _advance_tip(self, branch_id: str, node_id: str) -> None:
        """Single place a branch tip moves (append and merge both use it)."""
        self._branches[branch_id] = replace(self._branches[branch_id], head_node_id=node_id)

    def _tip_node(self, branch: TimelineBranch) -> Optional[TimelineNode]:
        if branch.head_node_id is None:
            return None
        node = self._nodes.get(branch.head_node_id)
        if node is None:
            raise TimelineCorruptionError(
                f"Branch {branch.name} tip {branch.head_node_id} is not a node"
            )
        return node

    def _new_id(self, prefix: str) -> str:
        return f"{prefix}_{self._clock.now_ms()}_{secrets.token_hex(5)[:9]}"

    # =========================================================================
    # LIVE UPDATES
    # =========================================================================

    def add_commit_node(self, commit: CommitInfo, branch_id: str = MAIN_BRANCH_ID) -> str:
        """
        Append a commit to a branch, linked from the branch tip.

        The link is `branch`-typed when the tip lives on another branch
        (first commit after create_branch), `linear` otherwise.
        """
        branch = self._branches.get(branch_id)
        if branch is None:
            raise BranchNotFoundError(f"Branch {branch_id} not found")

        node = self._make_commit_node(commit, branch)
        self._add_node(node)

        tip = self._tip_node(branch)
        if tip is None:
            self._branches[branch_id] = replace(branch, start_node_id=node.id)
        else:
            connection_type = (
                ConnectionType.LINEAR if tip.branch_id == branch_id else ConnectionType.BRANCH
            )
            self._connect(tip.id, node.id, connection_type, branch)
        self._advance_tip(branch_id, node.id)

        self.update_layout()
        return node.id

    # =========================================================================
    # BRANCHING
    # =========================================================================

    def create_branch(
        self,
        name: str,
        from_node_id: str,
        description: Optional[str] = None,
    ) -> OperationResult:
        if self.get_branch_by_name(name) is not None:
            logger.warning("Branch {} already exists", name)
            return OperationResult.failed(ErrorCode.BRANCH_EXISTS, f"Branch {name} already exists")
        if from_node_id not in self._nodes:
            return OperationResult.failed(ErrorCode.NODE_NOT_FOUND, f"Node {from_node_id} not found")

        branch = TimelineBranch(
            id=self._new_id("branch"),
            name=name,
            color=BRANCH_PALETTE[len(self._branches) % len(BRANCH_PALETTE)],
            start_node_id=from_node_id,
            is_active=True,
            description=description,
            head_node_id=from_node_id,
        )
        self._branches[branch.id] = branch
        self.update_layout()
        logger.debug("Created branch {} ({}) from {}", name, branch.id, from_node_id)
        return OperationResult.ok(
            f"Branch {name} created successfully",
            branch_id=branch.id,
            branch=branch,
        )

    def plan_merge(self, source_branch: str, target_branch: str) -> OperationResult:
        """
        Validate a merge without changing anything.

        On success data holds source, target, source_tip and target_tip.
        """
        source = self.get_branch(source_branch)
        target = self.get_branch(target_branch)
        if source is None or target is None:
            return OperationResult.failed(
                ErrorCode.BRANCH_NOT_FOUND, "Source or target branch not found"
            )
        if source.id == target.id:
            return OperationResult.failed(
                ErrorCode.INVALID_MERGE, f"Cannot merge {source.name} into itself"
            )
        if not source.is_active:
            return OperationResult.failed(
                ErrorCode.BRANCH_INACTIVE, f"Branch {source.name} is already merged"
            )

        source_tip = self._tip_node(source)
        target_tip = self._tip_node(target)
        if source_tip is None or target_tip is None:
            return OperationResult.failed(
                ErrorCode.BRANCH_TIP_UNRESOLVED, "Cannot find last nodes in branches"
            )
        if source_tip.id == target_tip.id:
            return OperationResult.failed(
                ErrorCode.INVALID_MERGE, f"Branch {source.name} has no commits to merge"
            )
        return OperationResult.ok(
            f"{source.name} can be merged into {target.name}",
            source=source,
            target=target,
            source_tip=source_tip,
            target_tip=target_tip,
        )

    def merge_branch(
        self,
        source_branch: str,
        target_branch: str,
        message: str,
        commit_id: str = "",
    ) -> OperationResult:
        """
        Merge source into target.

        Branches may be given by id or name. Creates one merge node on the
        target, fed by the target tip and the source tip; the source
        becomes inactive and ends at the merge node; the target's tip
        becomes the merge node. `commit_id` links the node to a commit
        holding the merged content, when there is one.
        """
        plan = self.plan_merge(source_branch, target_branch)
        if not plan.success:
            logger.warning("Merge rejected: {}", plan.message)
            return plan
        source = plan.data['source']
        target = plan.data['target']
        source_tip = plan.data['source_tip']
        target_tip = plan.data['target_tip']

        merge_node = TimelineNode(
            id=self._new_id("merge"),
            type=NodeType.MERGE,
            commit_id=commit_id,
            timestamp=max(self._clock.now_ms(), source_tip.timestamp, target_tip.timestamp),
            message=message,
            branch_id=target.id,
            branch_name=target.name,
            branch_color=target.color,
            tags=("merge",),
            is_milestone=True,
            milestone_title=f"Merge {source.name} into {target.name}",
        )
        self._add_node(merge_node)
        self._connect(target_tip.id, merge_node.id, ConnectionType.MERGE, target, prefix="merge_conn")
        self._connect(source_tip.id, merge_node.id, ConnectionType.MERGE, source, prefix="merge_conn")

        self._branches[source.id] = replace(source, is_active=False, end_node_id=merge_node.id)
        self._advance_tip(target.id, merge_node.id)

        self.update_layout()
        logger.debug("Merged {} into {} at {}", source.name, target.name, merge_node.id)
        return OperationResult.ok(
            f"Successfully merged {source.name} into {target.name}",
            merge_node_id=merge_node.id,
            merge_node=self._nodes[merge_node.id],
        )

    # =========================================================================
    # ANNOTATION
    # =========================================================================

    def add_tag(self, node_id: str, tag: str) -> OperationResult:
        node = self._nodes.get(node_id)
        if node is None:
            return OperationResult.failed(ErrorCode.NODE_NOT_FOUND, f"Node {node_id} not found")
        if tag not in node.tags:
            self._nodes[node_id] = replace(node, tags=node.tags + (tag,))
        return OperationResult.ok(f"Tagged {node_id} with {tag}", node=self._nodes[node_id])

    def mark_milestone(self, node_id: str, title: str) -> OperationResult:
        """Flag a node as a milestone. Commit nodes become milestone-typed."""
        node = self._nodes.get(node_id)
        if node is None:
            return OperationResult.failed(ErrorCode.NODE_NOT_FOUND, f"Node {node_id} not found")
        node_type = NodeType.MILESTONE if node.type == NodeType.COMMIT else node.type
        self._nodes[node_id] = replace(
            node, type=node_type, is_milestone=True, milestone_title=title
        )
        return OperationResult.ok(f"Marked {node_id} as milestone", node=self._nodes[node_id])

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_node(self, node_id: str) -> Optional[TimelineNode]:
        return self._nodes.get(node_id)

    def node_for_commit(self, commit_id: str) -> Optional[TimelineNode]:
        return self._nodes.get(node_id_for_commit(commit_id))

    @property
    def nodes(self) -> List[TimelineNode]:
        return list(self._nodes.values())

    @property
    def connections(self) -> List[TimelineConnection]:
        return list(self._connections.values())

    @property
    def branches(self) -> List[TimelineBranch]:
        return list(self._branches.values())

    def get_branch(self, ref: str) -> Optional[TimelineBranch]:
        """Look a branch up by id, falling back to name."""
        branch = self._branches.get(ref)
        if branch is not None:
            return branch
        return self.get_branch_by_name(ref)

    def get_branch_by_name(self, name: str) -> Optional[TimelineBranch]:
        for branch in self._branches.values():
            if branch.name == name:
                return branch
        return None

    def get_incoming(self, node_id: str) -> List[TimelineConnection]:
        if node_id not in self._graph:
            return []
        return [
            self._connections[data['connection_id']]
            for _, _, data in self._graph.in_edges(node_id, data=True)
        ]

    def get_outgoing(self, node_id: str) -> List[TimelineConnection]:
        if node_id not in self._graph:
            return []
        return [
            self._connections[data['connection_id']]
            for _, _, data in self._graph.out_edges(node_id, data=True)
        ]

    def get_ancestors(self, node_id: str) -> Set[str]:
        if node_id not in self._graph:
            return set()
        return nx.ancestors(self._graph, node_id)

    def find_common_ancestor(self, node_a: str, node_b: str) -> Optional[str]:
        """Latest node reachable backwards from both (a node counts as its own ancestor)."""
        if node_a not in self._graph or node_b not in self._graph:
            return None
        common = (self.get_ancestors(node_a) | {node_a}) & (self.get_ancestors(node_b) | {node_b})
        if not common:
            return None
        return max(common, key=lambda nid: (self._nodes[nid].timestamp, nid))

    def search(self, options: TimelineSearchOptions) -> List[TimelineNode]:
        names = {b.id: b.name for b in self._branches.values()}
        return search_nodes(self._nodes.values(), options, names)

    def get_stats(self) -> TimelineStats:
        return compute_stats(
            self._nodes.values(),
            len(self._connections),
            list(self._branches.values()),
        )

    @property
    def layout(self) -> TimelineLayout:
        return self._layout

    @property
    def view_state(self) -> TimelineViewState:
        return self._view_state

    def set_view_state(self, view_state: TimelineViewState) -> None:
        self._view_state = view_state

    def get_timeline_data(self) -> TimelineData:
        return TimelineData(
            nodes=tuple(self._nodes.values()),
            connections=tuple(self._connections.values()),
            branches=tuple(self._branches.values()),
            layout=self._layout,
            metadata=TimelineMetadata(
                total_commits=len(self._nodes),
                total_branches=len(self._branches),
                time_span=time_span(list(self._nodes.values())),
                last_updated=self._clock.now_ms(),
            ),
        )

    def export_timeline(self) -> Dict[str, Any]:
        """{timeline, stats, export_time}; see domain.serialization for JSON."""
        return {
            'timeline': self.get_timeline_data(),
            'stats': self.get_stats(),
            'export_time': self._clock.now_ms(),
        }

    # =========================================================================
    # LAYOUT / INTEGRITY
    # =========================================================================

    def update_layout(self) -> None:
        coordinates = compute_layout(self._nodes.values(), list(self._branches), self._layout)
        for node_id, (x, y) in coordinates.items():
            node = self._nodes[node_id]
            if node.x != x or node.y != y:
                self._nodes[node_id] = replace(node, x=x, y=y)

    def verify_integrity(self) -> bool:
        """Raise TimelineCorruptionError if any graph invariant is broken."""
        for connection in self._connections.values():
            if connection.from_node_id not in self._nodes or connection.to_node_id not in self._nodes:
                raise TimelineCorruptionError(f"Dangling connection {connection.id}")
        for node in self._nodes.values():
            if node.type == NodeType.MERGE and self._graph.in_degree(node.id) != 2:
                raise TimelineCorruptionError(
                    f"Merge node {node.id} has {self._graph.in_degree(node.id)} parents"
                )
        for branch in self._branches.values():
            if branch.is_active == (branch.end_node_id is not None):
                raise TimelineCorruptionError(
                    f"Branch {branch.name} end marker disagrees with its active flag"
                )
            if branch.head_node_id is not None and branch.head_node_id not in self._nodes:
                raise TimelineCorruptionError(f"Branch {branch.name} tip is not a node")
        return True
