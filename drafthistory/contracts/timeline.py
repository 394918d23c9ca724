"""
Timeline Contracts

Immutable node / connection / branch records for the history graph.
The graph replaces records (dataclasses.replace) instead of mutating them,
so any TimelineData handed to a caller stays stable.

INVARIANTS:
- Every connection's endpoints reference existing nodes
- A branch's end_node_id is set exactly when is_active becomes False
- A merge node has exactly two incoming connections
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from .base import to_epoch_ms


class NodeType(Enum):
    COMMIT = "commit"
    MERGE = "merge"
    MILESTONE = "milestone"


class ConnectionType(Enum):
    LINEAR = "linear"
    BRANCH = "branch"
    MERGE = "merge"


class SearchField(Enum):
    MESSAGE = "message"
    TAGS = "tags"
    BRANCH = "branch"


MAIN_BRANCH_ID = "main"
MAIN_BRANCH_COLOR = "#3b82f6"

# Deterministic palette, indexed by branch count at creation time
BRANCH_PALETTE: Tuple[str, ...] = (
    '#3b82f6', '#ef4444', '#10b981', '#f59e0b', '#8b5cf6', '#ec4899',
)


@dataclass(frozen=True)
class TimelineNode:
    """A point on the timeline: a commit, a merge or a milestone."""
    id: str
    type: NodeType
    commit_id: str
    timestamp: int
    message: str
    branch_id: str
    x: float = 0.0
    y: float = 0.0
    tags: Tuple[str, ...] = ()
    is_milestone: bool = False

    # Display / statistics attributes
    branch_name: str = ""
    branch_color: str = ""
    is_auto_commit: bool = False
    word_count: Optional[int] = None
    character_count: Optional[int] = None
    milestone_title: Optional[str] = None


@dataclass(frozen=True)
class TimelineConnection:
    """Directed edge between two timeline nodes."""
    id: str
    from_node_id: str
    to_node_id: str
    type: ConnectionType
    branch_id: str
    color: str = ""


@dataclass(frozen=True)
class TimelineBranch:
    """
    A named line of commits.

    head_node_id is the tip pointer new nodes attach to. It starts at
    start_node_id and only moves through HistoryGraph._advance_tip.
    """
    id: str
    name: str
    color: str
    start_node_id: str
    is_active: bool = True
    end_node_id: Optional[str] = None
    description: Optional[str] = None
    head_node_id: Optional[str] = None


@dataclass(frozen=True)
class TimelineLayout:
    """Layout constants, in abstract units."""
    node_radius: float = 8
    node_spacing: float = 80
    branch_spacing: float = 60
    time_scale: str = "linear"
    direction: str = "horizontal"
    show_grid: bool = True
    show_timestamps: bool = True


@dataclass(frozen=True)
class TimelineViewState:
    """Viewport state owned by the presentation layer, stored as data."""
    zoom: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0
    selected_node_ids: Tuple[str, ...] = ()
    show_branch_labels: bool = True
    show_commit_messages: bool = True
    filter_branches: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TimelineMetadata:
    total_commits: int
    total_branches: int
    time_span: int
    last_updated: int


@dataclass(frozen=True)
class TimelineData:
    """Full read-only projection of the graph."""
    nodes: Tuple[TimelineNode, ...]
    connections: Tuple[TimelineConnection, ...]
    branches: Tuple[TimelineBranch, ...]
    layout: TimelineLayout
    metadata: TimelineMetadata


def _as_tuple(value) -> tuple:
    if isinstance(value, (str, Enum)):
        return (value,)
    return tuple(value)


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime

    def __post_init__(self):
        # naive bounds are UTC, so mixed naive and aware bounds compare
        if to_epoch_ms(self.start) > to_epoch_ms(self.end):
            raise ValueError("DateRange start must be before or equal to end")


@dataclass(frozen=True)
class TimelineSearchOptions:
    """
    Search request.

    Field match is disjunctive across search_in; every other filter is
    conjunctive. Empty branches / node_types mean "no filter".
    """
    query: str
    search_in: Tuple[SearchField, ...] = (SearchField.MESSAGE,)
    date_range: Optional[DateRange] = None
    branches: Tuple[str, ...] = ()
    node_types: Tuple[NodeType, ...] = ()

    def __post_init__(self):
        # Accept plain strings ("message", "merge") and single values from callers
        object.__setattr__(self, 'search_in', tuple(SearchField(f) for f in _as_tuple(self.search_in)))
        object.__setattr__(self, 'branches', _as_tuple(self.branches))
        object.__setattr__(self, 'node_types', tuple(NodeType(t) for t in _as_tuple(self.node_types)))


@dataclass(frozen=True)
class LongestBranch:
    branch_id: str = ""
    node_count: int = 0


@dataclass(frozen=True)
class ActiveDay:
    date: str = ""
    commit_count: int = 0


@dataclass(frozen=True)
class WordCountPoint:
    timestamp: int
    word_count: int


@dataclass(frozen=True)
class TimelineStats:
    total_nodes: int
    total_connections: int
    active_branches: int
    merged_branches: int
    average_commits_per_day: float
    longest_branch: LongestBranch = field(default_factory=LongestBranch)
    most_active_day: ActiveDay = field(default_factory=ActiveDay)
    word_count_progression: Tuple[WordCountPoint, ...] = ()
