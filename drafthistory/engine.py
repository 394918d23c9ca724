"""
Engine Orchestration Module

Coordinates the commit store and the history graph for one document.

DESIGN PRINCIPLES:
==================
1. The commit store owns content; the graph owns structure
2. The two meet only through CommitInfo events and commit ids on nodes
3. Every commit the store creates lands on exactly one branch
4. Persistence goes through a StateStore, never the file system directly

LAYER FLOW:
===========
1. Edit: Document mutation -> CommitStore dirty tracking
2. Commit: CommitStore.create_commit -> CommitInfo -> HistoryGraph node
3. Branch: HistoryGraph branch -> CommitStore checkout of the tip commit
4. Merge: CRDT merge of both tips -> merge commit -> HistoryGraph merge node
"""

from __future__ import annotations
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from loguru import logger

from .config import EngineConfig
from .contracts.base import ErrorCode, OperationResult, Result
from .contracts.commits import CommitInfo
from .contracts.timeline import MAIN_BRANCH_ID, TimelineBranch
from .domain.serialization import dumps, timeline_export_payload
from .history.auto_commit import Scheduler
from .history.commit_store import CommitStore
from .storage import StateStore, create_state_store
from .temporal.clock import Clock, LogicalClock
from .text.document import Document
from .timeline.graph import HistoryGraph


class DraftHistoryEngine:
    """
    Unified version-control engine for one text document.

    Live commits (manual, auto-commit and checkout safety snapshots)
    are appended to the current branch. Switching branch checks out the
    branch tip. Checking out any other node detaches the document from
    the current branch: the next commit starts a new branch at that node,
    so graph ancestry always matches content ancestry.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        clock: Optional[Clock] = None,
        scheduler: Optional[Scheduler] = None,
        state_store: Optional[StateStore] = None,
    ):
        self._config = config or EngineConfig()
        self._clock = clock or LogicalClock.live()
        self._state_store = state_store or create_state_store(self._config.storage)

        self._forwarding = True
        self._current_branch_id = MAIN_BRANCH_ID
        self._detached_node_id: Optional[str] = None

        self._commits = CommitStore(
            initial_text=self._config.document.initial_text,
            title=self._config.document.title,
            config=self._config.commits,
            clock=self._clock,
            scheduler=scheduler,
        )
        self._graph = HistoryGraph(self._config.timeline, clock=self._clock)
        self._graph.build_from_commits(self._commits.get_commit_history())
        self._commits.add_commit_listener(self._on_commit)

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def commits(self) -> CommitStore:
        return self._commits

    @property
    def graph(self) -> HistoryGraph:
        return self._graph

    @property
    def document(self) -> Document:
        return self._commits.current_document

    @property
    def current_branch(self) -> TimelineBranch:
        return self._graph.get_branch(self._current_branch_id)

    @property
    def detached_node_id(self) -> Optional[str]:
        """Node checked out away from the current branch tip, if any."""
        return self._detached_node_id

    # =========================================================================
    # EDIT / COMMIT
    # =========================================================================

    def _on_commit(self, info: CommitInfo) -> None:
        if not self._forwarding:
            return
        if self._detached_node_id is not None:
            self._branch_from_detached()
        self._graph.add_commit_node(info, self._current_branch_id)

    def _branch_from_detached(self) -> None:
        node = self._graph.get_node(self._detached_node_id)
        self._detached_node_id = None
        if node is None:
            return
        base = f"detached-{node.commit_id[:8]}"
        name, suffix = base, 1
        while self._graph.get_branch_by_name(name) is not None:
            suffix += 1
            name = f"{base}-{suffix}"
        result = self._graph.create_branch(
            name, node.id, description=f"Commits made after checking out {node.commit_id}"
        )
        self._current_branch_id = result.data['branch_id']
        logger.info("Commit on detached checkout of {} started branch {}", node.id, name)

    @contextmanager
    def _unforwarded(self) -> Iterator[None]:
        """Create commits without appending them to the current branch."""
        self._forwarding = False
        try:
            yield
        finally:
            self._forwarding = True

    def update_document(self, text: str) -> None:
        self._commits.update_document(text)

    def commit(self, message: str) -> str:
        return self._commits.create_commit(message)

    def start_auto_commit(
        self,
        interval_seconds: Optional[float] = None,
        word_threshold: Optional[int] = None,
    ) -> None:
        self._commits.start_auto_commit(interval_seconds, word_threshold)

    def stop_auto_commit(self) -> None:
        self._commits.stop_auto_commit()

    # =========================================================================
    # NAVIGATION
    # =========================================================================

    def checkout_node(self, node_id: str) -> OperationResult:
        """
        Check out the commit behind a node.

        The current branch is unchanged. Unless the node is that branch's
        tip the engine is detached until the next commit, switch or merge.
        """
        node = self._graph.get_node(node_id)
        if node is None:
            return OperationResult.failed(ErrorCode.NODE_NOT_FOUND, f"Node {node_id} not found")
        if not node.commit_id:
            return OperationResult.failed(
                ErrorCode.COMMIT_NOT_FOUND, f"Node {node_id} has no commit"
            )
        if not self._commits.checkout(node.commit_id):
            return OperationResult.failed(
                ErrorCode.COMMIT_NOT_FOUND, f"Commit {node.commit_id} is not available"
            )
        head = self.current_branch.head_node_id
        self._detached_node_id = None if node.id == head else node.id
        return OperationResult.ok(f"Checked out {node_id}", commit_id=node.commit_id)

    def create_branch(
        self,
        name: str,
        from_node_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> OperationResult:
        """Branch from a node, by default the current branch's tip."""
        if from_node_id is None:
            from_node_id = self.current_branch.head_node_id or ""
        return self._graph.create_branch(name, from_node_id, description)

    def switch_branch(self, ref: str) -> OperationResult:
        """Make a branch current and check out its tip commit."""
        branch = self._graph.get_branch(ref)
        if branch is None:
            return OperationResult.failed(ErrorCode.BRANCH_NOT_FOUND, f"Branch {ref} not found")
        if not branch.is_active:
            return OperationResult.failed(
                ErrorCode.BRANCH_INACTIVE, f"Branch {branch.name} is already merged"
            )

        tip = self._graph.get_node(branch.head_node_id) if branch.head_node_id else None
        if tip is not None and tip.commit_id:
            if not self._commits.checkout(tip.commit_id):
                return OperationResult.failed(
                    ErrorCode.COMMIT_NOT_FOUND, f"Commit {tip.commit_id} is not available"
                )

        self._current_branch_id = branch.id
        self._detached_node_id = None
        logger.debug("Switched to branch {}", branch.name)
        return OperationResult.ok(f"Switched to {branch.name}", branch_id=branch.id)

    # =========================================================================
    # MERGING
    # =========================================================================

    def merge_branch(self, source: str, target: str, message: str) -> OperationResult:
        """
        Merge source into target, content and structure.

        Pending edits go through the checkout guard first. When both tips
        carry commits, the target tip is checked out, the source tip's
        CRDT state is merged into it, and the result is committed and
        linked from the merge node. The target becomes the current branch.
        """
        self._commits.guard_pending_changes()

        plan = self._graph.plan_merge(source, target)
        if not plan.success:
            return plan
        source_tip = plan.data['source_tip']
        target_tip = plan.data['target_tip']
        target_branch = plan.data['target']

        commit_id = ""
        if source_tip.commit_id and target_tip.commit_id:
            merged = self._merge_content(source_tip.commit_id, target_tip.commit_id)
            if merged.is_failure:
                return OperationResult.failed(merged.error.code, merged.error.message)
            with self._unforwarded():
                commit_id = self._commits.create_commit(message)

        result = self._graph.merge_branch(source, target, message, commit_id=commit_id)
        if result.success:
            self._current_branch_id = target_branch.id
            self._detached_node_id = None
        return result

    def _merge_content(self, source_commit_id: str, target_commit_id: str) -> Result:
        source_doc = self._commits.get_document_at_commit(source_commit_id)
        if source_doc is None:
            return Result.fail(
                ErrorCode.COMMIT_NOT_FOUND, f"Commit {source_commit_id} is not available"
            )
        if not self._commits.checkout(target_commit_id):
            return Result.fail(
                ErrorCode.COMMIT_NOT_FOUND, f"Commit {target_commit_id} is not available"
            )
        return self._commits.current_document.merge(source_doc)

    # =========================================================================
    # PERSISTENCE / EXPORT
    # =========================================================================

    def save(self, key: Optional[str] = None) -> None:
        self._commits.save(self._state_store, key or self._config.storage.state_key)

    def load(self, key: Optional[str] = None) -> Result:
        """
        Restore commits and the live document, then rebuild the graph.

        Only commits are persisted, so the graph comes back as one linear
        main branch.
        """
        result = self._commits.load(self._state_store, key or self._config.storage.state_key)
        if result.is_failure:
            logger.warning("Load failed: {}", result.error.message)
            return result
        self._graph.build_from_commits(self._commits.get_commit_history())
        self._current_branch_id = MAIN_BRANCH_ID
        self._detached_node_id = None
        return result

    def export_timeline(self) -> Dict[str, Any]:
        """Timeline, stats and export time as plain JSON-ready data."""
        return timeline_export_payload(**self._graph.export_timeline())

    def export_timeline_json(self) -> str:
        return dumps(self.export_timeline())

    def verify_integrity(self) -> bool:
        self._commits.verify_integrity()
        self._graph.verify_integrity()
        return True

    def destroy(self) -> None:
        self._commits.remove_commit_listener(self._on_commit)
        self._commits.destroy()
        self._graph.clear()
