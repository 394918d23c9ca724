"""
Engine Integration Tests
========================

End-to-end flows through DraftHistoryEngine: commits land on the
current branch, branches check out their tips, merges combine content.
"""

import json

import pytest

from drafthistory.config import DocumentConfig, EngineConfig
from drafthistory.contracts.base import ErrorCode
from drafthistory.contracts.timeline import MAIN_BRANCH_ID, ConnectionType, NodeType
from drafthistory.engine import DraftHistoryEngine
from drafthistory.storage import InMemoryStateStore
from drafthistory.timeline.graph import node_id_for_commit
from tests.fakes import FakeClock, ManualScheduler


def append(engine: DraftHistoryEngine, text: str) -> None:
    document = engine.document
    document.insert_text(len(document.get_text()), text)


@pytest.fixture
def engine():
    config = EngineConfig(document=DocumentConfig(title="Novel", initial_text="Base text."))
    return DraftHistoryEngine(config, clock=FakeClock(), scheduler=ManualScheduler())


class TestCommitFlow:

    def test_initial_commit_is_on_main(self, engine):
        assert len(engine.graph.nodes) == 1
        assert engine.current_branch.id == MAIN_BRANCH_ID
        assert engine.document.title == "Novel"

    def test_commits_are_forwarded_to_graph(self, engine):
        append(engine, " More.")
        commit_id = engine.commit("c1")

        node = engine.graph.node_for_commit(commit_id)
        assert node is not None
        assert node.branch_id == MAIN_BRANCH_ID
        assert engine.current_branch.head_node_id == node.id

    def test_auto_commits_are_forwarded(self):
        scheduler = ManualScheduler()
        engine = DraftHistoryEngine(clock=FakeClock(), scheduler=scheduler)
        engine.start_auto_commit(interval_seconds=10, word_threshold=2)
        engine.update_document("two words")
        scheduler.advance(10)
        engine.stop_auto_commit()

        assert len(engine.graph.nodes) == 2
        assert engine.graph.nodes[-1].is_auto_commit


class TestBranchFlow:

    def test_branch_commit_and_switch_back(self, engine):
        base_text = engine.document.get_text()
        result = engine.create_branch("feature")
        assert result.success
        assert engine.switch_branch("feature").success

        append(engine, "\nFeature line.")
        commit_id = engine.commit("feature work")

        node = engine.graph.node_for_commit(commit_id)
        assert node.branch_id == result.data['branch_id']
        assert engine.graph.get_incoming(node.id)[0].type == ConnectionType.BRANCH

        assert engine.switch_branch("main").success
        assert engine.document.get_text() == base_text

        assert engine.switch_branch("feature").success
        assert engine.document.get_text() == base_text + "\nFeature line."

    def test_switch_to_unknown_branch(self, engine):
        result = engine.switch_branch("nope")
        assert result.error.code == ErrorCode.BRANCH_NOT_FOUND
        assert engine.current_branch.id == MAIN_BRANCH_ID

    def test_checkout_node_keeps_branch(self, engine):
        first = engine.graph.nodes[0].id
        append(engine, " Later.")
        engine.commit("c1")

        assert engine.checkout_node(first).success
        assert engine.document.get_text() == "Base text."
        assert engine.current_branch.id == MAIN_BRANCH_ID

    def test_checkout_unknown_node(self, engine):
        assert engine.checkout_node("node_missing").error.code == ErrorCode.NODE_NOT_FOUND

    def test_commit_after_old_checkout_starts_branch(self, engine):
        engine.update_document("Base.")
        c1 = engine.commit("c1")
        engine.update_document("Base. Second.")
        c2 = engine.commit("c2")
        c1_node = engine.graph.node_for_commit(c1)
        c2_node = engine.graph.node_for_commit(c2)

        assert engine.checkout_node(c1_node.id).success
        assert engine.detached_node_id == c1_node.id
        engine.update_document("Base. Third.")
        c3 = engine.commit("c3")

        c3_node = engine.graph.node_for_commit(c3)
        assert engine.document.get_text() == "Base. Third."
        assert c2_node.id not in engine.graph.get_ancestors(c3_node.id)
        assert c1_node.id in engine.graph.get_ancestors(c3_node.id)
        incoming = engine.graph.get_incoming(c3_node.id)
        assert [(c.from_node_id, c.type) for c in incoming] == [(c1_node.id, ConnectionType.BRANCH)]

        assert c3_node.branch_id != MAIN_BRANCH_ID
        assert engine.current_branch.id == c3_node.branch_id
        assert engine.current_branch.name.startswith("detached-")
        assert engine.graph.get_branch(MAIN_BRANCH_ID).head_node_id == c2_node.id
        assert engine.detached_node_id is None

    def test_repeated_detached_commits_get_distinct_branches(self, engine):
        first = engine.graph.nodes[0]
        append(engine, " Later.")
        engine.commit("c1")

        branch_ids = set()
        for text in ("One.", "Two."):
            assert engine.checkout_node(first.id).success
            engine.update_document(text)
            branch_ids.add(engine.graph.node_for_commit(engine.commit(text)).branch_id)

        assert len(branch_ids) == 2
        assert MAIN_BRANCH_ID not in branch_ids

    def test_checkout_of_tip_stays_on_branch(self, engine):
        append(engine, " More.")
        c1 = engine.commit("c1")
        tip = engine.graph.node_for_commit(c1)

        assert engine.checkout_node(tip.id).success
        assert engine.detached_node_id is None
        append(engine, " Again.")
        c2 = engine.commit("c2")

        node = engine.graph.node_for_commit(c2)
        assert node.branch_id == MAIN_BRANCH_ID
        assert engine.graph.get_incoming(node.id)[0].from_node_id == tip.id

    def test_switch_branch_clears_detached_checkout(self, engine):
        first = engine.graph.nodes[0]
        append(engine, " Later.")
        engine.commit("c1")

        engine.checkout_node(first.id)
        assert engine.switch_branch("main").success
        assert engine.detached_node_id is None
        append(engine, " More.")
        node = engine.graph.node_for_commit(engine.commit("c2"))
        assert node.branch_id == MAIN_BRANCH_ID


class TestMergeFlow:

    @pytest.fixture
    def diverged(self, engine):
        engine.create_branch("feature")
        engine.switch_branch("feature")
        append(engine, "\nFeature line.")
        engine.commit("feature work")

        engine.switch_branch("main")
        append(engine, "\nMain line.")
        engine.commit("main work")
        return engine

    def test_merge_combines_both_branches(self, diverged):
        engine = diverged
        nodes_before = len(engine.graph.nodes)

        result = engine.merge_branch("feature", "main", "Merge feature")

        assert result.success
        text = engine.document.get_text()
        assert "Feature line." in text
        assert "Main line." in text
        assert text.startswith("Base text.")

        merge_node = result.data['merge_node']
        assert merge_node.type == NodeType.MERGE
        assert merge_node.commit_id == engine.commits.head_commit_id
        assert engine.commits.get_commit(merge_node.commit_id).message == "Merge feature"
        # the merge commit is represented by the merge node only
        assert len(engine.graph.nodes) == nodes_before + 1
        assert engine.current_branch.id == MAIN_BRANCH_ID
        assert engine.verify_integrity()

    def test_merged_branch_cannot_be_switched_to(self, diverged):
        engine = diverged
        engine.merge_branch("feature", "main", "m")
        assert engine.switch_branch("feature").error.code == ErrorCode.BRANCH_INACTIVE

    def test_invalid_merge_is_reported(self, diverged):
        result = diverged.merge_branch("feature", "ghost", "m")
        assert result.error.code == ErrorCode.BRANCH_NOT_FOUND

    def test_pending_edit_snapshotted_before_merge(self, diverged):
        engine = diverged
        append(engine, " " + " ".join(["extra"] * 12))
        engine.merge_branch("feature", "main", "m")
        messages = [c.message for c in engine.commits.get_commit_history()]
        assert "Auto-save before checkout" in messages


class TestPersistence:

    def test_save_and_load(self):
        backend = InMemoryStateStore()
        engine = DraftHistoryEngine(clock=FakeClock(), state_store=backend)
        engine.update_document("Saved content")
        engine.commit("c1")
        engine.save()

        restored = DraftHistoryEngine(clock=FakeClock(), state_store=backend)
        assert restored.load().is_success
        assert restored.document.get_text() == "Saved content"
        assert len(restored.graph.nodes) == len(restored.commits)
        head = restored.commits.head_commit_id
        assert restored.current_branch.head_node_id == node_id_for_commit(head)

    def test_load_missing(self):
        engine = DraftHistoryEngine(clock=FakeClock(), state_store=InMemoryStateStore())
        assert engine.load("absent").error.code == ErrorCode.STORAGE_MISS

    def test_export_timeline_json(self, engine):
        append(engine, " More.")
        engine.commit("c1")
        exported = json.loads(engine.export_timeline_json())
        assert exported["stats"]["total_nodes"] == 2
        assert len(exported["timeline"]["connections"]) == 1

    def test_destroy(self, engine):
        engine.destroy()
        assert len(engine.commits) == 0
        assert engine.graph.nodes == []
