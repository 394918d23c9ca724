"""
Document Tests
==============

Metadata, statistics and synchronous change notification.
"""

import pytest

from drafthistory.text.document import Document, compute_stats, count_words, PREVIEW_LENGTH
from tests.fakes import FakeClock, BASE_MS


class RecordingListener:
    def __init__(self, name, log):
        self.name = name
        self.log = log

    def on_document_changed(self, document, content):
        self.log.append((self.name, content))


class TestMutation:

    def test_every_mutation_bumps_version(self):
        doc = Document("abc", clock=FakeClock())
        assert doc.version == 1
        doc.insert_text(3, "d")
        doc.delete_text(0, 1)
        doc.replace_text(0, 1, "B")
        doc.set_text("fresh")
        assert doc.version == 5
        assert doc.get_text() == "fresh"

    def test_last_modified_follows_clock(self):
        clock = FakeClock(step_ms=10)
        doc = Document(clock=clock)
        assert doc.created_at == BASE_MS
        doc.insert_text(0, "x")
        assert doc.last_modified == BASE_MS + 10
        assert doc.created_at == BASE_MS

    def test_title_change_counts_as_mutation(self):
        doc = Document(title="Draft")
        doc.title = "Final"
        assert doc.title == "Final"
        assert doc.version == 2

    def test_failed_load_changes_nothing(self):
        doc = Document("stay")
        assert doc.load_state(b"bad").is_failure
        assert doc.get_text() == "stay"
        assert doc.version == 1


class TestListeners:

    def test_listeners_called_synchronously_in_order(self):
        log = []
        doc = Document()
        doc.subscribe(RecordingListener("first", log))
        doc.subscribe(RecordingListener("second", log))

        doc.insert_text(0, "hi")

        assert log == [("first", "hi"), ("second", "hi")]

    def test_unsubscribe_stops_notifications(self):
        log = []
        listener = RecordingListener("only", log)
        doc = Document()
        doc.subscribe(listener)
        doc.unsubscribe(listener)
        doc.insert_text(0, "x")
        assert log == []

    def test_subscribe_is_idempotent(self):
        log = []
        listener = RecordingListener("once", log)
        doc = Document()
        doc.subscribe(listener)
        doc.subscribe(listener)
        doc.insert_text(0, "x")
        assert len(log) == 1


class TestStats:

    def test_stats_of_multi_paragraph_text(self):
        text = "Hello world\n\nSecond para here"
        stats = compute_stats(text)
        assert stats.words == 5
        assert stats.paragraphs == 2
        assert stats.lines == 3
        assert stats.characters == len(text)
        assert stats.characters_no_spaces == len(text.replace(" ", "").replace("\n", ""))

    def test_blank_text_has_no_words_or_paragraphs(self):
        assert count_words("   \n  ") == 0
        stats = compute_stats("")
        assert stats.words == 0
        assert stats.paragraphs == 0
        assert stats.lines == 1

    def test_head_info_truncates_preview(self):
        doc = Document("x" * (PREVIEW_LENGTH + 20), title="Long")
        head = doc.get_head_info()
        assert head.preview == "x" * PREVIEW_LENGTH + "..."
        assert head.title == "Long"
        assert head.stats.characters == PREVIEW_LENGTH + 20

    def test_short_text_preview_is_whole_text(self):
        assert Document("short").get_head_info().preview == "short"


class TestSnapshots:

    def test_from_state_restores_metadata(self):
        original = Document("body", title="Kept", clock=FakeClock())
        original.insert_text(4, "!")
        result = Document.from_state(
            original.get_state(), metadata=original.get_metadata()
        )
        assert result.is_success
        restored = result.value
        assert restored.get_text() == "body!"
        assert restored.get_metadata() == original.get_metadata()

    def test_clone_is_independent_and_has_no_listeners(self):
        log = []
        doc = Document("base", title="T")
        doc.subscribe(RecordingListener("l", log))
        copy = doc.clone()
        copy.insert_text(4, "!")
        assert doc.get_text() == "base"
        assert copy.title == "T"
        assert log == []

    def test_merge_combines_edit_histories(self):
        doc = Document("base")
        other = doc.clone()
        doc.insert_text(0, "[")
        other.insert_text(4, "]")
        assert doc.merge(other).is_success
        assert doc.get_text() == "[base]"

    def test_is_empty(self):
        assert Document().is_empty()
        assert not Document("x").is_empty()
