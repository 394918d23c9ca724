"""
Replicated Text Tests
=====================

Positional editing, opaque state round-trips and CRDT convergence.
"""

import string

import pytest
from hypothesis import given, settings, strategies as st
from hypothesis.strategies import composite

from drafthistory.contracts.base import ErrorCode
from drafthistory.text.replicated import ReplicatedText, STATE_MAGIC


def fork(replica: ReplicatedText) -> ReplicatedText:
    result = ReplicatedText.from_state(replica.get_state())
    assert result.is_success
    return result.value


# =============================================================================
# STRATEGIES (Generators)
# =============================================================================

@composite
def edits(draw):
    """A short list of (position, text) inserts."""
    return draw(st.lists(
        st.tuples(
            st.integers(min_value=-5, max_value=60),
            st.text(alphabet=string.ascii_letters, min_size=1, max_size=8),
        ),
        max_size=6,
    ))


@composite
def edit_scripts(draw):
    """Interleaved ('insert', position, text) and ('delete', position, length) steps."""
    insert = st.tuples(
        st.just('insert'),
        st.integers(min_value=0, max_value=40),
        st.text(alphabet=string.printable, min_size=1, max_size=6),
    )
    delete = st.tuples(
        st.just('delete'),
        st.integers(min_value=0, max_value=40),
        st.integers(min_value=1, max_value=10),
    )
    return draw(st.lists(st.one_of(insert, delete), max_size=20))


def apply_script(text: ReplicatedText, script) -> str:
    """Run the script against the replica and a plain string, returning the string."""
    model = text.get_text()
    for op, position, arg in script:
        position = min(position, len(model))
        if op == 'insert':
            text.insert(position, arg)
            model = model[:position] + arg + model[position:]
        else:
            text.delete(position, arg)
            model = model[:position] + model[position + arg:]
    return model


class TestEditing:

    def test_insert_then_delete(self):
        text = ReplicatedText()
        text.insert(0, "Hello")
        text.insert(5, " World")
        assert text.get_text() == "Hello World"

        text.delete(5, 6)
        assert text.get_text() == "Hello"
        assert len(text) == 5

    def test_insert_then_delete_prefix(self):
        text = ReplicatedText()
        text.insert(0, "Hello")
        text.insert(5, " World")
        text.delete(0, 6)
        assert text.get_text() == "World"

    @given(script=edit_scripts())
    @settings(max_examples=50, deadline=None)
    def test_edits_match_plain_string(self, script):
        text = ReplicatedText()
        assert text.get_text() == apply_script(text, script)

    def test_positions_are_clamped(self):
        text = ReplicatedText("abc")
        text.insert(100, "!")
        text.insert(-5, "x")
        assert text.get_text() == "xabc!"

    def test_delete_past_end_removes_only_what_exists(self):
        text = ReplicatedText("abcdef")
        text.delete(3, 100)
        assert text.get_text() == "abc"

    def test_empty_operations_are_noops(self):
        text = ReplicatedText("abc")
        text.insert(1, "")
        text.delete(1, 0)
        text.delete(1, -3)
        assert text.get_text() == "abc"

    def test_set_text_replaces_everything(self):
        text = ReplicatedText("old content")
        text.set_text("new")
        assert text.get_text() == "new"
        text.set_text("")
        assert text.get_text() == ""


class TestState:

    def test_state_round_trip(self):
        original = ReplicatedText("Some text\nwith lines")
        original.insert(0, ">> ")
        restored = fork(original)
        assert restored.get_text() == original.get_text()
        assert restored.hash() == original.hash()

    @given(script=edit_scripts())
    @settings(max_examples=50, deadline=None)
    def test_state_round_trip_after_random_edits(self, script):
        original = ReplicatedText("seed")
        apply_script(original, script)
        restored = ReplicatedText.from_state(original.get_state())
        assert restored.is_success
        assert restored.value.get_text() == original.get_text()

    def test_state_is_framed(self):
        assert ReplicatedText("x").get_state().startswith(STATE_MAGIC)

    def test_malformed_state_leaves_receiver_unchanged(self):
        text = ReplicatedText("keep me")
        result = text.load_state(b"definitely not a state blob")
        assert result.is_failure
        assert result.error.code == ErrorCode.INVALID_STATE
        assert text.get_text() == "keep me"

    def test_non_bytes_state_rejected(self):
        result = ReplicatedText.from_state("not bytes")
        assert result.is_failure
        assert result.error.code == ErrorCode.INVALID_STATE

    def test_unknown_version_rejected(self):
        blob = STATE_MAGIC + bytes([99]) + ReplicatedText("x").get_state()[5:]
        assert ReplicatedText.from_state(blob).is_failure

    def test_load_state_replaces_content(self):
        source = ReplicatedText("from elsewhere")
        target = ReplicatedText("mine")
        assert target.load_state(source.get_state()).is_success
        assert target.get_text() == "from elsewhere"

    def test_clone_is_independent(self):
        original = ReplicatedText("base")
        copy = original.clone()
        copy.insert(4, "!")
        assert original.get_text() == "base"
        assert copy.get_text() == "base!"


class TestMerge:

    def test_concurrent_edits_converge(self):
        a = ReplicatedText("base")
        b = fork(a)
        a.insert(0, "A")
        b.insert(4, "B")

        assert a.merge(b.get_operations()).is_success
        assert b.merge(a.get_operations()).is_success
        assert a.get_text() == b.get_text()
        assert "A" in a.get_text() and "B" in a.get_text()

    def test_merge_is_idempotent(self):
        a = ReplicatedText("base")
        b = fork(a)
        b.insert(4, " extended")
        a.merge(b.get_operations())
        once = a.get_text()
        a.merge(b.get_operations())
        assert a.get_text() == once == "base extended"

    def test_incremental_operations_since_state_vector(self):
        a = ReplicatedText("base")
        b = fork(a)
        a.insert(4, "!")
        missing = a.get_operations(since=b.get_state_vector())
        assert b.merge(missing).is_success
        assert b.get_text() == "base!"

    def test_malformed_operations_rejected(self):
        text = ReplicatedText("base")
        assert text.merge(b"junk").is_failure
        assert text.get_text() == "base"

    @given(left=edits(), right=edits())
    @settings(max_examples=50, deadline=None)
    def test_merge_order_does_not_matter(self, left, right):
        base = ReplicatedText("shared base")
        a = fork(base)
        b = fork(base)
        for position, text in left:
            a.insert(position, text)
        for position, text in right:
            b.insert(position, text)

        a_then_b = fork(a)
        a_then_b.merge(b.get_operations())
        b_then_a = fork(b)
        b_then_a.merge(a.get_operations())

        assert a_then_b.get_text() == b_then_a.get_text()
