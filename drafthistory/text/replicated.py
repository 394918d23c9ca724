"""
Replicated Text
===============

Conflict-free replicated character sequence backed by a pycrdt (Yjs) document.

INVARIANTS:
- Same set of operations applied in any causally consistent order
  produces the same visible text
- Merging an already-applied operation log is a no-op
- load_state never partially mutates the receiver

STATE BLOB:
===========
    b"DHRT" | version byte | pycrdt update (full operation history)

The blob is opaque to every other component. Only load_state / merge
read it back.
"""

from __future__ import annotations
import hashlib
from typing import Optional

from pycrdt import Doc, Text

from ..contracts.base import Result, ErrorCode


STATE_MAGIC = b"DHRT"
STATE_VERSION = 1
_HEADER_LENGTH = len(STATE_MAGIC) + 1
_TEXT_ROOT = "content"


def _frame(update: bytes) -> bytes:
    return STATE_MAGIC + bytes([STATE_VERSION]) + update


def _unframe(blob: object) -> Result:
    """Strip and validate the blob header. Value is the raw update."""
    if not isinstance(blob, (bytes, bytearray, memoryview)):
        return Result.fail(
            ErrorCode.INVALID_STATE,
            f"State blob must be bytes, got {type(blob).__name__}"
        )
    data = bytes(blob)
    if len(data) <= _HEADER_LENGTH or not data.startswith(STATE_MAGIC):
        return Result.fail(ErrorCode.INVALID_STATE, "Invalid document state data")
    version = data[len(STATE_MAGIC)]
    if version != STATE_VERSION:
        return Result.fail(
            ErrorCode.INVALID_STATE,
            f"Unsupported state version {version}"
        )
    return Result.success(data[_HEADER_LENGTH:])


def _decode(blob: object) -> Result:
    """Decode a blob into a fresh (doc, text) pair without touching any replica."""
    unframed = _unframe(blob)
    if unframed.is_failure:
        return unframed

    doc = Doc()
    try:
        doc.apply_update(unframed.value)
    except Exception as e:
        return Result.fail(ErrorCode.INVALID_STATE, f"Invalid document state data: {e}")
    text = doc.get(_TEXT_ROOT, type=Text)
    return Result.success((doc, text))


class ReplicatedText:
    """
    Position-addressed CRDT text.

    Positions are clamped to [0, len]. Deleting past the end removes
    only what exists.
    """

    def __init__(self, initial_text: str = "", client_id: Optional[int] = None):
        self._doc = Doc() if client_id is None else Doc(client_id=client_id)
        self._text = self._doc.get(_TEXT_ROOT, type=Text)
        if initial_text:
            self._text.insert(0, initial_text)

    # =========================================================================
    # CONSTRUCTION
    # =========================================================================

    @classmethod
    def from_text(cls, text: str) -> ReplicatedText:
        return cls(initial_text=text)

    @classmethod
    def from_state(cls, blob: bytes) -> Result:
        """Build a new replica from a state blob. Value is the replica."""
        decoded = _decode(blob)
        if decoded.is_failure:
            return decoded
        replica = cls.__new__(cls)
        replica._doc, replica._text = decoded.value
        return Result.success(replica)

    # =========================================================================
    # EDITING
    # =========================================================================

    def _clamp(self, position: int) -> int:
        return max(0, min(position, len(self._text)))

    def insert(self, position: int, text: str) -> None:
        if not text:
            return
        self._text.insert(self._clamp(position), text)

    def delete(self, position: int, length: int) -> None:
        if length <= 0:
            return
        start = self._clamp(position)
        end = min(start + length, len(self._text))
        if end > start:
            del self._text[start:end]

    def set_text(self, text: str) -> None:
        """Clear and reinsert as one transaction."""
        with self._doc.transaction():
            current = len(self._text)
            if current:
                del self._text[0:current]
            if text:
                self._text.insert(0, text)

    def get_text(self) -> str:
        return str(self._text)

    def __len__(self) -> int:
        return len(self._text)

    # =========================================================================
    # STATE
    # =========================================================================

    def get_state(self) -> bytes:
        """Full operation history as an opaque versioned blob."""
        return _frame(self._doc.get_update())

    def load_state(self, blob: bytes) -> Result:
        """
        Replace this replica's history with the one in blob.

        On failure the receiver is left exactly as it was.
        """
        decoded = _decode(blob)
        if decoded.is_failure:
            return decoded
        self._doc, self._text = decoded.value
        return Result.success()

    def get_state_vector(self) -> bytes:
        """Compact summary of which operations this replica has seen."""
        return self._doc.get_state()

    def get_operations(self, since: Optional[bytes] = None) -> bytes:
        """
        Operation log, framed like a state blob.

        With `since` (a peer's state vector) only the operations the
        peer is missing are included.
        """
        if since is None:
            return _frame(self._doc.get_update())
        return _frame(self._doc.get_update(since))

    def merge(self, other_operations: bytes) -> Result:
        """
        Integrate another replica's operation log.

        Commutative and idempotent: operations already applied are skipped
        by the CRDT, concurrent ones are ordered deterministically.
        """
        unframed = _unframe(other_operations)
        if unframed.is_failure:
            return unframed
        try:
            self._doc.apply_update(unframed.value)
        except Exception as e:
            return Result.fail(ErrorCode.INVALID_STATE, f"Invalid operation log: {e}")
        return Result.success()

    def clone(self) -> ReplicatedText:
        cloned = ReplicatedText.from_state(self.get_state())
        if cloned.is_failure:
            # our own blob always decodes
            raise ValueError(cloned.error.message)
        return cloned.value

    def hash(self) -> str:
        """Content hash of the visible text, for change detection."""
        return hashlib.sha256(self.get_text().encode('utf-8')).hexdigest()

    def __repr__(self) -> str:
        return f"ReplicatedText(len={len(self)}, hash={self.hash()[:8]})"
