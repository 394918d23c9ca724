"""
Text Diff
=========

Line-based and character-based comparison of two snapshot texts.

Removed lines are numbered against the old text, added and unchanged
lines against the new text. Character changes carry no line number.
Within a replaced region the removal always precedes the addition.
"""

from __future__ import annotations
import difflib
from typing import Dict, Iterable, List, Tuple

from ..contracts.commits import DiffChange, DiffChangeType, DiffResult


_PREFIXES = {
    DiffChangeType.ADDED: "+ ",
    DiffChangeType.REMOVED: "- ",
    DiffChangeType.UNCHANGED: "  ",
}


def diff_texts(old_text: str, new_text: str) -> DiffResult:
    old_lines = old_text.split('\n')
    new_lines = new_text.split('\n')
    matcher = difflib.SequenceMatcher(a=old_lines, b=new_lines, autojunk=False)

    changes: List[DiffChange] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == 'equal':
            for offset, line in enumerate(new_lines[j1:j2]):
                changes.append(DiffChange(DiffChangeType.UNCHANGED, line, j1 + offset + 1))
            continue
        if tag in ('replace', 'delete'):
            for offset, line in enumerate(old_lines[i1:i2]):
                changes.append(DiffChange(DiffChangeType.REMOVED, line, i1 + offset + 1))
        if tag in ('replace', 'insert'):
            for offset, line in enumerate(new_lines[j1:j2]):
                changes.append(DiffChange(DiffChangeType.ADDED, line, j1 + offset + 1))

    return DiffResult(old_text=old_text, new_text=new_text, changes=tuple(changes))


def diff_chars(old_text: str, new_text: str) -> Tuple[DiffChange, ...]:
    """Runs of unchanged / removed / added characters, in text order."""
    matcher = difflib.SequenceMatcher(a=old_text, b=new_text, autojunk=False)

    changes: List[DiffChange] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == 'equal':
            changes.append(DiffChange(DiffChangeType.UNCHANGED, old_text[i1:i2]))
            continue
        if tag in ('replace', 'delete'):
            changes.append(DiffChange(DiffChangeType.REMOVED, old_text[i1:i2]))
        if tag in ('replace', 'insert'):
            changes.append(DiffChange(DiffChangeType.ADDED, new_text[j1:j2]))
    return tuple(changes)


def format_diff(changes: Iterable[DiffChange]) -> str:
    """One line per change: "+ ", "- " or two spaces, then the value."""
    return '\n'.join(_PREFIXES[change.type] + change.value for change in changes)


def diff_stats(changes: Iterable[DiffChange]) -> Dict[str, int]:
    """{added, removed, unchanged} change counts."""
    stats = {change_type.value: 0 for change_type in DiffChangeType}
    for change in changes:
        stats[change.type.value] += 1
    return stats
