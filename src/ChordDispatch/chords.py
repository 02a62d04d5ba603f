"""
Static table of key chords per operation and action kind.
"""
from typing import Dict, Mapping, Optional, Tuple

from .models import ActionKind, KeyChord, Operation

ChordTable = Dict[Tuple[Operation, ActionKind], KeyChord]

DEFAULT_CHORDS: Mapping[Tuple[Operation, ActionKind], KeyChord] = {
    (Operation.COPY, ActionKind.TERMINAL): KeyChord(('CTRL', 'SHIFT'), 'C'),
    (Operation.COPY, ActionKind.DEFAULT): KeyChord(('CTRL',), 'C'),
    (Operation.PASTE, ActionKind.TERMINAL): KeyChord(('CTRL', 'SHIFT'), 'V'),
    (Operation.PASTE, ActionKind.DEFAULT): KeyChord(('CTRL',), 'V'),
}


def chord_for(
    operation: Operation,
    action: ActionKind,
    table: Optional[Mapping[Tuple[Operation, ActionKind], KeyChord]] = None,
) -> KeyChord:
    """
    Look up the chord bound to an operation and action kind.

    Entries missing from a custom table fall back to the built-in one.
    """
    if table and (operation, action) in table:
        return table[(operation, action)]
    return DEFAULT_CHORDS[(operation, action)]
