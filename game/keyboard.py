"""Finger and hand hints for the on-screen keyboard."""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

# (key, shifted key, finger, hand) per row of a US QWERTY layout
KEYBOARD_ROWS: List[List[Tuple[str, Optional[str], str, str]]] = [
    [
        ('`', '~', 'pinky', 'left'), ('1', '!', 'pinky', 'left'), ('2', '@', 'ring', 'left'),
        ('3', '#', 'middle', 'left'), ('4', '$', 'index', 'left'), ('5', '%', 'index', 'left'),
        ('6', '^', 'index', 'right'), ('7', '&', 'index', 'right'), ('8', '*', 'middle', 'right'),
        ('9', '(', 'ring', 'right'), ('0', ')', 'pinky', 'right'), ('-', '_', 'pinky', 'right'),
        ('=', '+', 'pinky', 'right'),
    ],
    [
        ('q', None, 'pinky', 'left'), ('w', None, 'ring', 'left'), ('e', None, 'middle', 'left'),
        ('r', None, 'index', 'left'), ('t', None, 'index', 'left'), ('y', None, 'index', 'right'),
        ('u', None, 'index', 'right'), ('i', None, 'middle', 'right'), ('o', None, 'ring', 'right'),
        ('p', None, 'pinky', 'right'), ('[', '{', 'pinky', 'right'), (']', '}', 'pinky', 'right'),
        ('\\', '|', 'pinky', 'right'),
    ],
    [
        ('a', None, 'pinky', 'left'), ('s', None, 'ring', 'left'), ('d', None, 'middle', 'left'),
        ('f', None, 'index', 'left'), ('g', None, 'index', 'left'), ('h', None, 'index', 'right'),
        ('j', None, 'index', 'right'), ('k', None, 'middle', 'right'), ('l', None, 'ring', 'right'),
        (';', ':', 'pinky', 'right'), ("'", '"', 'pinky', 'right'),
    ],
    [
        ('z', None, 'pinky', 'left'), ('x', None, 'ring', 'left'), ('c', None, 'middle', 'left'),
        ('v', None, 'index', 'left'), ('b', None, 'index', 'left'), ('n', None, 'index', 'right'),
        ('m', None, 'index', 'right'), (',', '<', 'middle', 'right'), ('.', '>', 'ring', 'right'),
        ('/', '?', 'pinky', 'right'),
    ],
]

HOME_ROW_ANCHORS = ('f', 'j')


@dataclass(frozen=True)
class KeyHint:
    """Which key, finger and hand produce a character."""
    key: str
    finger: str
    hand: str
    shift: bool = False

    @property
    def finger_id(self) -> str:
        return f"{self.hand}-{self.finger}"


SPACE_HINT = KeyHint(key=' ', finger='thumb', hand='left')

# Reverse lookup: character -> hint
_HINTS: Dict[str, KeyHint] = {}
for _row in KEYBOARD_ROWS:
    for _key, _shifted, _finger, _hand in _row:
        _HINTS[_key] = KeyHint(_key, _finger, _hand)
        if _key.isalpha():
            _HINTS[_key.upper()] = KeyHint(_key, _finger, _hand, shift=True)
        if _shifted:
            _HINTS[_shifted] = KeyHint(_key, _finger, _hand, shift=True)


def hint_for(char: str) -> Optional[KeyHint]:
    """Get the key hint for a single character, None if not on the layout."""
    if char == ' ':
        return SPACE_HINT
    return _HINTS.get(char)


def active_fingers(current: str = "", upcoming: str = "", mode: str = 'current') -> set:
    """
    Fingers to highlight for the current and/or next character.

    Args:
        current: Character at the cursor
        upcoming: Character after the cursor
        mode: 'current', 'next' or 'both'
    """
    fingers = set()
    if mode in ('current', 'both'):
        hint = hint_for(current) if current else None
        if hint:
            fingers.add(hint.finger_id)
    if mode in ('next', 'both'):
        hint = hint_for(upcoming) if upcoming else None
        if hint:
            fingers.add(hint.finger_id)
    return fingers
