"""
Data models for chord dispatching.

This module contains the dataclass and enum definitions shared by window
detection, rule classification and key injection.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple


class ActionKind(Enum):
    """Classification outcome for the focused window."""
    TERMINAL = "terminal"
    DEFAULT = "default"


class Operation(Enum):
    """Clipboard operation requested by the user."""
    COPY = "copy"
    PASTE = "paste"


@dataclass(frozen=True)
class WindowContext:
    """
    Identity of the focused window.

    Attributes:
        app_id: Application identifier reported by the compositor ("" if missing)
        title: Window title, informational only
        method: Detection method that produced this context
    """
    app_id: str
    title: str = ""
    method: str = ""

    def is_valid(self) -> bool:
        """Return True if the context carries a usable application identifier."""
        return bool(self.app_id)

    def to_dict(self) -> dict:
        return {'app_id': self.app_id, 'title': self.title, 'method': self.method}


# Modifier names in the order they are pressed
MODIFIER_ORDER = ('CTRL', 'ALT', 'SHIFT', 'SUPER')

MODIFIER_ALIASES = {
    'CTRL': 'CTRL',
    'CONTROL': 'CTRL',
    'ALT': 'ALT',
    'SHIFT': 'SHIFT',
    'SUPER': 'SUPER',
    'META': 'SUPER',
    'WIN': 'SUPER',
    'CMD': 'SUPER',
    'LOGO': 'SUPER',
}


@dataclass(frozen=True)
class KeyChord:
    """
    A modifier set plus one base key, e.g. CTRL+SHIFT+C.

    Attributes:
        modifiers: Canonical modifier names (CTRL, ALT, SHIFT, SUPER)
        key: Base key name in upper case (C, V, F4, ENTER, ...)
    """
    modifiers: Tuple[str, ...] = field(default_factory=tuple)
    key: str = ""

    def __post_init__(self):
        if not self.key:
            raise ValueError("Key chord must have a base key")
        unknown = [m for m in self.modifiers if m not in MODIFIER_ORDER]
        if unknown:
            raise ValueError(f"Unknown modifier(s): {', '.join(unknown)}")
        ordered = tuple(m for m in MODIFIER_ORDER if m in self.modifiers)
        object.__setattr__(self, 'modifiers', ordered)
        object.__setattr__(self, 'key', self.key.upper())

    @classmethod
    def parse(cls, combo_string: str) -> "KeyChord":
        """
        Parse a combination string like "CTRL+SHIFT+C".

        :param combo_string: '+' separated key names, modifiers first
        :raises ValueError: If the string is empty or malformed
        """
        if not isinstance(combo_string, str) or not combo_string.strip():
            raise ValueError("Key chord must be a non-empty string")

        parts = [p.strip().upper() for p in combo_string.split('+')]
        if any(not p for p in parts):
            raise ValueError(f"Invalid key chord: '{combo_string}'")

        *modifier_names, key = parts
        modifiers = []
        for name in modifier_names:
            if name not in MODIFIER_ALIASES:
                raise ValueError(f"Unknown modifier '{name}' in key chord '{combo_string}'")
            modifiers.append(MODIFIER_ALIASES[name])

        if key in MODIFIER_ALIASES:
            raise ValueError(f"Key chord '{combo_string}' has no base key")

        return cls(modifiers=tuple(modifiers), key=key)

    def __str__(self) -> str:
        return '+'.join(self.modifiers + (self.key,))
