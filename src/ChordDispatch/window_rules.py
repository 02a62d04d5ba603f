"""
Window classification rules.

A rule binds a pattern to an ActionKind. Rules are evaluated in order and
the first matching rule wins; when nothing matches the default action is
returned, so classification is always total.
"""
import fnmatch
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .models import ActionKind, WindowContext

logger = logging.getLogger(__name__)

GLOB_CHARS = frozenset('*?[')

# Application identifiers of terminal emulators, matched as substrings
TERMINAL_PATTERNS = (
    "foot",
    "alacritty",
    "kitty",
    "wezterm",
    "terminal",
    "konsole",
    "xterm",
    "urxvt",
    "termite",
)


@dataclass(frozen=True)
class ClassificationRule:
    """
    A rule that maps matching application identifiers to an action.

    Attributes:
        pattern: Substring, or glob when it contains '*', '?' or '['
        action: ActionKind selected when the pattern matches
    """
    pattern: str
    action: ActionKind

    def __post_init__(self):
        if not isinstance(self.pattern, str) or not self.pattern:
            raise ValueError("Rule pattern must be a non-empty string")
        if isinstance(self.action, str):
            object.__setattr__(self, 'action', ActionKind(self.action))

    @property
    def is_glob(self) -> bool:
        return any(c in GLOB_CHARS for c in self.pattern)

    def matches(self, app_id: str) -> bool:
        """
        Check if this rule matches an application identifier.

        Matching is case-sensitive. Glob patterns must match the whole
        identifier, plain patterns only need to be contained in it.
        """
        if not app_id:
            return False
        if self.is_glob:
            return fnmatch.fnmatchcase(app_id, self.pattern)
        return self.pattern in app_id


DEFAULT_RULES = tuple(
    ClassificationRule(pattern, ActionKind.TERMINAL) for pattern in TERMINAL_PATTERNS
)


def find_matching_rule(
    context: Optional[WindowContext],
    rules: Iterable[ClassificationRule],
) -> Optional[ClassificationRule]:
    """Return the first rule matching the context, or None."""
    if context is None or not context.is_valid():
        return None
    for rule in rules:
        if rule.matches(context.app_id):
            return rule
    return None


def classify(
    context: Optional[WindowContext],
    rules: Iterable[ClassificationRule] = DEFAULT_RULES,
    default: ActionKind = ActionKind.DEFAULT,
) -> ActionKind:
    """
    Classify the focused window.

    :param context: Focused window context, None when no window is focused
    :param rules: Ordered rules, first match wins
    :param default: Action returned when no rule matches
    :return: The selected ActionKind
    """
    rule = find_matching_rule(context, rules)
    if rule is None:
        logger.debug(
            f"No rule matched app_id={context.app_id if context else None!r}, "
            f"using {default.value} action"
        )
        return default

    logger.debug(f"Rule '{rule.pattern}' matched app_id={context.app_id!r} -> {rule.action.value}")
    return rule.action
