"""
Context-aware chord dispatcher.

Ties the pipeline together: query the focused window, classify it against
the rule table, look up the chord and inject it. A Dispatcher holds only
its configuration; nothing is carried over between runs.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from .chords import DEFAULT_CHORDS, chord_for
from .key_injection import KeyInjector, build_injectors, inject_chord
from .models import ActionKind, KeyChord, Operation, WindowContext
from .window_detection import DetectionMethod, build_detection_methods, resolve_focused_context
from .window_rules import DEFAULT_RULES, ClassificationRule, classify


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of one dispatcher run."""
    context: Optional[WindowContext]
    action: ActionKind
    chord: KeyChord
    backend: Optional[str] = None


class Dispatcher:
    """
    Resolve, classify and dispatch a key chord for the focused window.

    Detection methods and injectors may be passed in; when omitted they are
    built from the environment on every run.
    """

    def __init__(
        self,
        rules: Sequence[ClassificationRule] = DEFAULT_RULES,
        default_action: ActionKind = ActionKind.DEFAULT,
        chords: Optional[Mapping[Tuple[Operation, ActionKind], KeyChord]] = None,
        detection_methods: Optional[Iterable[DetectionMethod]] = None,
        injectors: Optional[Iterable[KeyInjector]] = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.rules = tuple(rules)
        self.default_action = default_action
        self.chords = dict(chords) if chords else dict(DEFAULT_CHORDS)
        self.detection_methods = list(detection_methods) if detection_methods is not None else None
        self.injectors = list(injectors) if injectors is not None else None

    @classmethod
    def from_config(cls, loader) -> "Dispatcher":
        """Build a dispatcher from a loaded ConfigLoader."""
        return cls(
            rules=loader.rules,
            default_action=loader.default_action,
            chords=loader.chords,
            detection_methods=build_detection_methods(
                loader.detection,
                timeout=loader.command_timeout,
                simulation_file=loader.simulation_file,
            ),
            injectors=build_injectors(loader.injection, timeout=loader.command_timeout),
        )

    def _detection_methods(self) -> List[DetectionMethod]:
        if self.detection_methods is None:
            return build_detection_methods()
        return self.detection_methods

    def _injectors(self) -> List[KeyInjector]:
        if self.injectors is None:
            return build_injectors()
        return self.injectors

    def plan(self, operation: Operation) -> DispatchResult:
        """Resolve and classify the focused window without injecting anything."""
        context = resolve_focused_context(self._detection_methods())
        action = classify(context, self.rules, self.default_action)
        chord = chord_for(operation, action, self.chords)
        return DispatchResult(context=context, action=action, chord=chord)

    def run(self, operation: Operation) -> DispatchResult:
        """
        Send the chord appropriate for the focused window.

        :raises InjectionUnavailable: If no injection backend delivered the chord
        """
        planned = self.plan(operation)
        backend = inject_chord(planned.chord, self._injectors())

        self.logger.info(
            f"{operation.value}: app_id={planned.context.app_id if planned.context else None!r} "
            f"-> {planned.action.value} -> {planned.chord} via {backend}"
        )
        return DispatchResult(
            context=planned.context,
            action=planned.action,
            chord=planned.chord,
            backend=backend,
        )
