from .config_loader import ConfigLoader, ConfigValidationError
from .dispatcher import Dispatcher, DispatchResult
from .key_injection import DispatchError, InjectionUnavailable, dispatch
from .models import ActionKind, KeyChord, Operation, WindowContext
from .window_detection import WindowQueryError, resolve_focused_context
from .window_rules import ClassificationRule, classify

__all__ = [
    'ActionKind', 'ClassificationRule', 'ConfigLoader', 'ConfigValidationError',
    'DispatchError', 'DispatchResult', 'Dispatcher', 'InjectionUnavailable', 'KeyChord',
    'Operation', 'WindowContext', 'WindowQueryError', 'classify', 'dispatch',
    'resolve_focused_context',
]
