"""
Key chord injection backends.

Each backend synthesizes a KeyChord through one host facility: wtype
(Wayland virtual-keyboard protocol), a uinput virtual keyboard, or xdotool
(X11). dispatch() tries the configured backends in order and raises
InjectionUnavailable only when none of them delivered the chord.
"""
import logging
import os
import shutil
import subprocess
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .chords import chord_for
from .models import ActionKind, KeyChord, Operation
from .virtual_keyboard import VirtualKeyboard

logger = logging.getLogger(__name__)

UINPUT_PATH = "/dev/uinput"

DEFAULT_INJECTION_ORDER = ("wtype", "uinput", "xdotool")

# Modifier names understood by wtype -M/-m
WTYPE_MODIFIERS = {
    'CTRL': 'ctrl',
    'ALT': 'alt',
    'SHIFT': 'shift',
    'SUPER': 'logo',
}

# Modifier names understood by xdotool key
XDOTOOL_MODIFIERS = {
    'CTRL': 'ctrl',
    'ALT': 'alt',
    'SHIFT': 'shift',
    'SUPER': 'super',
}

# Chord key names that differ from their XKB keysym
KEYSYM_NAMES = {
    'ENTER': 'Return',
    'RETURN': 'Return',
    'TAB': 'Tab',
    'SPACE': 'space',
    'BACKSPACE': 'BackSpace',
    'DELETE': 'Delete',
    'DEL': 'Delete',
    'INSERT': 'Insert',
    'INS': 'Insert',
    'ESC': 'Escape',
    'ESCAPE': 'Escape',
    'HOME': 'Home',
    'END': 'End',
    'PAGEUP': 'Page_Up',
    'PAGEDOWN': 'Page_Down',
    'UP': 'Up',
    'DOWN': 'Down',
    'LEFT': 'Left',
    'RIGHT': 'Right',
}


class DispatchError(Exception):
    """Base class for chord dispatch failures."""


class InjectionUnavailable(DispatchError):
    """Raised when no injection backend could deliver a chord."""

    def __init__(self, chord: KeyChord, reasons: Dict[str, str]):
        self.chord = chord
        self.reasons = reasons
        details = "; ".join(f"{name}: {reason}" for name, reason in reasons.items())
        super().__init__(
            f"Could not inject {chord}: {details or 'no injection backends configured'}"
        )


class InjectionBackendError(Exception):
    """Raised by a single backend that failed to send a chord."""


def keysym_name(key: str) -> str:
    """Convert a chord key name to the XKB keysym name used by wtype/xdotool."""
    if key in KEYSYM_NAMES:
        return KEYSYM_NAMES[key]
    if len(key) == 1:
        return key.lower()
    # Function keys and anything else keep their spelling (F1, F12, ...)
    return key


class KeyInjector(ABC):
    """Abstract base class for key chord injection backends."""

    binary: str = ""

    def __init__(self, timeout: float = 1.0):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.timeout = timeout

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name of this backend."""

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None

    @abstractmethod
    def send(self, chord: KeyChord) -> None:
        """
        Synthesize the chord.

        :raises InjectionBackendError: If the chord could not be sent
        """

    def _run_command(self, cmd: List[str]) -> None:
        self.logger.debug(f"Running command: {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise InjectionBackendError(f"{cmd[0]} not found") from exc
        except subprocess.TimeoutExpired as exc:
            raise InjectionBackendError(f"{cmd[0]} timed out after {self.timeout}s") from exc
        except OSError as exc:
            raise InjectionBackendError(f"{cmd[0]} failed: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise InjectionBackendError(f"{cmd[0]} printed undecodable output: {exc}") from exc

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise InjectionBackendError(
                f"{cmd[0]} returned code {result.returncode}" + (f": {stderr[:200]}" if stderr else "")
            )


class WtypeInjector(KeyInjector):
    """Injection through wtype (wlroots, niri, Hyprland)."""

    binary = "wtype"

    @property
    def name(self) -> str:
        return "wtype"

    def build_command(self, chord: KeyChord) -> List[str]:
        cmd = ["wtype"]
        for modifier in chord.modifiers:
            cmd.extend(["-M", WTYPE_MODIFIERS[modifier]])
        cmd.extend(["-k", keysym_name(chord.key)])
        return cmd

    def send(self, chord: KeyChord) -> None:
        self._run_command(self.build_command(chord))


class XdotoolInjector(KeyInjector):
    """Injection through xdotool (X11 and XWayland windows)."""

    binary = "xdotool"

    @property
    def name(self) -> str:
        return "xdotool"

    def build_command(self, chord: KeyChord) -> List[str]:
        keys = [XDOTOOL_MODIFIERS[m] for m in chord.modifiers] + [keysym_name(chord.key)]
        return ["xdotool", "key", "+".join(keys)]

    def send(self, chord: KeyChord) -> None:
        self._run_command(self.build_command(chord))


class UinputInjector(KeyInjector):
    """Injection through a temporary uinput virtual keyboard."""

    def __init__(self, timeout: float = 1.0, device_path: str = UINPUT_PATH):
        super().__init__(timeout=timeout)
        self.device_path = device_path

    @property
    def name(self) -> str:
        return "uinput"

    def is_available(self) -> bool:
        return os.path.exists(self.device_path)

    def send(self, chord: KeyChord) -> None:
        with VirtualKeyboard() as keyboard:
            if not keyboard.available:
                raise InjectionBackendError(keyboard.last_error or "virtual keyboard unavailable")
            if not keyboard.send_chord(chord):
                raise InjectionBackendError(keyboard.last_error or "virtual keyboard failed")


INJECTION_BACKENDS = {
    "wtype": WtypeInjector,
    "uinput": UinputInjector,
    "xdotool": XdotoolInjector,
}


def default_injection_order(environ: Optional[Mapping[str, str]] = None) -> Tuple[str, ...]:
    """Prefer xdotool on a plain X11 session, wtype everywhere else."""
    env = os.environ if environ is None else environ
    if env.get("DISPLAY") and not env.get("WAYLAND_DISPLAY"):
        return ("xdotool", "uinput", "wtype")
    return DEFAULT_INJECTION_ORDER


def build_injectors(
    names: Optional[Iterable[str]] = None,
    timeout: float = 1.0,
    environ: Optional[Mapping[str, str]] = None,
) -> List[KeyInjector]:
    """
    Instantiate injection backends in the order they are tried.

    :raises ValueError: If an unknown backend name is given
    """
    if names is None:
        names = default_injection_order(environ)

    injectors = []
    for name in names:
        if name not in INJECTION_BACKENDS:
            raise ValueError(f"Unknown injection backend: {name}")
        injectors.append(INJECTION_BACKENDS[name](timeout=timeout))
    return injectors


def inject_chord(chord: KeyChord, injectors: Iterable[KeyInjector]) -> str:
    """
    Send a chord through the first backend that delivers it.

    :return: Name of the backend that sent the chord
    :raises InjectionUnavailable: If every backend was missing or failed
    """
    reasons = {}
    for injector in injectors:
        if not injector.is_available():
            logger.debug(f"Injection backend '{injector.name}' not available, skipping")
            reasons[injector.name] = "not available"
            continue

        try:
            injector.send(chord)
        except InjectionBackendError as exc:
            logger.debug(f"Injection backend '{injector.name}' failed: {exc}")
            reasons[injector.name] = str(exc)
            continue

        logger.debug(f"Sent {chord} via '{injector.name}'")
        return injector.name

    raise InjectionUnavailable(chord, reasons)


def dispatch(
    action: ActionKind,
    operation: Operation = Operation.COPY,
    injectors: Optional[Iterable[KeyInjector]] = None,
    chords: Optional[Mapping[Tuple[Operation, ActionKind], KeyChord]] = None,
) -> KeyChord:
    """
    Synthesize the chord bound to an action.

    :param action: Classification result
    :param operation: Copy or paste
    :param injectors: Backends to try, built from the environment if None
    :param chords: Optional chord table overriding the built-in one
    :return: The chord that was sent
    :raises InjectionUnavailable: If the chord could not be injected
    """
    chord = chord_for(operation, action, chords)
    if injectors is None:
        injectors = build_injectors()
    inject_chord(chord, injectors)
    return chord
