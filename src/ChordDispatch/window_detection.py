"""
Focused window detection for Wayland compositors and X11.

This module implements a strategy pattern for querying the focused window
using the compositor's own IPC tool (niri, Hyprland, sway), kdotool or
xdotool, with automatic fallback from one method to the next.
"""
import json
import logging
import os
import shutil
import subprocess
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .models import WindowContext

logger = logging.getLogger(__name__)

SIMULATION_ENV_VAR = "CHORD_DISPATCH_SIMULATION_FILE"

# Fallback order when the environment gives no hint
DEFAULT_DETECTION_ORDER = ("niri", "hyprland", "sway", "kdotool", "xdotool")


class WindowQueryError(Exception):
    """Raised when a detection tool is missing or returns unusable output."""


class DetectionMethod(ABC):
    """
    Abstract base class for focused window detection strategies.

    detect() returns a WindowContext, or None when the compositor reports
    that no window is focused. Any failure to obtain an answer raises
    WindowQueryError so the caller can move on to the next method.
    """

    binary: str = ""

    def __init__(self, timeout: float = 1.0):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.timeout = timeout

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name of this detection method."""

    def is_available(self) -> bool:
        """Whether the tool this method relies on is installed."""
        return shutil.which(self.binary) is not None

    @abstractmethod
    def detect(self) -> Optional[WindowContext]:
        """
        Query the focused window.

        Returns:
            WindowContext if a window is focused, None if none is.

        Raises:
            WindowQueryError: If the query itself failed.
        """

    def _run_command(self, cmd: List[str]) -> str:
        """
        Run a command and return its stdout.

        :raises WindowQueryError: On missing binary, timeout or non-zero exit
        """
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
            raise WindowQueryError(f"{cmd[0]} not found") from exc
        except subprocess.TimeoutExpired as exc:
            raise WindowQueryError(f"{cmd[0]} timed out after {self.timeout}s") from exc
        except OSError as exc:
            raise WindowQueryError(f"{cmd[0]} failed: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise WindowQueryError(f"{cmd[0]} printed undecodable output: {exc}") from exc

        if result.stderr:
            self.logger.debug(f"Command {cmd[0]} stderr: {result.stderr[:200]}")

        if result.returncode != 0:
            raise WindowQueryError(f"{cmd[0]} returned code {result.returncode}")

        return result.stdout

    def _string_field(self, data: Dict[str, Any], key: str) -> str:
        """
        Read an identifier field from a JSON object.

        :raises WindowQueryError: If the field is present but not a string
        """
        value = data.get(key)
        if value is None:
            return ""
        if not isinstance(value, str):
            raise WindowQueryError(
                f"{self.name} returned a non-string '{key}': {type(value).__name__}"
            )
        return value

    def _run_json(self, cmd: List[str]) -> Any:
        """Run a command and parse its stdout as JSON."""
        output = self._run_command(cmd)
        try:
            return json.loads(output)
        except json.JSONDecodeError as exc:
            raise WindowQueryError(f"{cmd[0]} returned malformed JSON: {exc}") from exc


class NiriDetection(DetectionMethod):
    """Detection using niri's IPC (`niri msg --json windows`)."""

    binary = "niri"

    @property
    def name(self) -> str:
        return "niri"

    def detect(self) -> Optional[WindowContext]:
        windows = self._run_json(["niri", "msg", "--json", "windows"])
        if not isinstance(windows, list):
            raise WindowQueryError("niri returned an unexpected window list")

        for window in windows:
            if isinstance(window, dict) and window.get("is_focused") is True:
                return WindowContext(
                    app_id=self._string_field(window, "app_id"),
                    title=self._string_field(window, "title"),
                    method=self.name,
                )
        return None


class HyprlandDetection(DetectionMethod):
    """Detection using `hyprctl -j activewindow`."""

    binary = "hyprctl"

    @property
    def name(self) -> str:
        return "hyprland"

    def detect(self) -> Optional[WindowContext]:
        window = self._run_json(["hyprctl", "-j", "activewindow"])
        if not isinstance(window, dict):
            raise WindowQueryError("hyprctl returned an unexpected window object")

        # Hyprland prints {} when nothing is focused
        if not window:
            return None

        return WindowContext(
            app_id=self._string_field(window, "class"),
            title=self._string_field(window, "title"),
            method=self.name,
        )


class SwayDetection(DetectionMethod):
    """Detection using the sway layout tree (`swaymsg -t get_tree`)."""

    binary = "swaymsg"

    @property
    def name(self) -> str:
        return "sway"

    def detect(self) -> Optional[WindowContext]:
        tree = self._run_json(["swaymsg", "-t", "get_tree", "-r"])
        if not isinstance(tree, dict):
            raise WindowQueryError("swaymsg returned an unexpected tree")

        node = self._find_focused(tree)
        # A focused workspace or output means no window has focus
        if node is None or node.get("type") not in ("con", "floating_con"):
            return None

        app_id = self._string_field(node, "app_id")
        if not app_id:
            # XWayland windows report their class instead of an app_id
            properties = node.get("window_properties") or {}
            if not isinstance(properties, dict):
                raise WindowQueryError("swaymsg returned malformed window_properties")
            app_id = self._string_field(properties, "class")

        return WindowContext(
            app_id=app_id,
            title=self._string_field(node, "name"),
            method=self.name,
        )

    @staticmethod
    def _find_focused(tree: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        stack = [tree]
        while stack:
            node = stack.pop()
            if node.get("focused"):
                return node
            for key in ("nodes", "floating_nodes"):
                children = node.get(key) or []
                if isinstance(children, list):
                    stack.extend(child for child in children if isinstance(child, dict))
        return None


class XdoDetection(DetectionMethod):
    """Common logic for kdotool and xdotool, which share a command syntax."""

    def detect(self) -> Optional[WindowContext]:
        window_id = self._run_command([self.binary, "getactivewindow"]).strip()
        if not window_id:
            return None

        raw_class = self._run_command([self.binary, "getwindowclassname", window_id]).strip()

        try:
            title = self._run_command([self.binary, "getwindowname", window_id]).strip()
        except WindowQueryError as exc:
            self.logger.debug(f"Could not read window title: {exc}")
            title = ""

        return WindowContext(app_id=raw_class, title=title, method=self.name)


class KdotoolDetection(XdoDetection):
    """Detection using kdotool (KDE Plasma Wayland)."""

    binary = "kdotool"

    @property
    def name(self) -> str:
        return "kdotool"


class XdotoolDetection(XdoDetection):
    """Detection using xdotool (X11 and XWayland)."""

    binary = "xdotool"

    @property
    def name(self) -> str:
        return "xdotool"


class SimulationDetection(DetectionMethod):
    """Detection for simulation mode (reads the focused window from a file)."""

    def __init__(self, file_path: str, timeout: float = 1.0):
        super().__init__(timeout=timeout)
        self.file_path = file_path

    @property
    def name(self) -> str:
        return "simulation"

    def is_available(self) -> bool:
        return os.path.exists(self.file_path)

    def detect(self) -> Optional[WindowContext]:
        try:
            with open(self.file_path, 'r', encoding='utf-8') as f:
                content = f.read().strip()
        except (OSError, UnicodeDecodeError) as exc:
            raise WindowQueryError(f"Error reading simulation file: {exc}") from exc

        if not content:
            return None

        # Content format: "Title|app_id" or just "app_id"
        if '|' in content:
            title, app_id = content.split('|', 1)
        else:
            title, app_id = "", content

        return WindowContext(app_id=app_id.strip(), title=title.strip(), method=self.name)


DETECTION_METHODS = {
    "niri": NiriDetection,
    "hyprland": HyprlandDetection,
    "sway": SwayDetection,
    "kdotool": KdotoolDetection,
    "xdotool": XdotoolDetection,
}


def detect_compositor(environ: Optional[Mapping[str, str]] = None) -> List[str]:
    """
    Order detection methods using hints from the session environment.

    Methods hinted by the environment come first, the remaining ones follow
    in the default order.
    """
    env = os.environ if environ is None else environ
    desktop = env.get("XDG_CURRENT_DESKTOP", "")

    hinted = []
    if env.get("NIRI_SOCKET") or desktop == "niri":
        hinted.append("niri")
    if env.get("HYPRLAND_INSTANCE_SIGNATURE") or desktop == "Hyprland":
        hinted.append("hyprland")
    if env.get("SWAYSOCK") or desktop == "sway":
        hinted.append("sway")
    if "KDE" in desktop.split(":"):
        hinted.append("kdotool")
    if env.get("DISPLAY") and not env.get("WAYLAND_DISPLAY"):
        hinted.append("xdotool")

    return hinted + [name for name in DEFAULT_DETECTION_ORDER if name not in hinted]


def build_detection_methods(
    names: Optional[Iterable[str]] = None,
    timeout: float = 1.0,
    simulation_file: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> List[DetectionMethod]:
    """
    Instantiate detection methods in query order.

    :param names: Explicit method order; derived from the environment if None
    :param timeout: Per-command timeout in seconds
    :param simulation_file: Simulation file checked before every other method
    :param environ: Environment used for hints (defaults to os.environ)
    :raises ValueError: If an unknown method name is given
    """
    env = os.environ if environ is None else environ
    if names is None:
        names = detect_compositor(env)

    methods: List[DetectionMethod] = []

    simulation_file = simulation_file or env.get(SIMULATION_ENV_VAR)
    if simulation_file:
        methods.append(SimulationDetection(simulation_file, timeout=timeout))

    for name in names:
        if name not in DETECTION_METHODS:
            raise ValueError(f"Unknown detection method: {name}")
        methods.append(DETECTION_METHODS[name](timeout=timeout))

    return methods


def resolve_focused_context(
    methods: Optional[Iterable[DetectionMethod]] = None,
) -> Optional[WindowContext]:
    """
    Query the focused window, trying each detection method in turn.

    The first method that answers decides the result, including an answer
    of "no window focused". Failures are logged and never raised.

    :return: WindowContext, or None if nothing is focused or no method answered
    """
    if methods is None:
        methods = build_detection_methods()

    failures = []
    for method in methods:
        if not method.is_available():
            logger.debug(f"Detection method '{method.name}' not available, skipping")
            failures.append(f"{method.name}: not available")
            continue

        try:
            context = method.detect()
        except WindowQueryError as exc:
            logger.debug(f"Detection method '{method.name}' failed: {exc}")
            failures.append(f"{method.name}: {exc}")
            continue

        if context is None:
            logger.debug(f"No focused window reported by '{method.name}'")
        else:
            logger.debug(f"Focused window via '{method.name}': app_id={context.app_id!r}")
        return context

    logger.warning(
        "Could not query the focused window (%s); falling back to default action",
        "; ".join(failures) or "no detection methods configured",
    )
    return None
