"""
Dependency checking and reporting for chord-dispatch.
Checks for both system binaries and Python packages.
"""
import importlib
import importlib.util
import logging
import os
import shutil
from dataclasses import dataclass
from typing import List, Optional

from .key_injection import UINPUT_PATH

logger = logging.getLogger(__name__)


@dataclass
class Dependency:
    name: str
    category: str  # "Required", "Optional", "System Tool"
    description: str
    display_name: Optional[str] = None
    installed: bool = False
    version: Optional[str] = None
    feature: Optional[str] = None


class DependencyChecker:
    """Checks for system and Python dependencies."""

    def __init__(self):
        self.system_tools = [
            Dependency("niri", "System Tool", "niri IPC client", feature="Focused window detection on niri"),
            Dependency("hyprctl", "System Tool", "Hyprland IPC client", feature="Focused window detection on Hyprland"),
            Dependency("swaymsg", "System Tool", "sway IPC client", feature="Focused window detection on sway"),
            Dependency("kdotool", "System Tool", "KDE Wayland window queries", feature="Focused window detection on KDE"),
            Dependency("xdotool", "System Tool", "X11 window queries and key emulation", feature="X11 detection and injection"),
            Dependency("wtype", "System Tool", "Wayland virtual keyboard", feature="Key injection on wlroots/niri/Hyprland"),
        ]

        self.python_packages = [
            Dependency("yaml", "Required", "YAML configuration parsing", display_name="PyYAML"),
            Dependency("evdev", "Optional", "uinput virtual keyboard", feature="uinput key injection"),
        ]

    def _check_system_tool(self, dep: Dependency) -> bool:
        """Check if a system tool is in PATH."""
        return shutil.which(dep.name) is not None

    def _check_python_package(self, dep: Dependency) -> bool:
        """Check if a Python package is installed."""
        try:
            spec = importlib.util.find_spec(dep.name)
        except (ImportError, ValueError):
            return False
        if spec is None:
            return False

        try:
            module = importlib.import_module(dep.name)
            dep.version = getattr(module, '__version__', 'unknown')
        except ImportError as e:
            logger.debug(f"Could not import {dep.name}: {e}")
            return False

        return True

    def _check_uinput(self) -> Dependency:
        dep = Dependency(UINPUT_PATH, "System Tool", "uinput device node", feature="uinput key injection")
        dep.installed = os.access(UINPUT_PATH, os.W_OK)
        return dep

    def run_check(self) -> List[Dependency]:
        """Run all checks and return the results."""
        results = []

        for dep in self.python_packages:
            dep.installed = self._check_python_package(dep)
            results.append(dep)

        for dep in self.system_tools:
            dep.installed = self._check_system_tool(dep)
            results.append(dep)

        results.append(self._check_uinput())
        return results

    def print_report(self):
        """Print a formatted report to the console."""
        results = self.run_check()

        print("\n" + "=" * 60)
        print(" chord-dispatch Dependency Check ".center(60, "="))
        print("=" * 60 + "\n")

        print("--- Python Packages ---")
        for dep in results:
            if dep.category != "System Tool":
                status = "INSTALLED" if dep.installed else "MISSING"
                version_str = f" (v{dep.version})" if dep.version and dep.version != 'unknown' else ""
                name_to_show = dep.display_name or dep.name
                print(f"{status.ljust(12)} {name_to_show.ljust(15)} {dep.description}{version_str}")
                if not dep.installed and dep.feature:
                    print(f"             -> Required for: {dep.feature}")

        print("\n--- System Tools ---")
        for dep in results:
            if dep.category == "System Tool":
                status = "FOUND" if dep.installed else "MISSING"
                print(f"{status.ljust(12)} {dep.name.ljust(15)} {dep.description}")
                if not dep.installed and dep.feature:
                    print(f"             -> Impact: {dep.feature} will be disabled")

        print(f"\n{self.get_summary()}")
        print("=" * 60 + "\n")

    def has_critical_failures(self) -> bool:
        """Check if any required dependencies are missing."""
        results = self.run_check()
        return any(not dep.installed for dep in results if dep.category == "Required")

    def get_summary(self) -> str:
        """Return a concise summary string of the check."""
        results = self.run_check()
        python_ok = all(d.installed for d in results if d.category == "Required")
        sys_tools = [d for d in results if d.category == "System Tool"]
        found_tools = sum(1 for d in sys_tools if d.installed)

        status = "OK" if python_ok else "CRITICAL MISSING"
        return (
            f"Dependency Status: {status} "
            f"(System Tools: {found_tools}/{len(sys_tools)} found)"
        )
