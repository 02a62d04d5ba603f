import os
import sys

import pytest

# Add src to python path so we can import modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../src')))

from ChordDispatch.window_detection import SIMULATION_ENV_VAR


@pytest.fixture
def simulate_window(tmp_path):
    """
    Fixture to simulate the focused window.

    Usage in tests:
        def test_something(simulate_window):
            path = simulate_window("org.wezfurlong.wezterm")
            path = simulate_window("New Tab - Firefox|firefox")
    """
    path = tmp_path / "fake_window"

    def _simulate(window_info: str) -> str:
        path.write_text(window_info)
        return str(path)

    return _simulate


@pytest.fixture
def clean_env(monkeypatch):
    """Remove session variables that steer detection and injection order."""
    for var in ("NIRI_SOCKET", "HYPRLAND_INSTANCE_SIGNATURE", "SWAYSOCK",
                "XDG_CURRENT_DESKTOP", "DISPLAY", "WAYLAND_DISPLAY", SIMULATION_ENV_VAR):
        monkeypatch.delenv(var, raising=False)
    return monkeypatch
