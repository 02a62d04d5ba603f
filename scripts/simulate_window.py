#!/usr/bin/env python3
"""
Helper script to simulate the focused window for chord-dispatch.
Usage:
    ./simulate_window.py "org.wezfurlong.wezterm"
    ./simulate_window.py "Window Title|app_id"
    ./simulate_window.py ""            # no focused window

Run chord-dispatch with CHORD_DISPATCH_SIMULATION_FILE pointing at the same file.
"""
import os
import sys

SIMULATION_FILE = os.environ.get("CHORD_DISPATCH_SIMULATION_FILE", "/tmp/chord_dispatch_fake_window")

def main():
    if len(sys.argv) < 2:
        print(f"Usage: {sys.argv[0]} <Window Info>")
        print("Example: ./simulate_window.py firefox")
        print("Example: ./simulate_window.py 'New Tab - Firefox|firefox'")
        sys.exit(1)

    window_info = sys.argv[1]

    try:
        with open(SIMULATION_FILE, "w") as f:
            f.write(window_info)
        print(f"Set focused window to: '{window_info}' ({SIMULATION_FILE})")
    except OSError as e:
        print(f"Error writing to simulation file: {e}")
        sys.exit(1)

if __name__ == "__main__":
    main()
