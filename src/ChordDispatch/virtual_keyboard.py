import logging
import time

from evdev import UInput, ecodes

from .models import KeyChord

logger = logging.getLogger(__name__)

# Chord key names that do not map to KEY_<NAME> directly
KEY_ALIASES = {
    'CTRL': 'KEY_LEFTCTRL',
    'ALT': 'KEY_LEFTALT',
    'SHIFT': 'KEY_LEFTSHIFT',
    'SUPER': 'KEY_LEFTMETA',
    'RETURN': 'KEY_ENTER',
    'ESCAPE': 'KEY_ESC',
    'DEL': 'KEY_DELETE',
    'INS': 'KEY_INSERT',
    'CAPS': 'KEY_CAPSLOCK',
}


class VirtualKeyboard:
    """
    uinput keyboard device for synthesizing key chords.

    Creating the device requires write access to /dev/uinput. The device
    lives only as long as this object; use it as a context manager.
    """

    def __init__(self, name='ChordDispatch-Virtual-Keyboard', settle_delay=0.2, key_delay=0.02):
        self.name = name
        self.settle_delay = settle_delay
        self.key_delay = key_delay
        self.device = None
        self.available = False
        self.last_error = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self):
        """Initialize the uinput device."""
        try:
            cap = {
                ecodes.EV_KEY: self._get_all_keys()
            }
            self.device = UInput(cap, name=self.name)
            self.available = True
            logger.debug("Virtual keyboard initialized")
            # Give the compositor time to pick up the new device
            time.sleep(self.settle_delay)

        except PermissionError:
            self.last_error = "permission denied accessing /dev/uinput"
            logger.debug("Permission denied accessing /dev/uinput, virtual keyboard disabled")
            self.available = False
        except Exception as e:
            self.last_error = str(e)
            logger.debug(f"Failed to initialize virtual keyboard: {e}")
            self.available = False

        return self.available

    def _get_all_keys(self):
        """Get a list of all key constants from ecodes."""
        keys = []
        for name in dir(ecodes):
            if name.startswith('KEY_'):
                val = getattr(ecodes, name)
                if isinstance(val, int) and val < ecodes.KEY_CNT:
                    keys.append(val)
        return keys

    def _get_keycode(self, key_name):
        """Convert a chord key name to an evdev keycode."""
        key_name = key_name.upper().replace(' ', '_')

        evdev_name = KEY_ALIASES.get(key_name, f"KEY_{key_name}")
        if hasattr(ecodes, evdev_name):
            return getattr(ecodes, evdev_name)

        logger.warning(f"Unknown key: {key_name}")
        return None

    def press_key(self, key_code):
        """Press (hold down) a key."""
        self.device.write(ecodes.EV_KEY, key_code, 1)
        self.device.syn()

    def release_key(self, key_code):
        """Release a key."""
        self.device.write(ecodes.EV_KEY, key_code, 0)
        self.device.syn()

    def send_chord(self, chord: KeyChord) -> bool:
        """
        Send a key chord: press modifiers then key, release in reverse order.

        :return: True if the chord was written to the device
        """
        if not self.available:
            return False

        key_codes = []
        for name in chord.modifiers + (chord.key,):
            code = self._get_keycode(name)
            if code is None:
                self.last_error = f"could not map key '{name}' in chord '{chord}'"
                logger.error(f"Could not map key '{name}' in chord '{chord}'")
                return False
            key_codes.append(code)

        try:
            for code in key_codes:
                self.press_key(code)

            time.sleep(self.key_delay)

            for code in reversed(key_codes):
                self.release_key(code)
        except OSError as e:
            self.last_error = str(e)
            logger.error(f"Error writing to virtual keyboard: {e}")
            return False

        return True

    def close(self):
        """Close the uinput device."""
        if self.device:
            self.device.close()
            self.device = None
        self.available = False
