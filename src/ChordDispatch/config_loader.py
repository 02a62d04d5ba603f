"""
Configuration loader for chord-dispatch.
Loads settings, classification rules and the chord table from a YAML file.

Expected YAML structure (every section is optional):
chord_dispatch:
  settings:
    log_level: INFO                 # DEBUG, INFO, WARNING or ERROR
    detection: [niri, hyprland]     # detection method order, default: from environment
    injection: [wtype, uinput]      # injection backend order, default: from environment
    command_timeout: 1.0            # seconds per external command, default: 1.0
    simulation_file: "/tmp/chord_dispatch_fake_window"
  rules:                            # checked in order, first match wins
    - pattern: "foot"
      action: terminal
  default_action: default
  chords:
    copy:
      terminal: "CTRL+SHIFT+C"
      default: "CTRL+C"
    paste:
      terminal: "CTRL+SHIFT+V"
      default: "CTRL+V"
"""
import logging
import os

import yaml

from .chords import DEFAULT_CHORDS
from .key_injection import INJECTION_BACKENDS
from .models import ActionKind, KeyChord, Operation
from .window_detection import DETECTION_METHODS
from .window_rules import DEFAULT_RULES, ClassificationRule

ROOT_ELEMENT = 'chord_dispatch'
VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR']
VALID_ACTIONS = [a.value for a in ActionKind]
VALID_OPERATIONS = [o.value for o in Operation]
VALID_RULE_FIELDS = ['pattern', 'action']


class ConfigValidationError(Exception):
    """Exception raised when configuration validation fails."""


def default_config_path():
    """Return $XDG_CONFIG_HOME/chord-dispatch/config.yml."""
    config_home = os.environ.get('XDG_CONFIG_HOME') or os.path.join(os.path.expanduser('~'), '.config')
    return os.path.join(config_home, 'chord-dispatch', 'config.yml')


class ConfigLoader:
    """Load and validate chord-dispatch configuration from a YAML file."""

    def __init__(self, config_path=None):
        """
        Initialize the configuration loader with built-in defaults.

        :param config_path: Path to the YAML configuration file
        """
        self.config_path = config_path
        self.config = None
        self.log_level = None
        self.detection = None
        self.injection = None
        self.command_timeout = 1.0
        self.simulation_file = None
        self.rules = list(DEFAULT_RULES)
        self.default_action = ActionKind.DEFAULT
        self.chords = dict(DEFAULT_CHORDS)
        self.logger = logging.getLogger(__name__)

    def load(self):
        """
        Load and parse the YAML configuration file.

        :raises ConfigValidationError: If configuration is invalid
        :raises FileNotFoundError: If config file doesn't exist
        """
        if not os.path.exists(self.config_path):
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, 'r') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Invalid YAML in {self.config_path}: {e}") from e

        if not config:
            raise ConfigValidationError("Configuration file is empty")

        if not isinstance(config, dict) or ROOT_ELEMENT not in config:
            raise ConfigValidationError(f"Configuration must contain '{ROOT_ELEMENT}' root element")

        self.config = config[ROOT_ELEMENT] or {}
        if not isinstance(self.config, dict):
            raise ConfigValidationError(f"'{ROOT_ELEMENT}' must be a dictionary")

        self._validate_config()
        self.logger.debug(f"Loaded configuration from {self.config_path}")

    def _validate_config(self):
        """
        Validate the configuration structure and content.

        :raises ConfigValidationError: If validation fails
        """
        if 'settings' in self.config:
            self._validate_settings()

        if 'rules' in self.config:
            self._validate_rules()

        if 'default_action' in self.config:
            self.default_action = self._parse_action(self.config['default_action'], "default_action")

        if 'chords' in self.config:
            self._validate_chords()

    def _validate_settings(self):
        """Validate settings section."""
        settings = self.config['settings']

        if not isinstance(settings, dict):
            raise ConfigValidationError("'settings' must be a dictionary")

        if 'log_level' in settings:
            level = settings['log_level']
            if not isinstance(level, str) or level.upper() not in VALID_LOG_LEVELS:
                raise ConfigValidationError(
                    f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"
                )
            self.log_level = level.upper()

        if 'detection' in settings:
            self.detection = self._validate_name_list(
                settings['detection'], 'detection', DETECTION_METHODS
            )

        if 'injection' in settings:
            self.injection = self._validate_name_list(
                settings['injection'], 'injection', INJECTION_BACKENDS
            )

        if 'command_timeout' in settings:
            timeout = settings['command_timeout']
            if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0 or timeout > 10.0:
                raise ConfigValidationError("command_timeout must be a number between 0 and 10.0 (seconds)")
            self.command_timeout = float(timeout)

        if 'simulation_file' in settings:
            path = settings['simulation_file']
            if not isinstance(path, str) or not path:
                raise ConfigValidationError("simulation_file must be a non-empty string")
            self.simulation_file = os.path.expanduser(path)

    def _validate_name_list(self, value, setting, known):
        if not isinstance(value, list) or not value:
            raise ConfigValidationError(f"'{setting}' must be a non-empty list")

        for name in value:
            if not isinstance(name, str) or name not in known:
                raise ConfigValidationError(
                    f"Unknown {setting} method '{name}'. Valid values: {', '.join(known)}"
                )

        if len(set(value)) != len(value):
            raise ConfigValidationError(f"'{setting}' contains duplicate entries")

        return list(value)

    def _parse_action(self, value, where):
        if value not in VALID_ACTIONS:
            raise ConfigValidationError(
                f"{where}: invalid action '{value}'. Valid actions: {', '.join(VALID_ACTIONS)}"
            )
        return ActionKind(value)

    def _validate_rules(self):
        """Validate rules section. An explicit list replaces the built-in rules."""
        rules_config = self.config['rules']

        if not isinstance(rules_config, list):
            raise ConfigValidationError("'rules' must be a list")

        rules = []
        for index, rule_def in enumerate(rules_config):
            if not isinstance(rule_def, dict):
                raise ConfigValidationError(f"Rule #{index + 1} must be a dictionary")

            unknown = sorted(str(k) for k in rule_def if k not in VALID_RULE_FIELDS)
            if unknown:
                raise ConfigValidationError(
                    f"Rule #{index + 1} has unsupported field(s): {', '.join(unknown)}. "
                    f"Use any of: {', '.join(VALID_RULE_FIELDS)}"
                )

            pattern = rule_def.get('pattern')
            if not isinstance(pattern, str) or not pattern:
                raise ConfigValidationError(f"Rule #{index + 1} must have a non-empty 'pattern' string")

            if 'action' not in rule_def:
                raise ConfigValidationError(f"Rule #{index + 1} ('{pattern}') must have an 'action' field")

            action = self._parse_action(rule_def['action'], f"Rule #{index + 1} ('{pattern}')")
            rules.append(ClassificationRule(pattern, action))

        self.rules = rules

    def _validate_chords(self):
        """Validate chords section. Entries override the built-in table one by one."""
        chords_config = self.config['chords']

        if not isinstance(chords_config, dict):
            raise ConfigValidationError("'chords' must be a dictionary")

        for operation_name, by_action in chords_config.items():
            if operation_name not in VALID_OPERATIONS:
                raise ConfigValidationError(
                    f"Unknown operation '{operation_name}' in chords. "
                    f"Valid operations: {', '.join(VALID_OPERATIONS)}"
                )

            if not isinstance(by_action, dict):
                raise ConfigValidationError(f"chords.{operation_name} must be a dictionary")

            for action_name, combo in by_action.items():
                action = self._parse_action(action_name, f"chords.{operation_name}")
                try:
                    chord = KeyChord.parse(combo)
                except ValueError as e:
                    raise ConfigValidationError(f"chords.{operation_name}.{action_name}: {e}") from e
                self.chords[(Operation(operation_name), action)] = chord
