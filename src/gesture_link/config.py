"""GestureLink configuration management.

Configuration lives in a YAML file with one section per component:

    role: STANDALONE
    classifier:
      pinch_threshold: 0.06
    emitter:
      screen_width: 2560
      screen_height: 1440
    executor:
      pointer_command: [swift, mouse_control.swift]
      shortcuts:
        SWIPE_LEFT: [xdotool, key, super+Left]
    server:
      port: 3000
    camera:
      device: 0

Unknown keys are logged and ignored.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml

from gesture_link.classifier import ClassifierConfig
from gesture_link.commands import ControlCommand
from gesture_link.emitter import EmitterConfig

logger = logging.getLogger("gesture_link.config")

CONFIG_ENV = "GESTURE_LINK_CONFIG"


@dataclass
class ExecutorConfig:
    pointer_command: list[str] = field(default_factory=lambda: ["swift", "mouse_control.swift"])
    shortcuts: dict[str, list[str]] = field(default_factory=dict)
    timeout: float = 5.0

    def shortcut_overrides(self) -> dict[ControlCommand, list[str]]:
        """Configured shortcuts keyed by command.

        Raises:
            ValueError: a key is not a known control command.
        """
        return {ControlCommand(name): list(argv) for name, argv in self.shortcuts.items()}


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 3000


@dataclass
class CameraConfig:
    device: int = 0
    width: int = 640
    height: int = 480
    max_hands: int = 2
    poll_interval: float = 0.001


@dataclass
class AppConfig:
    role: str = "STANDALONE"
    log_level: str = "info"
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    emitter: EmitterConfig = field(default_factory=EmitterConfig)
    executor: ExecutorConfig = field(default_factory=ExecutorConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    camera: CameraConfig = field(default_factory=CameraConfig)


_SECTIONS = {
    "classifier": ClassifierConfig,
    "emitter": EmitterConfig,
    "executor": ExecutorConfig,
    "server": ServerConfig,
    "camera": CameraConfig,
}


def _build(cls, data: dict, section: str):
    known = {f.name for f in fields(cls)}
    for key in data:
        if key not in known:
            logger.warning("Ignoring unknown config key %s.%s", section, key)
    return cls(**{k: v for k, v in data.items() if k in known})


def config_from_dict(data: dict) -> AppConfig:
    if not isinstance(data, dict):
        raise ValueError("Config root must be a mapping")

    kwargs = {}
    for key, value in data.items():
        if key in _SECTIONS:
            if not isinstance(value, dict):
                raise ValueError(f"Config section '{key}' must be a mapping")
            kwargs[key] = _build(_SECTIONS[key], value, key)
        elif key in ("role", "log_level"):
            kwargs[key] = value
        else:
            logger.warning("Ignoring unknown config key %s", key)
    return AppConfig(**kwargs)


def load_config(path: Optional[str | Path] = None) -> AppConfig:
    """Load configuration from `path`, or from $GESTURE_LINK_CONFIG.

    Returns defaults when neither is given.
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV)
    if not path:
        return AppConfig()

    with open(path) as f:
        data = yaml.safe_load(f) or {}
    return config_from_dict(data)


def save_config(config: AppConfig, path: str | Path):
    """Write `config` as YAML."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(asdict(config), f, default_flow_style=False, sort_keys=False)
