"""
Configuration for bot-detector-core.

Timeouts drive the player lifecycle (connected -> disconnected -> expired),
the fuzzy threshold is the default for fuzzy name rules that do not carry
their own, and kick tags tell automation which match tags warrant action.
"""

import logging
from dataclasses import dataclass, field, fields
from datetime import timedelta
from pathlib import Path

import yaml

log = logging.getLogger(__name__)


@dataclass
class Settings:
    """
    Runtime settings.

    Attributes:
        disconnect_timeout: Seconds without an update before a player is
            shown as disconnected
        expire_timeout: Seconds without an update before a player is
            removed from the registry
        fuzzy_threshold: Default similarity (0-1) for fuzzy name rules
        kick_tags: Match tags automation should act on
        local_list_name: Name of the list holding manual marks
        list_paths: Rule list documents loaded at startup
    """
    disconnect_timeout: float = 6.0
    expire_timeout: float = 20.0
    fuzzy_threshold: float = 0.92
    kick_tags: list[str] = field(default_factory=lambda: ['cheater', 'bot'])
    local_list_name: str = 'local'
    list_paths: list[Path] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.list_paths = [Path(p) for p in self.list_paths]
        if self.disconnect_timeout <= 0:
            raise ValueError("disconnect_timeout must be positive")
        if self.expire_timeout <= self.disconnect_timeout:
            raise ValueError("expire_timeout must be greater than disconnect_timeout")
        if not 0.0 < self.fuzzy_threshold <= 1.0:
            raise ValueError("fuzzy_threshold must be within (0, 1]")

    @property
    def disconnect_after(self) -> timedelta:
        return timedelta(seconds=self.disconnect_timeout)

    @property
    def expire_after(self) -> timedelta:
        return timedelta(seconds=self.expire_timeout)


def load_settings(path: str | Path) -> Settings:
    """
    Load settings from a YAML file.

    Unknown keys are ignored with a warning, missing keys keep their defaults.

    Args:
        path: Path to the YAML file

    Returns:
        Settings instance

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the document is not a mapping or a value is invalid
    """
    path = Path(path)
    with open(path, 'r', encoding='utf-8') as f:
        document = yaml.safe_load(f) or {}

    if not isinstance(document, dict):
        raise ValueError(f"Settings file {path} must contain a mapping")

    known = {f.name for f in fields(Settings)}
    for key in sorted(set(document) - known):
        log.warning("Unknown setting %r in %s ignored", key, path)

    return Settings(**{k: v for k, v in document.items() if k in known})
