"""
Configuration management and loading.

Handles application settings, the config directory and environment
overrides.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

CONFIG_FILENAME = "config.yaml"
HISTORY_FILENAME = "history.json"
PRICING_CACHE_FILENAME = "pricing.json"

DEFAULT_PRICING_BASE_URL = "https://api.fal.ai/v1"
DEFAULT_PRICING_TTL_HOURS = 6.0
DEFAULT_HISTORY_LIMIT = 100

FALCON_HOME_ENV = "FALCON_HOME"


def default_config_dir() -> Path:
    """Config directory: ``$FALCON_HOME`` if set, else ``~/.falcon``."""
    override = os.environ.get(FALCON_HOME_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".falcon"


@dataclass(frozen=True)
class FalconConfig:
    """Settings for pricing and history persistence."""
    config_dir: Path
    api_key: Optional[str] = None
    pricing_ttl_hours: float = DEFAULT_PRICING_TTL_HOURS
    history_limit: int = DEFAULT_HISTORY_LIMIT
    pricing_base_url: str = DEFAULT_PRICING_BASE_URL

    def __post_init__(self):
        """Validate numeric limits."""
        if self.pricing_ttl_hours <= 0:
            raise ValueError("pricing_ttl_hours must be > 0")
        if self.history_limit <= 0:
            raise ValueError("history_limit must be > 0")
        if not self.pricing_base_url:
            raise ValueError("pricing_base_url cannot be empty")

    @property
    def history_path(self) -> Path:
        return self.config_dir / HISTORY_FILENAME

    @property
    def pricing_cache_path(self) -> Path:
        return self.config_dir / PRICING_CACHE_FILENAME

    @property
    def config_path(self) -> Path:
        return self.config_dir / CONFIG_FILENAME


def load_config(
    path: Optional[str] = None,
    config_dir: Optional[Path] = None
) -> FalconConfig:
    """Load and validate configuration from a YAML file.

    A missing file is not an error: the defaults apply. A file that exists
    but is malformed is, so a typo never silently changes pricing or
    retention behavior.

    Args:
        path: Explicit config file path (defaults to <config_dir>/config.yaml)
        config_dir: Config directory (defaults to $FALCON_HOME or ~/.falcon)

    Returns:
        Validated FalconConfig object

    Raises:
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    directory = Path(config_dir) if config_dir is not None else default_config_dir()
    config_path = Path(path) if path else directory / CONFIG_FILENAME

    if not config_path.exists():
        return FalconConfig(config_dir=directory)

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {config_path}: {e}")

    if raw_config is None:
        return FalconConfig(config_dir=directory)
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    allowed_keys = {'api_key', 'pricing_ttl_hours', 'history_limit', 'pricing_base_url'}
    unknown_keys = set(raw_config.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    return FalconConfig(config_dir=directory, **_parse_settings(raw_config))


def _parse_settings(data: Dict[str, Any]) -> Dict[str, Any]:
    """Type-check individual settings.

    Raises:
        ValueError: If a setting has the wrong type
    """
    settings: Dict[str, Any] = {}

    if 'api_key' in data and data['api_key'] is not None:
        if not isinstance(data['api_key'], str):
            raise ValueError("'api_key' must be a string")
        settings['api_key'] = data['api_key']

    if 'pricing_ttl_hours' in data:
        ttl = data['pricing_ttl_hours']
        if isinstance(ttl, bool) or not isinstance(ttl, (int, float)):
            raise ValueError("'pricing_ttl_hours' must be a number")
        settings['pricing_ttl_hours'] = float(ttl)

    if 'history_limit' in data:
        limit = data['history_limit']
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise ValueError("'history_limit' must be an integer")
        settings['history_limit'] = limit

    if 'pricing_base_url' in data:
        url = data['pricing_base_url']
        if not isinstance(url, str):
            raise ValueError("'pricing_base_url' must be a string")
        settings['pricing_base_url'] = url.rstrip('/')

    return settings
