"""
Configuration — loads settings from .tolerant_patch.yaml, environment
variables, and built-in defaults (in that priority order: CLI args > env >
YAML > defaults).
"""

from __future__ import annotations

import logging
import math
import os

import yaml

from .diff_display import CONFIRM_MODES
from .editing.fences import DEFAULT_FENCES, FencePair, FenceSelector
from .editing.match_locator import (
    DEFAULT_HINT_THRESHOLD,
    DEFAULT_SIMILARITY_THRESHOLD,
    DEFAULT_WINDOW_SCALE,
    MatchLocator,
)
from .editing.metrics import DEFAULT_METRICS_DIR

logger = logging.getLogger(__name__)


_DEFAULTS = {
    "similarity_threshold": DEFAULT_SIMILARITY_THRESHOLD,
    "window_scale": DEFAULT_WINDOW_SCALE,
    "hint_threshold": DEFAULT_HINT_THRESHOLD,
    "confirm_mode": "console",
    "record_metrics": True,
    "metrics_dir": DEFAULT_METRICS_DIR,
    "log_dir": ".tolerant_patch/logs",
}

# Config file search locations
_CONFIG_FILENAMES = [".tolerant_patch.yaml", ".tolerant_patch.yml"]


def _find_config_file(explicit_path: str | None = None) -> str | None:
    """Find the config file. Checks explicit path, CWD, then user home."""
    if explicit_path:
        if os.path.isfile(explicit_path):
            return explicit_path
        logger.warning("[Config] Config file %s not found, using defaults", explicit_path)
        return None

    # Search CWD first, then home directory
    search_dirs = [os.getcwd(), os.path.expanduser("~")]
    for d in search_dirs:
        for name in _CONFIG_FILENAMES:
            path = os.path.join(d, name)
            if os.path.isfile(path):
                return path
    return None


def _load_yaml(path: str) -> dict:
    """Load YAML file, returns empty dict on failure."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("[Config] Could not load %s: %s", path, exc)
        return {}


def _parse_fences(raw) -> tuple[FencePair, ...]:
    if not isinstance(raw, list):
        return DEFAULT_FENCES
    pairs: list[FencePair] = []
    for entry in raw:
        if (
            isinstance(entry, (list, tuple))
            and len(entry) == 2
            and all(isinstance(token, str) and token for token in entry)
        ):
            pairs.append(FencePair(entry[0], entry[1]))
        else:
            logger.warning("[Config] Ignoring malformed fence entry %r", entry)
    return tuple(pairs) or DEFAULT_FENCES


class Config:
    """Patch engine configuration.

    Settings are resolved in priority order:
    1. CLI arguments (handled by caller)
    2. Environment variables
    3. .tolerant_patch.yaml config file
    4. Built-in defaults
    """

    def __init__(self, yaml_data: dict | None = None):
        yd = yaml_data or {}

        # Helper: env var > yaml > default
        def _get(env_key: str, yaml_key: str, default, cast=str):
            env_val = os.getenv(env_key)
            if env_val is not None:
                try:
                    return cast(env_val)
                except ValueError:
                    logger.warning("[Config] Bad value %s=%r, using default", env_key, env_val)
                    return default
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                try:
                    return cast(yaml_val)
                except (TypeError, ValueError):
                    logger.warning("[Config] Bad value %s=%r, using default", yaml_key, yaml_val)
                    return default
            return default

        def _get_bool(env_key: str, yaml_key: str, default: bool) -> bool:
            env_val = os.getenv(env_key)
            if env_val is not None:
                return env_val.lower() in ("true", "1", "yes")
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return bool(yaml_val)
            return default

        def _get_ratio(env_key: str, yaml_key: str) -> float:
            default = _DEFAULTS[yaml_key]
            value = _get(env_key, yaml_key, default, cast=float)
            if not 0.0 < value <= 1.0:
                logger.warning(
                    "[Config] %s=%s is outside (0, 1], using %s", yaml_key, value, default
                )
                return default
            return value

        self.SIMILARITY_THRESHOLD = _get_ratio("PATCH_SIMILARITY_THRESHOLD",
                                               "similarity_threshold")
        self.HINT_THRESHOLD = _get_ratio("PATCH_HINT_THRESHOLD", "hint_threshold")

        self.WINDOW_SCALE = _get("PATCH_WINDOW_SCALE", "window_scale",
                                 _DEFAULTS["window_scale"], cast=float)
        if not math.isfinite(self.WINDOW_SCALE) or self.WINDOW_SCALE < 0:
            logger.warning("[Config] window_scale=%s is not a finite number >= 0, using default",
                           self.WINDOW_SCALE)
            self.WINDOW_SCALE = _DEFAULTS["window_scale"]

        self.CONFIRM_MODE = _get("PATCH_CONFIRM_MODE", "confirm_mode",
                                 _DEFAULTS["confirm_mode"]).lower()
        if self.CONFIRM_MODE not in CONFIRM_MODES:
            logger.warning("[Config] Unknown confirm_mode %r, using %r",
                           self.CONFIRM_MODE, _DEFAULTS["confirm_mode"])
            self.CONFIRM_MODE = _DEFAULTS["confirm_mode"]

        self.RECORD_METRICS = _get_bool("PATCH_RECORD_METRICS", "record_metrics",
                                        _DEFAULTS["record_metrics"])
        self.METRICS_DIR = _get("PATCH_METRICS_DIR", "metrics_dir",
                                _DEFAULTS["metrics_dir"])
        self.LOG_DIR = _get("PATCH_LOG_DIR", "log_dir", _DEFAULTS["log_dir"])

        # Fence catalog, in priority order
        self.FENCES: tuple[FencePair, ...] = _parse_fences(yd.get("fences"))

    def build_locator(self) -> MatchLocator:
        """Return a MatchLocator using this config's thresholds."""
        return MatchLocator(
            similarity_threshold=self.SIMILARITY_THRESHOLD,
            window_scale=self.WINDOW_SCALE,
        )

    def build_fence_selector(self) -> FenceSelector:
        return FenceSelector(self.FENCES)

    @classmethod
    def load(cls, config_path: str | None = None) -> "Config":
        """Load config from YAML file (if found) + env vars + defaults."""
        path = _find_config_file(config_path)
        yaml_data = _load_yaml(path) if path else {}
        return cls(yaml_data)
