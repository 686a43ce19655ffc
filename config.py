"""
Configuration loading for the tunneling experiment.

Defaults live in ``config.json`` beside this module (or in the working
directory).  Each section is read into a small frozen dataclass; entries
that are missing or malformed fall back to the dataclass default one field
at a time, so a partially edited file never prevents the simulation from
starting.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Tuple

logger = logging.getLogger("quantum_tunneling.config")

CONFIG_FILENAME = 'config.json'

_APP_CONFIG_CACHE: Optional[dict] = None


def config_path() -> Optional[Path]:
    """Return the location of ``config.json`` or ``None`` if it cannot be found."""
    cfg_path = Path(__file__).resolve().parent / CONFIG_FILENAME
    if cfg_path.exists():
        return cfg_path
    alt = Path.cwd() / CONFIG_FILENAME
    if alt.exists():
        return alt
    return None


def load_app_config_dict(reload: bool = False) -> dict:
    """Return the parsed application config (empty when unavailable)."""
    global _APP_CONFIG_CACHE
    if _APP_CONFIG_CACHE is not None and not reload:
        return _APP_CONFIG_CACHE

    cfg_path = config_path()
    if cfg_path is None:
        logger.warning("%s not found, using built-in defaults", CONFIG_FILENAME)
        _APP_CONFIG_CACHE = {}
        return _APP_CONFIG_CACHE
    try:
        with cfg_path.open('r', encoding='utf-8') as fh:
            data = json.load(fh)
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Could not read %s (%s), using built-in defaults", cfg_path, exc)
        data = {}
    if not isinstance(data, dict):
        logger.warning("%s does not contain an object, using built-in defaults", cfg_path)
        data = {}
    _APP_CONFIG_CACHE = data
    return data


@dataclass(frozen=True)
class SceneConfig:
    """Scene geometry in scene units (one unit per nanometre of barrier width).

    Attributes
    ----------
    source_x, target_x: float
        Emitter and detector positions along the progress axis.
    barrier_x: float
        Centre of the barrier; its extent is ``barrier_x ± L/2``.
    spawn_offset: float
        Distance in front of the source at which particles appear.
    lateral_spread: float
        Full width of the uniform lateral jitter band.
    reflected_fade_distance: float
        Distance behind the source over which reflected particles fade.
    reflected_exit_margin: float
        Distance behind the source at which reflected particles are retired.
    """
    source_x: float = -8.0
    barrier_x: float = 0.0
    target_x: float = 8.0
    spawn_offset: float = 0.5
    lateral_spread: float = 3.0
    reflected_fade_distance: float = 3.0
    reflected_exit_margin: float = 2.0


@dataclass(frozen=True)
class EngineConfig:
    """Limits and timing constants of the particle lifecycle engine."""

    max_particles: int = 80
    trail_length: int = 20
    barrier_speed_factor: float = 0.7
    speed_min: float = 3.6
    speed_max: float = 4.8
    hit_flash_duration: float = 0.1
    fade_rate: float = 4.0
    frame_step: float = 1.0 / 60.0


@dataclass(frozen=True)
class WaveConfig:
    """Sampling constants for the wave overlay."""

    domain_min: float = -10.0
    domain_max: float = 10.0
    amplitude: float = 0.5
    time_rate: float = 3.0
    sample_step: float = 0.15
    barrier_sample_step: float = 0.05
    reflected_threshold: float = 0.01
    transmitted_threshold: float = 0.001
    reflected_offset: float = -1.2
    wavenumber_scale: float = 0.8


@dataclass(frozen=True)
class DisplayConfig:
    """Window and keyboard-step settings of the pygame front end."""

    window_size: Tuple[int, int] = (1280, 720)
    fps: int = 60
    slow_motion_factor: float = 0.25
    energy_step: float = 0.5
    height_step: float = 0.5
    width_step: float = 0.1
    intensity_step: float = 5.0


def _coerce_value(raw: Any, default: Any) -> Any:
    if isinstance(default, bool):
        return bool(raw)
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    if isinstance(default, tuple):
        return tuple(type(d)(v) for d, v in zip(default, raw, strict=True))
    return raw


def _section_to_dataclass(name: str, cls, data: Optional[dict] = None):
    """Build ``cls`` from section ``name``, falling back per field."""
    source = load_app_config_dict() if data is None else data
    defaults = cls()
    section = source.get(name, {}) if isinstance(source, dict) else {}
    if not isinstance(section, dict):
        logger.warning("Config section '%s' is not an object, using defaults", name)
        return defaults

    values = {}
    for field in dataclasses.fields(cls):
        default = getattr(defaults, field.name)
        if field.name not in section:
            values[field.name] = default
            continue
        try:
            values[field.name] = _coerce_value(section[field.name], default)
        except (TypeError, ValueError):
            logger.warning(
                "Invalid value %r for %s.%s, using default %r",
                section[field.name], name, field.name, default,
            )
            values[field.name] = default
    return cls(**values)


def load_scene_config(data: Optional[dict] = None) -> SceneConfig:
    """Read the ``scene`` section."""
    return _section_to_dataclass('scene', SceneConfig, data)


def load_engine_config(data: Optional[dict] = None) -> EngineConfig:
    """Read the ``engine`` section."""
    return _section_to_dataclass('engine', EngineConfig, data)


def load_wave_config(data: Optional[dict] = None) -> WaveConfig:
    """Read the ``waves`` section."""
    return _section_to_dataclass('waves', WaveConfig, data)


def load_display_config(data: Optional[dict] = None) -> DisplayConfig:
    """Read the ``display`` section."""
    return _section_to_dataclass('display', DisplayConfig, data)


class ConfigLoader:
    """Dictionary-style view of ``config.json``.

    ``loader['parameters']`` returns the raw section; a missing key raises
    ``KeyError`` just like a plain mapping.
    """

    def __init__(self, data: Optional[dict] = None):
        self._loader: dict = load_app_config_dict() if data is None else data

    def __getitem__(self, key: str) -> Any:
        return self._loader[key]

    def __contains__(self, key: str) -> bool:
        return key in self._loader

    def get(self, key: str, default: Any = None) -> Any:
        return self._loader.get(key, default)
