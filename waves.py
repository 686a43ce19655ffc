"""
Wave overlay drawn alongside the particles.

Four segments are sampled along the progress axis: the incident wave in
front of the barrier, its reflection (amplitude scaled by ``sqrt(R)`` and
drawn below it), the evanescent envelope inside the barrier and the
transmitted wave behind it (amplitude scaled by ``sqrt(T)``).  Sampling is
a pure function of the phase time and the physics result; the only state
is the phase accumulator held by :class:`WaveOverlay`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

import numpy as np
from numpy import ndarray

from config import WaveConfig, load_wave_config
from tunneling_physics import TunnelingPhysics


@dataclass(frozen=True)
class WaveCurves:
    """Sampled ``(N, 2)`` arrays of ``(x, y)`` points; omitted segments are ``None``."""

    incident: Optional[ndarray] = None
    reflected: Optional[ndarray] = None
    evanescent: Optional[ndarray] = None
    transmitted: Optional[ndarray] = None

    def segments(self) -> Iterator[Tuple[str, ndarray]]:
        """Yield ``(name, points)`` for every segment that is present."""
        for name in ('incident', 'reflected', 'evanescent', 'transmitted'):
            points = getattr(self, name)
            if points is not None:
                yield name, points


def _grid(start: float, stop: float, step: float) -> ndarray:
    """Points ``start, start + step, ...`` up to and including ``stop``."""
    if step <= 0.0 or not math.isfinite(start) or not math.isfinite(stop) or stop < start:
        return np.empty((0,), dtype=float)
    count = int(math.floor((stop - start) / step + 1e-9)) + 1
    return start + step * np.arange(count, dtype=float)


def _as_curve(x: ndarray, y: ndarray) -> Optional[ndarray]:
    # A line needs at least two points to be drawn.
    if x.shape[0] < 2:
        return None
    return np.column_stack((x, y))


def sample_waves(
    time: float,
    physics: TunnelingPhysics,
    barrier_left: float,
    barrier_right: float,
    wave_cfg: Optional[WaveConfig] = None,
) -> WaveCurves:
    """Sample the four wave segments for the given phase time.

    Parameters
    ----------
    time: float
        Phase accumulator value.
    physics: TunnelingPhysics
        Current barrier configuration.
    barrier_left, barrier_right: float
        Barrier edges in scene units.
    wave_cfg: WaveConfig, optional
        Sampling constants; loaded from ``config.json`` when omitted.

    Returns
    -------
    WaveCurves
        Segments centred on the energy plane ``y = E/2``.
    """
    cfg = wave_cfg if wave_cfg is not None else load_wave_config()
    baseline = physics.energy / 2.0
    amplitude = cfg.amplitude
    wave_k = math.sqrt(max(physics.energy, 0.0)) * cfg.wavenumber_scale

    x_front = _grid(cfg.domain_min, barrier_left, cfg.sample_step)
    incident = _as_curve(x_front, baseline + amplitude * np.sin(wave_k * x_front - time))

    reflected = None
    if not physics.is_classical and physics.reflection_probability > cfg.reflected_threshold:
        reflected_amp = amplitude * math.sqrt(physics.reflection_probability)
        reflected = _as_curve(
            x_front,
            baseline + cfg.reflected_offset + reflected_amp * np.sin(-wave_k * x_front - time),
        )

    evanescent = None
    if not physics.is_classical and physics.kappa > 0.0:
        x_inside = _grid(barrier_left, barrier_right, cfg.barrier_sample_step)
        envelope = np.exp(-physics.kappa * (x_inside - barrier_left))
        evanescent = _as_curve(x_inside, baseline + amplitude * envelope * math.sin(-time))

    transmitted = None
    if physics.probability > cfg.transmitted_threshold:
        transmitted_amp = amplitude * math.sqrt(physics.probability)
        x_behind = _grid(barrier_right, cfg.domain_max, cfg.sample_step)
        transmitted = _as_curve(x_behind, baseline + transmitted_amp * np.sin(wave_k * x_behind - time))

    return WaveCurves(
        incident=incident,
        reflected=reflected,
        evanescent=evanescent,
        transmitted=transmitted,
    )


class WaveOverlay:
    """Phase clock plus visibility toggles for the wave segments.

    The phase keeps running when the particle experiment is reset.
    """

    def __init__(self, wave_cfg: Optional[WaveConfig] = None):
        self._cfg: WaveConfig = wave_cfg if wave_cfg is not None else load_wave_config()
        self._time: float = 0.0
        self.visible: bool = True
        self.show_incident: bool = True
        self.show_reflected: bool = True
        self.show_evanescent: bool = True
        self.show_transmitted: bool = True

    @property
    def time(self) -> float:
        return self._time

    def advance(self, dt: float) -> float:
        """Move the phase forward by ``dt`` seconds of frame time."""
        if dt > 0.0 and math.isfinite(dt):
            self._time += dt * self._cfg.time_rate
        return self._time

    def sample(self, physics: TunnelingPhysics, barrier_left: float, barrier_right: float) -> WaveCurves:
        """Return the enabled segments at the current phase."""
        if not self.visible:
            return WaveCurves()
        curves = sample_waves(self._time, physics, barrier_left, barrier_right, self._cfg)
        return WaveCurves(
            incident=curves.incident if self.show_incident else None,
            reflected=curves.reflected if self.show_reflected else None,
            evanescent=curves.evanescent if self.show_evanescent else None,
            transmitted=curves.transmitted if self.show_transmitted else None,
        )
