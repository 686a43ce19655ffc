"""
Particle lifecycle engine for the barrier tunnelling experiment.

Particles leave a source on the left, fly toward a rectangular potential
barrier and either tunnel through it to a detector on the right or bounce
back toward the source.  Whether a particle tunnels is decided once, when
it is emitted, from the WKB transmission probability of the barrier that
was in place at that moment.  Every frame the engine

1. emits at most one new particle (throttled by the intensity and capped
   at a fixed number of live particles),
2. advances every live particle through its phase state machine
   (incident -> barrier -> transmitted, or incident -> reflected),
3. drops the particles that finished, after all of them were advanced.

Changing the barrier (energy, height or width) discards all particles in
flight and clears the counters, so the measured probability never mixes
results from two configurations.  The engine is a plain synchronous
object: call :meth:`TunnelingSimulation.update` once per rendered frame.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Optional, Tuple

import numpy as np

from config import (
    ConfigLoader,
    EngineConfig,
    SceneConfig,
    load_engine_config,
    load_scene_config,
)
from tunneling_physics import Phase, TunnelingPhysics, evaluate
from tunneling_stats import StatsSnapshot, TunnelingStatistics

logger = logging.getLogger("quantum_tunneling.simulation")

Callback = Callable[[], None]
TrailPoint = Tuple[float, float, float]

################################################################################
# Parameters and particle records
################################################################################


@dataclass(frozen=True)
class SimulationParameters:
    """Physical and display parameters supplied by the front end.

    Attributes
    ----------
    particle_energy: float
        Kinetic energy ``E`` in eV.
    barrier_height: float
        Barrier potential ``V₀`` in eV.
    barrier_width: float
        Barrier width ``L`` in nm.
    particle_mass: float
        Mass multiplier relative to the electron.
    spawn_intensity: float
        Emitted particles per second.
    slow_motion_factor: float
        Time dilation applied to particle motion, in ``(0, 1]``.
    """
    particle_energy: float = 5.0
    barrier_height: float = 8.0
    barrier_width: float = 1.5
    particle_mass: float = 1.0
    spawn_intensity: float = 25.0
    slow_motion_factor: float = 1.0

    def barrier_key(self) -> Tuple[float, float, float]:
        """The ``(E, V₀, L)`` triple whose change resets the experiment."""
        return (self.particle_energy, self.barrier_height, self.barrier_width)

    def replace(self, **changes) -> 'SimulationParameters':
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_mapping(cls, data: Optional[dict]) -> 'SimulationParameters':
        """Build parameters from a mapping, keeping defaults for bad entries."""
        defaults = cls()
        if not isinstance(data, dict):
            return defaults
        values = {}
        for f in dataclasses.fields(cls):
            raw = data.get(f.name, getattr(defaults, f.name))
            try:
                values[f.name] = float(raw)
            except (TypeError, ValueError):
                logger.warning("Invalid parameter %s=%r, using %r", f.name, raw, getattr(defaults, f.name))
                values[f.name] = getattr(defaults, f.name)
        return cls(**values)


def load_default_parameters(data: Optional[dict] = None) -> SimulationParameters:
    """Read the ``parameters`` section of ``config.json``."""
    if data is not None and not isinstance(data, dict):
        return SimulationParameters()
    section = ConfigLoader(data).get('parameters')
    return SimulationParameters.from_mapping(section)


@dataclass(frozen=True)
class ParticleState:
    """Read-only view of one particle handed to renderers."""

    id: int
    x: float
    y: float
    z: float
    phase: Phase
    will_tunnel: bool
    decay: float
    opacity: float
    scale: float
    detected: bool
    trail: Tuple[TrailPoint, ...]


@dataclass
class Particle:
    """Mutable particle record owned by :class:`TunnelingSimulation`."""

    id: int
    x: float
    y: float
    z: float
    speed: float
    will_tunnel: bool
    spawn_time: float
    trail: Deque[TrailPoint] = field(default_factory=deque)
    phase: Phase = Phase.INCIDENT
    decay: float = 1.0
    opacity: float = 1.0
    scale: float = 1.0
    detected: bool = False
    hit_time: float = 0.0
    removed: bool = False

    def to_state(self) -> ParticleState:
        return ParticleState(
            id=self.id,
            x=self.x,
            y=self.y,
            z=self.z,
            phase=self.phase,
            will_tunnel=self.will_tunnel,
            decay=self.decay,
            opacity=self.opacity,
            scale=self.scale,
            detected=self.detected,
            trail=tuple(self.trail),
        )


def _check_callback(name: str, callback: Optional[Callback]) -> Optional[Callback]:
    if callback is not None and not callable(callback):
        raise TypeError(f"{name} must be callable or None")
    return callback


################################################################################
# Simulation class
################################################################################

class TunnelingSimulation:
    """Emit, advance and retire particles crossing a potential barrier.

    Parameters
    ----------
    params: SimulationParameters, optional
        Initial parameters; read from ``config.json`` when omitted.
    on_tunneled, on_reflected: callable, optional
        Called synchronously, with no arguments, when a particle reaches
        the detector or is turned back by the barrier.
    rng: numpy.random.Generator, optional
        Source of randomness for outcomes, speeds and jitter.
    seed: int, optional
        Seed for a fresh generator when ``rng`` is not given.
    scene_cfg, engine_cfg: optional
        Geometry and engine constants; read from ``config.json`` when omitted.
    """

    def __init__(
        self,
        params: Optional[SimulationParameters] = None,
        on_tunneled: Optional[Callback] = None,
        on_reflected: Optional[Callback] = None,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None,
        scene_cfg: Optional[SceneConfig] = None,
        engine_cfg: Optional[EngineConfig] = None,
    ):
        self._scene: SceneConfig = scene_cfg if scene_cfg is not None else load_scene_config()
        self._engine: EngineConfig = engine_cfg if engine_cfg is not None else load_engine_config()
        self._rng: np.random.Generator = rng if rng is not None else np.random.default_rng(seed)

        self._on_tunneled: Optional[Callback] = _check_callback('on_tunneled', on_tunneled)
        self._on_reflected: Optional[Callback] = _check_callback('on_reflected', on_reflected)

        self._params: SimulationParameters = params if params is not None else load_default_parameters()
        self._physics: TunnelingPhysics = self._evaluate(self._params)
        self._stats = TunnelingStatistics(theoretical_probability=self._physics.probability)

        self._particles: list[Particle] = []
        self._next_id: int = 0
        # Real (unscaled) frame time drives emission; scaled time drives motion.
        self._elapsed_time: float = 0.0
        self._last_spawn_time: float = -math.inf
        self._time_scale: float = 1.0
        self.set_time_scale(self._params.slow_motion_factor)
        self._dropped_spawns: int = 0
        # Bumped by every reset; checked while a frame is being advanced.
        self._generation: int = 0

    # -------------------------------------------------------------------------
    # Properties to expose the state
    @property
    def params(self) -> SimulationParameters:
        return self._params

    @property
    def physics(self) -> TunnelingPhysics:
        """Physics result for the current parameters."""
        return self._physics

    @property
    def particles(self) -> Tuple[ParticleState, ...]:
        """Snapshot of the live particles in emission order."""
        return tuple(p.to_state() for p in self._particles)

    @property
    def stats(self) -> StatsSnapshot:
        return self._stats.snapshot()

    @property
    def statistics(self) -> TunnelingStatistics:
        return self._stats

    @property
    def scene(self) -> SceneConfig:
        return self._scene

    @property
    def barrier_left(self) -> float:
        return self._scene.barrier_x - self._params.barrier_width / 2.0

    @property
    def barrier_right(self) -> float:
        return self._scene.barrier_x + self._params.barrier_width / 2.0

    def get_particle_count(self) -> int:
        return len(self._particles)

    def get_elapsed_time(self) -> float:
        """Real frame time accumulated since construction."""
        return self._elapsed_time

    def get_dropped_spawn_count(self) -> int:
        """Emission attempts discarded because the particle cap was reached."""
        return self._dropped_spawns

    # -------------------------------------------------------------------------
    # Time scaling helpers ----------------------------------------------------
    def set_time_scale(self, scale: float) -> None:
        """Set the slow-motion multiplier applied to particle motion."""
        try:
            scale = float(scale)
        except (TypeError, ValueError):
            scale = 1.0
        if not math.isfinite(scale) or scale <= 0.0:
            scale = 1.0
        self._time_scale = min(scale, 1.0)

    def get_time_scale(self) -> float:
        return self._time_scale

    # -------------------------------------------------------------------------
    def set_callbacks(self, on_tunneled: Optional[Callback] = None, on_reflected: Optional[Callback] = None) -> None:
        """Replace the detector callbacks."""
        self._on_tunneled = _check_callback('on_tunneled', on_tunneled)
        self._on_reflected = _check_callback('on_reflected', on_reflected)

    def _evaluate(self, params: SimulationParameters) -> TunnelingPhysics:
        return evaluate(
            params.particle_energy,
            params.barrier_height,
            params.barrier_width,
            params.particle_mass,
        )

    def set_params(self, params: SimulationParameters) -> bool:
        """Adopt new parameters.

        A change of ``(E, V₀, L)`` discards every particle in flight and
        zeroes the counters.  Mass, intensity and slow motion are applied
        without a reset; a new mass only refreshes the predicted probability.

        Returns
        -------
        bool
            ``True`` if the experiment was reset.
        """
        old = self._params
        self._params = params
        self.set_time_scale(params.slow_motion_factor)

        barrier_changed = old.barrier_key() != params.barrier_key()
        if barrier_changed or old.particle_mass != params.particle_mass:
            self._physics = self._evaluate(params)

        if barrier_changed:
            logger.info(
                "Barrier changed to E=%.3g eV, V0=%.3g eV, L=%.3g nm (T=%.3g); resetting experiment",
                params.particle_energy, params.barrier_height, params.barrier_width,
                self._physics.probability,
            )
            self.reset()
            return True

        self._stats.record_theory(self._physics.probability)
        return False

    def reset(self) -> None:
        """Discard particles in flight and clear the counters immediately."""
        self._particles = []
        self._generation += 1
        self._stats.reset(self._physics.probability)

    # -------------------------------------------------------------------------
    def _spawn_interval(self) -> float:
        intensity = self._params.spawn_intensity
        if not math.isfinite(intensity) or intensity <= 0.0:
            return math.inf
        return 1.0 / intensity

    def _maybe_spawn(self) -> None:
        """Emit one particle if the intensity timer elapsed."""
        interval = self._spawn_interval()
        if math.isinf(interval):
            return
        if self._elapsed_time - self._last_spawn_time <= interval:
            return
        # The timer restarts even when the attempt is dropped at the cap.
        self._last_spawn_time = self._elapsed_time
        self.spawn_particle()

    def spawn_particle(self) -> bool:
        """Emit a particle now, unless the live count is at the cap.

        The tunnelling outcome is drawn here from the current physics and
        never revisited.

        Returns
        -------
        bool
            ``False`` when the attempt was dropped.
        """
        if len(self._particles) >= self._engine.max_particles:
            self._dropped_spawns += 1
            logger.debug("Particle cap %d reached, emission dropped", self._engine.max_particles)
            return False

        half_spread = self._scene.lateral_spread / 2.0
        particle = Particle(
            id=self._next_id,
            x=self._scene.source_x + self._scene.spawn_offset,
            y=self._params.particle_energy / 2.0,
            z=float(self._rng.uniform(-half_spread, half_spread)),
            speed=float(self._rng.uniform(self._engine.speed_min, self._engine.speed_max)),
            will_tunnel=self._physics.sample_will_tunnel(self._rng),
            spawn_time=self._elapsed_time,
            trail=deque(maxlen=max(1, self._engine.trail_length)),
        )
        particle.trail.append((particle.x, particle.y, particle.z))
        self._next_id += 1
        self._particles.append(particle)
        return True

    # -------------------------------------------------------------------------
    def _advance_incident(self, p: Particle, step: float) -> None:
        p.x += step
        if p.x < self.barrier_left:
            return
        if p.will_tunnel:
            p.phase = Phase.IN_BARRIER
            return
        p.phase = Phase.REFLECTED
        self._stats.record_reflected()
        if self._on_reflected is not None:
            self._on_reflected()

    def _advance_in_barrier(self, p: Particle, step: float) -> None:
        p.x += step * self._engine.barrier_speed_factor
        left = self.barrier_left
        width = self._params.barrier_width
        progress = (p.x - left) / width if width > 0.0 else 1.0
        p.decay = self._physics.evanescent_decay(progress)
        p.scale = 0.8 + 0.4 * p.decay
        p.opacity = 0.5 + 0.5 * p.decay
        if p.x >= self.barrier_right:
            p.phase = Phase.TRANSMITTED
            p.decay = 1.0
            p.scale = 1.0
            p.opacity = 1.0

    def _advance_transmitted(self, p: Particle, step: float, scaled_dt: float) -> None:
        target = self._scene.target_x
        if not p.detected:
            p.x += step
            if p.x < target:
                return
            p.x = target
            p.detected = True
            p.hit_time = 0.0
            p.scale = 1.5
            self._stats.record_tunneled()
            if self._on_tunneled is not None:
                self._on_tunneled()

        p.hit_time += scaled_dt
        if p.hit_time > self._engine.hit_flash_duration:
            p.scale = 1.0
            p.opacity -= scaled_dt * self._engine.fade_rate
            if p.opacity <= 0.0:
                p.opacity = 0.0
                p.removed = True

    def _advance_reflected(self, p: Particle, step: float) -> None:
        source = self._scene.source_x
        p.x -= step
        fade = max(0.0, (source - p.x) / self._scene.reflected_fade_distance)
        p.opacity = max(0.0, 1.0 - fade)
        if p.x <= source - self._scene.reflected_exit_margin:
            p.removed = True

    def _advance_particle(self, p: Particle, scaled_dt: float) -> None:
        """Move one particle and apply at most one phase transition."""
        if p.phase is not Phase.REFLECTED:
            p.trail.append((p.x, p.y, p.z))

        step = p.speed * scaled_dt
        if p.phase is Phase.INCIDENT:
            self._advance_incident(p, step)
        elif p.phase is Phase.IN_BARRIER:
            self._advance_in_barrier(p, step)
        elif p.phase is Phase.TRANSMITTED:
            self._advance_transmitted(p, step, scaled_dt)
        else:
            self._advance_reflected(p, step)

    def step(self, dt: float) -> None:
        """Advance the experiment by ``dt`` seconds of real frame time."""
        try:
            dt = float(dt)
        except (TypeError, ValueError):
            dt = 0.0
        if not math.isfinite(dt) or dt < 0.0:
            dt = 0.0

        self._elapsed_time += dt
        self._maybe_spawn()

        scaled_dt = dt * self._time_scale
        generation = self._generation
        for p in self._particles:
            self._advance_particle(p, scaled_dt)
            if self._generation != generation:
                # A callback reset the experiment mid-frame.
                return

        # Compact only after every particle has been advanced.
        self._particles = [p for p in self._particles if not p.removed]

    def update(
        self,
        params: Optional[SimulationParameters],
        dt: float,
    ) -> Tuple[Tuple[ParticleState, ...], StatsSnapshot]:
        """Per-frame entry point: apply ``params`` (if given), advance by ``dt``.

        Returns
        -------
        tuple
            ``(particles, stats)`` snapshots committed by this frame.
        """
        if params is not None and params != self._params:
            self.set_params(params)
        self.step(dt)
        return self.particles, self.stats

    # -------------------------------------------------------------------------
    def __iter__(self) -> 'TunnelingSimulation':
        return self

    def __next__(self) -> Tuple[Tuple[ParticleState, ...], StatsSnapshot]:
        """Advance by one nominal frame with the current parameters."""
        return self.update(None, self._engine.frame_step)
