"""
Closed-form physics of a particle meeting a rectangular potential barrier.

Transmission follows the WKB approximation

    T ≈ exp(-2κL),   κ = sqrt(2m(V₀ - E)) / ħ

with energies in eV, widths in nm and the particle mass given as a
multiple of the electron mass.  In those units ``ħ²/2mₑ ≈ 0.0381 eV·nm²``.

Every probability is clamped into ``[0, 1]`` when it is computed, so callers
never need to re-check the range.  Nothing in this module raises for odd
inputs: degenerate parameters produce degenerate but finite results.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

logger = logging.getLogger("quantum_tunneling.physics")

# ħ²/2mₑ in eV·nm².  Divided by the mass multiplier for heavier particles.
HBAR2_2M: float = 0.0381


class Phase(str, Enum):
    """Stage of a particle's flight through the experiment."""

    INCIDENT = 'incident'
    IN_BARRIER = 'barrier'
    TRANSMITTED = 'transmitted'
    REFLECTED = 'reflected'


# Body and glow colours per phase, used by renderers.
PHASE_COLORS: dict[Phase, tuple[int, int, int]] = {
    Phase.INCIDENT: (59, 130, 246),
    Phase.IN_BARRIER: (168, 85, 247),
    Phase.TRANSMITTED: (34, 197, 94),
    Phase.REFLECTED: (239, 68, 68),
}
GLOW_COLORS: dict[Phase, tuple[int, int, int]] = {
    Phase.INCIDENT: (96, 165, 250),
    Phase.IN_BARRIER: (192, 132, 252),
    Phase.TRANSMITTED: (74, 222, 128),
    Phase.REFLECTED: (248, 113, 113),
}


def _clamp_probability(value: float) -> float:
    """Clamp ``value`` into ``[0, 1]``; NaN maps to ``0``."""
    if math.isnan(value):
        return 0.0
    return min(1.0, max(0.0, value))


def _hbar2_2m(mass: float) -> float:
    if not math.isfinite(mass) or mass <= 0.0:
        logger.warning("Non-positive particle mass %r, using unit mass", mass)
        mass = 1.0
    return HBAR2_2M / mass


@dataclass(frozen=True)
class TunnelingPhysics:
    """Derived quantities for one (E, V₀, L, m) configuration.

    Attributes
    ----------
    energy, barrier_height, barrier_width, particle_mass: float
        The inputs the result was computed from.
    is_classical: bool
        ``True`` when ``E >= V₀``; a tie counts as classical.
    k: float
        Wave number outside the barrier (1/nm).
    kappa: float
        Decay constant inside the barrier (1/nm); ``0`` in the classical regime.
    probability: float
        Transmission probability ``T``.
    reflection_probability: float
        ``1 - T``.
    """

    energy: float
    barrier_height: float
    barrier_width: float
    particle_mass: float
    is_classical: bool
    k: float
    kappa: float
    probability: float
    reflection_probability: float

    def evanescent_decay(self, progress: float) -> float:
        """Amplitude factor ``exp(-κ·progress·L)`` at a fraction of the barrier.

        ``progress`` is clipped into ``[0, 1]``.  Returns ``1`` in the
        classical regime.  Non-increasing in ``progress``.
        """
        if self.is_classical or self.kappa == 0.0:
            return 1.0
        fraction = min(1.0, max(0.0, float(progress)))
        exponent = -self.kappa * fraction * self.barrier_width
        if exponent >= 0.0:
            return 1.0
        return math.exp(exponent)

    def sample_will_tunnel(self, rng: Optional[np.random.Generator] = None) -> bool:
        """Draw a single tunnelling outcome.

        Always ``True`` in the classical regime, otherwise ``True`` with
        probability ``T``.  Each call is an independent uniform draw.
        """
        if self.is_classical:
            return True
        generator = rng if rng is not None else np.random.default_rng()
        return bool(generator.random() < self.probability)


def evaluate(
    energy: float,
    barrier_height: float,
    barrier_width: float,
    particle_mass: float = 1.0,
) -> TunnelingPhysics:
    """Compute the tunnelling quantities for one barrier configuration.

    Parameters
    ----------
    energy: float
        Particle kinetic energy ``E`` in eV.
    barrier_height: float
        Barrier potential ``V₀`` in eV.
    barrier_width: float
        Barrier width ``L`` in nm.
    particle_mass: float
        Mass in units of the electron mass.

    Returns
    -------
    TunnelingPhysics
        Frozen record with ``T`` and ``1 - T`` already clamped into ``[0, 1]``.
    """
    energy = float(energy)
    barrier_height = float(barrier_height)
    barrier_width = float(barrier_width)
    c = _hbar2_2m(float(particle_mass))

    k = math.sqrt(max(energy, 0.0) / c)
    is_classical = energy >= barrier_height

    kappa = 0.0
    probability = 1.0
    if not is_classical:
        kappa = math.sqrt((barrier_height - energy) / c)
        exponent = -2.0 * kappa * barrier_width
        # A non-positive width can only push T above 1, which clamps to 1.
        probability = math.exp(exponent) if exponent < 0.0 else 1.0
        probability = _clamp_probability(probability)

    return TunnelingPhysics(
        energy=energy,
        barrier_height=barrier_height,
        barrier_width=barrier_width,
        particle_mass=float(particle_mass),
        is_classical=is_classical,
        k=k,
        kappa=kappa,
        probability=probability,
        reflection_probability=_clamp_probability(1.0 - probability),
    )


def calculate_tunneling_probability(
    energy: float,
    barrier_height: float,
    barrier_width: float,
    particle_mass: float = 1.0,
) -> float:
    """Shortcut returning only the transmission probability ``T``."""
    return evaluate(energy, barrier_height, barrier_width, particle_mass).probability
