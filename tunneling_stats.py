"""Running tunnelled/reflected counts for the barrier experiment."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, Tuple

HISTORY_LENGTH: int = 2000


@dataclass(frozen=True)
class StatsSnapshot:
    """Immutable view of the experiment counters."""

    total_particles: int = 0
    tunneled: int = 0
    reflected: int = 0
    theoretical_probability: float = 0.0
    experimental_probability: float = 0.0

    @property
    def deviation(self) -> float:
        """Absolute gap between measured and predicted transmission."""
        return abs(self.experimental_probability - self.theoretical_probability)


class TunnelingStatistics:
    """Accumulate detector outcomes and derive the measured probability.

    A particle is counted once, when it resolves: either at the detector
    (tunnelled) or on its way back past the barrier (reflected).  The
    invariant ``tunneled + reflected == total_particles`` holds after every
    call.
    """

    def __init__(self, theoretical_probability: float = 0.0, history_length: int = HISTORY_LENGTH):
        self._total: int = 0
        self._tunneled: int = 0
        self._reflected: int = 0
        self._theory: float = float(theoretical_probability)
        self._experimental: float = 0.0
        self._history: Deque[Tuple[int, float]] = deque(maxlen=max(1, int(history_length)))

    def record_tunneled(self) -> StatsSnapshot:
        """Count one particle that reached the detector."""
        self._total += 1
        self._tunneled += 1
        self._refresh()
        return self.snapshot()

    def record_reflected(self) -> StatsSnapshot:
        """Count one particle turned back by the barrier."""
        self._total += 1
        self._reflected += 1
        self._refresh()
        return self.snapshot()

    def record_theory(self, probability: float) -> None:
        """Replace the predicted probability; counters are untouched."""
        self._theory = float(probability)

    def reset(self, theoretical_probability: float) -> None:
        """Zero every counter and adopt the current predicted probability."""
        self._total = 0
        self._tunneled = 0
        self._reflected = 0
        self._experimental = 0.0
        self._theory = float(theoretical_probability)
        self._history.clear()

    def _refresh(self) -> None:
        # Both counters are already updated when the ratio is taken.
        self._experimental = self._tunneled / self._total if self._total else 0.0
        self._history.append((self._total, self._experimental))

    def snapshot(self) -> StatsSnapshot:
        return StatsSnapshot(
            total_particles=self._total,
            tunneled=self._tunneled,
            reflected=self._reflected,
            theoretical_probability=self._theory,
            experimental_probability=self._experimental,
        )

    def get_history(self) -> list[Tuple[int, float]]:
        """Return ``(total_particles, experimental_probability)`` samples, oldest first."""
        return list(self._history)
