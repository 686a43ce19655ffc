"""
pygame renderer for the tunnelling experiment.

The renderer owns no physics.  Each frame it hands the parameters and the
frame time to :class:`~simulation.TunnelingSimulation`, then turns the
returned particle records and the sampled wave curves into pixels: the
barrier block, the energy level, the four wave segments, particle trails
and the particles themselves, coloured by phase.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
import pygame

from simulation import ParticleState, SimulationParameters, TunnelingSimulation
from tunneling_physics import GLOW_COLORS, PHASE_COLORS, Phase
from tunneling_stats import StatsSnapshot
from waves import WaveCurves, WaveOverlay

# Visible slice of the scene (scene units).
VIEW_X_MIN = -10.0
VIEW_X_MAX = 10.0
VIEW_Y_SPAN = 11.0
# Vertical offset per unit of lateral jitter, for a cheap depth cue.
DEPTH_TILT = 0.18

PARTICLE_RADIUS_PX = 6
GLOW_RADIUS_PX = 13
FLASH_COLOR = (255, 255, 255)

BARRIER_FILL = (124, 58, 237, 110)
BARRIER_EDGE = (168, 85, 247)
ENERGY_LINE_COLOR = (74, 222, 128)
MARKER_COLOR = (107, 114, 128)

WAVE_COLORS = {
    'incident': PHASE_COLORS[Phase.INCIDENT],
    'reflected': PHASE_COLORS[Phase.REFLECTED],
    'evanescent': PHASE_COLORS[Phase.IN_BARRIER],
    'transmitted': PHASE_COLORS[Phase.TRANSMITTED],
}


class Demo:
    def __init__(
        self,
        screen: pygame.Surface,
        position: tuple[int, int],
        demo_size: tuple[int, int],
        simulation: TunnelingSimulation,
        wave_overlay: Optional[WaveOverlay] = None,
        bg_color: tuple[int, int, int] = (17, 24, 39),
        border_color: tuple[int, int, int] = (75, 85, 99),
    ):
        """
        Create a renderer drawing into ``screen``.

        Parameters
        ----------
        screen : pygame.Surface
            Target surface (the display surface or any off-screen surface).
        position : tuple
            (x, y) of the top-left corner of the simulation area.
        demo_size : tuple
            (width, height) of the simulation area in pixels.
        simulation : TunnelingSimulation
            Engine whose particles are drawn.
        wave_overlay : WaveOverlay, optional
            Wave phase clock and toggles; a default overlay is created if omitted.
        """
        self.screen = screen
        self.simulation = simulation
        self.wave_overlay = wave_overlay if wave_overlay is not None else WaveOverlay()
        self.bg_color = bg_color
        self.bd_color = border_color
        self.position = position
        self.main = pygame.Rect(*position, *demo_size)
        self.width, self.height = demo_size

        self.show_trails: bool = True
        self.show_glow: bool = True
        self.show_energy_plane: bool = True
        self.last_curves: WaveCurves = WaveCurves()

    def resize_viewport(self, position: tuple[int, int], demo_size: tuple[int, int]) -> None:
        self.position = position
        self.main = pygame.Rect(*position, *demo_size)
        self.width, self.height = demo_size

    # ------------------------------------------------------------------ Projection
    def _scales(self) -> tuple[float, float]:
        x_scale = self.width / (VIEW_X_MAX - VIEW_X_MIN)
        y_scale = self.height / VIEW_Y_SPAN
        return x_scale, y_scale

    def project_points(self, points: np.ndarray) -> np.ndarray:
        """Map ``(N, 2)`` or ``(N, 3)`` scene points to integer pixel coordinates.

        The optional third column (lateral jitter) nudges points vertically.
        """
        pts = np.asarray(points, dtype=float)
        if pts.size == 0:
            return np.zeros((0, 2), dtype=int)
        x_scale, y_scale = self._scales()
        height = pts[:, 1].copy()
        if pts.shape[1] > 2:
            height += pts[:, 2] * DEPTH_TILT
        px = self.main.left + (pts[:, 0] - VIEW_X_MIN) * x_scale
        # Keep half a unit of floor below the zero-energy line.
        py = self.main.bottom - (height + 0.5) * y_scale
        return np.round(np.column_stack((px, py))).astype(int)

    def _project_x(self, x: float) -> int:
        x_scale, _ = self._scales()
        return int(round(self.main.left + (x - VIEW_X_MIN) * x_scale))

    def _project_y(self, y: float) -> int:
        _, y_scale = self._scales()
        return int(round(self.main.bottom - (y + 0.5) * y_scale))

    # ------------------------------------------------------------------ Drawing
    def _draw_background(self) -> None:
        pygame.draw.rect(self.screen, self.bg_color, self.main)
        scene = self.simulation.scene
        top = self.main.top + 10
        bottom = self._project_y(0.0)
        for x in (scene.source_x, scene.target_x):
            x_px = self._project_x(x)
            pygame.draw.line(self.screen, MARKER_COLOR, (x_px, top), (x_px, bottom), 2)
        pygame.draw.line(self.screen, MARKER_COLOR, (self.main.left, bottom), (self.main.right, bottom), 1)

    def _draw_barrier(self, params: SimulationParameters) -> None:
        left = self._project_x(self.simulation.barrier_left)
        right = self._project_x(self.simulation.barrier_right)
        top = self._project_y(params.barrier_height / 2.0)
        bottom = self._project_y(0.0)
        width = max(1, right - left)
        height = max(1, bottom - top)
        overlay = pygame.Surface((width, height), pygame.SRCALPHA)
        overlay.fill(BARRIER_FILL)
        self.screen.blit(overlay, (left, top))
        pygame.draw.rect(self.screen, BARRIER_EDGE, (left, top, width, height), 2)

    def _draw_energy_plane(self, params: SimulationParameters) -> None:
        if not self.show_energy_plane:
            return
        y_px = self._project_y(params.particle_energy / 2.0)
        pygame.draw.line(self.screen, ENERGY_LINE_COLOR, (self.main.left, y_px), (self.main.right, y_px), 1)

    def _draw_waves(self, curves: WaveCurves) -> None:
        for name, points in curves.segments():
            pixels = self.project_points(points)
            if pixels.shape[0] < 2:
                continue
            width = 2 if name == 'reflected' else 3
            pygame.draw.lines(self.screen, WAVE_COLORS[name], False, [tuple(p) for p in pixels.tolist()], width)

    def _draw_tails(self, particles: Sequence[ParticleState], overlay: pygame.Surface) -> None:
        """Render per-particle trails behind the main dots."""
        if not self.show_trails:
            return
        for state in particles:
            if len(state.trail) < 2:
                continue
            pixels = self.project_points(np.array(state.trail, dtype=float))
            local_points = [(p[0] - self.main.left, p[1] - self.main.top) for p in pixels.tolist()]
            alpha = int(102 * state.opacity)
            pygame.draw.lines(overlay, (*PHASE_COLORS[state.phase], alpha), False, local_points, 2)

    def _draw_particles(self, particles: Sequence[ParticleState], overlay: pygame.Surface) -> None:
        if not particles:
            return
        pixels = self.project_points(np.array([(p.x, p.y, p.z) for p in particles], dtype=float))
        for state, (px, py) in zip(particles, pixels):
            center = (int(px - self.main.left), int(py - self.main.top))
            flashing = state.detected and state.scale > 1.0
            body = FLASH_COLOR if flashing else PHASE_COLORS[state.phase]
            glow = FLASH_COLOR if flashing else GLOW_COLORS[state.phase]
            opacity = max(0.0, min(1.0, state.opacity))
            if self.show_glow:
                glow_alpha = int(255 * (0.8 if flashing else 0.35) * opacity)
                glow_radius = int(GLOW_RADIUS_PX * (2.0 if flashing else state.scale))
                pygame.draw.circle(overlay, (*glow, glow_alpha), center, max(1, glow_radius))
            radius = max(1, int(round(PARTICLE_RADIUS_PX * state.scale)))
            pygame.draw.circle(overlay, (*body, int(255 * opacity)), center, radius)

    def draw_frame(
        self,
        params: SimulationParameters,
        particles: Sequence[ParticleState],
        curves: WaveCurves,
    ) -> None:
        """Draw one frame from already computed particle and wave data."""
        self._draw_background()
        self._draw_barrier(params)
        self._draw_energy_plane(params)
        self._draw_waves(curves)

        overlay = pygame.Surface(self.main.size, pygame.SRCALPHA)
        self._draw_tails(particles, overlay)
        self._draw_particles(particles, overlay)
        self.screen.blit(overlay, self.main.topleft)

        inner_border = 3
        pygame.draw.rect(
            self.screen,
            self.bd_color,
            (
                self.position[0] - inner_border,
                self.position[1] - inner_border,
                self.width + inner_border * 2,
                self.height + inner_border * 2,
            ),
            inner_border,
        )

    def convergence_points(
        self,
        history: Sequence[tuple[int, float]],
        rect: pygame.Rect,
    ) -> list[tuple[int, int]]:
        """Map ``(total, measured T)`` samples into ``rect``; x follows the sample count."""
        if len(history) < 2:
            return []
        samples = np.array(history, dtype=float)
        totals = samples[:, 0]
        span = max(totals[-1] - totals[0], 1.0)
        px = rect.left + (totals - totals[0]) / span * (rect.width - 1)
        py = rect.bottom - 1 - np.clip(samples[:, 1], 0.0, 1.0) * (rect.height - 1)
        return [tuple(p) for p in np.round(np.column_stack((px, py))).astype(int).tolist()]

    def draw_convergence(self, stats: StatsSnapshot, history: Sequence[tuple[int, float]], rect: pygame.Rect) -> None:
        """Plot the measured probability against the predicted one."""
        pygame.draw.rect(self.screen, self.bg_color, rect)
        pygame.draw.rect(self.screen, self.bd_color, rect, 1)
        theory_y = int(round(rect.bottom - 1 - min(1.0, max(0.0, stats.theoretical_probability)) * (rect.height - 1)))
        pygame.draw.line(self.screen, ENERGY_LINE_COLOR, (rect.left, theory_y), (rect.right - 1, theory_y), 1)
        points = self.convergence_points(history, rect)
        if len(points) >= 2:
            pygame.draw.lines(self.screen, PHASE_COLORS[Phase.INCIDENT], False, points, 2)

    def draw_check(self, params: SimulationParameters, dt: float) -> StatsSnapshot:
        """Advance the experiment by one frame, draw it and return the counters."""
        particles, stats = self.simulation.update(params, dt)
        self.wave_overlay.advance(dt)
        self.last_curves = self.wave_overlay.sample(
            self.simulation.physics,
            self.simulation.barrier_left,
            self.simulation.barrier_right,
        )
        self.draw_frame(self.simulation.params, particles, self.last_curves)
        return stats
