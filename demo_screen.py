from __future__ import annotations

import logging
import math
from typing import Optional

import pygame

from config import DisplayConfig, load_display_config
from demo import Demo
from logging_config import setup_logging
from simulation import SimulationParameters, TunnelingSimulation, load_default_parameters
from tunneling_stats import StatsSnapshot
from waves import WaveOverlay

logger = logging.getLogger("quantum_tunneling.demo_screen")

# Keyboard bindings shown in the help line.
HELP_TEXT = (
    "Up/Down E   W/S V0   A/D L   +/- intensity   M mass   Space slow-mo   "
    "1-4 waves   V all waves   T trails   G glow   R reset   Esc quit"
)
MASS_CYCLE = (1.0, 2.0, 5.0, 0.5)


class DemoScreen:
    """Window, keyboard controls and status panel around :class:`Demo`."""

    def __init__(self, params: Optional[SimulationParameters] = None, display_cfg: Optional[DisplayConfig] = None):
        self.display_cfg: DisplayConfig = display_cfg if display_cfg is not None else load_display_config()
        self.params: SimulationParameters = params if params is not None else load_default_parameters()
        self.primary_color = (72, 104, 255)
        self.bg_color = (11, 15, 25)
        self.text_color = (229, 231, 235)
        self.muted_color = (156, 163, 175)

        self.screen: Optional[pygame.Surface] = None
        self.demo: Optional[Demo] = None
        self.clock: Optional[pygame.time.Clock] = None
        self.running: bool = False
        self.slow_motion: bool = self.params.slow_motion_factor < 1.0
        self.stats: StatsSnapshot = StatsSnapshot()
        self.simulation = TunnelingSimulation(params=self.params)

    # ------------------------------------------------------------------ Setup
    def _ensure_demo(self) -> None:
        if self.demo is not None:
            return
        width, height = self.display_cfg.window_size
        self.screen = pygame.display.set_mode((width, height), pygame.RESIZABLE)
        pygame.display.set_caption("Quantum Tunneling")
        self.counter_font = pygame.font.SysFont(None, 26, bold=True)
        self.text_font = pygame.font.SysFont(None, 22)
        self.demo = Demo(
            self.screen,
            *self._demo_rect((width, height)),
            simulation=self.simulation,
            wave_overlay=WaveOverlay(),
        )

    @staticmethod
    def _demo_rect(size: tuple[int, int]) -> tuple[tuple[int, int], tuple[int, int]]:
        width, height = size
        panel_height = 120
        margin = 20
        return (margin, margin), (max(1, width - 2 * margin), max(1, height - panel_height - 2 * margin))

    def _relayout(self, size: tuple[int, int]) -> None:
        self.screen = pygame.display.set_mode(size, pygame.RESIZABLE)
        assert self.demo is not None
        self.demo.screen = self.screen
        self.demo.resize_viewport(*self._demo_rect(size))

    # ------------------------------------------------------------------ Controls
    def _set_params(self, **changes) -> None:
        self.params = self.params.replace(**changes)
        logger.debug("Parameters updated: %s", changes)

    def _step_param(self, name: str, delta: float, low: float, high: float) -> None:
        value = getattr(self.params, name) + delta
        value = round(min(high, max(low, value)), 3)
        self._set_params(**{name: value})

    def _cycle_mass(self) -> None:
        try:
            idx = MASS_CYCLE.index(self.params.particle_mass)
        except ValueError:
            idx = -1
        self._set_params(particle_mass=MASS_CYCLE[(idx + 1) % len(MASS_CYCLE)])

    def _toggle_slow_motion(self) -> None:
        self.slow_motion = not self.slow_motion
        factor = self.display_cfg.slow_motion_factor if self.slow_motion else 1.0
        self._set_params(slow_motion_factor=factor)

    def _handle_key(self, key: int) -> None:
        cfg = self.display_cfg
        assert self.demo is not None
        overlay = self.demo.wave_overlay
        if key == pygame.K_ESCAPE:
            self.running = False
        elif key == pygame.K_UP:
            self._step_param('particle_energy', cfg.energy_step, 0.5, 20.0)
        elif key == pygame.K_DOWN:
            self._step_param('particle_energy', -cfg.energy_step, 0.5, 20.0)
        elif key == pygame.K_w:
            self._step_param('barrier_height', cfg.height_step, 0.5, 20.0)
        elif key == pygame.K_s:
            self._step_param('barrier_height', -cfg.height_step, 0.5, 20.0)
        elif key == pygame.K_d:
            self._step_param('barrier_width', cfg.width_step, 0.1, 5.0)
        elif key == pygame.K_a:
            self._step_param('barrier_width', -cfg.width_step, 0.1, 5.0)
        elif key in (pygame.K_PLUS, pygame.K_EQUALS, pygame.K_KP_PLUS):
            self._step_param('spawn_intensity', cfg.intensity_step, 1.0, 100.0)
        elif key in (pygame.K_MINUS, pygame.K_KP_MINUS):
            self._step_param('spawn_intensity', -cfg.intensity_step, 1.0, 100.0)
        elif key == pygame.K_m:
            self._cycle_mass()
        elif key == pygame.K_SPACE:
            self._toggle_slow_motion()
        elif key == pygame.K_1:
            overlay.show_incident = not overlay.show_incident
        elif key == pygame.K_2:
            overlay.show_reflected = not overlay.show_reflected
        elif key == pygame.K_3:
            overlay.show_evanescent = not overlay.show_evanescent
        elif key == pygame.K_4:
            overlay.show_transmitted = not overlay.show_transmitted
        elif key == pygame.K_v:
            overlay.visible = not overlay.visible
        elif key == pygame.K_t:
            self.demo.show_trails = not self.demo.show_trails
        elif key == pygame.K_g:
            self.demo.show_glow = not self.demo.show_glow
        elif key == pygame.K_r:
            self.simulation.reset()

    def _check_events(self) -> None:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.running = False
            elif event.type == pygame.VIDEORESIZE:
                self._relayout(event.size)
            elif event.type == pygame.KEYDOWN:
                self._handle_key(event.key)

    # ------------------------------------------------------------------ Drawing
    @staticmethod
    def _format_probability(value: float) -> str:
        if value == 0.0:
            return "0"
        if value >= 1e-3:
            return f"{value:.4f}"
        return f"{value:.2e}"

    def _draw_status_panel(self) -> None:
        assert self.screen is not None and self.demo is not None
        p = self.params
        s = self.stats
        physics = self.simulation.physics
        left = self.demo.main.left
        top = self.demo.main.bottom + 16
        regime = "classical (E ≥ V₀)" if physics.is_classical else f"κ = {physics.kappa:.3g} nm⁻¹"
        lines = [
            (
                f"E = {p.particle_energy:g} eV   V₀ = {p.barrier_height:g} eV   L = {p.barrier_width:g} nm   "
                f"m = {p.particle_mass:g} mₑ   intensity = {p.spawn_intensity:g}/s"
                f"{'   slow motion' if self.slow_motion else ''}",
                self.counter_font,
                self.text_color,
            ),
            (
                f"T theory = {self._format_probability(s.theoretical_probability)}   "
                f"T measured = {self._format_probability(s.experimental_probability)}   "
                f"|ΔT| = {self._format_probability(s.deviation)}   "
                f"tunneled {s.tunneled} / reflected {s.reflected} / total {s.total_particles}   "
                f"live {self.simulation.get_particle_count()}   {regime}",
                self.text_font,
                self.text_color,
            ),
            (HELP_TEXT, self.text_font, self.muted_color),
        ]
        y = top
        for text, font, color in lines:
            surface = font.render(text, True, color)
            self.screen.blit(surface, (left, y))
            y += surface.get_height() + 8

        plot = pygame.Rect(0, 0, 220, max(20, self.screen.get_height() - top - 16))
        plot.topright = (self.demo.main.right, top)
        self.demo.draw_convergence(s, self.simulation.statistics.get_history(), plot)

    def _update_screen(self, dt: float) -> None:
        assert self.screen is not None and self.demo is not None
        self.screen.fill(self.bg_color)
        self.stats = self.demo.draw_check(self.params, dt)
        self._draw_status_panel()
        pygame.display.flip()

    # ------------------------------------------------------------------ Loop
    def run(self) -> None:
        pygame.init()
        try:
            self._ensure_demo()
            self.clock = pygame.time.Clock()
            self.running = True
            logger.info("Starting frame loop at %d fps", self.display_cfg.fps)
            while self.running:
                dt = self.clock.tick(self.display_cfg.fps) / 1000.0
                # Skip the catch-up jump after the window was dragged or paused.
                dt = min(dt, 0.1) if math.isfinite(dt) else 0.0
                self._check_events()
                if self.running:
                    self._update_screen(dt)
        finally:
            pygame.quit()


def main() -> None:
    setup_logging()
    DemoScreen().run()


if __name__ == "__main__":
    main()
