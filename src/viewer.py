#!/usr/bin/env python3
"""
Pygame viewer for the particle life simulation.
Draws every particle as a stroked circle and steps the engine once per frame.
"""

import argparse
import logging
import os

import pygame

from particlesim.config import DisplaySettings, SimulationConfig, load_config
from particlesim.logging_setup import setup_logging
from particlesim.presets import get_preset
from particlesim.simulation import SimulationEngine

logger = logging.getLogger("viewer")


def to_color(value: str) -> pygame.Color:
    """pygame.Color that also accepts CSS shorthand hex such as #eee"""
    if value.startswith("#") and len(value) == 4:
        value = "#" + "".join(c * 2 for c in value[1:])
    return pygame.Color(value)


class Viewer:
    """Renders the engine's particles and drives its frame loop"""

    def __init__(self, engine: SimulationEngine, display: DisplaySettings):
        self.engine = engine
        self.display = display

        pygame.init()
        size = display.canvas_size(engine.config)
        self.screen = pygame.display.set_mode(size)
        pygame.display.set_caption("Particle Life")
        self.clock = pygame.time.Clock()

        self.background = to_color(self.display.background_color)
        self.stroke = to_color(self.display.particle_stroke_color)
        self.palette = [to_color(c) for c in engine.colors]

        self.paused = False

    def draw(self):
        """Reset the canvas, then draw every particle"""
        self.screen.fill(self.background)
        radius = self.display.particle_size
        for particle in self.engine.particles():
            center = (particle.position.x, particle.position.y)
            pygame.draw.circle(self.screen, self.palette[particle.color], center, radius)
            pygame.draw.circle(self.screen, self.stroke, center, radius, 1)

    def handle_events(self) -> bool:
        """Returns False once the user quits"""
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                return False
            if event.type == pygame.KEYDOWN:
                if event.key in (pygame.K_q, pygame.K_ESCAPE):
                    return False
                elif event.key == pygame.K_SPACE:
                    self.paused = not self.paused
                    logger.info("Paused" if self.paused else "Resumed")
                elif event.key == pygame.K_r:
                    self.engine.setup()
                    logger.info("Simulation reset")
        return True

    def run(self):
        """Main loop: step, draw, wait for the next frame"""
        running = True
        while running:
            running = self.handle_events()
            if not self.paused:
                self.engine.step()
            self.draw()
            pygame.display.flip()
            self.clock.tick(self.display.frames_per_second)

        pygame.quit()


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(description='Particle Life Viewer')
    parser.add_argument('--config', type=str, help='Path to a JSON settings file')
    parser.add_argument('--preset', type=str, help='Name of a particle settings preset')
    parser.add_argument('--seed', type=int, help='Random seed')
    parser.add_argument('--log-level', type=str, default='INFO')
    args = parser.parse_args()

    setup_logging(args.log_level)

    if args.config and os.path.exists(args.config):
        config, display = load_config(args.config)
    else:
        if args.config:
            logger.warning("Configuration file %s not found, using default", args.config)
        config, display = SimulationConfig(), DisplaySettings()

    if args.preset:
        config = get_preset(args.preset).apply(config)
    if args.seed is not None:
        config.seed = args.seed

    engine = SimulationEngine(config)
    engine.setup()

    logger.info("Press SPACE to pause, R to reset, Q to quit")
    Viewer(engine, display).run()


if __name__ == "__main__":
    main()
