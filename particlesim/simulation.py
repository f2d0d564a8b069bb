"""Particle life simulation with a per-color attraction matrix."""
from __future__ import annotations

import copy
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from .config import SimulationConfig
from .errors import ConfigurationError, SimulationStateError

logger = logging.getLogger(__name__)


# Distances are floored to this before the force divides by them.
MIN_DISTANCE = 1e-6

# Side length of the square, centered in the environment, particles spawn in.
SPAWN_AREA = 50.0

SELF_ATTRACTION = 1.0
ATTRACTION_LOW = -1.5
ATTRACTION_SPAN = 2.0  # off-diagonal entries lie in [-1.5, 0.5)

REPULSION_FACTOR = 0.3
DEAD_ZONE_LOW = 0.5
DEAD_ZONE_HIGH = 1.5


# ============================================================================
# Particle state
# ============================================================================

@dataclass
class Vector2:
    """A position or velocity on the 2D plane."""
    x: float = 0.0
    y: float = 0.0


@dataclass
class Particle:
    """A particle in the simulation. ``color`` indexes the palette."""
    color: int
    mass: float
    position: Vector2
    velocity: Vector2 = field(default_factory=Vector2)

    def copy(self) -> "Particle":
        return copy.deepcopy(self)


# ============================================================================
# Force model
# ============================================================================

def particle_force(
    distance: float,
    attraction: float,
    mass_a: float,
    mass_b: float,
    inflection_point: float,
) -> float:
    """
    Return the scalar pull of particle B on particle A.

    Mixes an inverse-distance "gravity" with an artificial pressure term:

    - distance > inflection point: gravity
    - distance <= inflection point: repulsion of -0.3 * gravity
    - attraction > 0 and distance within 50% of the inflection point:
      zero, so mutually attracted particles settle near that distance

    Gravity carries a leading minus sign and falls off with distance, not
    distance squared. The emergent behavior depends on both.

    Args:
        distance: Distance between the particles, floored to MIN_DISTANCE
        attraction: Matrix entry for (color of A, color of B)
        mass_a: Mass of the particle being moved
        mass_b: Mass of the other particle
        inflection_point: Distance where pull turns into push

    Returns:
        Force along the direction from B to A
    """
    distance = max(distance, MIN_DISTANCE)
    gravity = -attraction * mass_a * mass_b / distance
    repulsive = -REPULSION_FACTOR * gravity

    # Equilibrium only for particles that actually attract each other,
    # otherwise opposing forces could cancel out anywhere.
    low = inflection_point * DEAD_ZONE_LOW
    high = inflection_point * DEAD_ZONE_HIGH
    if attraction > 0 and low < distance < high:
        return 0.0
    if distance > inflection_point:
        return gravity
    return repulsive


# ============================================================================
# Initial state
# ============================================================================

def build_attraction_matrix(n_colors: int, rng: np.random.Generator) -> np.ndarray:
    """
    Build the color-to-color attraction matrix.

    ``matrix[i, j]`` is how strongly color i is drawn toward color j. The
    diagonal is 1.0; every other entry is drawn uniformly from [-1.5, 0.5).
    The matrix is not symmetric.
    """
    matrix = rng.random((n_colors, n_colors)) * ATTRACTION_SPAN + ATTRACTION_LOW
    np.fill_diagonal(matrix, SELF_ATTRACTION)
    return matrix


def spawn_particles(config: SimulationConfig, rng: np.random.Generator) -> List[Particle]:
    """
    Create the initial particles in the middle 50x50 square of the environment.

    Colors are drawn from palette indices 1..n-1; index 0 is never spawned.
    Environments smaller than the spawn square are not special cased, so
    particles may start out of bounds there.
    """
    settings = config.particle_settings
    n_colors = len(settings.colors)
    left = config.environment_width / 2 - SPAWN_AREA / 2
    top = config.environment_height / 2 - SPAWN_AREA / 2

    particles = []
    for _ in range(config.particle_count):
        color = int(rng.integers(1, n_colors))
        x = rng.random() * SPAWN_AREA + left
        y = rng.random() * SPAWN_AREA + top
        particles.append(Particle(color, settings.mass, Vector2(x, y), Vector2(0.0, 0.0)))
    return particles


# ============================================================================
# Integration
# ============================================================================

def _reflect(position: float, velocity: float, extent: float):
    """Mirror an out-of-bounds coordinate back inside [0, extent]."""
    if position <= 0:
        velocity = -velocity
        position = -position
    if position >= extent:
        velocity = -velocity
        position = extent - (position - extent)
    return position, velocity


def advance(particles: List[Particle], matrix: np.ndarray, config: SimulationConfig) -> None:
    """
    Advance the particles one frame, in place.

    1. Accumulate the velocity change every particle receives from the
       particles it can see. Positions are not touched in this pass.
    2. Move every particle by its velocity, apply drag, and reflect it off
       the environment walls.
    """
    settings = config.particle_settings
    attraction = matrix.tolist()
    n = len(particles)

    for i in range(n):
        source = particles[i]
        for j in range(n):
            if i == j:
                continue
            target = particles[j]
            dx = source.position.x - target.position.x
            dy = source.position.y - target.position.y
            distance = math.sqrt(dx * dx + dy * dy)
            if distance > settings.sight:
                continue

            force = particle_force(
                distance,
                attraction[source.color][target.color],
                source.mass,
                target.mass,
                settings.pressure_inflection_point,
            )
            direction = math.atan2(dx, dy)
            source.velocity.x += math.sin(direction) * force
            source.velocity.y += math.cos(direction) * force

    for i in range(n):
        particle = particles[i]
        position, velocity = particle.position, particle.velocity
        position.x += velocity.x
        position.y += velocity.y

        velocity.x *= settings.drag
        velocity.y *= settings.drag

        position.x, velocity.x = _reflect(position.x, velocity.x, config.environment_width)
        position.y, velocity.y = _reflect(position.y, velocity.y, config.environment_height)


# ============================================================================
# Engine
# ============================================================================

class SimulationEngine:
    """
    Owns the configuration, attraction matrix and particles of one run.

    The engine is unconfigured until ``setup()`` is called and running
    afterwards. Renderers and schedulers only talk to this class.
    """

    def __init__(
        self,
        config: SimulationConfig,
        rng: Optional[np.random.Generator] = None,
    ):
        self.config = config
        self.rng = rng if rng is not None else np.random.default_rng(config.seed)
        self.frame = 0
        self._matrix: Optional[np.ndarray] = None
        self._particles: List[Particle] = []

    @property
    def is_running(self) -> bool:
        return self._matrix is not None

    @property
    def colors(self) -> List[str]:
        return list(self.config.particle_settings.colors)

    @property
    def matrix(self) -> np.ndarray:
        """Copy of the attraction matrix."""
        self._require_running("matrix")
        return self._matrix.copy()

    def setup(self) -> None:
        """Validate the config, then build a fresh matrix and particle set."""
        self.config.validate()
        n_colors = len(self.config.particle_settings.colors)
        self._matrix = build_attraction_matrix(n_colors, self.rng)
        self._particles = spawn_particles(self.config, self.rng)
        self.frame = 0
        logger.info(
            "Simulation set up with %d particles over %d spawnable colors in a %gx%g environment",
            len(self._particles),
            n_colors - 1,
            self.config.environment_width,
            self.config.environment_height,
        )

    def step(self) -> None:
        """Advance the simulation by one frame."""
        self._require_running("step()")
        advance(self._particles, self._matrix, self.config)
        self.frame += 1
        if self.frame % 100 == 0:
            logger.debug("Frame %d complete", self.frame)

    def particles(self) -> List[Particle]:
        """Snapshot of the particles; later steps do not change it."""
        return [particle.copy() for particle in self._particles]

    def replace_particles(self, particles: List[Particle]) -> None:
        """Swap in caller-built particles, e.g. to stage a scenario."""
        self._require_running("replace_particles()")
        n_colors = len(self.config.particle_settings.colors)
        for particle in particles:
            if not 0 <= particle.color < n_colors:
                raise ConfigurationError(
                    f"Particle color {particle.color} is outside the palette of {n_colors}"
                )
        self._particles = [particle.copy() for particle in particles]

    def set_matrix(self, matrix: Any) -> None:
        """Replace the attraction matrix."""
        self._require_running("set_matrix()")
        try:
            matrix = np.array(matrix, dtype=float)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Matrix must be a grid of numbers: {exc}") from exc
        n_colors = len(self.config.particle_settings.colors)
        if matrix.shape != (n_colors, n_colors):
            raise ConfigurationError(
                f"Matrix shape {matrix.shape} doesn't match "
                f"color count {n_colors}"
            )
        if not np.all(np.isfinite(matrix)):
            raise ConfigurationError("Matrix entries must be finite")
        self._matrix = matrix

    def get_state(self) -> Dict[str, Any]:
        """Get current state for API/visualization."""
        return {
            "width": self.config.environment_width,
            "height": self.config.environment_height,
            "frame": self.frame,
            "colors": self.colors,
            "particles": [
                {
                    "id": i,
                    "color": p.color,
                    "x": p.position.x,
                    "y": p.position.y,
                    "vx": p.velocity.x,
                    "vy": p.velocity.y,
                }
                for i, p in enumerate(self._particles)
            ],
        }

    def _require_running(self, operation: str) -> None:
        if not self.is_running:
            raise SimulationStateError(f"{operation} called before setup()")
