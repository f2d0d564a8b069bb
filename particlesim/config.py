"""Settings for the particle simulation and its display."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


DEFAULT_COLORS = ["white", "red", "green", "blue", "yellow"]


@dataclass
class ParticleSettings:
    """Fundamental properties shared by every particle."""

    colors: List[str] = field(default_factory=lambda: list(DEFAULT_COLORS))
    drag: float = 0.9  # velocity multiplier applied after each move
    mass: float = 1.0
    pressure_inflection_point: float = 20.0  # switch between pull and push
    sight: float = 100.0  # particles further apart than this ignore each other

    def validate(self) -> None:
        if not self.colors:
            raise ConfigurationError("At least one color is required")
        # Index 0 of the palette is never spawned, so a single color leaves
        # nothing to spawn.
        if len(self.colors) < 2:
            raise ConfigurationError(
                f"At least two colors are required, got {len(self.colors)}"
            )
        if self.sight <= 0:
            raise ConfigurationError(f"sight must be positive, got {self.sight}")
        if self.pressure_inflection_point <= 0:
            raise ConfigurationError(
                "pressure_inflection_point must be positive, "
                f"got {self.pressure_inflection_point}"
            )
        if self.mass <= 0:
            raise ConfigurationError(f"mass must be positive, got {self.mass}")
        if self.drag < 0:
            raise ConfigurationError(f"drag must not be negative, got {self.drag}")


@dataclass
class SimulationConfig:
    """Configuration for the simulation fundamentals."""

    particle_count: int = 400
    environment_width: float = 600.0
    environment_height: float = 600.0
    particle_settings: ParticleSettings = field(default_factory=ParticleSettings)
    seed: Optional[int] = None

    def validate(self) -> None:
        """Raise ConfigurationError if the settings cannot be simulated."""
        # bool is an int subclass but not a count
        if not isinstance(self.particle_count, int) or isinstance(self.particle_count, bool):
            raise ConfigurationError(
                f"particle_count must be an integer, got {self.particle_count!r}"
            )
        if self.particle_count <= 0:
            raise ConfigurationError(
                f"particle_count must be positive, got {self.particle_count}"
            )
        if self.environment_width <= 0 or self.environment_height <= 0:
            raise ConfigurationError(
                "Environment dimensions must be positive, got "
                f"{self.environment_width}x{self.environment_height}"
            )
        self.particle_settings.validate()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SimulationConfig":
        data = dict(data)
        settings = data.pop("particle_settings", None) or {}
        try:
            return cls(particle_settings=ParticleSettings(**settings), **data)
        except TypeError as exc:
            raise ConfigurationError(f"Invalid simulation config: {exc}") from exc


@dataclass
class DisplaySettings:
    """How the simulation is drawn and how often frames are produced."""

    frames_per_second: int = 30
    background_color: str = "#eee"
    particle_stroke_color: str = "#000"
    particle_size: int = 3
    canvas_width: Optional[int] = None  # None = environment width
    canvas_height: Optional[int] = None

    @property
    def frame_interval(self) -> float:
        """Seconds between two frames."""
        return 1.0 / self.frames_per_second

    def validate(self) -> None:
        if self.frames_per_second <= 0:
            raise ConfigurationError(
                f"frames_per_second must be positive, got {self.frames_per_second}"
            )
        if self.particle_size <= 0:
            raise ConfigurationError(
                f"particle_size must be positive, got {self.particle_size}"
            )

    def canvas_size(self, config: SimulationConfig) -> tuple:
        """Canvas dimensions, falling back to the environment's."""
        width = self.canvas_width or int(config.environment_width)
        height = self.canvas_height or int(config.environment_height)
        return width, height


def load_config(filepath: str) -> tuple:
    """Load simulation and display settings from a JSON file.

    The file holds a ``simulation`` object and an optional ``display``
    object. Returns ``(SimulationConfig, DisplaySettings)``.
    """
    logger.info("Loading configuration from %s", filepath)
    with open(filepath, "r") as f:
        data = json.load(f)

    config = SimulationConfig.from_dict(data.get("simulation", {}))
    try:
        display = DisplaySettings(**data.get("display", {}))
    except TypeError as exc:
        raise ConfigurationError(f"Invalid display settings: {exc}") from exc
    config.validate()
    display.validate()
    return config, display


def save_config(
    filepath: str,
    config: SimulationConfig,
    display: Optional[DisplaySettings] = None,
) -> None:
    """Write settings to a JSON file readable by load_config."""
    directory = os.path.dirname(filepath)
    if directory:
        os.makedirs(directory, exist_ok=True)
    data = {
        "simulation": config.to_dict(),
        "display": asdict(display or DisplaySettings()),
    }
    with open(filepath, "w") as f:
        json.dump(data, f, indent=2)
    logger.info("Configuration saved to %s", filepath)


DEFAULT_CONFIG = SimulationConfig()
DEFAULT_DISPLAY = DisplaySettings()
