"""Preset particle settings with different palettes and dynamics."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, List

from .config import ParticleSettings, SimulationConfig
from .errors import ConfigurationError


@dataclass
class Preset:
    """A named set of particle settings."""
    name: str
    description: str
    particle_settings: ParticleSettings

    def apply(self, config: SimulationConfig) -> SimulationConfig:
        """Return a copy of ``config`` using this preset's particle settings."""
        settings = replace(
            self.particle_settings, colors=list(self.particle_settings.colors)
        )
        return replace(config, particle_settings=settings)


# ============================================================================
# Preset Definitions
# ============================================================================

# The first color of every palette never spawns; it only widens the matrix.

CLASSIC = Preset(
    name="classic",
    description="Four colors with moderate drag: clusters that slowly orbit",
    particle_settings=ParticleSettings(
        colors=["white", "red", "green", "blue", "yellow"],
        drag=0.9,
        mass=1.0,
        pressure_inflection_point=20.0,
        sight=100.0,
    ),
)

RAINBOW = Preset(
    name="rainbow",
    description="Six colors, long sight: large swirling structures",
    particle_settings=ParticleSettings(
        colors=["black", "#ff0066", "#ff9900", "#ffee00", "#33cc33", "#0099ff", "#9933ff"],
        drag=0.85,
        mass=1.0,
        pressure_inflection_point=25.0,
        sight=150.0,
    ),
)

SPARSE = Preset(
    name="sparse",
    description="Two colors, short sight: small isolated pairs and chains",
    particle_settings=ParticleSettings(
        colors=["gray", "#00ccff", "#ff3366"],
        drag=0.8,
        mass=1.0,
        pressure_inflection_point=12.0,
        sight=40.0,
    ),
)

DENSE = Preset(
    name="dense",
    description="Three heavy colors with low drag: energetic tight clumps",
    particle_settings=ParticleSettings(
        colors=["white", "#e63946", "#2a9d8f", "#264653"],
        drag=0.95,
        mass=1.5,
        pressure_inflection_point=10.0,
        sight=60.0,
    ),
)


# ============================================================================
# Preset Registry
# ============================================================================

PRESETS: Dict[str, Preset] = {
    "classic": CLASSIC,
    "rainbow": RAINBOW,
    "sparse": SPARSE,
    "dense": DENSE,
}


def list_presets() -> List[Preset]:
    """Return list of all available presets."""
    return list(PRESETS.values())


def get_preset(name: str) -> Preset:
    """Get preset by name."""
    if name not in PRESETS:
        raise ConfigurationError(f"Unknown preset '{name}'. Available: {list(PRESETS.keys())}")
    return PRESETS[name]
