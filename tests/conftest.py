import os
from pathlib import Path

import numpy as np
import pytest

# The API module builds its engine at import time; keep it small for tests.
os.environ.setdefault(
    "PARTICLESIM_CONFIG", str(Path(__file__).parent / "data" / "small_config.json")
)

from particlesim.config import ParticleSettings, SimulationConfig  # noqa: E402


@pytest.fixture
def rng():
    """Reproducible random number generator."""
    return np.random.default_rng(seed=42)


@pytest.fixture
def make_config():
    def _make(**overrides):
        settings = overrides.pop("particle_settings", None) or ParticleSettings(
            colors=["white", "red", "green", "blue"],
            drag=1.0,
            mass=1.0,
            pressure_inflection_point=5.0,
            sight=20.0,
        )
        base = dict(
            particle_count=20,
            environment_width=100.0,
            environment_height=100.0,
            particle_settings=settings,
            seed=1,
        )
        base.update(overrides)
        return SimulationConfig(**base)
    return _make
