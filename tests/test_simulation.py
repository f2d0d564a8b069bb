import math

import numpy as np
import pytest

from particlesim.config import ParticleSettings
from particlesim.errors import ConfigurationError, SimulationStateError
from particlesim.simulation import (
    Particle,
    SimulationEngine,
    Vector2,
    advance,
    build_attraction_matrix,
    spawn_particles,
)


def make_particle(color, x, y, vx=0.0, vy=0.0, mass=1.0):
    return Particle(color=color, mass=mass, position=Vector2(x, y), velocity=Vector2(vx, vy))


# ============================================================================
# Attraction matrix
# ============================================================================

def test_matrix_diagonal_is_self_attraction(rng):
    matrix = build_attraction_matrix(6, rng)
    assert matrix.shape == (6, 6)
    assert np.all(np.diag(matrix) == 1.0)


def test_matrix_off_diagonal_range(rng):
    matrix = build_attraction_matrix(12, rng)
    off_diagonal = matrix[~np.eye(12, dtype=bool)]
    assert np.all(off_diagonal >= -1.5)
    assert np.all(off_diagonal < 0.5)
    # Wide enough sample to cover both signs
    assert off_diagonal.min() < -1.0
    assert off_diagonal.max() > 0.0


def test_matrix_is_reproducible_with_seed():
    first = build_attraction_matrix(4, np.random.default_rng(5))
    second = build_attraction_matrix(4, np.random.default_rng(5))
    np.testing.assert_array_equal(first, second)


# ============================================================================
# Initial particles
# ============================================================================

def test_spawn_positions_in_center_square(make_config, rng):
    config = make_config(particle_count=300, environment_width=400.0, environment_height=200.0)
    particles = spawn_particles(config, rng)

    assert len(particles) == 300
    for p in particles:
        assert 175.0 <= p.position.x < 225.0
        assert 75.0 <= p.position.y < 125.0
        assert p.velocity == Vector2(0.0, 0.0)
        assert p.mass == config.particle_settings.mass


def test_spawn_never_uses_first_color(make_config, rng):
    config = make_config(particle_count=500)
    colors = {p.color for p in spawn_particles(config, rng)}
    assert 0 not in colors
    assert colors == {1, 2, 3}


def test_spawn_with_two_colors_uses_only_second(make_config, rng):
    settings = ParticleSettings(colors=["white", "red"])
    config = make_config(particle_settings=settings, particle_count=50)
    assert {p.color for p in spawn_particles(config, rng)} == {1}


# ============================================================================
# Integration
# ============================================================================

def test_two_particle_step(make_config):
    config = make_config(particle_count=2)
    engine = SimulationEngine(config)
    engine.setup()
    matrix = np.ones((4, 4))
    matrix[1, 2] = 0.5
    matrix[2, 1] = 0.0
    engine.set_matrix(matrix)
    engine.replace_particles([make_particle(1, 0.0, 0.0), make_particle(2, 10.0, 0.0)])

    engine.step()

    a, b = engine.particles()
    assert a.velocity.x == pytest.approx(0.05)
    assert a.velocity.y == pytest.approx(0.0, abs=1e-12)
    assert a.position.x == pytest.approx(0.05)
    assert a.position.y == pytest.approx(0.0, abs=1e-12)
    # B is indifferent to A
    assert b.position.x == pytest.approx(10.0)
    assert b.velocity.x == pytest.approx(0.0)


def test_pass_one_accumulates_before_moving(make_config):
    """Both particles see each other's pre-step position."""
    config = make_config()
    matrix = np.full((4, 4), -1.0)
    particles = [make_particle(1, 40.0, 50.0), make_particle(1, 50.0, 50.0)]

    advance(particles, matrix, config)

    # a = -1 pushes apart symmetrically: 0.1 each
    assert particles[0].velocity.x == pytest.approx(-0.1)
    assert particles[1].velocity.x == pytest.approx(0.1)
    assert particles[0].position.x == pytest.approx(39.9)
    assert particles[1].position.x == pytest.approx(50.1)


def test_result_independent_of_particle_order(make_config, rng):
    config = make_config(particle_count=15)
    matrix = build_attraction_matrix(4, rng)
    particles = spawn_particles(config, rng)
    reversed_particles = [p.copy() for p in reversed(particles)]

    advance(particles, matrix, config)
    advance(reversed_particles, matrix, config)

    for p, q in zip(particles, reversed(reversed_particles)):
        assert p.position.x == pytest.approx(q.position.x)
        assert p.position.y == pytest.approx(q.position.y)
        assert p.velocity.x == pytest.approx(q.velocity.x)
        assert p.velocity.y == pytest.approx(q.velocity.y)


def test_pairs_beyond_sight_are_ignored(make_config):
    config = make_config()  # sight 20
    matrix = np.full((4, 4), -1.0)
    particles = [make_particle(1, 20.0, 50.0), make_particle(2, 50.0, 50.0)]

    advance(particles, matrix, config)

    assert particles[0].velocity == Vector2(0.0, 0.0)
    assert particles[1].velocity == Vector2(0.0, 0.0)


def test_pair_at_exactly_sight_interacts(make_config):
    config = make_config()
    matrix = np.full((4, 4), -1.0)
    particles = [make_particle(1, 30.0, 50.0), make_particle(2, 50.0, 50.0)]

    advance(particles, matrix, config)

    assert particles[0].velocity.x == pytest.approx(-0.05)


def test_drag_scales_velocity(make_config):
    settings = ParticleSettings(colors=["white", "red"], drag=0.5)
    config = make_config(particle_settings=settings)
    particles = [make_particle(1, 50.0, 50.0, vx=4.0, vy=-2.0)]

    advance(particles, np.ones((2, 2)), config)

    assert particles[0].position == Vector2(54.0, 48.0)
    assert particles[0].velocity == Vector2(2.0, -1.0)


def test_reflect_off_near_wall(make_config):
    config = make_config()  # width 100, drag 1.0
    particle = make_particle(1, -1.0, 50.0, vx=-2.0)

    advance([particle], np.ones((4, 4)), config)

    assert particle.position.x == pytest.approx(3.0)
    assert particle.velocity.x == pytest.approx(2.0)


def test_reflect_velocity_scaled_by_drag(make_config):
    settings = ParticleSettings(colors=["white", "red"], drag=0.5)
    config = make_config(particle_settings=settings)
    particle = make_particle(1, -1.0, 50.0, vx=-2.0)

    advance([particle], np.ones((2, 2)), config)

    assert particle.position.x == pytest.approx(3.0)
    assert particle.velocity.x == pytest.approx(1.0)


def test_reflect_off_far_walls(make_config):
    config = make_config(environment_width=100.0, environment_height=80.0)
    particle = make_particle(1, 98.0, 78.0, vx=5.0, vy=4.0)

    advance([particle], np.ones((4, 4)), config)

    assert particle.position.x == pytest.approx(97.0)
    assert particle.position.y == pytest.approx(78.0)
    assert particle.velocity.x == pytest.approx(-5.0)
    assert particle.velocity.y == pytest.approx(-4.0)


def test_position_at_zero_reflects(make_config):
    settings = ParticleSettings(colors=["white", "red"], drag=1.0)
    config = make_config(environment_width=10.0, particle_settings=settings)
    particle = make_particle(1, 5.0, 5.0, vx=-5.0)

    advance([particle], np.ones((2, 2)), config)

    assert particle.position.x == 0.0
    assert particle.velocity.x == 5.0


def test_reflection_applied_once_per_wall(make_config):
    """A huge jump is mirrored once at each wall, not iterated into bounds."""
    config = make_config(environment_width=10.0)
    particle = make_particle(1, 1.0, 5.0, vx=-25.0)

    advance([particle], np.ones((4, 4)), config)

    # -24 -> 24 at the near wall, then 10 - 14 = -4 at the far wall
    assert particle.position.x == pytest.approx(-4.0)
    assert particle.velocity.x == pytest.approx(-25.0)


def test_coincident_particles_stay_finite(make_config):
    config = make_config()
    particles = [make_particle(1, 50.0, 50.0), make_particle(2, 50.0, 50.0)]

    advance(particles, np.full((4, 4), 0.2), config)

    for p in particles:
        assert math.isfinite(p.position.x) and math.isfinite(p.position.y)
        assert math.isfinite(p.velocity.x) and math.isfinite(p.velocity.y)


# ============================================================================
# Engine
# ============================================================================

def test_step_before_setup_raises(make_config):
    engine = SimulationEngine(make_config())
    assert not engine.is_running
    with pytest.raises(SimulationStateError):
        engine.step()


def test_setup_populates_state(make_config):
    engine = SimulationEngine(make_config(particle_count=25))
    engine.setup()

    assert engine.is_running
    assert engine.matrix.shape == (4, 4)
    particles = engine.particles()
    assert len(particles) == 25
    for p in particles:
        assert 25.0 <= p.position.x < 75.0
        assert 25.0 <= p.position.y < 75.0
        assert p.velocity == Vector2(0.0, 0.0)
        assert p.color != 0


@pytest.mark.parametrize(
    "overrides",
    [
        {"particle_count": 0},
        {"particle_count": -3},
        {"environment_width": 0.0},
        {"environment_height": -1.0},
        {"particle_settings": ParticleSettings(colors=[])},
        {"particle_settings": ParticleSettings(colors=["white"])},
        {"particle_settings": ParticleSettings(sight=0.0)},
        {"particle_settings": ParticleSettings(pressure_inflection_point=-1.0)},
    ],
)
def test_setup_rejects_invalid_config(make_config, overrides):
    engine = SimulationEngine(make_config(**overrides))
    with pytest.raises(ConfigurationError):
        engine.setup()
    assert not engine.is_running


def test_setup_twice_starts_fresh(make_config):
    engine = SimulationEngine(make_config(particle_count=10))
    engine.setup()
    first_matrix = engine.matrix
    for _ in range(3):
        engine.step()

    engine.setup()

    assert engine.frame == 0
    particles = engine.particles()
    assert len(particles) == 10
    assert all(p.velocity == Vector2(0.0, 0.0) for p in particles)
    assert not np.array_equal(engine.matrix, first_matrix)


def test_same_seed_gives_same_run(make_config):
    runs = []
    for _ in range(2):
        engine = SimulationEngine(make_config(seed=123))
        engine.setup()
        for _ in range(5):
            engine.step()
        runs.append(engine.particles())

    assert runs[0] == runs[1]


def test_injected_rng_is_used(make_config):
    a = SimulationEngine(make_config(seed=None), rng=np.random.default_rng(9))
    b = SimulationEngine(make_config(seed=None), rng=np.random.default_rng(9))
    a.setup()
    b.setup()
    np.testing.assert_array_equal(a.matrix, b.matrix)
    assert a.particles() == b.particles()


def test_particles_returns_snapshot(make_config):
    engine = SimulationEngine(make_config(particle_count=5))
    engine.setup()
    snapshot = engine.particles()
    before = [p.copy() for p in snapshot]

    snapshot[0].position.x = -1000.0
    engine.step()

    assert engine.particles()[0].position.x != -1000.0
    assert snapshot[1:] == before[1:]


def test_matrix_property_is_a_copy(make_config):
    engine = SimulationEngine(make_config())
    engine.setup()
    matrix = engine.matrix
    matrix[0, 1] = 99.0
    assert engine.matrix[0, 1] != 99.0


def test_set_matrix_validates_shape(make_config):
    engine = SimulationEngine(make_config())
    engine.setup()
    with pytest.raises(ConfigurationError):
        engine.set_matrix([[0.0, 1.0], [2.0, 3.0]])
    with pytest.raises(ConfigurationError):
        engine.set_matrix(np.full((4, 4), np.nan))


def test_set_matrix_rejects_non_numeric(make_config):
    engine = SimulationEngine(make_config())
    engine.setup()
    with pytest.raises(ConfigurationError):
        engine.set_matrix({"a": 1})
    with pytest.raises(ConfigurationError):
        engine.set_matrix([["x"] * 4] * 4)


def test_set_matrix_before_setup_raises(make_config):
    engine = SimulationEngine(make_config())
    with pytest.raises(SimulationStateError):
        engine.set_matrix(np.ones((4, 4)))


def test_replace_particles_rejects_unknown_color(make_config):
    engine = SimulationEngine(make_config())
    engine.setup()
    with pytest.raises(ConfigurationError):
        engine.replace_particles([make_particle(7, 1.0, 1.0)])


def test_get_state(make_config):
    engine = SimulationEngine(make_config(particle_count=3))
    engine.setup()
    engine.step()

    state = engine.get_state()

    assert state["frame"] == 1
    assert state["width"] == 100.0
    assert state["colors"] == ["white", "red", "green", "blue"]
    assert len(state["particles"]) == 3
    assert set(state["particles"][0]) == {"id", "color", "x", "y", "vx", "vy"}
