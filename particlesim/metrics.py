"""Diagnostics over particle snapshots. None of these feed back into the simulation."""
from __future__ import annotations

from typing import Dict, List

import numpy as np

from .simulation import Particle


def _positions(particles: List[Particle]) -> np.ndarray:
    return np.array([[p.position.x, p.position.y] for p in particles], dtype=float).reshape(-1, 2)


def _velocities(particles: List[Particle]) -> np.ndarray:
    return np.array([[p.velocity.x, p.velocity.y] for p in particles], dtype=float).reshape(-1, 2)


def centroid(particles: List[Particle]) -> np.ndarray:
    if not particles:
        return np.array([np.nan, np.nan])
    return _positions(particles).mean(axis=0)


def mean_speed(particles: List[Particle]) -> float:
    if not particles:
        return 0.0
    return float(np.linalg.norm(_velocities(particles), axis=1).mean())


def kinetic_energy(particles: List[Particle]) -> float:
    # mean of 0.5 * m * |v|^2
    if not particles:
        return 0.0
    V = _velocities(particles)
    masses = np.array([p.mass for p in particles], dtype=float)
    return 0.5 * float((masses * (V * V).sum(axis=1)).mean())


def color_counts(particles: List[Particle], n_colors: int) -> Dict[int, int]:
    counts = {color: 0 for color in range(n_colors)}
    for p in particles:
        counts[p.color] = counts.get(p.color, 0) + 1
    return counts


def mean_neighbor_distance(particles: List[Particle]) -> float:
    """Mean distance from every particle to its nearest neighbor."""
    if len(particles) < 2:
        return float("nan")
    X = _positions(particles)
    diff = X[:, None, :] - X[None, :, :]    # [n,n,2]
    D = np.sqrt((diff * diff).sum(axis=2))  # [n,n]
    np.fill_diagonal(D, np.inf)
    return float(D.min(axis=1).mean())


def summarize(particles: List[Particle], n_colors: int) -> Dict[str, object]:
    """All metrics in one JSON-ready dict."""
    c = centroid(particles)
    return {
        "particle_count": len(particles),
        "mean_speed": mean_speed(particles),
        "kinetic_energy": kinetic_energy(particles),
        "centroid": [float(c[0]), float(c[1])],
        "mean_neighbor_distance": mean_neighbor_distance(particles),
        "color_counts": color_counts(particles, n_colors),
    }
