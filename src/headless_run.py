#!/usr/bin/env python3
"""Run the simulation without a display and log diagnostics along the way."""

import argparse
import json
import logging

from tqdm import tqdm

from particlesim.config import SimulationConfig, load_config
from particlesim.logging_setup import setup_logging
from particlesim.metrics import summarize
from particlesim.presets import get_preset
from particlesim.simulation import SimulationEngine

logger = logging.getLogger("headless_run")


def run(engine: SimulationEngine, steps: int, log_every: int, progress: bool = False):
    """Step ``steps`` frames; returns one metrics summary per logged frame."""
    n_colors = len(engine.colors)
    history = [dict(frame=0, **summarize(engine.particles(), n_colors))]

    frames = range(1, steps + 1)
    if progress:
        frames = tqdm(frames, desc="Simulating", leave=False)
    for frame in frames:
        engine.step()
        if frame % log_every == 0 or frame == steps:
            summary = dict(frame=frame, **summarize(engine.particles(), n_colors))
            history.append(summary)
            logger.info(
                "Frame %d | mean speed %.4f | nearest neighbor %.2f",
                frame, summary["mean_speed"], summary["mean_neighbor_distance"],
            )
    return history


def main():
    parser = argparse.ArgumentParser(description='Headless particle life run')
    parser.add_argument('--config', type=str, help='Path to a JSON settings file')
    parser.add_argument('--preset', type=str, help='Name of a particle settings preset')
    parser.add_argument('--particles', type=int, help='Override the particle count')
    parser.add_argument('--seed', type=int, default=42)
    parser.add_argument('--steps', type=int, default=200)
    parser.add_argument('--log-every', type=int, default=50)
    parser.add_argument('--output', type=str, help='Write the metrics history as JSON')
    parser.add_argument('--log-level', type=str, default='INFO')
    args = parser.parse_args()

    setup_logging(args.log_level)

    if args.config:
        config, _ = load_config(args.config)
    else:
        config = SimulationConfig()
    if args.preset:
        config = get_preset(args.preset).apply(config)
    if args.particles is not None:
        config.particle_count = args.particles
    config.seed = args.seed

    engine = SimulationEngine(config)
    engine.setup()
    history = run(engine, args.steps, args.log_every, progress=True)

    if args.output:
        with open(args.output, 'w') as f:
            json.dump(history, f, indent=2)
        logger.info("Metrics written to %s", args.output)


if __name__ == "__main__":
    main()
