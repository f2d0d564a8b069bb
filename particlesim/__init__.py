"""
particlesim: a particle life simulator.

Colored particles pull and push each other according to a color-to-color
attraction matrix, which produces clusters, chains and orbiting groups.
"""

__version__ = "0.1.0"
