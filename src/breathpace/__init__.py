"""breathpace: paced countdowns for breathing exercises."""

__version__ = "0.1.0"
