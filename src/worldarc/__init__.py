"""Worldarc: persistent world story arcs, generated one beat at a time."""

__version__ = "0.1.0"
