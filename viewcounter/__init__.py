"""
Pixel view counter: a tracking pixel in front of an Axiom dataset.
"""

__version__ = "0.1.0"
