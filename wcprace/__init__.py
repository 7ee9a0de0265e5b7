"""Predictive data race detection over event traces with the Weak-Causally-Precedes relation."""

__version__ = "0.1.0"

__all__ = [
    "cli",
    "engine",
    "model",
    "race_stats",
    "shadow_memory",
    "vector_clock",
    "wcp",
]