"""Engine systems: deterministic RNG."""

from dynregion.systems.rng import DeterministicRNG

__all__ = ["DeterministicRNG"]
