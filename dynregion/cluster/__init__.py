"""Density clustering of agent positions into hot regions."""

from dynregion.cluster.density import DensityClusterer

__all__ = ["DensityClusterer"]
