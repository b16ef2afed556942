"""Host integration: the abstract world host and its simulated implementation."""

from dynregion.host.base import WorldHost
from dynregion.host.simulated import SimulatedHost

__all__ = ["SimulatedHost", "WorldHost"]
