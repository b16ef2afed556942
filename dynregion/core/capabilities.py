"""Host capability descriptor, resolved once at startup and injected."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class HostCapabilities:
    """What the host runtime can do beyond plain chunk load/unload.

    Components receive this object instead of probing the runtime
    themselves, so tests can hand in any combination.
    """

    name: str = "generic"
    per_agent_view_distance: bool = False
    random_tick_scaling: bool = False
    partitioned_scheduling: bool = False

    def describe(self) -> str:
        features = [
            label
            for label, enabled in (
                ("view-distance", self.per_agent_view_distance),
                ("random-tick", self.random_tick_scaling),
                ("partitioned", self.partitioned_scheduling),
            )
            if enabled
        ]
        return f"{self.name} [{', '.join(features) or 'basic'}]"


BASIC = HostCapabilities()
