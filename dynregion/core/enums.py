"""Enumerations used throughout the controller."""

from __future__ import annotations

from enum import IntEnum, unique


@unique
class Domain(IntEnum):
    """RNG domains for deterministic randomness isolation."""

    MOVEMENT = 0
    WAYPOINT = 1
    SPAWN = 2
    HOST_FAILURE = 3
    VIEW_DISTANCE = 4
    TICK_JITTER = 5


@unique
class RegionTemperature(IntEnum):
    """How crowded the area around an agent is."""

    HOT = 0
    NORMAL = 1
    COLD = 2


@unique
class EntityCategory(IntEnum):
    """Entity groups that carry separate caps in cold areas."""

    MOB = 0
    ANIMAL = 1
    PROJECTILE = 2
    OTHER = 3


@unique
class CycleKind(IntEnum):
    """Periodic cycles driven by the orchestrator."""

    MOVEMENT = 0
    DENSITY_SCAN = 1
    CONTROL = 2
    METRICS = 3
    CLEANUP = 4
