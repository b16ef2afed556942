"""Policy consumers of hot regions and control output."""

from dynregion.policy.entity_limits import EntityController
from dynregion.policy.view_distance import ViewDistanceAdapter

__all__ = ["EntityController", "ViewDistanceAdapter"]
