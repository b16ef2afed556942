"""Chunk budgets: movement prediction and per-region rate-limited loading."""

from dynregion.budget.movement import MovementPredictor
from dynregion.budget.region_budget import RegionBudgetManager

__all__ = ["MovementPredictor", "RegionBudgetManager"]
