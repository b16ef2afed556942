"""Engine layer: orchestrator and task dispatch."""

from dynregion.engine.dispatcher import TaskDispatcher
from dynregion.engine.orchestrator import Orchestrator

__all__ = ["Orchestrator", "TaskDispatcher"]
