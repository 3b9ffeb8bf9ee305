"""Run record storage backends."""

from multi_agent_reasoning.storage.base import RunStorage
from multi_agent_reasoning.storage.memory import InMemoryRunStorage

__all__ = ["InMemoryRunStorage", "RunStorage"]
