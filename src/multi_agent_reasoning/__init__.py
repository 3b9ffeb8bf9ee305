"""Multi-agent reasoning: plan a goal as a DAG, solve with self-consistency, verify."""

__version__ = "0.1.0"
