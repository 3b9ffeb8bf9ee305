"""Exception types raised across the orchestration core."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Provider or credential configuration is unusable."""


class BackendRequestError(RuntimeError):
    """A text-generation backend call failed."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class PlanDeadlockError(RuntimeError):
    """No subtask is ready but the plan is incomplete (cycle or dangling dependency)."""

    def __init__(self, pending: list[str], done: list[str]) -> None:
        super().__init__(
            "Deadlock in plan dependencies: "
            f"pending={sorted(pending)} done={sorted(done)}"
        )
        self.pending = pending
        self.done = done
