"""Exception types shared by the measurement loop components."""

from __future__ import annotations


class NotConfiguredError(RuntimeError):
    """Raised when a component is used before ``configure()`` succeeded."""

    def __init__(self, component: object) -> None:
        name = component if isinstance(component, str) else type(component).__name__
        super().__init__(f"{name} is not configured.")


class LoopClosedError(RuntimeError):
    """Raised when a closed loop or component is used again."""

    def __init__(self, component: object) -> None:
        name = component if isinstance(component, str) else type(component).__name__
        super().__init__(f"{name} has been closed.")
