from __future__ import annotations


class EngineError(Exception):
    """Engine misuse. Aborts the run instead of being classified per case."""


class UnknownMechanismError(EngineError, KeyError):
    def __init__(self, name: str) -> None:
        super().__init__(f"unknown mechanism: {name!r}")
        self.name = name

    def __str__(self) -> str:
        return self.args[0]


class UnknownCurveError(EngineError, KeyError):
    def __init__(self, name: str) -> None:
        super().__init__(f"unknown curve: {name!r}")
        self.name = name

    def __str__(self) -> str:
        return self.args[0]


class ModuleError(RuntimeError):
    """The module could not provide a session for the run."""
