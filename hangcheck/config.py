"""
hangcheck/config.py
===================

Tuning knobs shared by every analysis pass.

* ``AnalysisConfig``      – configuration dataclass
* ``ErrorNameHeuristic``  – protocol for deciding whether a name is an error channel
* ``SubstringHeuristic``  – the default: case-insensitive substring match on ``err``
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, List, Protocol, Tuple, runtime_checkable


__all__ = [
    "ErrorNameHeuristic",
    "SubstringHeuristic",
    "AnalysisConfig",
]


@runtime_checkable
class ErrorNameHeuristic(Protocol):
    """Decides whether an identifier names the error channel of a callback."""

    def __call__(self, name: str) -> bool:
        ...


@dataclass(frozen=True)
class SubstringHeuristic:
    """Matches any name containing *needle*, ignoring case.

    Approximate on purpose: ``error``, ``err`` and ``myErr`` match, and so do
    ``terrain`` and ``inherit``.
    """

    needle: str = "err"

    def __call__(self, name: str) -> bool:
        return bool(self.needle) and self.needle.lower() in name.lower()


@dataclass
class AnalysisConfig:
    """Configuration for one analysis run."""

    terminators: Tuple[str, ...] = ("exit",)
    promise_modules: Tuple[str, ...] = ("q",)
    error_names: ErrorNameHeuristic = field(default_factory=SubstringHeuristic)
    max_callback_depth: int = 32

    def validate(self) -> List[str]:
        """Return a list of validation warnings (empty if valid)."""
        warnings: List[str] = []
        if not self.terminators:
            warnings.append("no terminator names configured; nothing can exit")
        for name in self.terminators:
            if not name or any(not part for part in name.split(".")):
                warnings.append(f"malformed terminator name {name!r}")
        if self.max_callback_depth < 1:
            warnings.append("max_callback_depth must be positive; using 1")
        return warnings

    @property
    def primitives(self) -> FrozenSet[str]:
        return frozenset(self.terminators)
