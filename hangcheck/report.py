"""
hangcheck/report.py
===================

Result types shared by the analysis passes.

* ``Deficiency``      – one place where an exit is missing
* ``VerdictSet``      – per-analysis verdict: always / never / sometimes exits
* ``AnalysisReport``  – the combined result of one run

All three are frozen; a report is immutable once returned.  ``to_dict``
produces the JSON shape consumed by downstream tooling::

    {"global_exit": bool,
     "conditionals": {"need_exits": [{"line": int, "message": str}, ...],
                      "always_exits": bool, "never_exits": bool},
     "callbacks": {...},
     "promises": {...}}
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Tuple

__all__ = [
    "Deficiency",
    "VerdictSet",
    "AnalysisReport",
]


@dataclass(frozen=True)
class Deficiency:
    """A construct on which some path does not reach an exit.

    Attributes
    ----------
    line     : first source line of the offending branch or handler
    message  : human-readable description
    end_line : last source line (defaults to ``line``)
    subject  : the enclosing construct, used to group text output
               (a condition path, a callback chain, a promised function)
    """

    line: int
    message: str
    end_line: int = 0
    subject: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        if self.end_line < self.line:
            object.__setattr__(self, "end_line", self.line)

    def shifted(self, delta: int) -> "Deficiency":
        return replace(self, line=self.line + delta, end_line=self.end_line + delta)

    def to_dict(self) -> Dict[str, Any]:
        return {"line": self.line, "message": self.message}


@dataclass(frozen=True)
class VerdictSet:
    """Outcome of one analysis over every construct it recognised.

    With no recognised constructs at all the set reports ``never_exits``.
    ``need_exits`` is empty whenever ``never_exits`` holds.
    """

    need_exits: Tuple[Deficiency, ...] = ()
    always_exits: bool = False
    never_exits: bool = True

    @classmethod
    def build(
        cls, deficiencies: Iterable[Deficiency], any_exit: bool, all_exit: bool
    ) -> "VerdictSet":
        if not any_exit:
            return cls(need_exits=(), always_exits=False, never_exits=True)
        found = tuple(deficiencies)
        return cls(need_exits=found, always_exits=all_exit and not found, never_exits=False)

    @property
    def sometimes_exits(self) -> bool:
        return not self.always_exits and not self.never_exits

    def shifted(self, delta: int) -> "VerdictSet":
        return replace(self, need_exits=tuple(d.shifted(delta) for d in self.need_exits))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "need_exits": [d.to_dict() for d in self.need_exits],
            "always_exits": self.always_exits,
            "never_exits": self.never_exits,
        }


@dataclass(frozen=True)
class AnalysisReport:
    global_exit: bool = False
    conditionals: VerdictSet = field(default_factory=VerdictSet)
    callbacks: VerdictSet = field(default_factory=VerdictSet)
    promises: VerdictSet = field(default_factory=VerdictSet)

    def zero_indexed(self) -> "AnalysisReport":
        """The same report with every line number reduced by one."""
        return replace(
            self,
            conditionals=self.conditionals.shifted(-1),
            callbacks=self.callbacks.shifted(-1),
            promises=self.promises.shifted(-1),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "global_exit": self.global_exit,
            "conditionals": self.conditionals.to_dict(),
            "callbacks": self.callbacks.to_dict(),
            "promises": self.promises.to_dict(),
        }

    def to_json_str(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)
