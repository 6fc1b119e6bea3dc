"""
hangcheck/frontend/estree.py
============================

Pre-parsed ESTree documents → :mod:`hangcheck.nodes` trees.

Accepts the JSON produced by esprima (``loc`` + ``range``), acorn (``loc`` +
``start``/``end``) or any other ESTree-conformant parser, as nested
mappings.  Field names carry over one-to-one; the only renames are
``VariableDeclaration.kind`` → ``kind_keyword`` and the unwrapping of
``ChainExpression`` / ``ParenthesizedExpression``.  Node types outside the
modelled subset become :class:`~hangcheck.nodes.UnknownNode` leaves.

Usage::

    import json
    program = from_estree(json.load(fh), source=text)
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, List, Mapping

from hangcheck import nodes as N
from hangcheck.errors import EstreeFormatError

__all__ = [
    "from_estree",
]

logger = logging.getLogger(__name__)

_UNWRAPPED = ("ChainExpression", "ParenthesizedExpression")
_RENAMED = {("VariableDeclaration", "kind_keyword"): "kind"}
_NOT_CHILDREN = frozenset({"loc", "source"})
_SCALAR_TYPES: Dict[str, Any] = {"Any": None, "str": "", "bool": False}


def _span(mapping: Mapping[str, Any]) -> N.Span:
    loc = mapping.get("loc") or {}
    start_pos = loc.get("start") or {}
    end_pos = loc.get("end") or {}
    if isinstance(mapping.get("range"), (list, tuple)) and len(mapping["range"]) == 2:
        start, end = mapping["range"]
    else:
        start, end = mapping.get("start", 0), mapping.get("end", 0)
    if not isinstance(start, int) or not isinstance(end, int):
        start = end = 0
    return N.Span(
        line=start_pos.get("line", 0),
        column=start_pos.get("column", 0),
        end_line=end_pos.get("line", 0),
        end_column=end_pos.get("column", 0),
        start=start,
        end=end,
    )


class _Converter:
    def __init__(self, source: str) -> None:
        self.source = source
        self.unknown: Dict[str, int] = {}

    def _raw(self, span: N.Span) -> str:
        if span.known and span.end <= len(self.source):
            return self.source[span.start:span.end]
        return ""

    def node(self, value: Any, path: str) -> N.Node:
        if not isinstance(value, Mapping):
            raise EstreeFormatError(f"expected an ESTree node, got {type(value).__name__}", path=path)
        kind = value.get("type")
        if not isinstance(kind, str):
            raise EstreeFormatError("node has no 'type'", path=path)
        if kind in _UNWRAPPED:
            inner = value.get("expression")
            if inner is not None:
                return self.node(inner, f"{path}.expression")

        span = _span(value)
        cls = N.NODE_TYPES.get(kind)
        if cls is None or cls is N.UnknownNode:
            self.unknown[kind] = self.unknown.get(kind, 0) + 1
            return N.UnknownNode(type_name=kind, raw=self._raw(span), loc=span)

        kwargs: Dict[str, Any] = {"loc": span}
        for f in dataclasses.fields(cls):
            if f.name in _NOT_CHILDREN:
                continue
            key = _RENAMED.get((kind, f.name), f.name)
            annotation = str(f.type)
            raw = value.get(key)
            if annotation in _SCALAR_TYPES:
                if raw is not None or f.default is dataclasses.MISSING:
                    kwargs[f.name] = raw if raw is not None else _SCALAR_TYPES[annotation]
            elif annotation.startswith("Tuple"):
                kwargs[f.name] = self.sequence(raw, f"{path}.{key}")
            elif isinstance(raw, Mapping):
                kwargs[f.name] = self.node(raw, f"{path}.{key}")
            elif raw is not None:
                raise EstreeFormatError(f"expected a node for '{key}'", path=path)
            elif annotation.startswith("Optional"):
                kwargs[f.name] = None
            else:
                kwargs[f.name] = N.UnknownNode(type_name=f"missing {key}", loc=span)
        if cls is N.Program:
            kwargs["source"] = self.source
        if cls is N.TemplateLiteral:
            kwargs["raw"] = self._raw(span)
        return cls(**kwargs)

    def sequence(self, value: Any, path: str) -> tuple:
        if value is None:
            return ()
        if not isinstance(value, (list, tuple)):
            raise EstreeFormatError(f"expected a list, got {type(value).__name__}", path=path)
        # array holes are null
        return tuple(
            self.node(item, f"{path}[{i}]") for i, item in enumerate(value) if item is not None
        )


def from_estree(mapping: Mapping[str, Any], source: str = "") -> N.Program:
    """Convert an ESTree ``Program`` mapping.

    *source* is the text the tree was parsed from; without it, condition
    paths are rendered from the tree instead of quoted from the source.
    """
    converter = _Converter(source)
    program = converter.node(mapping, "$")
    if not isinstance(program, N.Program):
        raise EstreeFormatError(f"root node must be a Program, got {program.kind}", path="$")
    if converter.unknown:
        logger.info("unmodelled ESTree node types: %s", _summary(converter.unknown))
    return program


def _summary(counts: Dict[str, int]) -> str:
    parts: List[str] = [f"{name}×{count}" for name, count in sorted(counts.items())]
    return ", ".join(parts)
