"""
hangcheck.frontend – turning JavaScript into :mod:`hangcheck.nodes` trees.

* :mod:`~hangcheck.frontend.treesitter` – parse source text with tree-sitter
* :mod:`~hangcheck.frontend.estree`     – convert pre-parsed esprima / acorn JSON
"""

from hangcheck.frontend.estree import from_estree
from hangcheck.frontend.treesitter import JavaScriptFrontend, parse_source

__all__ = [
    "JavaScriptFrontend",
    "from_estree",
    "parse_source",
]
