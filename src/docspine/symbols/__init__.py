"""Symbol providers supplying docstrings to ``@docs`` blocks."""

from docspine.symbols.provider import (
    AstSymbolProvider,
    MappingSymbolProvider,
    SymbolInfo,
    SymbolProvider,
)

__all__ = [
    "SymbolProvider",
    "AstSymbolProvider",
    "MappingSymbolProvider",
    "SymbolInfo",
]
