"""
Symbol providers: where ``@docs`` blocks get their documentation strings.

The build only ever asks two questions of a provider: "what is the
docstring of ``pkg.mod.Class.method``?" and "which symbols of ``pkg``
carry a docstring?" (for the coverage check). How the answer is found is
the provider's business.

``AstSymbolProvider`` answers statically: it locates module sources on a
search path and reads their syntax tree, so documenting a package never
imports (or executes) it.

Architecture:
    ::

        "pkg.mod.Parser.parse"
              │
              ▼
        longest importable prefix ──► pkg/mod.py  (search paths)
              │
              ▼
        ast.parse() ──► Module docstring
              │         ├── FunctionDef ──► pkg.mod.func
              │         └── ClassDef ─────► pkg.mod.Parser
              │                   └── FunctionDef ──► pkg.mod.Parser.parse
              ▼
        {qualified name: SymbolInfo}  (cached per module)

Guardrails:
    - Do NOT import user code to read docstrings
      ✅ Parse the source with ast
    - Do NOT assume all files are valid Python
      ✅ Log and skip files with syntax errors

Tags:
    symbols, docstrings, ast, introspection
"""

from __future__ import annotations

import ast
import sys
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from docspine.framework.logging import get_logger

if TYPE_CHECKING:
    from docspine.core.config import BuildConfig

log = get_logger(__name__)


@runtime_checkable
class SymbolProvider(Protocol):
    """Lookup interface the expander and the coverage check rely on."""

    def lookup_doc(self, name: str) -> str | None:
        """Docstring of the fully qualified ``name``, or None."""
        ...

    def documented_symbols(self, module: str) -> list[str]:
        """Qualified names of the public, documented symbols of ``module``."""
        ...


class MappingSymbolProvider:
    """Provider backed by a fixed ``{qualified name: docstring}`` mapping."""

    def __init__(self, docs: Mapping[str, str | None]):
        self._docs = dict(docs)

    def lookup_doc(self, name: str) -> str | None:
        return self._docs.get(name)

    def documented_symbols(self, module: str) -> list[str]:
        prefix = module + "."
        return [
            name
            for name, doc in self._docs.items()
            if doc and (name == module or name.startswith(prefix)) and _is_public(name)
        ]


@dataclass
class SymbolInfo:
    """One symbol found in a module source.

    Attributes:
        name: Qualified name (e.g. 'pkg.mod.Class.method')
        kind: module, class, function or method
        docstring: Cleaned docstring (if present)
        file_path: Source file
        line_number: Line where the symbol is defined
    """

    name: str
    kind: str
    docstring: str | None
    file_path: Path
    line_number: int


class AstSymbolProvider:
    """Read docstrings from module sources without importing them."""

    def __init__(
        self,
        search_paths: Iterable[Path | str] | None = None,
        skip_patterns: list[str] | None = None,
    ):
        paths = list(search_paths) if search_paths is not None else []
        paths.extend(p for p in sys.path if p)
        self.search_paths = [Path(p) for p in paths]
        self.skip_patterns = skip_patterns or ["__pycache__", "test_", "conftest"]
        self._cache: dict[str, dict[str, SymbolInfo]] = {}

    @classmethod
    def for_config(cls, config: BuildConfig) -> AstSymbolProvider:
        """Provider searching ``<root>/src`` and ``<root>`` ahead of ``sys.path``."""
        return cls(search_paths=[config.root / "src", config.root])

    def lookup_doc(self, name: str) -> str | None:
        info = self.lookup(name)
        return info.docstring if info else None

    def lookup(self, name: str) -> SymbolInfo | None:
        """Symbol information for ``name`` (module found by longest prefix)."""
        parts = name.split(".")
        for end in range(len(parts), 0, -1):
            module = ".".join(parts[:end])
            symbols = self.walk_module(module)
            if symbols is not None:
                return symbols.get(name)
        return None

    def documented_symbols(self, module: str) -> list[str]:
        names: list[str] = []
        location = self.locate(module)
        if location is None:
            log.warning("symbols.module_not_found", module=module)
            return names

        modules = [module]
        if location.name == "__init__.py":
            package_dir = location.parent
            for py_file in sorted(package_dir.rglob("*.py")):
                relative = py_file.relative_to(package_dir).with_suffix("")
                if py_file == location or self._skip(relative):
                    continue
                parts = [p for p in relative.parts if p != "__init__"]
                modules.append(".".join([module, *parts]))

        for name in modules:
            for info in (self.walk_module(name) or {}).values():
                if info.docstring and _is_public(info.name):
                    names.append(info.name)
        return names

    def locate(self, module: str) -> Path | None:
        """Source file of ``module`` (``__init__.py`` for packages)."""
        relative = Path(*module.split("."))
        for root in self.search_paths:
            package_init = root / relative / "__init__.py"
            if package_init.is_file():
                return package_init
            module_file = (root / relative).with_suffix(".py")
            if module_file.is_file():
                return module_file
        return None

    def walk_module(self, module: str) -> dict[str, SymbolInfo] | None:
        """All symbols defined in ``module``'s own source, or None if not found."""
        if module in self._cache:
            return self._cache[module]
        location = self.locate(module)
        if location is None:
            return None
        symbols = {info.name: info for info in self.walk_file(location, module)}
        self._cache[module] = symbols
        return symbols

    def walk_file(self, file_path: Path, module: str) -> list[SymbolInfo]:
        """Extract module, class, function and method symbols from a file."""
        try:
            source = file_path.read_text(encoding="utf-8")
            tree = ast.parse(source, filename=str(file_path))
        except (OSError, SyntaxError, UnicodeDecodeError) as e:
            log.warning("symbols.unreadable", file=str(file_path), error=str(e))
            return []

        symbols = [SymbolInfo(module, "module", ast.get_docstring(tree), file_path, 1)]
        symbols.extend(self._walk_body(tree.body, module, file_path, in_class=False))
        return symbols

    def _walk_body(
        self,
        body: list[ast.stmt],
        prefix: str,
        file_path: Path,
        in_class: bool,
    ) -> Iterable[SymbolInfo]:
        for node in body:
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                yield SymbolInfo(
                    name=f"{prefix}.{node.name}",
                    kind="method" if in_class else "function",
                    docstring=ast.get_docstring(node),
                    file_path=file_path,
                    line_number=node.lineno,
                )
            elif isinstance(node, ast.ClassDef):
                qualified = f"{prefix}.{node.name}"
                yield SymbolInfo(qualified, "class", ast.get_docstring(node), file_path, node.lineno)
                yield from self._walk_body(node.body, qualified, file_path, in_class=True)

    def _skip(self, path: Path) -> bool:
        path_str = str(path)
        return any(pattern in path_str for pattern in self.skip_patterns)


def _is_public(name: str) -> bool:
    return not name.rsplit(".", 1)[-1].startswith("_")
