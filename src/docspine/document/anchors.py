"""
Anchor registry: every addressable location of the generated document.

Anchors come from headings (registered while parsing) and from documented
symbols (registered while expanding ``@docs`` blocks). Each lives in a
scope: the shared ``global`` scope, or the private scope of one file whose
``@meta`` block asks for ``anchor_scope: local``.

Manifesto:
    A key means one place. Registering it twice in one scope is a defect
    to report, never a silent overwrite, and the first anchor keeps
    working so one mistake does not break every link to it.

Architecture:
    ::

        register(key, file, scope)
              │
              ├── key free in scope ──► stored (registration order kept)
              └── key taken ─────────► DuplicateAnchorError

        resolve(key, file)
              │
              ▼
        scopes innermost first: [file-local, global]
              │
              ├── exact key ─────────────► Anchor
              ├── one ".key" suffix ─────► Anchor
              ├── several suffixes ──────► AmbiguousReferenceError
              └── next scope ... none ───► UnresolvedReferenceError

Tags:
    anchors, cross-references, registry, scopes

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from docspine.core.errors import (
    AmbiguousReferenceError,
    DuplicateAnchorError,
    UnresolvedReferenceError,
)

GLOBAL_SCOPE = "global"


@dataclass(frozen=True)
class Anchor:
    """An addressable location.

    Attributes:
        key: Unique key within ``scope`` (heading slug or qualified name)
        file: Owning file, relative to the source directory (POSIX form)
        label: Display text
        scope: ``GLOBAL_SCOPE`` or the owning file path
        kind: ``heading`` or ``symbol``
    """

    key: str
    file: str
    label: str
    scope: str = GLOBAL_SCOPE
    kind: str = "heading"


class AnchorRegistry:
    """Anchors grouped by scope, in registration order."""

    def __init__(self) -> None:
        self._scopes: dict[str, dict[str, Anchor]] = {}

    def register(
        self,
        key: str,
        file: str,
        label: str,
        *,
        scope: str = GLOBAL_SCOPE,
        kind: str = "heading",
    ) -> Anchor:
        """Register a new anchor.

        Raises:
            DuplicateAnchorError: ``key`` already exists in ``scope``; the
                existing anchor is left untouched
        """
        anchors = self._scopes.setdefault(scope, {})
        existing = anchors.get(key)
        if existing is not None:
            raise DuplicateAnchorError(key, scope, existing.file)
        anchor = Anchor(key=key, file=file, label=label, scope=scope, kind=kind)
        anchors[key] = anchor
        return anchor

    def get(self, key: str, scope: str = GLOBAL_SCOPE) -> Anchor | None:
        return self._scopes.get(scope, {}).get(key)

    def resolve(self, key: str, file: str | None = None) -> Anchor:
        """Find the anchor a reference written in ``file`` points at.

        Raises:
            AmbiguousReferenceError: several suffix matches in the
                narrowest scope that has any match
            UnresolvedReferenceError: no scope has a match
        """
        scopes = [file, GLOBAL_SCOPE] if file and file in self._scopes else [GLOBAL_SCOPE]
        for scope in scopes:
            anchors = self._scopes.get(scope, {})
            if key in anchors:
                return anchors[key]
            suffix = "." + key
            candidates = [a for k, a in anchors.items() if k.endswith(suffix)]
            if len(candidates) == 1:
                return candidates[0]
            if candidates:
                raise AmbiguousReferenceError(key, scope, [a.key for a in candidates])
        raise UnresolvedReferenceError(key)

    def anchors(self, kind: str | None = None) -> Iterator[Anchor]:
        """All anchors, scope by scope, in registration order."""
        for anchors in self._scopes.values():
            for anchor in anchors.values():
                if kind is None or anchor.kind == kind:
                    yield anchor

    def __len__(self) -> int:
        return sum(len(anchors) for anchors in self._scopes.values())

    def __contains__(self, key: str) -> bool:
        return any(key in anchors for anchors in self._scopes.values())
