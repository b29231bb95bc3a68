"""Tests for AnchorRegistry: registration, scopes and lookup.

Covers:
- register() keeps the first anchor on a duplicate key
- resolve() exact and dotted-suffix matches
- resolve() ambiguity within one scope
- local scopes shadow the global scope, innermost first
- anchors() filtering and ordering
"""

import pytest

from docspine.core.errors import (
    AmbiguousReferenceError,
    DuplicateAnchorError,
    ErrorKind,
    UnresolvedReferenceError,
)
from docspine.document.anchors import GLOBAL_SCOPE, AnchorRegistry


@pytest.fixture
def registry() -> AnchorRegistry:
    return AnchorRegistry()


class TestRegister:
    def test_register_returns_anchor(self, registry):
        anchor = registry.register("intro", "index.md", "Intro")
        assert anchor.key == "intro"
        assert anchor.file == "index.md"
        assert anchor.scope == GLOBAL_SCOPE
        assert anchor.kind == "heading"

    def test_duplicate_in_same_scope_raises(self, registry):
        registry.register("intro", "a.md", "Intro")
        with pytest.raises(DuplicateAnchorError) as exc_info:
            registry.register("intro", "b.md", "Intro")
        assert exc_info.value.kind is ErrorKind.DUPLICATE_ANCHOR
        assert exc_info.value.existing_file == "a.md"

    def test_first_anchor_stays_resolvable_after_duplicate(self, registry):
        registry.register("intro", "a.md", "Intro")
        with pytest.raises(DuplicateAnchorError):
            registry.register("intro", "b.md", "Intro again")
        anchor = registry.resolve("intro")
        assert anchor.file == "a.md"
        assert anchor.label == "Intro"
        assert len(registry) == 1

    def test_same_key_in_different_scopes_is_allowed(self, registry):
        registry.register("setup", "a.md", "Setup", scope="a.md")
        registry.register("setup", "b.md", "Setup")
        assert len(registry) == 2
        assert "setup" in registry


class TestResolve:
    def test_exact_match(self, registry):
        registry.register("pkg.mod.func", "api.md", "pkg.mod.func", kind="symbol")
        assert registry.resolve("pkg.mod.func").file == "api.md"

    def test_unique_suffix_match(self, registry):
        registry.register("pkg.mod.func", "api.md", "pkg.mod.func", kind="symbol")
        assert registry.resolve("func").key == "pkg.mod.func"
        assert registry.resolve("mod.func").key == "pkg.mod.func"

    def test_suffix_must_follow_a_dot(self, registry):
        registry.register("pkg.myfunc", "api.md", "pkg.myfunc", kind="symbol")
        with pytest.raises(UnresolvedReferenceError):
            registry.resolve("func")

    def test_exact_match_beats_suffix_matches(self, registry):
        registry.register("run", "guide.md", "Run")
        registry.register("pkg.a.run", "api.md", "pkg.a.run", kind="symbol")
        registry.register("pkg.b.run", "api.md", "pkg.b.run", kind="symbol")
        assert registry.resolve("run").file == "guide.md"

    def test_several_suffix_matches_are_ambiguous(self, registry):
        registry.register("pkg.a.run", "api.md", "pkg.a.run", kind="symbol")
        registry.register("pkg.b.run", "api.md", "pkg.b.run", kind="symbol")
        with pytest.raises(AmbiguousReferenceError) as exc_info:
            registry.resolve("run")
        assert exc_info.value.kind is ErrorKind.AMBIGUOUS_REFERENCE
        assert sorted(exc_info.value.candidates) == ["pkg.a.run", "pkg.b.run"]

    def test_unknown_key(self, registry):
        with pytest.raises(UnresolvedReferenceError) as exc_info:
            registry.resolve("nowhere")
        assert exc_info.value.kind is ErrorKind.UNRESOLVED_REFERENCE
        assert "nowhere" in str(exc_info.value)


class TestScopes:
    def test_local_scope_shadows_global(self, registry):
        registry.register("usage", "guide.md", "Usage")
        registry.register("usage", "local.md", "Usage", scope="local.md")
        assert registry.resolve("usage", "local.md").file == "local.md"
        assert registry.resolve("usage", "other.md").file == "guide.md"

    def test_local_anchor_invisible_from_other_files(self, registry):
        registry.register("private", "local.md", "Private", scope="local.md")
        with pytest.raises(UnresolvedReferenceError):
            registry.resolve("private", "other.md")

    def test_falls_back_to_global_scope(self, registry):
        registry.register("shared", "index.md", "Shared")
        registry.register("mine", "local.md", "Mine", scope="local.md")
        assert registry.resolve("shared", "local.md").file == "index.md"

    def test_narrowest_matching_scope_decides_ambiguity(self, registry):
        registry.register("pkg.a.run", "api.md", "pkg.a.run", kind="symbol")
        registry.register("pkg.b.run", "api.md", "pkg.b.run", kind="symbol")
        registry.register("x.run", "local.md", "x.run", scope="local.md", kind="symbol")
        assert registry.resolve("run", "local.md").key == "x.run"


class TestAnchors:
    def test_filters_by_kind_in_registration_order(self, registry):
        registry.register("intro", "index.md", "Intro")
        registry.register("pkg.b", "api.md", "pkg.b", kind="symbol")
        registry.register("pkg.a", "api.md", "pkg.a", kind="symbol")
        assert [a.key for a in registry.anchors(kind="symbol")] == ["pkg.b", "pkg.a"]
        assert len(list(registry.anchors())) == 3

    def test_get_by_scope(self, registry):
        registry.register("x", "a.md", "X", scope="a.md")
        assert registry.get("x") is None
        assert registry.get("x", "a.md").label == "X"
