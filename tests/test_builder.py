"""Tests for build_docs().

Covers:
- a clean build succeeds and writes one page per source
- recoverable defects fail the build without raising
- debug builds return the document
- build directory cleaning, and refusing to clean the sources
- assets copied, html output, option overrides
"""

import pytest

from docspine import build_docs
from docspine.builder import DEFAULT_PIPELINE
from docspine.core.errors import ConfigError, ErrorKind, SourceIOError
from docspine.framework.pipeline import StageStatus
from docspine.stages import CheckCoverage, CheckDocument, CrossReferences, ExpandTemplates
from docspine.symbols.provider import MappingSymbolProvider


@pytest.fixture
def stages(runner):
    return [
        ExpandTemplates(runner=runner),
        CrossReferences(),
        CheckDocument(runner=runner),
        CheckCoverage(),
    ]


@pytest.fixture
def provider():
    return MappingSymbolProvider({"pkg.add": "Add two numbers.\n\n>>> 1 + 1\n2\n"})


class TestBuildDocs:
    def test_successful_build(self, write_sources, make_config, stages, provider):
        write_sources(
            {
                "index.md": "# Intro\n\nSee [`add`](@ref).\n",
                "api.md": "# API\n\n```@docs\npkg.add\n```\n",
            }
        )
        result = build_docs(make_config(), stages=stages, provider=provider)

        assert result.success
        assert result.errors == []
        assert [r.passed for r in result.check_results] == [True]
        assert [p.name for p in result.outputs] == ["api.md", "index.md"]
        assert [s.name for s in result.stages] == ["expand", "crossrefs", "doctest", "coverage"]
        assert result.stages[-1].status is StageStatus.SKIPPED
        assert result.document is None
        assert len(result.build_id) == 12
        index = result.outputs[1].read_text()
        assert "[`add`](api.md#pkg.add)" in index

    def test_defects_fail_without_raising(self, write_sources, make_config, stages, provider):
        write_sources(
            {
                "a.md": "```@docs\nfoo.bar\n```\n\nSee [Nowhere](@ref).\n",
                "b.md": "```pycon\n>>> 2 + 2\n5\n```\n",
            }
        )
        result = build_docs(make_config(), stages=stages, provider=provider)

        assert not result.success
        assert [e.kind for e in result.errors] == [
            ErrorKind.MISSING_DOCSTRING,
            ErrorKind.UNRESOLVED_REFERENCE,
            ErrorKind.DOCTEST_FAILURE,
        ]
        assert len(result.failed_checks) == 1
        assert len(result.outputs) == 2

    def test_debug_returns_document(self, write_sources, make_config, stages, provider):
        write_sources({"a.md": "# A\n"})
        result = build_docs(make_config(debug=True), stages=stages, provider=provider)
        assert result.document is not None
        assert result.document.build_id == result.build_id

    def test_options_override_config(self, write_sources, make_config, stages, provider):
        write_sources({"a.md": "```pycon\n>>> 1\n2\n```\n"})
        result = build_docs(make_config(), stages=stages, provider=provider, doctest=False)
        assert result.success
        assert result.check_results == []

    def test_invalid_options(self, make_config):
        with pytest.raises(ConfigError):
            build_docs(make_config(), formats=["pdf"])

    def test_undocumented_symbols_do_not_fail(self, write_sources, make_config, stages):
        write_sources({"a.md": "# A\n"})
        provider = MappingSymbolProvider({"pkg.f": "F."})
        result = build_docs(make_config(modules=["pkg"]), stages=stages, provider=provider)
        assert result.success
        assert result.undocumented == ["pkg.f"]

    def test_default_pipeline_order(self):
        assert DEFAULT_PIPELINE == (ExpandTemplates, CrossReferences, CheckDocument, CheckCoverage)


class TestBuildDirectory:
    def test_clean_removes_stale_output(self, write_sources, make_config, stages, tmp_path):
        write_sources({"a.md": "# A\n"})
        stale = tmp_path / "build" / "stale.md"
        stale.parent.mkdir()
        stale.write_text("old")

        build_docs(make_config(), stages=stages)
        assert not stale.exists()

        stale.write_text("old")
        build_docs(make_config(clean=False), stages=stages)
        assert stale.exists()

    def test_refuses_to_clean_the_sources(self, write_sources, make_config, stages):
        write_sources({"a.md": "# A\n"})
        with pytest.raises(ConfigError):
            build_docs(make_config(build="."), stages=stages)

    def test_assets_are_copied(self, write_sources, make_config, stages, tmp_path):
        write_sources({"a.md": "![logo](img/logo.svg)\n", "img/logo.svg": "<svg/>"})
        build_docs(make_config(), stages=stages)
        assert (tmp_path / "build" / "img" / "logo.svg").read_text() == "<svg/>"

    def test_html_output(self, write_sources, make_config, stages):
        write_sources({"a.md": "# A\n"})
        result = build_docs(make_config(formats=["markdown", "html"]), stages=stages)
        assert sorted(p.name for p in result.outputs) == ["a.html", "a.md"]

    def test_missing_sources(self, make_config, stages):
        with pytest.raises(SourceIOError):
            build_docs(make_config(), stages=stages)

    def test_config_none_uses_options(self, write_sources, stages, tmp_path):
        write_sources({"a.md": "# A\n"})
        result = build_docs(root=tmp_path, stages=stages)
        assert result.success
        assert result.outputs == [tmp_path.resolve() / "build" / "a.md"]
