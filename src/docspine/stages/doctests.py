"""
Doctest verification.

Every fenced block tagged ``pycon`` or ``doctest`` is parsed with the
standard library's ``doctest.DocTestParser`` and executed in the sandbox.
One ``CheckResult`` is produced per block; a failing block also becomes a
``doctest-failure`` error record. Blocks are isolated from each other
unless they name the same session (```` ```pycon setup ````), in which
case earlier blocks of that session in the same file are replayed first.

Timeouts and sandbox crashes count as failures of the block, never as
fatal errors.

Tags:
    doctest, verification, execution, check-results
"""

from __future__ import annotations

import doctest
import re

from docspine.core.config import CompareMode
from docspine.core.errors import ErrorKind, ExecutionError
from docspine.document.model import CheckResult, Document, SourceFile
from docspine.document.nodes import CodeBlock
from docspine.document.walker import iter_nodes
from docspine.execution.runner import CodeRunner, SnippetOutcome
from docspine.framework.logging import get_logger, push_context
from docspine.framework.pipeline import Stage

log = get_logger(__name__)

DOCTEST_LANGUAGES = ("pycon", "doctest")

_BLANKLINE = re.compile(r"^<BLANKLINE>$", re.MULTILINE)


def outputs_match(expected: str, actual: str, mode: CompareMode = CompareMode.EXACT) -> bool:
    """Compare expected and actual output under ``mode``.

    >>> outputs_match("4\\n", "4")
    True
    >>> outputs_match("a  b", "a b", CompareMode.WHITESPACE)
    True
    """
    if mode is CompareMode.WHITESPACE:
        return expected.split() == actual.split()
    return expected.rstrip("\n") == actual.rstrip("\n")


class CheckDocument(Stage):
    """Run doctest blocks and compare their output."""

    name = "doctest"
    description = "Verify doctest blocks against their recorded output"

    def __init__(self, runner: CodeRunner | None = None):
        self.runner = runner
        self._parser = doctest.DocTestParser()

    def enabled(self, document: Document) -> bool:
        return document.config.doctest

    def run(self, document: Document) -> None:
        if not self.enabled(document):
            return
        runner = self.runner or CodeRunner.for_config(document.config)
        mode = document.config.doctest_compare

        for source in document.files:
            sessions: dict[str, list[str]] = {}
            token = push_context(file=source.path)
            try:
                for node in iter_nodes(source.tree):
                    if isinstance(node, CodeBlock) and node.language in DOCTEST_LANGUAGES:
                        self.check_block(document, source, node, runner, mode, sessions)
            finally:
                token.restore()

        log.info(
            "doctest.done",
            blocks=len(document.check_results),
            failed=len(document.failed_checks),
        )

    def check_block(
        self,
        document: Document,
        source: SourceFile,
        block: CodeBlock,
        runner: CodeRunner,
        mode: CompareMode,
        sessions: dict[str, list[str]],
    ) -> CheckResult | None:
        examples = self._parser.get_examples(block.content)
        if not examples:
            return None

        session = block.argument or None
        setup = sessions.get(session, []) if session else []
        snippets = [example.source for example in examples]
        if session:
            sessions[session] = [*setup, *snippets]

        try:
            outcomes = runner.run(snippets, setup=setup, mode="doctest")
        except ExecutionError as e:
            expected = "".join(example.want for example in examples)
            return self._record(document, source, block, session, expected, e.message, e.message)

        expected_parts: list[str] = []
        actual_parts: list[str] = []
        mismatch: str | None = None
        for example, outcome in zip(examples, outcomes):
            want = _BLANKLINE.sub("", example.want)
            got = _actual_text(outcome)
            expected_parts.append(want)
            actual_parts.append(got)
            if mismatch is None and not _example_passes(example, want, outcome, mode):
                mismatch = f"{example.source.strip()!r}: expected {want!r}, got {got!r}"

        return self._record(
            document,
            source,
            block,
            session,
            "".join(expected_parts),
            "".join(actual_parts),
            mismatch,
        )

    def _record(
        self,
        document: Document,
        source: SourceFile,
        block: CodeBlock,
        session: str | None,
        expected: str,
        actual: str,
        failure: str | None,
    ) -> CheckResult:
        result = CheckResult(
            file=source.path,
            line=block.line,
            passed=failure is None,
            source=block.content,
            expected=expected,
            actual=actual,
            session=session,
        )
        document.check_results.append(result)
        if failure is not None:
            document.report(ErrorKind.DOCTEST_FAILURE, f"doctest failed: {failure}", source, block.line)
        return result


def _actual_text(outcome: SnippetOutcome) -> str:
    if outcome.exception is None:
        return outcome.output
    return outcome.output + outcome.exception


def _example_passes(
    example: doctest.Example,
    want: str,
    outcome: SnippetOutcome,
    mode: CompareMode,
) -> bool:
    if example.exc_msg is not None:
        # Only the final exception line is compared, not the stack.
        return outcome.exception is not None and outputs_match(
            example.exc_msg, outcome.exception, mode
        )
    return outcome.exception is None and outputs_match(want, outcome.output, mode)
