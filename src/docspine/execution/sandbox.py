"""Child-process entry point that executes documentation snippets.

Run as ``python -m docspine.execution.sandbox``. Reads one JSON request on
stdin::

    {"mode": "doctest" | "example", "setup": [source, ...], "snippets": [source, ...]}

executes ``setup`` (output discarded) then each snippet in one shared
namespace, and writes the outcomes after a record-separator marker so that
anything user code prints straight to the real stdout cannot corrupt the
reply::

    \\x1edocspine-result
    {"outcomes": [{"output": "...", "exception": null}, ...]}

Doctest snippets compile in ``single`` mode, so bare expressions echo their
``repr`` exactly like the interactive prompt. Example snippets compile as a
module and echo the ``repr`` of a trailing expression.
"""

from __future__ import annotations

import ast
import contextlib
import io
import json
import sys
import traceback
from typing import Any

RESULT_MARKER = "\x1edocspine-result\n"


def run_snippet(source: str, mode: str, namespace: dict[str, Any]) -> dict[str, Any]:
    buffer = io.StringIO()
    exception = None
    with contextlib.redirect_stdout(buffer):
        try:
            if mode == "doctest":
                exec(compile(source, "<doctest>", "single"), namespace)
            else:
                _exec_example(source, namespace)
        except (Exception, SystemExit) as e:
            exception = _exception_line(e)
    return {"output": buffer.getvalue(), "exception": exception}


def _exception_line(exc: BaseException) -> str:
    """The ``ExcType: message`` part of the exception report.

    Drops the file/source/caret lines of a ``SyntaxError`` and any notes.
    """
    exc_type = type(exc)
    name = exc_type.__qualname__
    if exc_type.__module__ not in ("__main__", "builtins"):
        name = f"{exc_type.__module__}.{name}"
    summary = traceback.TracebackException(exc_type, exc, None)
    summary.__notes__ = None
    lines = "".join(summary.format_exception_only()).splitlines(keepends=True)
    for index, line in enumerate(lines):
        if line.rstrip("\n") == name or line.startswith(f"{name}:"):
            return "".join(lines[index:])
    return "".join(lines)


def _exec_example(source: str, namespace: dict[str, Any]) -> None:
    tree = ast.parse(source, filename="<example>")
    last = tree.body[-1] if tree.body else None
    if isinstance(last, ast.Expr):
        tree.body.pop()
        exec(compile(tree, "<example>", "exec"), namespace)
        value = eval(compile(ast.Expression(last.value), "<example>", "eval"), namespace)
        if value is not None:
            print(repr(value))
    else:
        exec(compile(tree, "<example>", "exec"), namespace)


def main() -> int:
    request = json.loads(sys.stdin.read())
    mode = request.get("mode", "doctest")
    namespace: dict[str, Any] = {"__name__": "__main__"}

    for source in request.get("setup", []):
        run_snippet(source, mode, namespace)

    outcomes = [run_snippet(source, mode, namespace) for source in request.get("snippets", [])]

    sys.stdout.write(RESULT_MARKER)
    sys.stdout.write(json.dumps({"outcomes": outcomes}))
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())
