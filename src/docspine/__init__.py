"""
docspine - cross-linked documentation from markdown sources and docstrings.

Usage::

    from docspine import BuildConfig, build_docs

    result = build_docs(BuildConfig(root="docs", modules=["mypackage"]))
    if not result.success:
        for error in result.errors:
            print(error)
"""

__version__ = "0.1.0"

from docspine.builder import DEFAULT_PIPELINE, BuildResult, build_docs  # noqa: E402
from docspine.core.config import BuildConfig, CompareMode  # noqa: E402
from docspine.core.errors import DocspineError, ErrorKind  # noqa: E402
from docspine.deploy import DeployEnvironment, DeployOptions, deploy_docs, should_deploy  # noqa: E402

__all__ = [
    "__version__",
    "BuildConfig",
    "BuildResult",
    "CompareMode",
    "DEFAULT_PIPELINE",
    "DeployEnvironment",
    "DeployOptions",
    "DocspineError",
    "ErrorKind",
    "build_docs",
    "deploy_docs",
    "should_deploy",
]
