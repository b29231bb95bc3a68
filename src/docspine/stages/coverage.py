"""Documentation coverage: warn about documented symbols no page splices."""

from __future__ import annotations

from docspine.document.model import Document
from docspine.framework.logging import get_logger
from docspine.framework.pipeline import Stage
from docspine.symbols.provider import AstSymbolProvider

log = get_logger(__name__)


class CheckCoverage(Stage):
    """Compare the symbols of ``config.modules`` against the spliced anchors.

    Findings are warnings and are kept on ``document.undocumented``; they
    never become error records.
    """

    name = "coverage"
    description = "Report documented symbols missing from the pages"

    def enabled(self, document: Document) -> bool:
        return bool(document.config.modules)

    def run(self, document: Document) -> None:
        provider = document.provider or AstSymbolProvider.for_config(document.config)
        spliced = {anchor.key for anchor in document.anchors.anchors(kind="symbol")}

        for module in document.config.modules:
            symbols = provider.documented_symbols(module)
            missing = [name for name in symbols if name not in spliced]
            for name in missing:
                log.warning("coverage.undocumented", symbol=name, module=module)
            document.undocumented.extend(missing)
            log.info("coverage.module", module=module, documented=len(symbols), missing=len(missing))
