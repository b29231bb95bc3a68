"""Pipeline stages, in the order the builder runs them."""

from docspine.stages.coverage import CheckCoverage
from docspine.stages.crossrefs import CrossReferences
from docspine.stages.doctests import CheckDocument, outputs_match
from docspine.stages.expander import ExpandTemplates

__all__ = [
    "ExpandTemplates",
    "CrossReferences",
    "CheckDocument",
    "CheckCoverage",
    "outputs_match",
]
