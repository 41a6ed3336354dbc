"""
Models package for research records, document drafts and pipeline errors.
"""

from .document import Article, Outline, OutlineSection, SectionDraft
from .errors import (
    CacheError,
    CoordinationError,
    DocumentGenerationError,
    GenerationError,
    PipelineError,
    ScrapeError,
    SearchError,
)
from .research import (
    ContentFailure,
    ContentResult,
    ContentSuccess,
    ResearchCorpus,
    ResearchRecord,
    SearchResult,
)

__all__ = [
    "Article",
    "CacheError",
    "ContentFailure",
    "ContentResult",
    "ContentSuccess",
    "CoordinationError",
    "DocumentGenerationError",
    "GenerationError",
    "Outline",
    "OutlineSection",
    "PipelineError",
    "ResearchCorpus",
    "ResearchRecord",
    "ScrapeError",
    "SearchError",
    "SectionDraft",
]
