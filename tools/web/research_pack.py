"""Serialize research corpora into prompt text."""

import re
from typing import Any

from models.research import ContentFailure, ContentSuccess, ResearchCorpus

MAX_EXCERPT_CHARS = 1500
MAX_RELEVANT_EXCERPTS = 4

_WORD_RE = re.compile(r"[a-z0-9]{3,}")
_STOPWORDS = {"and", "the", "for", "with", "from", "that", "this", "what", "how", "are", "its"}


def trim_text(text: Any, limit: int = MAX_EXCERPT_CHARS) -> str:
    raw = str(text or "").strip()
    if len(raw) <= limit:
        return raw
    return raw[: limit - 3].rstrip() + "..."


def describe_result(result: ContentSuccess | ContentFailure, limit: int = MAX_EXCERPT_CHARS) -> str:
    if isinstance(result, ContentSuccess):
        return trim_text(result.content, limit)
    return f"[fetch failed: {result.error_kind}] {result.message}"


def build_corpus_text(corpus: ResearchCorpus, excerpt_chars: int = MAX_EXCERPT_CHARS) -> str:
    """
    Render every record as a query block followed by its results in dispatch order.

    Args:
        corpus: The research corpus
        excerpt_chars: Per-result character limit

    Returns:
        Prompt-ready text; notes explicitly when no source material was gathered
    """
    if not corpus.successes():
        header = "NOTE: No source material could be retrieved for this topic."
    else:
        header = f"Research gathered for: {corpus.topic}"

    lines = [header, ""]
    for record in corpus:
        lines.append(f"### Query: {record.query}")
        if record.search_error:
            lines.append(f"[search failed] {record.search_error}")
        for idx, result in enumerate(record.results, start=1):
            lines.append(f"[{idx}] {result.url}")
            lines.append(describe_result(result, excerpt_chars))
        lines.append("")
    return "\n".join(lines).strip()


def summarize_corpus(corpus: ResearchCorpus, excerpt_chars: int = 300) -> str:
    """Short form of the corpus used for follow-up planning."""
    lines = []
    for record in corpus:
        ok = [r for r in record.results if isinstance(r, ContentSuccess)]
        lines.append(f"- {record.query} ({len(ok)}/{len(record.results)} sources)")
        for result in ok:
            lines.append(f"  * {trim_text(result.content, excerpt_chars)}")
    return "\n".join(lines) if lines else "(no research gathered)"


def _keywords(text: str) -> set[str]:
    return {w for w in _WORD_RE.findall(text.lower()) if w not in _STOPWORDS}


def select_relevant_excerpts(
    corpus: ResearchCorpus,
    heading: str,
    limit: int = MAX_RELEVANT_EXCERPTS,
    excerpt_chars: int = MAX_EXCERPT_CHARS,
) -> list[str]:
    """
    Pick the successful results sharing the most keywords with a section heading.

    Ties keep corpus order, so output is reproducible for identical inputs.
    """
    wanted = _keywords(heading)
    scored = []
    for position, (record, result) in enumerate(
        (rec, res) for rec in corpus for res in rec.results if isinstance(res, ContentSuccess)
    ):
        overlap = len(wanted & _keywords(record.query + " " + result.content))
        if overlap:
            scored.append((-overlap, position, result))
    scored.sort(key=lambda item: (item[0], item[1]))
    return [f"{r.url}\n{trim_text(r.content, excerpt_chars)}" for _, _, r in scored[:limit]]
