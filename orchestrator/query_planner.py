"""
Query planning: turning a topic (or gathered research) into search queries.

Both planning stages share parse_query_lines(). Gap analysis is a pluggable
FollowUpPlanner so "skip gap analysis" is just a planner that returns [].
"""

import re
from abc import ABC, abstractmethod

from api.base_client import BaseTextGenerator
from models.research import ResearchCorpus
from orchestrator import prompts
from tools.web.research_pack import summarize_corpus
from utils.logger import get_logger

logger = get_logger(__name__)

_LIST_MARKER_RE = re.compile(r"^(?:[-*•]+|\d+[.)])\s*")
_HEADER_WORDS = {
    "implementation",
    "history",
    "current state",
    "key actors",
    "challenges",
    "technical",
    "security",
    "operational",
    "cost",
}


def _is_header(line: str) -> bool:
    if line.startswith("#") or line.endswith(":"):
        return True
    if line.startswith("**") and line.endswith("**"):
        return True
    return line.strip("*_ ").lower() in _HEADER_WORDS


def parse_query_lines(text: str) -> list[str]:
    """
    One query per non-empty, trimmed line that is not a category header.

    List markers ("- ", "1. ") and wrapping quotes are stripped. Order is kept.
    """
    queries = []
    for raw in (text or "").splitlines():
        line = raw.strip()
        if not line or _is_header(line):
            continue
        line = _LIST_MARKER_RE.sub("", line).strip().strip('"').strip()
        if line and not _is_header(line):
            queries.append(line)
    return queries


class QueryPlanner:
    """Initial planning stage: topic -> ordered list of queries."""

    def __init__(self, generator: BaseTextGenerator, temperature: float = 0.7):
        self.generator = generator
        self.temperature = temperature

    async def plan(self, topic: str) -> list[str]:
        """
        Raises:
            GenerationError: Propagated to the coordinator, which degrades to [].
        """
        text = await self.generator.complete(
            prompts.QUERY_PLANNING_SYSTEM,
            prompts.QUERY_PLANNING_USER.format(topic=topic),
            self.temperature,
        )
        return parse_query_lines(text)


class FollowUpPlanner(ABC):
    """Strategy for the follow-up (gap analysis) planning stage."""

    @abstractmethod
    async def plan(self, topic: str, corpus: ResearchCorpus) -> list[str]:
        pass


class NoGapAnalysis(FollowUpPlanner):
    """Always plans zero follow-up queries."""

    async def plan(self, topic: str, corpus: ResearchCorpus) -> list[str]:
        return []


class LLMGapAnalysis(FollowUpPlanner):
    """Asks the text generator for unanswered technical/security/operational/cost questions."""

    def __init__(self, generator: BaseTextGenerator, temperature: float = 0.7, max_queries: int = 8):
        self.generator = generator
        self.temperature = temperature
        self.max_queries = max_queries

    async def plan(self, topic: str, corpus: ResearchCorpus) -> list[str]:
        text = await self.generator.complete(
            prompts.FOLLOW_UP_SYSTEM,
            prompts.FOLLOW_UP_USER.format(topic=topic, summary=summarize_corpus(corpus)),
            self.temperature,
        )
        queries = parse_query_lines(text)
        if len(queries) > self.max_queries:
            logger.info(f"Truncating {len(queries)} follow-up queries to {self.max_queries}")
        return queries[: self.max_queries]
