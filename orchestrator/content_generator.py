"""
ContentGenerator - outline -> section expansion -> polish.

Stages run strictly in order. Any failed TextGenerator call (after retries)
raises DocumentGenerationError naming the stage; no partial article is returned.
"""

import asyncio
import re
from dataclasses import dataclass

from api.base_client import BaseTextGenerator
from models.document import Article, Outline, OutlineSection, SectionDraft
from models.errors import DocumentGenerationError, GenerationError
from models.research import ResearchCorpus
from orchestrator import prompts
from orchestrator.retry_executor import RetryExecutor, RetryPolicy
from tools.web.research_pack import build_corpus_text, select_relevant_excerpts
from utils.logger import get_logger

logger = get_logger(__name__)

# Unindented "1. Title", "## 2. Title", "3) Title"; "1.1 Sub" and indented items are notes.
_HEADING_RE = re.compile(r"^(?:#+\s*)?(?:\*\*)?(\d+)[.)]\s+(.+?)(?:\*\*)?\s*$")
_NOTE_RE = re.compile(r"^\s*(?:[-*•]|\d+\.\d+[.)]?)\s*(.+)$")

SECTION_SEPARATOR = "\n\n"


@dataclass(frozen=True)
class GenerationSettings:
    temperature: float = 0.7
    expand_sections: bool = True
    polish: bool = False
    max_concurrent_sections: int = 3


def parse_outline(raw_text: str, fallback_heading: str = "Overview") -> Outline:
    """
    Split an outline into numbered top-level sections with their bullet notes.

    Text with no numbered headings becomes a single section holding all of it.
    """
    sections: list[OutlineSection] = []
    heading: str | None = None
    notes: list[str] = []

    for line in raw_text.splitlines():
        match = _HEADING_RE.match(line)
        if match:
            if heading is not None:
                sections.append(OutlineSection(heading=heading, notes=tuple(notes)))
            heading = match.group(2).strip().rstrip(":").strip()
            notes = []
            continue
        if heading is None or not line.strip():
            continue
        note = _NOTE_RE.match(line)
        notes.append((note.group(1) if note else line).strip())

    if heading is not None:
        sections.append(OutlineSection(heading=heading, notes=tuple(notes)))

    if not sections:
        body_lines = tuple(l.strip() for l in raw_text.splitlines() if l.strip())
        sections.append(OutlineSection(heading=fallback_heading, notes=body_lines))

    return Outline(raw_text=raw_text, sections=tuple(sections))


class ContentGenerator:
    """
    Drives the three-stage document pipeline over a sealed research corpus.

    Example usage:
        generator = ContentGenerator(text_generator)
        article = await generator.generate(result.corpus)
    """

    def __init__(
        self,
        generator: BaseTextGenerator,
        retry_executor: RetryExecutor | None = None,
        settings: GenerationSettings | None = None,
    ):
        self.generator = generator
        self.retry = retry_executor or RetryExecutor(RetryPolicy(max_retries=0))
        self.settings = settings or GenerationSettings()

    async def _complete(self, stage: str, system_prompt: str, user_prompt: str) -> str:
        async def call() -> str:
            text = await self.generator.complete(system_prompt, user_prompt, self.settings.temperature)
            if not text or not text.strip():
                raise GenerationError(f"Empty response during {stage}", reason="empty_response")
            return text

        outcome = await self.retry.execute(call, label=stage)
        if not outcome.ok:
            logger.error(
                f"Document generation failed at {stage}: {outcome.message}",
                extra={
                    "extra_fields": {
                        "stage": stage,
                        "error_kind": outcome.error_kind,
                        "attempts": outcome.attempts,
                    }
                },
            )
            raise DocumentGenerationError(
                stage,
                f"{stage} failed after {outcome.attempts} attempts: {outcome.message}",
                reason=outcome.reason,
                cause=outcome.error if isinstance(outcome.error, Exception) else None,
            )
        return outcome.value

    async def build_outline(self, corpus: ResearchCorpus) -> Outline:
        raw = await self._complete(
            "outline",
            prompts.OUTLINE_SYSTEM,
            prompts.OUTLINE_USER.format(topic=corpus.topic, corpus=build_corpus_text(corpus)),
        )
        outline = parse_outline(raw, fallback_heading=corpus.topic)
        logger.info(
            f"Outline ready with {len(outline.sections)} sections",
            extra={"extra_fields": {"sections": len(outline.sections)}},
        )
        return outline

    async def expand_sections(self, corpus: ResearchCorpus, outline: Outline) -> list[SectionDraft]:
        if not self.settings.expand_sections:
            return [
                SectionDraft(heading=s.heading, body="\n".join(f"- {n}" for n in s.notes))
                for s in outline.sections
            ]

        semaphore = asyncio.Semaphore(max(1, self.settings.max_concurrent_sections))

        async def expand(section: OutlineSection) -> SectionDraft:
            excerpts = select_relevant_excerpts(corpus, section.heading)
            user_prompt = prompts.SECTION_USER.format(
                topic=corpus.topic,
                outline=outline.raw_text,
                heading=section.heading,
                notes="\n".join(f"- {n}" for n in section.notes) or "(none)",
                excerpts="\n\n".join(excerpts) or "(no matching sources)",
            )
            async with semaphore:
                body = await self._complete(
                    f"section:{section.heading}", prompts.SECTION_SYSTEM, user_prompt
                )
            return SectionDraft(heading=section.heading, body=body)

        # gather keeps outline order; the first failure cancels the remaining sections.
        tasks = [asyncio.ensure_future(expand(s)) for s in outline.sections]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def polish(self, topic: str, drafts: list[SectionDraft]) -> tuple[str, bool]:
        text = SECTION_SEPARATOR.join(d.render() for d in drafts)
        if not self.settings.polish:
            return text, False
        polished = await self._complete(
            "polish", prompts.POLISH_SYSTEM, prompts.POLISH_USER.format(topic=topic, article=text)
        )
        return polished.strip(), True

    async def generate(self, corpus: ResearchCorpus) -> Article:
        """
        Raises:
            DocumentGenerationError: If any stage's TextGenerator call fails
        """
        if not corpus.sealed:
            corpus.seal()
        outline = await self.build_outline(corpus)
        drafts = await self.expand_sections(corpus, outline)
        text, polished = await self.polish(corpus.topic, drafts)
        article = Article(
            topic=corpus.topic,
            text=text,
            outline=outline,
            sections=tuple(drafts),
            polished=polished,
        )
        logger.info(
            "Article generated",
            extra={
                "extra_fields": {
                    "topic": corpus.topic,
                    "sections": len(drafts),
                    "words": article.word_count,
                }
            },
        )
        return article
