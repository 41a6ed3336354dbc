from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class OutlineSection:
    heading: str
    notes: tuple[str, ...] = ()


@dataclass(frozen=True)
class Outline:
    raw_text: str
    sections: tuple[OutlineSection, ...] = ()


@dataclass(frozen=True)
class SectionDraft:
    heading: str
    body: str

    def render(self) -> str:
        return f"## {self.heading}\n\n{self.body.strip()}"


@dataclass(frozen=True)
class Article:
    topic: str
    text: str
    outline: Outline
    sections: tuple[SectionDraft, ...] = ()
    polished: bool = False
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def word_count(self) -> int:
        return len(self.text.split())
