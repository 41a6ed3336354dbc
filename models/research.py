from dataclasses import dataclass, field
from typing import Union


@dataclass(frozen=True)
class SearchResult:
    """Result from a search provider. Identity is the url."""

    title: str
    url: str
    snippet: str = ""


@dataclass(frozen=True)
class ContentSuccess:
    url: str
    content: str
    cache_hit: bool = False

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class ContentFailure:
    url: str
    error_kind: str
    message: str
    reason: str | None = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return False


ContentResult = Union[ContentSuccess, ContentFailure]


@dataclass(frozen=True)
class ResearchRecord:
    """All fetch results for one query, in dispatch order."""

    query: str
    results: tuple[ContentResult, ...] = ()
    search_error: str | None = None
    round_index: int = 1

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failure_count(self) -> int:
        return len(self.results) - self.success_count


@dataclass
class ResearchCorpus:
    """
    Append-only, ordered collection of ResearchRecords.

    Owned by the coordinator during a run; `seal()` is called when ownership
    moves to the content generator, after which appends are rejected.
    """

    topic: str
    _records: list[ResearchRecord] = field(default_factory=list, init=False)
    _sealed: bool = field(default=False, init=False)

    def append(self, record: ResearchRecord) -> None:
        if self._sealed:
            raise RuntimeError("ResearchCorpus is sealed and can no longer be modified")
        self._records.append(record)

    def seal(self) -> "ResearchCorpus":
        self._sealed = True
        return self

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def records(self) -> tuple[ResearchRecord, ...]:
        return tuple(self._records)

    @property
    def queries(self) -> list[str]:
        return [r.query for r in self._records]

    def successes(self) -> list[ContentSuccess]:
        return [r for rec in self._records for r in rec.results if isinstance(r, ContentSuccess)]

    @property
    def attempted(self) -> int:
        return sum(len(rec.results) for rec in self._records)

    @property
    def failed(self) -> int:
        return sum(rec.failure_count for rec in self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(tuple(self._records))
