import pytest

from models.research import ContentFailure, ContentSuccess, ResearchCorpus, ResearchRecord


def make_record(query: str = "q") -> ResearchRecord:
    return ResearchRecord(
        query=query,
        results=(
            ContentSuccess(url="https://a.example.com", content="text"),
            ContentFailure(url="https://b.example.com", error_kind="scrape_error", message="timeout"),
        ),
    )


def test_internal_state_is_not_constructor_surface():
    with pytest.raises(TypeError):
        ResearchCorpus(topic="t", _records=[make_record()])
    with pytest.raises(TypeError):
        ResearchCorpus(topic="t", _sealed=True)


def test_new_corpus_starts_empty_and_open():
    corpus = ResearchCorpus(topic="t")
    assert len(corpus) == 0
    assert not corpus.sealed


def test_sealed_corpus_rejects_appends():
    corpus = ResearchCorpus(topic="t")
    corpus.append(make_record("q1"))
    corpus.seal()
    with pytest.raises(RuntimeError):
        corpus.append(make_record("q2"))
    assert corpus.queries == ["q1"]
    assert corpus.attempted == 2
    assert corpus.failed == 1
