# tests/test_document_cache.py
import pytest

from generation.document_cache import DocumentCache
from generation.fingerprint import RequestFingerprint
from models.document_models import DocumentResult, DocumentType


def _ok(doc_type: DocumentType = DocumentType.CHARTER) -> DocumentResult:
    return DocumentResult(
        type=doc_type, title=doc_type.display_title, content={"vision": "v"}
    )


def _fp(name: str) -> RequestFingerprint:
    return RequestFingerprint(name * 16)


def test_get_miss_returns_none():
    cache = DocumentCache(max_size=2)
    assert cache.get(_fp("a")) is None
    assert cache.stats().total_hits == 0


def test_hit_counts_documents_served():
    cache = DocumentCache(max_size=2)
    cache.set(_fp("a"), [_ok(), _ok(DocumentType.BACKLOG)])

    entry = cache.get(_fp("a"))

    assert entry is not None
    assert [r.type for r in entry.bundle] == [DocumentType.CHARTER, DocumentType.BACKLOG]
    assert entry.hit_count == 2
    stats = cache.stats()
    assert stats.size == 1
    assert stats.max_size == 2
    assert stats.total_hits == 2
    assert stats.avg_hits_per_entry == 2.0


def test_set_refuses_bundle_without_successes():
    cache = DocumentCache(max_size=2)
    failed = DocumentResult.failed(DocumentType.CHARTER, "boom")

    assert cache.set(_fp("a"), [failed]) is False
    assert len(cache) == 0
    assert cache.get(_fp("a")) is None


def test_partial_bundle_is_cached():
    cache = DocumentCache(max_size=2)
    bundle = [_ok(), DocumentResult.failed(DocumentType.BACKLOG, "boom")]
    assert cache.set(_fp("a"), bundle) is True
    assert len(cache) == 1


def test_evicts_lowest_hit_count_first():
    cache = DocumentCache(max_size=2)
    cache.set(_fp("a"), [_ok()])
    cache.set(_fp("b"), [_ok()])
    cache.get(_fp("a"))

    cache.set(_fp("c"), [_ok()])

    assert _fp("a") in cache
    assert _fp("b") not in cache
    assert _fp("c") in cache


def test_evicts_oldest_among_equal_hit_counts():
    cache = DocumentCache(max_size=2)
    cache.set(_fp("a"), [_ok()])
    cache.set(_fp("b"), [_ok()])

    cache.set(_fp("c"), [_ok()])

    assert _fp("a") not in cache
    assert _fp("b") in cache
    assert _fp("c") in cache


def test_new_entry_is_never_evicted_on_insert():
    cache = DocumentCache(max_size=1)
    cache.set(_fp("a"), [_ok()])
    cache.get(_fp("a"))

    cache.set(_fp("b"), [_ok()])

    assert len(cache) == 1
    assert _fp("b") in cache


def test_cached_bundle_is_isolated_from_callers():
    cache = DocumentCache(max_size=2)
    original = _ok()
    cache.set(_fp("a"), [original])
    original.content["vision"] = "mutated"

    first = cache.get(_fp("a"))
    first.bundle[0].content["vision"] = "mutated again"
    second = cache.get(_fp("a"))

    assert second.bundle[0].content == {"vision": "v"}


def test_clear_and_invalid_size():
    cache = DocumentCache(max_size=3)
    cache.set(_fp("a"), [_ok()])
    cache.clear()
    assert cache.stats().size == 0
    assert cache.stats().avg_hits_per_entry == 0.0
    with pytest.raises(ValueError):
        DocumentCache(max_size=0)


def test_replacing_an_entry_keeps_its_hits():
    cache = DocumentCache(max_size=2)
    cache.set(_fp("a"), [_ok(), DocumentResult.failed(DocumentType.BACKLOG, "503")])
    cache.get(_fp("a"))

    cache.set(_fp("a"), [_ok(), _ok(DocumentType.BACKLOG)])

    assert len(cache) == 1
    assert cache.stats().total_hits == 2
    entry = cache.get(_fp("a"))
    assert all(r.succeeded for r in entry.bundle)
