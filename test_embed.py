"""EmbeddingBackfill: anti-join window, positional alignment, batch failure policy."""

import pytest

from conftest import FakeEmbedder, TEST_DIM, run
from healthrecon.errors import EmbeddingServiceError, StoreWriteFailure
from healthrecon.pipeline.embed import EmbeddingBackfill
from healthrecon.schemas import NewDocument, SourceType
from healthrecon.tools.hashing import hash_text


def _docs(db, account_id, n, prefix="doc"):
    created = []
    for i in range(n):
        text = f"{prefix} body {i}"
        created.append(db.insert_document(NewDocument(
            account_id=account_id,
            source_url=f"https://acme.example/{prefix}/{i}",
            source_type=SourceType.WEBSITE,
            title=f"{prefix.title()} {i}",
            raw_text=text,
            content_hash=hash_text(text),
        )))
    return created


def test_five_documents_get_positionally_aligned_vectors(deps, db, embedder, add_account):
    acme = add_account("acme")
    docs = _docs(db, acme.id, 5)

    result = run(EmbeddingBackfill(deps).embed_pending())

    assert (result.embedded, result.failed_inserts, result.batches) == (5, 0, 1)
    assert len(embedder.batches) == 1
    for doc in docs:
        stored = db.get_embedding(doc.id)
        assert stored == embedder.vector_for(doc.embedding_text), f"Misaligned vector for {doc.title}"


def test_embedding_text_is_title_and_body(deps, db, embedder, add_account):
    acme = add_account("acme")
    db.insert_document(NewDocument(
        account_id=acme.id, source_url="https://acme.example/x", source_type=SourceType.WEBSITE,
        title=None, raw_text="only body", content_hash=hash_text("only body"),
    ))

    run(EmbeddingBackfill(deps).embed_pending())

    assert embedder.batches == [["\n\nonly body"]]


def test_already_embedded_documents_never_fill_the_window(deps, db, embedder, add_account):
    acme = add_account("acme")
    docs = _docs(db, acme.id, 7)
    backfill = EmbeddingBackfill(deps)

    first = run(backfill.embed_pending(batch_size=3))
    second = run(backfill.embed_pending(batch_size=3))
    third = run(backfill.embed_pending(batch_size=3))
    fourth = run(backfill.embed_pending(batch_size=3))

    assert [r.embedded for r in (first, second, third, fourth)] == [3, 3, 1, 0]
    assert all(db.get_embedding(d.id) is not None for d in docs)
    submitted = [t for batch in embedder.batches for t in batch]
    assert len(submitted) == len(set(submitted)) == 7


def test_multiple_batches_per_call_drain_backlog(deps, db, embedder, add_account):
    acme = add_account("acme")
    _docs(db, acme.id, 7)

    result = run(EmbeddingBackfill(deps).embed_pending(batch_size=3, max_batches=5))

    assert (result.embedded, result.batches) == (7, 3)


def test_nothing_pending_is_a_clean_noop(deps, embedder):
    result = run(EmbeddingBackfill(deps).embed_pending())
    assert (result.embedded, result.failed_inserts, result.batches) == (0, 0, 0)
    assert embedder.batches == []


def test_count_mismatch_fails_the_whole_batch(deps, db, add_account):
    acme = add_account("acme")
    docs = _docs(db, acme.id, 4)
    deps._embedder = FakeEmbedder(drop=1)

    with pytest.raises(EmbeddingServiceError):
        run(EmbeddingBackfill(deps).embed_pending())
    assert all(db.get_embedding(d.id) is None for d in docs)


def test_service_error_propagates(deps, db, add_account):
    acme = add_account("acme")
    _docs(db, acme.id, 2)
    deps._embedder = FakeEmbedder(fail=True)

    with pytest.raises(EmbeddingServiceError):
        run(EmbeddingBackfill(deps).embed_pending())


def test_row_insert_failure_is_logged_and_counted(deps, db, embedder, add_account, monkeypatch):
    acme = add_account("acme")
    docs = _docs(db, acme.id, 3)
    bad_id = docs[1].id
    real_insert = deps.store.insert_embedding

    async def flaky(document_id, vector):
        if document_id == bad_id:
            raise StoreWriteFailure("insert_embedding: constraint failed")
        await real_insert(document_id, vector)

    monkeypatch.setattr(deps.store, "insert_embedding", flaky)

    result = run(EmbeddingBackfill(deps).embed_pending())

    assert (result.embedded, result.failed_inserts) == (3, 1)
    assert db.get_embedding(bad_id) is None
    assert db.get_embedding(docs[0].id) is not None
    assert len(db.get_embedding(docs[2].id)) == TEST_DIM
