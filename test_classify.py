"""NewsClassifier: roster prompt, slug validation, per-document isolation."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_llm, run
from healthrecon.errors import StoreReadFailure
from healthrecon.pipeline.classify import NewsClassifier, cap_text, parse_slug
from healthrecon.schemas import ExtractedSignal, NewDocument, SourceType
from healthrecon.tools.hashing import hash_text


def _news(db, text, processed=True):
    doc = db.insert_document(NewDocument(
        account_id=None,
        source_url=f"https://news.example/{hash_text(text)[:8]}",
        source_type=SourceType.NEWS,
        title="Industry news",
        raw_text=text,
        content_hash=hash_text(text),
    ))
    if processed:
        db.mark_document_processed(doc.id)
    return doc


def _by_name(prompt: str, system: str) -> str:
    """Answer with the slug whose display name appears in the article."""
    article = prompt.partition("Article:")[2]
    if "Acme Health" in article:
        return json.dumps({"slug": "acme"})
    if "Zenith" in article:
        return json.dumps({"slug": "zenith-care"})
    if "Nowhere" in article:
        return json.dumps({"slug": "not-a-real-slug"})
    if "Boom" in article:
        raise RuntimeError("model overloaded")
    return json.dumps({"slug": None})


# ════════════════════════════════════════════════════════════════════
# Classification pass
# ════════════════════════════════════════════════════════════════════

def test_news_mentioning_account_is_attributed(deps, db, settings, add_account):
    acme = add_account("acme", "Acme Health")
    add_account("zenith-care", "Zenith Care")
    doc = _news(db, "Acme Health announced a partnership with a regional payer.")
    deps._llm = make_llm(settings, _by_name)

    result = run(NewsClassifier(deps).classify_pending())

    assert (result.classified, result.total) == (1, 1)
    owned = db.list_documents(account_id=acme.id)
    assert [d.id for d in owned] == [doc.id]


def test_prompt_lists_roster_and_truncates_long_text(deps, db, settings, add_account):
    add_account("acme", "Acme Health")
    add_account("zenith-care", "Zenith Care")
    settings.classify_max_text_chars = 50
    _news(db, "x" * 200)
    prompts = []

    def _capture(prompt, system):
        prompts.append((prompt, system))
        return '{"slug": null}'

    deps._llm = make_llm(settings, _capture)
    run(NewsClassifier(deps).classify_pending())

    prompt, system = prompts[0]
    assert "acme: Acme Health" in prompt
    assert "zenith-care: Zenith Care" in prompt
    assert prompt.endswith("x" * 50 + "\n\n[Content truncated...]")
    assert "JSON" in system


def test_misses_and_failures_are_isolated(deps, db, settings, add_account):
    acme = add_account("acme", "Acme Health")
    zen = add_account("zenith-care", "Zenith Care")
    _news(db, "Nowhere Medical opens an urgent care.")
    _news(db, "Boom: markets react to CMS rule.")
    _news(db, "General hospital staffing trends.")
    _news(db, "Zenith Care names a new chief nursing officer.")
    _news(db, "Acme Health wins a quality award.")
    deps._llm = make_llm(settings, _by_name)

    result = run(NewsClassifier(deps).classify_pending())

    assert (result.classified, result.total) == (2, 5)
    assert len(db.list_documents(account_id=acme.id)) == 1
    assert len(db.list_documents(account_id=zen.id)) == 1
    assert len(db.list_documents(unattributed=True)) == 3


def test_attributed_documents_are_not_revisited(deps, db, settings, add_account):
    add_account("acme", "Acme Health")
    _news(db, "Acme Health expands its telehealth program.")
    calls = []

    def _counting(prompt, system):
        calls.append(prompt)
        return _by_name(prompt, system)

    deps._llm = make_llm(settings, _counting)
    classifier = NewsClassifier(deps)

    first = run(classifier.classify_pending())
    second = run(classifier.classify_pending())

    assert first.classified == 1
    assert (second.classified, second.total) == (0, 0)
    assert len(calls) == 1


def test_one_pass_visits_every_candidate_past_the_first_page(deps, db, settings, add_account):
    acme = add_account("acme", "Acme Health")
    settings.classify_batch_limit = 10
    oldest = _news(db, "Acme Health opens clinic in the valley.")
    for i in range(24):
        _news(db, f"Statewide hospital staffing report, part {i}.")
    seen = []

    def _counting(prompt, system):
        seen.append(prompt.partition("Article:")[2])
        return _by_name(prompt, system)

    deps._llm = make_llm(settings, _counting)
    result = run(NewsClassifier(deps).classify_pending())

    assert (result.classified, result.total) == (1, 25)
    assert len(seen) == len(set(seen)) == 25
    assert [d.id for d in db.list_documents(account_id=acme.id)] == [oldest.id]


def test_transient_failure_is_retried_on_next_pass(deps, db, settings, add_account):
    acme = add_account("acme", "Acme Health")
    settings.classify_batch_limit = 2
    _news(db, "Acme Health expands its heart institute.")
    for i in range(5):
        _news(db, f"Payer mix shifts in region {i}.")
    attempts = {"acme": 0}

    def _flaky(prompt, system):
        if "Acme Health" in prompt.partition("Article:")[2]:
            attempts["acme"] += 1
            if attempts["acme"] == 1:
                raise RuntimeError("completion timeout")
        return _by_name(prompt, system)

    deps._llm = make_llm(settings, _flaky)
    classifier = NewsClassifier(deps)

    first = run(classifier.classify_pending())
    second = run(classifier.classify_pending())

    assert (first.classified, first.total) == (0, 6)
    assert (second.classified, second.total) == (1, 6)
    assert len(db.list_documents(account_id=acme.id)) == 1


def test_keyset_pages_are_disjoint_while_rows_leave_the_set(db, add_account):
    acme = add_account("acme")
    docs = [_news(db, f"story {i}") for i in range(7)]

    first = db.list_unattributed_news(3)
    db.update_document_owner(first[0].id, acme.id)
    second = db.list_unattributed_news(3, (first[-1].crawled_at, first[-1].id))
    third = db.list_unattributed_news(3, (second[-1].crawled_at, second[-1].id))

    ids = [d.id for d in first + second + third]
    assert len(ids) == len(set(ids)) == 7
    assert set(ids) == {d.id for d in docs}


def test_unprocessed_and_website_documents_are_not_candidates(deps, db, settings, add_account):
    acme = add_account("acme", "Acme Health")
    _news(db, "Acme Health story awaiting extraction.", processed=False)
    db.insert_document(NewDocument(
        account_id=acme.id,
        source_url="https://acme.example",
        source_type=SourceType.WEBSITE,
        raw_text="Acme Health homepage",
        content_hash=hash_text("Acme Health homepage"),
    ))
    deps._llm = make_llm(settings, _by_name)

    result = run(NewsClassifier(deps).classify_pending())

    assert (result.classified, result.total) == (0, 0)


def test_empty_roster_classifies_nothing(deps, db):
    _news(db, "Acme Health story.")
    result = run(NewsClassifier(deps).classify_pending())
    assert (result.classified, result.total) == (0, 1)


def test_candidate_load_failure_is_fatal(deps, monkeypatch):
    async def broken(limit=None, after=None):
        raise StoreReadFailure("list_unattributed_news: connection refused")

    monkeypatch.setattr(deps.store, "list_unattributed_news", broken)
    with pytest.raises(StoreReadFailure):
        run(NewsClassifier(deps).classify_pending())


def test_entities_and_signals_follow_the_document(deps, db, settings, add_account):
    acme = add_account("acme", "Acme Health")
    doc = _news(db, "Acme Health to close a rural clinic.")
    db.insert_signal(None, doc.id, ExtractedSignal(severity="high", category="operations", summary="Clinic closure"))
    deps._llm = make_llm(settings, _by_name)

    run(NewsClassifier(deps).classify_pending())

    since = datetime.now(timezone.utc) - timedelta(hours=1)
    signals = db.list_recent_signals(acme.id, since)
    assert [s.summary for s in signals] == ["Clinic closure"]
    assert db.find_document_by_fingerprint(acme.id, doc.content_hash) is not None
    assert db.find_document_by_fingerprint(None, doc.content_hash) is None


# ════════════════════════════════════════════════════════════════════
# Helpers
# ════════════════════════════════════════════════════════════════════

@pytest.mark.parametrize("raw,expected", [
    ({"slug": " acme "}, "acme"),
    ({"slug": None}, None),
    ({"slug": "none"}, None),
    ({"slug": "NONE"}, None),
    ({"slug": 7}, None),
    ({"slug": "unknown"}, None),
    ({}, None),
])
def test_parse_slug(raw, expected):
    assert parse_slug(raw, {"acme", "zenith-care"}) == expected


def test_cap_text_leaves_short_text_alone():
    assert cap_text("short", 10) == "short"
    assert cap_text("0123456789abc", 10) == "0123456789\n\n[Content truncated...]"
