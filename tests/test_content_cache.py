import asyncio

import pytest
from pymongo.errors import DuplicateKeyError

from examgrader.errors import AnalyzerReplyError
from examgrader.models.content_cache import CacheKey, ChapterSummaryRequest
from examgrader.services.content_cache import ContentCacheStore
from examgrader.services.summaries import ChapterSummaryService

from conftest import FakeAnalyzer

KEY = CacheKey(module="ncert", content_type="summary", identifier="sci-6-ch1", language="en")


def test_get_miss_returns_none(db):
    store = ContentCacheStore(db)
    assert asyncio.run(store.get(KEY)) is None


def test_put_then_get_counts_accesses(db):
    store = ContentCacheStore(db)

    async def scenario():
        created = await store.put(KEY, "Plants make food.", source="manual", subject="Science", class_level="6")
        first = await store.get(KEY)
        second = await store.get(KEY)
        return created, first, second

    created, first, second = asyncio.run(scenario())
    assert created.access_count == 0
    assert created.entry_id.startswith("cc_")
    assert first.content == "Plants make food."
    assert first.access_count == 1
    assert second.access_count == 2
    assert second.last_accessed_at >= first.last_accessed_at


def test_put_overwrites_content_and_keeps_identity(db):
    store = ContentCacheStore(db)

    async def scenario():
        original = await store.put(KEY, "v1", source="llm", subject="Science")
        await store.get(KEY)
        updated = await store.put(KEY, "v2", source="manual", created_by="admin-1")
        return original, updated, await db.content_cache.count_documents({})

    original, updated, count = asyncio.run(scenario())
    assert count == 1
    assert updated.entry_id == original.entry_id
    assert updated.content == "v2"
    assert updated.source == "manual"
    assert updated.created_by == "admin-1"
    assert updated.subject == "Science"
    assert updated.access_count == 1
    assert updated.created_at == original.created_at


def test_language_is_part_of_the_key(db):
    store = ContentCacheStore(db)
    hindi = KEY.model_copy(update={"language": "hi"})

    async def scenario():
        await store.put(KEY, "english")
        return await store.get(hindi)

    assert asyncio.run(scenario()) is None


def test_put_recovers_from_concurrent_insert(db, monkeypatch):
    store = ContentCacheStore(db)
    original_upsert = store._upsert
    calls = []

    async def racing_upsert(key, update):
        calls.append(key)
        if len(calls) == 1:
            raise DuplicateKeyError("E11000 duplicate key")
        return await original_upsert(key, update)

    monkeypatch.setattr(store, "_upsert", racing_upsert)
    entry = asyncio.run(store.put(KEY, "content"))
    assert len(calls) == 2
    assert entry.content == "content"


def test_delete_and_list_and_stats(db):
    store = ContentCacheStore(db)
    other = CacheKey(module="ncert", content_type="summary", identifier="sci-6-ch2")
    quiz = CacheKey(module="quiz", content_type="questions", identifier="q-1")

    async def scenario():
        await store.put(KEY, "one", source="manual", subject="Science")
        await store.put(other, "two", source="llm", subject="Maths")
        await store.put(quiz, "three", source="import")
        await store.get(KEY)
        await store.get(KEY)
        await store.get(other)
        listed = await store.list_by_module("ncert")
        science = await store.list_by_module("ncert", subject="Science")
        stats = await store.get_stats()
        ncert_stats = await store.get_stats("ncert")
        deleted = await store.delete(other)
        deleted_again = await store.delete(other)
        return listed, science, stats, ncert_stats, deleted, deleted_again

    listed, science, stats, ncert_stats, deleted, deleted_again = asyncio.run(scenario())
    assert {e.identifier for e in listed} == {"sci-6-ch1", "sci-6-ch2"}
    assert [e.identifier for e in science] == ["sci-6-ch1"]
    assert stats.total_cached == 3
    assert (stats.manual_entries, stats.llm_generated, stats.imported) == (1, 1, 1)
    assert stats.total_accesses == 3
    assert ncert_stats.total_cached == 2
    assert deleted is True
    assert deleted_again is False


def _summary_request(**overrides):
    data = {
        "chapter_id": "sci-6-ch1",
        "chapter_name": "Food: Where Does It Come From?",
        "subject": "Science",
        "class_level": "6",
    }
    data.update(overrides)
    return ChapterSummaryRequest(**data)


def test_chapter_summary_generated_once_then_cached(db):
    analyzer = FakeAnalyzer("## Key ideas\nPlants are producers.")
    service = ChapterSummaryService(ContentCacheStore(db), analyzer)

    async def scenario():
        first = await service.get_summary(_summary_request())
        second = await service.get_summary(_summary_request())
        entry = await ContentCacheStore(db).get(KEY)
        return first, second, entry

    first, second, entry = asyncio.run(scenario())
    assert first.source == "generated"
    assert second.source == "cache"
    assert second.summary == first.summary == "## Key ideas\nPlants are producers."
    assert len(analyzer.calls) == 1
    assert analyzer.calls[0]["images"] == []
    assert entry.source == "llm"
    assert entry.class_level == "6"


def test_chapter_summary_is_cached_per_language(db):
    analyzer = FakeAnalyzer("English summary", "Hindi summary")
    service = ChapterSummaryService(ContentCacheStore(db), analyzer)

    async def scenario():
        english = await service.get_summary(_summary_request())
        hindi = await service.get_summary(_summary_request(language="hi"))
        return english, hindi

    english, hindi = asyncio.run(scenario())
    assert english.summary == "English summary"
    assert hindi.summary == "Hindi summary"
    assert len(analyzer.calls) == 2


def test_empty_summary_is_not_cached(db):
    service = ChapterSummaryService(ContentCacheStore(db), FakeAnalyzer("   "))
    with pytest.raises(AnalyzerReplyError):
        asyncio.run(service.get_summary(_summary_request()))
    assert asyncio.run(db.content_cache.count_documents({})) == 0


def test_delete_by_id(db):
    store = ContentCacheStore(db)

    async def scenario():
        entry = await store.put(KEY, "content")
        removed = await store.delete_by_id(entry.entry_id)
        return removed, await store.get(KEY), await store.delete_by_id(entry.entry_id)

    removed, after, removed_again = asyncio.run(scenario())
    assert removed is True
    assert after is None
    assert removed_again is False
