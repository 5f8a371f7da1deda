"""Тесты хранилища документов: области видимости автора, версии, фильтры."""
import asyncio
from datetime import datetime, timedelta
import uuid

from app.domains.documents.entities import Document


def new_document(author_id="alice", title="Poem", content="Some lines", **kwargs):
    return Document.create_document(author_id=author_id, title=title, content=content, **kwargs)


class TestCrud:
    """Создание, чтение, обновление, удаление"""

    async def test_create_starts_at_version_one(self, repository):
        created = await repository.create(new_document(tags=["love", "night"]))

        assert created.version == 1
        assert created.tags == ["love", "night"]

    async def test_update_increments_version(self, repository):
        created = await repository.create(new_document())

        updated = await repository.update(created.uuid, "alice", {"title": "New title"})

        assert updated.version == 2
        assert updated.title == "New title"
        assert updated.updated_at >= created.updated_at

    async def test_versions_are_monotonic(self, repository):
        created = await repository.create(new_document())

        for n in range(1, 6):
            updated = await repository.update(created.uuid, "alice", {"content": f"draft {n}"})
            assert updated.version == 1 + n

    async def test_update_replaces_tags(self, repository):
        created = await repository.create(new_document(tags=["a", "b"]))

        updated = await repository.update(created.uuid, "alice", {"tags": ["b", "c"]})

        assert updated.tags == ["b", "c"]

    async def test_delete(self, repository):
        created = await repository.create(new_document())

        assert await repository.delete(created.uuid, "alice") is True
        assert await repository.get_owned(created.uuid, "alice") is None
        assert await repository.delete(created.uuid, "alice") is False

    async def test_get_by_client_id(self, repository):
        created = await repository.create(new_document(client_id="c1"))

        found = await repository.get_by_client_id("alice", "c1")

        assert found.uuid == created.uuid
        assert await repository.get_by_client_id("bob", "c1") is None


class TestAuthorScoping:
    """Чужие документы недоступны на запись"""

    async def test_foreign_update_and_delete(self, repository):
        created = await repository.create(new_document())

        assert await repository.update(created.uuid, "bob", {"title": "Hijacked"}) is None
        assert await repository.delete(created.uuid, "bob") is False
        assert (await repository.get_owned(created.uuid, "alice")).title == "Poem"

    async def test_private_not_readable_by_others(self, repository):
        created = await repository.create(new_document(is_private=True))

        assert await repository.get_readable(created.uuid, "bob") is None
        assert await repository.get_readable(created.uuid, "alice") is not None

    async def test_public_readable_by_others(self, repository):
        created = await repository.create(new_document(is_private=False))

        assert (await repository.get_readable(created.uuid, "bob")).uuid == created.uuid

    async def test_missing_document(self, repository):
        assert await repository.get_readable(uuid.uuid4(), "alice") is None


class TestChangedSince:
    """Дельта для pull"""

    async def test_only_newer_documents(self, repository):
        old = await repository.create(new_document(title="Old"))
        await asyncio.sleep(0.01)
        t0 = datetime.utcnow()
        await asyncio.sleep(0.01)
        fresh = await repository.create(new_document(title="Fresh"))

        changed = await repository.list_changed_since("alice", t0)

        assert [doc.uuid for doc in changed] == [fresh.uuid]
        assert old.uuid not in [doc.uuid for doc in changed]

    async def test_updated_document_reappears(self, repository):
        created = await repository.create(new_document())
        await asyncio.sleep(0.01)
        t0 = datetime.utcnow()
        await asyncio.sleep(0.01)
        await repository.update(created.uuid, "alice", {"title": "Edited"})

        changed = await repository.list_changed_since("alice", t0)

        assert [(doc.uuid, doc.version) for doc in changed] == [(created.uuid, 2)]

    async def test_scoped_to_author(self, repository):
        await repository.create(new_document(author_id="bob"))

        assert await repository.list_changed_since("alice", datetime(1970, 1, 1)) == []

    async def test_latest_update(self, repository):
        assert await repository.latest_update("alice") is None

        created = await repository.create(new_document())

        assert await repository.latest_update("alice") == created.updated_at


class TestListing:
    """Фильтры, сортировка и пагинация"""

    async def test_tags_must_all_match(self, repository):
        both = await repository.create(new_document(title="Both", tags=["love", "sea"]))
        await repository.create(new_document(title="Love only", tags=["love"]))

        found = await repository.list("alice", tags=["love", "sea"])

        assert [doc.uuid for doc in found] == [both.uuid]
        assert await repository.count("alice", tags=["love", "sea"]) == 1

    async def test_search_is_case_insensitive(self, repository):
        await repository.create(new_document(title="Winter Road", content="snow"))
        await repository.create(new_document(title="Summer", content="The WINTER is far"))
        await repository.create(new_document(title="Autumn", content="leaves"))

        found = await repository.list("alice", search="winter")

        assert sorted(doc.title for doc in found) == ["Summer", "Winter Road"]

    async def test_search_escapes_wildcards(self, repository):
        await repository.create(new_document(title="100% sure"))
        await repository.create(new_document(title="100 percent"))

        found = await repository.list("alice", search="100%")

        assert [doc.title for doc in found] == ["100% sure"]

    async def test_sort_and_paginate(self, repository):
        for title in ["b", "c", "a"]:
            await repository.create(new_document(title=title))

        first_page = await repository.list("alice", sort_by="title", order="asc", limit=2, offset=0)
        second_page = await repository.list("alice", sort_by="title", order="asc", limit=2, offset=2)

        assert [doc.title for doc in first_page] == ["a", "b"]
        assert [doc.title for doc in second_page] == ["c"]
        assert await repository.count("alice") == 3

    async def test_default_order_newest_first(self, repository):
        first = await repository.create(new_document(title="first"))
        first_created = first.created_at
        second = new_document(title="second")
        second.created_at = first_created + timedelta(seconds=1)
        await repository.create(second)

        found = await repository.list("alice")

        assert [doc.title for doc in found] == ["second", "first"]
