"""
Tests for the document store, repositories and entity queries.
"""

from datetime import timedelta

import pytest

from taskhub.core.models import Project, ProjectStatus, TaskPriority, TaskStatus
from taskhub.core.utils import utc_now
from taskhub.services import Services
from taskhub.storage import (
    DuplicateKeyError,
    InMemoryDocumentStore,
    JsonFileDocumentStore,
    StorageError,
    create_local_storage,
    create_storage,
)
from taskhub.storage import queries
from taskhub.storage.local import matches

from conftest import PASSWORD, future, insert_task, make_user


# =============================================================================
# Filter language
# =============================================================================


class TestMatches:
    def test_equality_and_list_contains(self):
        doc = {"status": "todo", "members": ["u1", "u2"]}
        assert matches(doc, {"status": "todo"})
        assert matches(doc, {"members": "u2"})
        assert not matches(doc, {"members": "u3"})

    def test_comparison_operators(self):
        doc = {"n": 5}
        assert matches(doc, {"n": {"$gt": 4, "$lte": 5}})
        assert not matches(doc, {"n": {"$lt": 5}})
        assert not matches({"n": None}, {"n": {"$gte": 0}})

    def test_in_nin_exists(self):
        doc = {"id": "a", "completed_at": None}
        assert matches(doc, {"id": {"$in": ["a", "b"]}})
        assert matches(doc, {"id": {"$nin": ["b"]}})
        assert matches(doc, {"completed_at": {"$exists": False}})

    def test_or_and(self):
        doc = {"owner_id": "x", "members": []}
        assert matches(doc, {"$or": [{"owner_id": "x"}, {"members": "x"}]})
        assert not matches(doc, {"$and": [{"owner_id": "x"}, {"members": "x"}]})

    def test_regex_input_is_escaped(self):
        pattern_filter = queries.text_search_filter("a.b", ["title"])
        assert matches({"title": "A.B release"}, pattern_filter)
        assert not matches({"title": "axb release"}, pattern_filter)

    def test_unknown_operator(self):
        with pytest.raises(StorageError):
            matches({"n": 1}, {"n": {"$near": 1}})


# =============================================================================
# Store lifecycle & atomic batch
# =============================================================================


class TestInMemoryStore:
    @pytest.mark.asyncio
    async def test_requires_open(self):
        store = create_local_storage()
        with pytest.raises(StorageError):
            await store.get("users", "x")

        await store.open()
        assert await store.get("users", "x") is None
        await store.close()
        assert not store.is_open

    @pytest.mark.asyncio
    async def test_returns_copies(self, store):
        await store.insert("things", {"id": "a", "tags": ["x"]})
        doc = await store.get("things", "a")
        doc["tags"].append("y")
        assert (await store.get("things", "a"))["tags"] == ["x"]

    @pytest.mark.asyncio
    async def test_update_many_is_all_or_nothing(self, store):
        await store.insert("things", {"id": "a", "n": 1})
        with pytest.raises(StorageError):
            await store.update_many("things", {"a": {"n": 2}, "missing": {"n": 2}})
        assert (await store.get("things", "a"))["n"] == 1

        assert await store.update_many("things", {"a": {"n": 3}}) == 1
        assert (await store.get("things", "a"))["n"] == 3

    @pytest.mark.asyncio
    async def test_add_to_set_and_pull(self, store):
        await store.insert("projects", {"id": "p", "members": []})
        await store.add_to_set("projects", "p", "members", "u1")
        await store.add_to_set("projects", "p", "members", "u1")
        assert (await store.get("projects", "p"))["members"] == ["u1"]

        await store.pull("projects", "p", "members", "u1")
        assert (await store.get("projects", "p"))["members"] == []

    @pytest.mark.asyncio
    async def test_sort_skip_limit(self, store):
        for i, n in enumerate([3, 1, 2]):
            await store.insert("things", {"id": str(i), "n": n})
        found = await store.find("things", sort=[("n", -1)], skip=1, limit=1)
        assert [d["n"] for d in found] == [2]


    @pytest.mark.asyncio
    async def test_unique_email(self, store):
        await store.insert("users", {"id": "a", "email": "a@example.com"})
        await store.insert("users", {"id": "b", "email": "b@example.com"})

        with pytest.raises(DuplicateKeyError):
            await store.insert("users", {"id": "c", "email": "a@example.com"})
        with pytest.raises(DuplicateKeyError):
            await store.update("users", "b", {"email": "a@example.com"})

        assert await store.count("users") == 2
        assert (await store.get("users", "b"))["email"] == "b@example.com"
        # Rewriting a document's own value is not a collision
        assert await store.update("users", "a", {"email": "a@example.com"})


# =============================================================================
# JSON file store
# =============================================================================


class TestJsonFileStore:
    @pytest.mark.asyncio
    async def test_survives_close_and_reopen(self, tmp_path):
        store = JsonFileDocumentStore(str(tmp_path))
        await store.open()
        await store.insert("users", {"id": "a", "email": "a@example.com"})
        await store.insert("projects", {"id": "p", "members": []})
        await store.add_to_set("projects", "p", "members", "a")
        await store.close()

        reopened = JsonFileDocumentStore(str(tmp_path))
        await reopened.open()
        assert (await reopened.get("users", "a"))["email"] == "a@example.com"
        assert (await reopened.get("projects", "p"))["members"] == ["a"]
        await reopened.close()

    @pytest.mark.asyncio
    async def test_entities_round_trip(self, tmp_path, settings):
        store = JsonFileDocumentStore(str(tmp_path))
        await store.open()
        services = Services.build(settings, store)
        owner = await make_user(services, "Alice", "alice@example.com")
        project = await services.repos.projects.create(Project(
            name="Launch", description="d", owner_id=owner.id
        ))
        overdue = await insert_task(
            services, project, owner, due_date=utc_now() - timedelta(days=1), priority=TaskPriority.HIGH
        )
        await insert_task(services, project, owner, status=TaskStatus.COMPLETED)
        await store.close()

        await store.open()
        task = await services.repos.tasks.find_by_id(overdue.id)
        assert task.due_date == overdue.due_date
        assert task.priority == TaskPriority.HIGH
        assert await services.repos.tasks.count(queries.overdue_filter(utc_now())) == 1
        assert await services.repos.tasks.count({"status": TaskStatus.COMPLETED}) == 1
        assert (await services.users.login("alice@example.com", PASSWORD)).success
        await store.close()

    @pytest.mark.asyncio
    async def test_unique_email_survives_reopen(self, tmp_path):
        store = JsonFileDocumentStore(str(tmp_path))
        await store.open()
        await store.insert("users", {"id": "a", "email": "a@example.com"})
        await store.close()

        await store.open()
        with pytest.raises(DuplicateKeyError):
            await store.insert("users", {"id": "b", "email": "a@example.com"})
        await store.close()

    @pytest.mark.asyncio
    async def test_delete_is_persisted(self, tmp_path):
        store = JsonFileDocumentStore(str(tmp_path))
        await store.open()
        await store.insert("tasks", {"id": "t1", "project_id": "p"})
        await store.insert("tasks", {"id": "t2", "project_id": "p"})
        await store.delete("tasks", "t1")
        await store.close()

        await store.open()
        assert await store.count("tasks") == 1
        assert await store.delete_many("tasks", {"project_id": "p"}) == 1
        await store.close()

        await store.open()
        assert await store.count("tasks") == 0
        await store.close()

    @pytest.mark.asyncio
    async def test_corrupt_file(self, tmp_path):
        (tmp_path / "users.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageError):
            await JsonFileDocumentStore(str(tmp_path)).open()

    def test_backend_selected_from_settings(self, settings, tmp_path):
        assert isinstance(create_storage(settings), InMemoryDocumentStore)
        assert not isinstance(create_storage(settings), JsonFileDocumentStore)

        file_settings = settings.model_copy(
            update={"storage_backend": "file", "storage_path": str(tmp_path)}
        )
        store = create_storage(file_settings)
        assert isinstance(store, JsonFileDocumentStore)
        assert store.data_dir == tmp_path

        with pytest.raises(StorageError):
            create_storage(settings.model_copy(update={"storage_backend": "mongo"}))


# =============================================================================
# Repository
# =============================================================================


class TestRepository:
    @pytest.mark.asyncio
    async def test_round_trip_and_pagination(self, services, alice):
        for i in range(12):
            await services.repos.projects.create(Project(
                name=f"Project {i:02d}", description="d", owner_id=alice.id
            ))

        page = await services.repos.projects.find_paginated({}, 2, 5, sort=[("name", 1)])
        assert [p.name for p in page.items] == [f"Project {i:02d}" for i in range(5, 10)]
        assert page.meta() == {
            "page": 2,
            "limit": 5,
            "total": 12,
            "pages": 3,
            "has_next_page": True,
            "has_prev_page": True,
        }

    @pytest.mark.asyncio
    async def test_update_stamps_updated_at(self, services, project):
        before = project.updated_at
        updated = await services.repos.projects.update_by_id(project.id, {"name": "Renamed"})
        assert updated.name == "Renamed"
        assert updated.updated_at >= before

    @pytest.mark.asyncio
    async def test_enum_fields_filter_by_value(self, services, project, bob):
        await insert_task(services, project, bob, status=TaskStatus.COMPLETED)
        assert await services.repos.tasks.count({"status": "completed"}) == 1
        assert await services.repos.tasks.count({"status": TaskStatus.COMPLETED}) == 1


# =============================================================================
# Queries
# =============================================================================


class TestQueries:
    @pytest.mark.asyncio
    async def test_email_lookup_is_case_insensitive(self, services, alice):
        found = await queries.find_user_by_email(services.repos.users, "  ALICE@example.com ")
        assert found.id == alice.id
        assert await queries.email_taken(services.repos.users, "alice@example.com")
        assert not await queries.email_taken(
            services.repos.users, "alice@example.com", exclude_id=alice.id
        )

    @pytest.mark.asyncio
    async def test_find_active_users_skips_inactive(self, services, alice, bob):
        await services.repos.users.update_by_id(bob.id, {"is_active": False})
        found = await queries.find_active_users(services.repos.users, [alice.id, bob.id, "nope"])
        assert [u.id for u in found] == [alice.id]

    @pytest.mark.asyncio
    async def test_task_stats_zeroed_on_empty(self, services):
        stats = await queries.task_stats(services.repos.tasks, {}, utc_now())
        assert stats == {
            "total": 0,
            "todo": 0,
            "in_progress": 0,
            "completed": 0,
            "overdue": 0,
            "by_priority": {"low": 0, "medium": 0, "high": 0},
        }
        assert queries.completion_rate(stats) == 0.0
        assert await queries.average_completion_days(services.repos.tasks) == 0.0

    @pytest.mark.asyncio
    async def test_task_stats_counts(self, services, project, bob):
        now = utc_now()
        await insert_task(services, project, bob, priority=TaskPriority.HIGH)
        await insert_task(services, project, bob, due_date=now - timedelta(days=1))
        await insert_task(
            services, project, bob, status=TaskStatus.COMPLETED, due_date=now - timedelta(days=1)
        )

        stats = await queries.task_stats(services.repos.tasks, {"project_id": project.id}, now)
        assert stats["total"] == 3
        assert stats["todo"] == 2
        assert stats["completed"] == 1
        assert stats["overdue"] == 1
        assert stats["by_priority"]["high"] == 1
        assert queries.completion_rate(stats) == pytest.approx(100 / 3)

    @pytest.mark.asyncio
    async def test_due_soon_window(self, services, project, bob):
        now = utc_now()
        await insert_task(services, project, bob, due_date=future(2))
        await insert_task(services, project, bob, due_date=future(20))
        assert await services.repos.tasks.count(queries.due_soon_filter(now, 7)) == 1

    @pytest.mark.asyncio
    async def test_project_status_counts(self, services, project, alice):
        await services.repos.projects.create(Project(
            name="Paused one", description="d", owner_id=alice.id, status=ProjectStatus.PAUSED
        ))
        counts = await queries.project_status_counts(services.repos.projects)
        assert counts == {"active": 1, "completed": 0, "paused": 1}
