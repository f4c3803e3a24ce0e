"""
Shared fixtures: a fresh in-memory store per test and a few users.
"""

from datetime import timedelta

import pytest

from taskhub.auth.context import AuthContext
from taskhub.config import Settings
from taskhub.core.models import Project, Task, TaskStatus, User, UserRole
from taskhub.core.utils import utc_now
from taskhub.services import Services
from taskhub.storage import create_local_storage

PASSWORD = "Secret123!"


# =============================================================================
# Infrastructure
# =============================================================================


@pytest.fixture
def settings():
    """Test settings: cheap hashing, fixed secrets, no .env."""
    return Settings(
        _env_file=None,
        environment="test",
        jwt_secret_key="test-access-secret-0123456789abcdef",
        jwt_refresh_secret_key="test-refresh-secret-0123456789abcdef",
        password_hash_iterations=1_000,
        sentry_dsn="",
        storage_backend="memory",
        auth_rate_limit="100 per minute",
    )


@pytest.fixture
async def store():
    store = create_local_storage()
    await store.open()
    yield store
    await store.close()


@pytest.fixture
def services(settings, store):
    return Services.build(settings, store)


# =============================================================================
# Users
# =============================================================================


async def make_user(services, name, email, role=UserRole.USER, is_active=True) -> User:
    return await services.repos.users.create(User(
        name=name,
        email=email,
        password_hash=services.issuer.hash_password(PASSWORD),
        role=role,
        is_active=is_active,
    ))


def actor_for(user: User) -> AuthContext:
    return AuthContext.for_user(user)


@pytest.fixture
async def alice(services):
    return await make_user(services, "Alice", "alice@example.com")


@pytest.fixture
async def bob(services):
    return await make_user(services, "Bob", "bob@example.com")


@pytest.fixture
async def carol(services):
    return await make_user(services, "Carol", "carol@example.com")


@pytest.fixture
async def admin(services):
    return await make_user(services, "Admin", "admin@example.com", role=UserRole.ADMIN)


# =============================================================================
# Projects & tasks
# =============================================================================


def future(days=3):
    return utc_now() + timedelta(days=days)


@pytest.fixture
async def project(services, alice, bob):
    """Alice owns it, Bob is a member, Carol is an outsider."""
    return await services.repos.projects.create(Project(
        name="Website Redesign",
        description="New marketing site",
        owner_id=alice.id,
        members=[bob.id],
    ))


async def insert_task(services, project, assignee, **fields) -> Task:
    """Insert directly, bypassing service validation (e.g. for past due dates)."""
    data = {
        "title": "Write copy",
        "description": "Landing page copy",
        "project_id": project.id,
        "assigned_to": assignee.id,
        "due_date": future(),
        **fields,
    }
    if data.get("status") == TaskStatus.COMPLETED and "completed_at" not in data:
        data["completed_at"] = utc_now()
    return await services.repos.tasks.create(Task(**data))
