"""Domain services - validation, authorization and persistence for each entity."""

from __future__ import annotations

from dataclasses import dataclass

from taskhub.auth.jwt import CredentialIssuer
from taskhub.auth.policies import AccessPolicy
from taskhub.config import Settings
from taskhub.services.base import DomainService
from taskhub.services.dashboard import DashboardService
from taskhub.services.projects import ProjectService
from taskhub.services.tasks import TaskService, completion_timestamp
from taskhub.services.users import UserService
from taskhub.storage.base import DocumentStore
from taskhub.storage.repository import Repositories


@dataclass
class Services:
    """Everything a request needs, built once around one open store."""

    settings: Settings
    store: DocumentStore
    repos: Repositories
    issuer: CredentialIssuer
    policy: AccessPolicy
    users: UserService
    projects: ProjectService
    tasks: TaskService
    dashboard: DashboardService

    @classmethod
    def build(cls, settings: Settings, store: DocumentStore) -> Services:
        repos = Repositories.from_store(store)
        issuer = CredentialIssuer(settings)
        policy = AccessPolicy(repos)

        users = UserService(repos, policy, settings, issuer)
        projects = ProjectService(repos, policy, settings)
        tasks = TaskService(repos, policy, settings)

        return cls(
            settings=settings,
            store=store,
            repos=repos,
            issuer=issuer,
            policy=policy,
            users=users,
            projects=projects,
            tasks=tasks,
            dashboard=DashboardService(users, projects, tasks),
        )


__all__ = [
    "Services",
    "DomainService",
    "UserService",
    "ProjectService",
    "TaskService",
    "DashboardService",
    "completion_timestamp",
]
