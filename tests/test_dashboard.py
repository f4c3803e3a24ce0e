"""
Tests for the combined dashboards.
"""

import pytest

from taskhub.core.models import TaskStatus
from taskhub.core.results import ErrorCode

from conftest import actor_for, insert_task


class TestUserDashboard:
    @pytest.mark.asyncio
    async def test_combines_sections(self, services, project, bob):
        await insert_task(services, project, bob)

        data = (await services.dashboard.get_dashboard(actor_for(bob))).data
        assert data["projects"]["my_projects"]["member"] == 1
        assert data["tasks"]["my_tasks"]["total"] == 1

    @pytest.mark.asyncio
    async def test_empty_user(self, services, carol):
        data = (await services.dashboard.get_dashboard(actor_for(carol))).data
        assert data["projects"]["my_projects"]["total"] == 0
        assert data["tasks"]["my_tasks"]["total"] == 0


class TestAdminDashboard:
    @pytest.mark.asyncio
    async def test_admin_only(self, services, alice):
        result = await services.dashboard.get_admin_dashboard(actor_for(alice))
        assert result.code == ErrorCode.INSUFFICIENT_PERMISSIONS

    @pytest.mark.asyncio
    async def test_sections(self, services, project, bob, admin):
        await insert_task(services, project, bob, status=TaskStatus.COMPLETED)
        await insert_task(services, project, bob)

        data = (await services.dashboard.get_admin_dashboard(actor_for(admin))).data
        assert data["projects"]["total_projects"] == 1
        assert data["tasks"]["total"] == 2
        assert data["tasks"]["completion_rate"] == 50.0
        assert data["users"]["total_users"] == 3

    @pytest.mark.asyncio
    async def test_empty_store(self, services, admin):
        data = (await services.dashboard.get_admin_dashboard(actor_for(admin))).data
        assert data["projects"]["total_projects"] == 0
        assert data["projects"]["projects_by_month"] == []
        assert data["tasks"]["total"] == 0
        assert data["tasks"]["completion_rate"] == 0.0
        assert data["users"]["admin_users"] == 1
