# =============================================================================
# Dashboard API Routes
# =============================================================================
#
#   GET /dashboard           - Combined project + task overview
#   GET /dashboard/projects  - Project overview
#   GET /dashboard/tasks     - Task overview
#   GET /dashboard/admin     - Platform statistics (admin)
#
# =============================================================================

from fastapi import APIRouter, Depends

from taskhub.api.responses import get_services, respond
from taskhub.auth.context import AuthContext, get_current_actor

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("")
async def dashboard(
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.dashboard.get_dashboard(actor)
    return respond(result, "Dashboard data retrieved successfully")


@router.get("/projects")
async def project_dashboard(
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.projects.get_project_dashboard(actor)
    return respond(result, "Project dashboard data retrieved successfully")


@router.get("/tasks")
async def task_dashboard(
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.tasks.get_task_dashboard(actor)
    return respond(result, "Task dashboard data retrieved successfully")


@router.get("/admin")
async def admin_dashboard(
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.dashboard.get_admin_dashboard(actor)
    return respond(result, "Admin dashboard data retrieved successfully")
