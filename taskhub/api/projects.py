# =============================================================================
# Project API Routes
# =============================================================================
#
#   POST   /projects                 - Create project
#   GET    /projects/search          - Search accessible projects
#   GET    /projects/my-projects     - Projects I own or belong to
#   GET    /projects/dashboard       - My project dashboard
#   GET    /projects/statistics      - Platform statistics (admin)
#   GET    /projects/{id}            - Get project
#   PUT    /projects/{id}            - Update project (owner)
#   DELETE /projects/{id}            - Delete project and its tasks (owner)
#   POST   /projects/{id}/members    - Add member (owner)
#   DELETE /projects/{id}/members    - Remove member (owner, or self)
#   GET    /projects/{id}/tasks      - Tasks in the project
#
# =============================================================================

from fastapi import APIRouter, Depends, Query

from taskhub.api.responses import get_services, respond
from taskhub.api.schemas import (
    CreateProjectRequest,
    MemberRequest,
    ResourceId,
    UpdateProjectRequest,
)
from taskhub.auth.context import AuthContext, get_current_actor
from taskhub.core.models import ProjectStatus, TaskPriority, TaskStatus

router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("", status_code=201)
async def create_project(
    data: CreateProjectRequest,
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.projects.create_project(
        actor, data.name, data.description, members=data.members, status=data.status
    )
    return respond(result, "Project created successfully", status_code=201)


@router.get("/search")
async def search_projects(
    q: str | None = None,
    status: ProjectStatus | None = None,
    owner: str | None = None,
    member: str | None = None,
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.projects.search_projects(
        actor, query=q, status=status, owner_id=owner, member_id=member, page=page, limit=limit
    )
    return respond(result, "Projects retrieved successfully")


@router.get("/my-projects")
async def my_projects(
    status: ProjectStatus | None = None,
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.projects.get_user_projects(actor, page, limit, status=status)
    return respond(result, "Projects retrieved successfully")


@router.get("/dashboard")
async def project_dashboard(
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.projects.get_project_dashboard(actor)
    return respond(result, "Project dashboard retrieved successfully")


@router.get("/statistics")
async def project_statistics(
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.projects.get_project_statistics(actor)
    return respond(result, "Project statistics retrieved successfully")


@router.get("/{project_id}")
async def get_project(
    project_id: ResourceId,
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.projects.get_project(actor, project_id)
    return respond(result, "Project retrieved successfully")


@router.put("/{project_id}")
async def update_project(
    project_id: ResourceId,
    data: UpdateProjectRequest,
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.projects.update_project(
        actor, project_id, data.model_dump(exclude_unset=True)
    )
    return respond(result, "Project updated successfully")


@router.delete("/{project_id}")
async def delete_project(
    project_id: ResourceId,
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.projects.delete_project(actor, project_id)
    return respond(result, "Project deleted successfully")


@router.post("/{project_id}/members")
async def add_member(
    project_id: ResourceId,
    data: MemberRequest,
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.projects.add_member(actor, project_id, data.user_id)
    return respond(result, "Member added successfully")


@router.delete("/{project_id}/members")
async def remove_member(
    project_id: ResourceId,
    data: MemberRequest,
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.projects.remove_member(actor, project_id, data.user_id)
    return respond(result, "Member removed successfully")


@router.get("/{project_id}/tasks")
async def project_tasks(
    project_id: ResourceId,
    status: TaskStatus | None = None,
    priority: TaskPriority | None = None,
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.tasks.get_project_tasks(
        actor, project_id, status=status, priority=priority, page=page, limit=limit
    )
    return respond(result, "Project tasks retrieved successfully")
