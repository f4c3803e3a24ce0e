# =============================================================================
# Task API Routes
# =============================================================================
#
#   POST   /tasks               - Create task
#   GET    /tasks/search        - Search tasks in accessible projects
#   GET    /tasks/my-tasks      - Tasks assigned to me
#   GET    /tasks/dashboard     - My task dashboard
#   GET    /tasks/overdue       - My overdue tasks
#   GET    /tasks/due-soon      - My tasks due within N days
#   GET    /tasks/statistics    - Task statistics
#   PATCH  /tasks/bulk-update   - Update many tasks at once
#   GET    /tasks/{id}          - Get task
#   PUT    /tasks/{id}          - Update task
#   DELETE /tasks/{id}          - Delete task
#
# =============================================================================

from fastapi import APIRouter, Depends, Query

from taskhub.api.responses import get_services, respond
from taskhub.api.schemas import (
    BulkUpdateTasksRequest,
    CreateTaskRequest,
    ResourceId,
    UpdateTaskRequest,
)
from taskhub.auth.context import AuthContext, get_current_actor
from taskhub.core.models import TaskPriority, TaskStatus

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.post("", status_code=201)
async def create_task(
    data: CreateTaskRequest,
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.tasks.create_task(
        actor,
        title=data.title,
        description=data.description,
        project_id=data.project_id,
        assigned_to=data.assigned_to,
        due_date=data.due_date,
        priority=data.priority,
        status=data.status,
    )
    return respond(result, "Task created successfully", status_code=201)


@router.get("/search")
async def search_tasks(
    q: str | None = None,
    project_id: str | None = None,
    assigned_to: str | None = None,
    status: TaskStatus | None = None,
    priority: TaskPriority | None = None,
    overdue: bool | None = None,
    due_soon: int | None = Query(None, ge=1, le=30),
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.tasks.search_tasks(
        actor,
        query=q,
        project_id=project_id,
        assigned_to=assigned_to,
        status=status,
        priority=priority,
        overdue=overdue,
        due_soon=due_soon,
        page=page,
        limit=limit,
    )
    return respond(result, "Tasks retrieved successfully")


@router.get("/my-tasks")
async def my_tasks(
    status: TaskStatus | None = None,
    priority: TaskPriority | None = None,
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.tasks.get_user_tasks(
        actor, status=status, priority=priority, page=page, limit=limit
    )
    return respond(result, "Tasks retrieved successfully")


@router.get("/dashboard")
async def task_dashboard(
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.tasks.get_task_dashboard(actor)
    return respond(result, "Task dashboard retrieved successfully")


@router.get("/overdue")
async def overdue_tasks(
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.tasks.get_overdue_tasks(actor)
    return respond(result, "Overdue tasks retrieved successfully")


@router.get("/due-soon")
async def tasks_due_soon(
    days: int | None = Query(None, ge=1, le=30),
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.tasks.get_tasks_due_soon(actor, days)
    return respond(result, "Tasks due soon retrieved successfully")


@router.get("/statistics")
async def task_statistics(
    project_id: str | None = None,
    user_id: str | None = None,
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.tasks.get_task_statistics(actor, project_id=project_id, user_id=user_id)
    return respond(result, "Task statistics retrieved successfully")


@router.patch("/bulk-update")
async def bulk_update_tasks(
    data: BulkUpdateTasksRequest,
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    changes = data.model_dump(exclude={"task_ids"}, exclude_none=True)
    result = await services.tasks.bulk_update_tasks(actor, data.task_ids, changes)
    return respond(result, "Tasks updated successfully")


@router.get("/{task_id}")
async def get_task(
    task_id: ResourceId,
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.tasks.get_task(actor, task_id)
    return respond(result, "Task retrieved successfully")


@router.put("/{task_id}")
async def update_task(
    task_id: ResourceId,
    data: UpdateTaskRequest,
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.tasks.update_task(actor, task_id, data.model_dump(exclude_unset=True))
    return respond(result, "Task updated successfully")


@router.delete("/{task_id}")
async def delete_task(
    task_id: ResourceId,
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.tasks.delete_task(actor, task_id)
    return respond(result, "Task deleted successfully")
