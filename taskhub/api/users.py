# =============================================================================
# User API Routes
# =============================================================================
#
#   GET   /users             - List users (admin)
#   GET   /users/statistics  - User statistics (admin)
#   GET   /users/search      - Search active users
#   GET   /users/{id}        - Get a user (self or admin)
#   PATCH /users/{id}        - Change role / activation (admin)
#
# =============================================================================

from fastapi import APIRouter, Depends, Query

from taskhub.api.responses import get_services, respond
from taskhub.api.schemas import AdminUpdateUserRequest, ResourceId
from taskhub.auth.context import AuthContext, get_current_actor
from taskhub.core.models import UserRole

router = APIRouter(prefix="/users", tags=["users"])


@router.get("")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    role: UserRole | None = None,
    is_active: bool | None = None,
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.users.list_users(actor, page, limit, role=role, is_active=is_active)
    return respond(result, "Users retrieved successfully")


@router.get("/statistics")
async def user_statistics(
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.users.get_user_statistics(actor)
    return respond(result, "User statistics retrieved successfully")


@router.get("/search")
async def search_users(
    q: str = Query(..., min_length=1),
    limit: int | None = Query(None, ge=1),
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.users.search_users(actor, q, limit)
    return respond(result, "Users found")


@router.get("/{user_id}")
async def get_user(
    user_id: ResourceId,
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.users.get_profile(actor, user_id)
    return respond(result, "User retrieved successfully")


@router.patch("/{user_id}")
async def admin_update_user(
    user_id: ResourceId,
    data: AdminUpdateUserRequest,
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.users.admin_update_user(
        actor, user_id, data.model_dump(exclude_unset=True)
    )
    return respond(result, "User updated successfully")
