# =============================================================================
# Auth API Routes
# =============================================================================
#
# Endpoints:
#   POST /auth/register         - Create account
#   POST /auth/login            - Get tokens
#   POST /auth/refresh-token    - New access token from a refresh token
#   POST /auth/logout           - Client discards tokens
#   GET  /auth/me               - Current user
#   PUT  /auth/me               - Update current user's profile
#   PUT  /auth/change-password  - Change password
#
# =============================================================================

from fastapi import APIRouter, Depends, Request

from taskhub.api.responses import get_services, respond, success
from taskhub.api.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
    UpdateProfileRequest,
)
from taskhub.auth.context import AuthContext, get_current_actor
from taskhub.auth.ratelimit import auth_rate_limit, limiter

router = APIRouter(prefix="/auth", tags=["auth"])


# =============================================================================
# Public Endpoints
# =============================================================================

@router.post("/register", status_code=201)
@limiter.shared_limit(auth_rate_limit, scope="auth")
async def register(request: Request, data: RegisterRequest, services=Depends(get_services)):
    """
    Create a new account.

    Returns the user plus access and refresh tokens.
    Rate limited per client IP together with login.
    """
    result = await services.users.register(data.name, data.email, data.password)
    return respond(result, "User registered successfully", status_code=201)


@router.post("/login")
@limiter.shared_limit(auth_rate_limit, scope="auth")
async def login(request: Request, data: LoginRequest, services=Depends(get_services)):
    result = await services.users.login(data.email, data.password)
    return respond(result, "Login successful")


@router.post("/refresh-token")
async def refresh_token(data: RefreshTokenRequest, services=Depends(get_services)):
    """
    Use refresh token to get new access token.
    """
    result = await services.users.refresh_token(data.refresh_token)
    return respond(result, "Token refreshed successfully")


@router.post("/logout")
async def logout(actor: AuthContext = Depends(get_current_actor)):
    """
    Logout (client should discard tokens).

    Tokens are stateless; there is no server-side revocation list.
    """
    return success(None, "Logout successful")


# =============================================================================
# Protected Endpoints
# =============================================================================

@router.get("/me")
async def get_me(
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.users.get_profile(actor, actor.user_id)
    return respond(result, "Profile retrieved successfully")


@router.put("/me")
async def update_me(
    data: UpdateProfileRequest,
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.users.update_profile(
        actor, actor.user_id, data.model_dump(exclude_unset=True)
    )
    return respond(result, "Profile updated successfully")


@router.put("/change-password")
async def change_password(
    data: ChangePasswordRequest,
    actor: AuthContext = Depends(get_current_actor),
    services=Depends(get_services),
):
    result = await services.users.change_password(
        actor, data.current_password, data.new_password
    )
    return respond(result, "Password changed successfully")
