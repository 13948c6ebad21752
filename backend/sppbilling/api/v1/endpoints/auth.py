# ============================================================
# sppbilling/api/v1/endpoints/auth.py
#
# LEARNING NOTE: Routes are THIN. They do three things only:
# 1. Declare the HTTP method and path
# 2. Validate the request body (Pydantic does this automatically)
# 3. Call a service and return the result
#
# Business logic NEVER lives in routes.
# ============================================================

from fastapi import APIRouter, Depends

from sppbilling.api.deps import get_store
from sppbilling.core.security import get_current_user, CurrentUser
from sppbilling.core.store import SchoolStore
from sppbilling.schemas.auth import LoginRequest, TokenResponse, RefreshRequest, UserProfile
from sppbilling.schemas.common import APIResponse
from sppbilling.services.activity_service import log_activity
from sppbilling.services.auth_service import (
    login_user, refresh_access_token, profile_of, visible_menu,
)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=APIResponse[TokenResponse])
async def login(body: LoginRequest, store: SchoolStore = Depends(get_store)):
    """
    Login with username + password. Returns JWT access + refresh tokens.
    The access token carries the operator's id, role and name; payments
    are stamped with that name, never with anything from a request body.
    """
    result = login_user(store, body)
    return APIResponse(data=result, message=f"Selamat datang, {result.user.name}")


@router.post("/refresh", response_model=APIResponse[TokenResponse])
async def refresh(body: RefreshRequest, store: SchoolStore = Depends(get_store)):
    """Exchange a refresh token for a new access token."""
    result = refresh_access_token(store, body.refresh_token)
    return APIResponse(data=result, message="Token refreshed")


@router.get("/me", response_model=APIResponse[UserProfile])
async def get_me(
    user: CurrentUser = Depends(get_current_user),
    store: SchoolStore = Depends(get_store),
):
    """The logged-in operator plus the menu entries their role may see."""
    operator = store.select_one("operators", user.user_id)
    if operator is not None:
        return APIResponse(data=profile_of(operator))
    # Token is still valid but the account is gone: answer from the token
    return APIResponse(data=UserProfile(
        id=user.user_id,
        username=user.username,
        name=user.name,
        email=user.email,
        role=user.role,
        institution=user.institution,
        menu=visible_menu(user.role),
    ))


@router.post("/logout", response_model=APIResponse[None])
async def logout(
    user: CurrentUser = Depends(get_current_user),
    store: SchoolStore = Depends(get_store),
):
    """
    JWTs are stateless; the console simply forgets the token.
    The logout is still written to the activity log.
    """
    log_activity(store, "auth.logout", user_id=user.user_id, entity_type="operator", entity_id=user.user_id)
    return APIResponse(message="Logged out successfully")
