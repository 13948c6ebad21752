# ============================================================
# sppbilling/services/auth_service.py
#
# Operator login, token refresh and the role → menu mapping
# the console's sidebar is built from.
# ============================================================

from typing import List, Optional
import logging

from fastapi import HTTPException, status

from sppbilling.core import errors
from sppbilling.core.config import settings
from sppbilling.core.security import (
    TokenData, create_access_token, create_refresh_token,
    hash_password, verify_password, verify_refresh_token,
)
from sppbilling.core.store import SchoolStore
from sppbilling.core.time import utc_now
from sppbilling.models.operator import Operator, OperatorRole
from sppbilling.schemas.auth import LoginRequest, MenuEntry, TokenResponse, UserProfile
from sppbilling.services.activity_service import log_activity

logger = logging.getLogger(__name__)


# ── Menu per role ────────────────────────────────────────────
# Every operator sees the day-to-day screens; master data is admin-only.
_COMMON_MENU = [
    MenuEntry(key="dashboard", label="Dashboard",       path="/"),
    MenuEntry(key="classes",   label="Kelas",           path="/classes"),
    MenuEntry(key="billing",   label="Tagihan",         path="/billing"),
    MenuEntry(key="students",  label="Siswa",           path="/students"),
    MenuEntry(key="payments",  label="Pembayaran",      path="/payments"),
    MenuEntry(key="reports",   label="Laporan",         path="/reports"),
]
_ADMIN_MENU = [
    MenuEntry(key="academic-years", label="Tahun Ajaran", path="/academic-years"),
    MenuEntry(key="institutions",   label="Institusi",    path="/institutions"),
    MenuEntry(key="settings",       label="Pengaturan",   path="/settings"),
]


def visible_menu(role: str) -> List[MenuEntry]:
    if role == OperatorRole.admin.value:
        return _COMMON_MENU + _ADMIN_MENU
    return list(_COMMON_MENU)


# ── Operators ────────────────────────────────────────────────
def create_operator(
    store: SchoolStore,
    username: str,
    password: str,
    name: str,
    role: OperatorRole,
    institution: str = "",
    email: str = "",
) -> Operator:
    username = username.strip().lower()
    if store.exists("operators", username=username):
        raise errors.Conflict(f"Username '{username}' is already taken.")
    operator = store.insert("operators", Operator(
        id=store.new_id(),
        username=username,
        name=name,
        role=role,
        institution=institution,
        email=email,
        password_hash=hash_password(password),
    ))
    logger.info(f"Operator {username} ({OperatorRole(role).value}) created")
    return operator


def find_operator(store: SchoolStore, username: str) -> Optional[Operator]:
    matches = store.select("operators", username=username.strip().lower())
    return matches[0] if matches else None


def profile_of(operator: Operator) -> UserProfile:
    return UserProfile(
        id=operator.id,
        username=operator.username,
        name=operator.name,
        email=operator.email,
        role=operator.role.value,
        institution=operator.institution,
        last_login=operator.last_login,
        menu=visible_menu(operator.role.value),
    )


def _issue_tokens(operator: Operator) -> TokenResponse:
    token_data = TokenData(
        user_id=operator.id,
        username=operator.username,
        role=operator.role.value,
        name=operator.name,
        institution=operator.institution,
        email=operator.email,
    )
    return TokenResponse(
        access_token=create_access_token(token_data),
        refresh_token=create_refresh_token(operator.id),
        expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=profile_of(operator),
    )


# ── Login / refresh ──────────────────────────────────────────
def login_user(store: SchoolStore, request: LoginRequest) -> TokenResponse:
    operator = find_operator(store, request.username)

    # Same message for unknown user and wrong password
    if operator is None or not verify_password(request.password, operator.password_hash):
        logger.warning(f"Login failed for {request.username}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )
    if not operator.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Your account is inactive. Contact the administrator.",
        )

    operator = store.update("operators", operator.id, last_login=utc_now())
    log_activity(
        store, "auth.login", user_id=operator.id,
        entity_type="operator", entity_id=operator.id,
        metadata={"username": operator.username, "role": operator.role.value},
    )
    return _issue_tokens(operator)


def refresh_access_token(store: SchoolStore, refresh_token_str: str) -> TokenResponse:
    try:
        operator_id = verify_refresh_token(refresh_token_str)
    except HTTPException:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token. Please log in again.",
        )

    operator = store.select_one("operators", operator_id)
    if operator is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if not operator.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Your account is inactive. Contact the administrator.",
        )
    return _issue_tokens(operator)
