# ============================================================
# sppbilling/core/security.py
#
# LEARNING NOTE: This file is the heart of how we protect
# every endpoint. It handles four things:
#
# 1. Password hashing: operators' passwords are stored only
#    as salted pbkdf2_sha256 hashes (passlib). The plain text
#    never reaches the store.
#
# 2. JWT creation: when an operator logs in, we issue a token
#    that contains their id, role and display name.
#
# 3. JWT verification: get_current_user() runs on protected
#    endpoints via Depends(). Missing/invalid token → 401.
#
# 4. Role guards: require_roles() checks what the operator
#    may do. Wrong role → 403.
#
# How it flows:
#   Request → get_current_user() verifies JWT
#           → returns CurrentUser (has role, name)
#           → endpoint function receives it as a parameter
#           → optional require_roles() checks role
# ============================================================

from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from sppbilling.core.config import settings
from sppbilling.models.operator import ALL_ROLES, OperatorRole

# Reads: Authorization: Bearer <token>
bearer_scheme = HTTPBearer()

# pbkdf2_sha256 salts every hash itself; no length limit on input
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


# ── Passwords ────────────────────────────────────────────────
def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(plain_password, password_hash)


# ── Token payload model ──────────────────────────────────────
class TokenData(BaseModel):
    """What we embed inside the access JWT."""
    user_id: str
    username: str
    role: str                   # admin | kasir1 | kasir2
    name: str
    institution: str = ""
    email: str = ""


class CurrentUser(BaseModel):
    """Available in every protected endpoint via Depends."""
    user_id: str
    username: str
    role: str
    name: str
    institution: str = ""
    email: str = ""


# ── Token creation ───────────────────────────────────────────
def create_access_token(data: TokenData) -> str:
    """
    Signed JWT issued after a successful login.
    Valid for JWT_ACCESS_TOKEN_EXPIRE_MINUTES (one school day by default).
    """
    now = datetime.now(timezone.utc)
    payload = {
        **data.model_dump(),
        "exp": now + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES),
        "iat": now,
        "type": "access",
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_refresh_token(user_id: str) -> str:
    """
    Refresh token lives longer (JWT_REFRESH_TOKEN_EXPIRE_DAYS).
    Used to issue a new access token without re-login.
    """
    expire = datetime.now(timezone.utc) + timedelta(days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS)
    payload = {
        "user_id": user_id,
        "exp": expire,
        "type": "refresh",
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


# ── Token verification ───────────────────────────────────────
def _decode(token: str, expected_type: str) -> dict:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError:
        raise credentials_exception
    if payload.get("type") != expected_type:
        raise credentials_exception
    return payload


def verify_token(token: str) -> TokenData:
    """Decode and verify an ACCESS token. Raises HTTPException(401) if invalid."""
    return TokenData(**_decode(token, "access"))


def verify_refresh_token(token: str) -> str:
    """Decode a REFRESH token and return the operator id it was issued to."""
    return _decode(token, "refresh")["user_id"]


# ── FastAPI dependency: get current user ─────────────────────
async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> CurrentUser:
    """
    LEARNING NOTE: This is a FastAPI 'dependency'.
    Add it to any endpoint like this:
        async def my_endpoint(user: CurrentUser = Depends(get_current_user)):

    If the token is missing/invalid → 401 returned automatically.
    """
    token_data = verify_token(credentials.credentials)
    return CurrentUser(**token_data.model_dump())


# ── Role guard factory ───────────────────────────────────────
def require_roles(*allowed_roles: str):
    """
    Dependency factory. Call it with the roles you want to allow:

        @router.post("/academic-years")
        async def create_year(user: CurrentUser = Depends(require_roles("admin"))):

    A cashier calling an admin-only route → 403 Forbidden.
    """
    async def check_role(
        current_user: CurrentUser = Depends(get_current_user)
    ) -> CurrentUser:
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {' or '.join(allowed_roles)}",
            )
        return current_user
    return check_role


# Shorthands used by the endpoint modules
admin_only = require_roles(OperatorRole.admin.value)
any_operator = require_roles(*ALL_ROLES)
