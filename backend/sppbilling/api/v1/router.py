# sppbilling/api/v1/router.py
# Registers all endpoint routers under /api/v1

import time
from collections import deque

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sppbilling.api.v1.endpoints import (
    auth,
    academic,
    institutions,
    students,
    fees,
    billing,
    reports,
)
from sppbilling.core.config import settings

api_router = APIRouter()

# In-memory brute-force guard for the login endpoint, by IP + username.
# The attempt buckets live on app.state (see main.create_app), one set per app.


def _trim_attempts(bucket: deque[float], now_ts: float, window_seconds: int) -> None:
    while bucket and (now_ts - bucket[0]) > window_seconds:
        bucket.popleft()


async def login_rate_limit_guard(request: Request) -> None:
    if request.method != "POST":
        return
    if request.url.path != f"{settings.API_PREFIX}/auth/login":
        return

    now_ts = time.time()
    window = settings.LOGIN_RATE_LIMIT_WINDOW_SECONDS
    ip_limit = settings.LOGIN_RATE_LIMIT_MAX_PER_IP
    username_limit = settings.LOGIN_RATE_LIMIT_MAX_PER_USERNAME
    ip_attempts = request.app.state.login_ip_attempts
    username_attempts = request.app.state.login_username_attempts

    client_ip = request.client.host if request.client else "unknown"
    ip_bucket = ip_attempts[client_ip]
    _trim_attempts(ip_bucket, now_ts, window)
    if len(ip_bucket) >= ip_limit:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts from this IP. Please try again later.",
        )

    try:
        payload = await request.json()
    except ValueError:
        payload = None
    username = ""
    if isinstance(payload, dict):
        username = str(payload.get("username", "")).strip().lower()

    if username:
        username_bucket = username_attempts[username]
        _trim_attempts(username_bucket, now_ts, window)
        if len(username_bucket) >= username_limit:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many login attempts for this account. Please try again later.",
            )
        username_bucket.append(now_ts)

    ip_bucket.append(now_ts)


api_router.include_router(auth.router, dependencies=[Depends(login_rate_limit_guard)])
api_router.include_router(academic.router)
api_router.include_router(institutions.router)
api_router.include_router(students.router)
api_router.include_router(fees.router)
api_router.include_router(billing.router)
api_router.include_router(reports.router)
