from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from .settings import Settings

_security = HTTPBasic(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Basic"},
    )


# PUBLIC_INTERFACE
def get_function_access_dependency(settings: Settings):
    """
    Return the dependency guarding webhook and executable routes.

    With ENABLE_BASIC_AUTH off every caller is allowed, matching a
    development deployment. With it on, callers must present the configured
    BASIC_AUTH_USERNAME/BASIC_AUTH_PASSWORD or get 401.
    """
    if not settings.enable_basic_auth:
        async def _allow_all() -> None:
            return None

        return _allow_all

    expected_user: Optional[str] = settings.basic_auth_username
    expected_pass: Optional[str] = settings.basic_auth_password

    async def _enforce(creds: Optional[HTTPBasicCredentials] = Depends(_security)) -> None:
        if creds is None:
            raise _unauthorized("Not authenticated")
        if expected_user is None or expected_pass is None:
            raise _unauthorized("Server authentication not configured")
        user_ok = secrets.compare_digest(creds.username.encode(), expected_user.encode())
        pass_ok = secrets.compare_digest(creds.password.encode(), expected_pass.encode())
        if not (user_ok and pass_ok):
            raise _unauthorized("Invalid authentication credentials")

    return _enforce
