"""FastAPI dependencies resolving the service container and the current user."""

from __future__ import annotations

from typing import Optional

from accounts import User
from domain_errors import AuthenticationRequired
from fastapi import Depends, Request

from .container import ServiceContainer


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def _session_token(request: Request, container: ServiceContainer) -> Optional[str]:
    token = request.cookies.get(container.settings.api.session_cookie)
    if token:
        return token
    header = request.headers.get("authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value:
        return value.strip()
    return None


async def get_current_user(
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> User:
    """
    Resolve the logged-in user from the session cookie (or a bearer token).

    The user is cached on the request state so several dependencies can reuse it.
    """

    cached = getattr(request.state, "user", None)
    if cached is not None:
        return cached

    user = await container.auth.current_user(_session_token(request, container))
    request.state.user = user
    return user


async def get_optional_user(
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> Optional[User]:
    """Same as ``get_current_user`` but returns None for anonymous requests."""

    if _session_token(request, container) is None:
        return None
    try:
        return await get_current_user(request, container)
    except AuthenticationRequired:
        return None
