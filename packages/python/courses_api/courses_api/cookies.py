from __future__ import annotations

from datetime import timedelta

from fastapi import Response

from .container import ServiceContainer


def set_token_cookie(
    response: Response,
    container: ServiceContainer,
    name: str,
    token: str,
    max_age: timedelta,
) -> None:
    response.set_cookie(
        key=name,
        value=token,
        max_age=int(max_age.total_seconds()),
        httponly=True,
        secure=container.settings.api.secure_cookies,
        samesite="lax",
        path="/",
    )


def set_session_cookie(response: Response, container: ServiceContainer, token: str) -> None:
    set_token_cookie(
        response,
        container,
        container.settings.api.session_cookie,
        token,
        container.settings.sessions.session_ttl,
    )


def clear_cookie(response: Response, container: ServiceContainer, name: str) -> None:
    response.delete_cookie(
        key=name,
        path="/",
        httponly=True,
        secure=container.settings.api.secure_cookies,
        samesite="lax",
    )
