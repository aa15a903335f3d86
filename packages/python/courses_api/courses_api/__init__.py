"""HTTP layer of the course platform: routers, dependencies and service wiring."""

from .account_router import router as account_router
from .auth_router import router as auth_router
from .catalog_router import router as catalog_router
from .config import ApiSettings, AppSettings
from .container import ServiceContainer
from .dependencies import get_container, get_current_user, get_optional_user
from .learning_router import router as learning_router
from .payment_router import router as payment_router
from .responses import envelope, error_response

routers = [
    catalog_router,
    learning_router,
    payment_router,
    auth_router,
    account_router,
]

__all__ = [
    "ApiSettings",
    "AppSettings",
    "ServiceContainer",
    "account_router",
    "auth_router",
    "catalog_router",
    "envelope",
    "error_response",
    "get_container",
    "get_current_user",
    "get_optional_user",
    "learning_router",
    "payment_router",
    "routers",
]
