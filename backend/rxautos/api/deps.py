"""Shared API dependencies: single import point for all routers.

Re-exports database session, authentication and plan gating dependencies so
that router modules can import everything they need from one place::

    from rxautos.api.deps import get_db, get_current_active_user
"""

from rxautos.auth.dependencies import (
    get_current_active_user,
    get_current_admin,
    get_current_user,
)
from rxautos.billing.dependencies import (
    check_featured_limit,
    check_vehicle_limit,
    get_plan_config,
    require_entitlement,
)
from rxautos.database import get_db

__all__ = [
    "get_db",
    "get_current_user",
    "get_current_active_user",
    "get_current_admin",
    "get_plan_config",
    "require_entitlement",
    "check_vehicle_limit",
    "check_featured_limit",
]
