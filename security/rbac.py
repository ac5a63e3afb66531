from functools import wraps
from typing import Optional

from flask import g

from services.errors import Forbidden, Unauthorized

CUSTOMER = "CUSTOMER"
ADMIN = "ADMIN"
ROLE_NAMES = (CUSTOMER, ADMIN)


def has_role(role_name: str) -> bool:
    user = getattr(g, "user", None)
    return bool(user) and user.has_role(role_name)


def owner_scope() -> Optional[int]:
    """user id to filter owned rows by; None lets an admin see every row."""
    if has_role(ADMIN):
        return None
    return g.user.id


def require_roles(*role_names: str):
    """
    Usage: @require_roles(ADMIN)
    """
    wanted = set(role_names)

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                raise Unauthorized("Authentication required")
            if not wanted.intersection(r.name for r in user.roles):
                raise Forbidden("Forbidden")
            return fn(*args, **kwargs)
        return wrapper
    return decorator


require_admin = require_roles(ADMIN)
