"""
Role and permission lookup.
"""

from typing import Dict, List, Tuple

ROLE_PERMISSIONS: Dict[str, List[str]] = {
    "user": ["read", "write"],
    "viewer": ["read"],
    "admin": ["read", "write", "admin"],
}

DEFAULT_ROLE = "user"


def permissions_for_role(role_name: str) -> List[str]:
    return list(ROLE_PERMISSIONS.get(role_name, []))


def get_user_permissions(user_id: str) -> Tuple[str, List[str]]:
    """
    Return (role_name, permissions) for a user.

    Every user currently holds the default role; there is no per-user role
    store yet.
    """
    return DEFAULT_ROLE, permissions_for_role(DEFAULT_ROLE)
