"""
Authentication module for the supagrid data service.

This module provides the bearer-token and role dependencies for the routes.
"""

from .require import (
    ADMIN_ROLE,
    READ_ROLE,
    WRITE_ROLE,
    require_auth,
    require_roles,
)

__all__ = [
    "ADMIN_ROLE",
    "READ_ROLE",
    "WRITE_ROLE",
    "require_auth",
    "require_roles",
]
