"""
Session management for the supagrid data service.

This module handles access token creation and validation.
"""

from .jwt import (
    issue_access_token,
    verify_access,
)

__all__ = [
    "issue_access_token",
    "verify_access",
]
