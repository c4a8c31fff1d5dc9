"""
Middleware components for the UpdateHub backend.

This module provides:
- AdminContext: Dataclass representing the authenticated operator
- require_admin: FastAPI dependency for operator endpoints
"""

from backend.src.middleware.auth import AdminContext, require_admin

__all__ = [
    "AdminContext",
    "require_admin",
]
