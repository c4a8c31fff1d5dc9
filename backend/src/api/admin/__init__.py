"""
Admin API module.

Contains operator endpoints, all guarded by require_admin:
- Upload handshake, file registration, release deletion, rollout statistics
- API key issuance
- Orphaned object cleanup
"""

from backend.src.api.admin.cleanup import router as cleanup_router
from backend.src.api.admin.keys import router as keys_router
from backend.src.api.admin.releases import router as releases_router

__all__ = ["cleanup_router", "keys_router", "releases_router"]
