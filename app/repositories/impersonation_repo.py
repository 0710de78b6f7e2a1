from __future__ import annotations

from typing import Any, Dict, Optional

from app.core.errors import PreconditionError
from app.repositories.base import BaseRepository, utc_now_iso


class ImpersonationSessionRepository(BaseRepository):
    """
    Repository for impersonation_sessions + the two RPCs that guard it:
    - is_platform_admin(_user_id)
    - expire_stale_impersonation_sessions()
    """

    TABLE = "impersonation_sessions"

    def __init__(self, sb):
        super().__init__(sb)

    # -------------------------------------------------
    # Write
    # -------------------------------------------------
    def create(
        self,
        *,
        real_user_id: str,
        reason: str,
        organization_id: Optional[str] = None,
        user_id: Optional[str] = None,
        user_name: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Dict[str, Any]:
        if bool(organization_id) == bool(user_id):
            raise PreconditionError("exactly one of organization_id / user_id is required")

        payload: Dict[str, Any] = {
            "real_user_id": real_user_id,
            "reason": reason,
            "user_agent": user_agent,
            "status": "active",
        }
        if organization_id:
            payload["impersonated_organization_id"] = organization_id
        else:
            payload["impersonated_user_id"] = user_id
            payload["impersonated_user_name"] = user_name

        res = self.sb.table(self.TABLE).insert(self._encode(payload)).execute()
        if not res.data:
            raise RuntimeError("Failed to create impersonation session")
        return res.data[0]

    def end(self, session_id: str) -> None:
        (
            self.sb
            .table(self.TABLE)
            .update({"ended_at": utc_now_iso(), "status": "ended"})
            .eq("id", session_id)
            .execute()
        )

    # -------------------------------------------------
    # Read
    # -------------------------------------------------
    def get_active(self, session_id: str) -> Optional[Dict[str, Any]]:
        res = (
            self.sb
            .table(self.TABLE)
            .select("id, status, real_user_id")
            .eq("id", session_id)
            .eq("status", "active")
            .limit(1)
            .execute()
        )
        return res.data[0] if res.data else None

    # -------------------------------------------------
    # RPC
    # -------------------------------------------------
    def expire_stale(self) -> None:
        self.sb.rpc("expire_stale_impersonation_sessions", {}).execute()

    def is_platform_admin(self, user_id: str) -> bool:
        res = self.sb.rpc("is_platform_admin", {"_user_id": user_id}).execute()
        return bool(res.data)
