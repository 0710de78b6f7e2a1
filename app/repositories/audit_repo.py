from app.repositories.base import BaseRepository, SYSTEM_USER_ID
from typing import List, Optional
from fastapi.encoders import jsonable_encoder


class AuditRepository(BaseRepository):

    TABLE = "audit_logs"

    def __init__(self, sb):
        super().__init__(sb)

    # -------------------------
    # Write Audit Entry
    # -------------------------
    def emit(
        self,
        *,
        action: str,
        table_name: str,
        record_id: str,
        user_id: Optional[str] = None,
        old_data: Optional[dict] = None,
        new_data: Optional[dict] = None,
        metadata: Optional[dict] = None,
    ) -> dict | None:
        res = self.sb.table(self.TABLE).insert(
            {
                "action": action,
                "table_name": table_name,
                "record_id": record_id,
                "user_id": user_id or SYSTEM_USER_ID,
                "old_data": jsonable_encoder(old_data) if old_data is not None else None,
                "new_data": jsonable_encoder(new_data) if new_data is not None else None,
                "metadata": jsonable_encoder(metadata or {}),
            }
        ).execute()

        return res.data[0] if res.data else None

    # -------------------------
    # Read – trail by record
    # -------------------------
    def list_by_record(self, record_id: str, action: Optional[str] = None) -> List[dict]:
        q = (
            self.sb
            .table(self.TABLE)
            .select("*")
            .eq("record_id", record_id)
        )
        if action:
            q = q.eq("action", action)
        res = q.order("created_at", desc=True).execute()
        return res.data or []
