# app/repositories/contract_repo.py

from app.repositories.base import BaseRepository, utc_now_iso
from typing import Dict, Any, Optional


class ContractRepository(BaseRepository):
    """
    Repository for contratos.

    Only the two columns this service mutates are written here:
    - estado_contrato (lifecycle state)
    - validation_status (validation pipeline)
    """

    TABLE = "contratos"

    def __init__(self, sb):
        super().__init__(sb)

    # =====================================================
    # Read
    # =====================================================
    def get(self, contract_id: str) -> Optional[Dict[str, Any]]:
        res = (
            self.sb
            .table(self.TABLE)
            .select("*")
            .eq("id", contract_id)
            .limit(1)
            .execute()
        )
        return res.data[0] if res.data else None

    def exists(self, contract_id: str) -> bool:
        res = (
            self.sb
            .table(self.TABLE)
            .select("id")
            .eq("id", contract_id)
            .limit(1)
            .execute()
        )
        return bool(res.data)

    # =====================================================
    # Write
    # =====================================================
    def update_state(self, contract_id: str, state: str) -> Optional[Dict[str, Any]]:
        res = (
            self.sb
            .table(self.TABLE)
            .update({"estado_contrato": state, "updated_at": utc_now_iso()})
            .eq("id", contract_id)
            .execute()
        )
        return res.data[0] if res.data else None

    def set_validation_status(self, contract_id: str, status: str) -> None:
        """
        Idempotent "set to X" write. Upload handler, orchestrator and poller
        all write through here.
        """
        (
            self.sb
            .table(self.TABLE)
            .update({"validation_status": status})
            .eq("id", contract_id)
            .execute()
        )
