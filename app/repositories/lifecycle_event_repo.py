from __future__ import annotations

from typing import Any, Dict, List, Optional

from app.repositories.base import BaseRepository


class LifecycleEventRepository(BaseRepository):
    """
    Repository for eventos_ciclo_vida_contrato (append-only)
    """

    TABLE = "eventos_ciclo_vida_contrato"

    def __init__(self, sb):
        super().__init__(sb)

    def append(
        self,
        *,
        contract_id: str,
        event_type: str,
        event_date: str,
        description: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload = self._encode({
            "contrato_id": contract_id,
            "tipo_evento": event_type,
            "descricao": description,
            "data_evento": event_date,
            "criado_por_id": created_by,
        })

        res = self.sb.table(self.TABLE).insert(payload).execute()
        if not res.data:
            raise RuntimeError("Failed to record lifecycle event")
        return res.data[0]

    def list_by_contract(self, contract_id: str) -> List[Dict[str, Any]]:
        res = (
            self.sb
            .table(self.TABLE)
            .select("*")
            .eq("contrato_id", contract_id)
            .order("data_evento", desc=True)
            .execute()
        )
        return res.data or []
