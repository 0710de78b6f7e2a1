from __future__ import annotations

from typing import Any, Dict, List, Optional

from app.repositories.base import BaseRepository


class ExtractionRepository(BaseRepository):
    """
    Repository for contract_extractions

    One row per (contrato_id, source). Rows are only ever written by
    upsert on that key, so re-validation overwrites the previous attempt.
    """

    TABLE = "contract_extractions"
    CONFLICT_KEY = "contrato_id,source"

    def __init__(self, sb):
        super().__init__(sb)

    def upsert(self, *, contract_id: str, source: str, fields: Dict[str, Any]) -> Optional[dict]:
        payload = self._encode({**fields, "contrato_id": contract_id, "source": source})

        res = (
            self.sb
            .table(self.TABLE)
            .upsert(payload, on_conflict=self.CONFLICT_KEY)
            .execute()
        )
        return res.data[0] if res.data else None

    def get_by_source(self, contract_id: str, source: str) -> Optional[dict]:
        res = (
            self.sb
            .table(self.TABLE)
            .select("*")
            .eq("contrato_id", contract_id)
            .eq("source", source)
            .limit(1)
            .execute()
        )
        return res.data[0] if res.data else None

    def list_by_contract(self, contract_id: str) -> List[dict]:
        res = (
            self.sb
            .table(self.TABLE)
            .select("*")
            .eq("contrato_id", contract_id)
            .order("created_at", desc=True)
            .execute()
        )
        return res.data or []
