from app.repositories.base import BaseRepository


class ContractAIJobRepository(BaseRepository):
    """
    Read side of contract_ai_jobs. Jobs are written by the external agent.
    """

    TABLE = "contract_ai_jobs"

    def __init__(self, sb):
        super().__init__(sb)

    def latest_for_contract(self, contract_id: str, columns: str = "status") -> dict | None:
        res = (
            self.sb
            .table(self.TABLE)
            .select(columns)
            .eq("contract_id", contract_id)
            .order("started_at", desc=True)
            .limit(1)
            .execute()
        )
        return res.data[0] if res.data else None
