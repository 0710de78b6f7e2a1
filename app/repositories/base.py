from abc import ABC
from datetime import datetime, timezone
from fastapi.encoders import jsonable_encoder

# actor recorded on rows written by automated jobs
SYSTEM_USER_ID = "00000000-0000-0000-0000-000000000000"


class BaseRepository(ABC):
    """
    One repository per Supabase table. Subclasses set TABLE and build
    their own PostgREST chains on self.sb.
    """

    TABLE: str = ""

    def __init__(self, sb):
        self.sb = sb

    def _encode(self, payload: dict) -> dict:
        """
        Field maps coming from the agent or the UI may carry dates,
        Decimals or pydantic models; PostgREST only takes plain JSON.
        """
        return jsonable_encoder(payload)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
