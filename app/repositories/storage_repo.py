from app.repositories.base import BaseRepository
from app.core.config import settings
from app.core.errors import StorageError


class StorageRepository(BaseRepository):
    """Contract documents in the Supabase storage bucket."""

    def __init__(self, sb, bucket: str | None = None):
        super().__init__(sb)
        self.bucket = bucket or settings.SUPABASE_CONTRACTS_BUCKET

    def upload_bytes(self, *, storage_key: str, data: bytes, content_type: str) -> dict:
        try:
            res = self.sb.storage.from_(self.bucket).upload(
                path=storage_key,
                file=data,
                file_options={"content-type": content_type, "upsert": "true"},
            )
            return {"bucket": self.bucket, "path": storage_key, "result": getattr(res, "data", None) or res}
        except Exception as e:
            raise StorageError(f"Storage upload failed: {e}", e) from e

    def create_signed_url(self, *, storage_key: str, expires_in: int | None = None) -> str | None:
        """
        Signed URL handed to the CCA agent as document_reference.
        Returns None when the bucket refuses (document stays unreferenced).
        """
        ttl = expires_in or settings.SIGNED_URL_TTL_SECONDS
        res = self.sb.storage.from_(self.bucket).create_signed_url(storage_key, ttl)
        if not isinstance(res, dict):
            return None
        return res.get("signedURL") or res.get("signedUrl")
