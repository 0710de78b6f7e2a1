from pydantic import BaseModel
from dotenv import load_dotenv
import os

load_dotenv()


def _csv(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


class Settings(BaseModel):
    # Supabase
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_SERVICE_ROLE_KEY: str = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
    SUPABASE_CONTRACTS_BUCKET: str = os.getenv("SUPABASE_CONTRACTS_BUCKET", "contracts")

    # CCA validation agent (unset URL => simulated validation)
    CCA_AGENT_URL: str = os.getenv("CCA_AGENT_URL", "")
    CCA_AGENT_KEY: str = os.getenv("CCA_AGENT_KEY", "")

    # HTTP
    CORS_ORIGINS: list[str] = _csv(
        os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:8080")
    )
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Lifecycle policy
    LIFECYCLE_POLICY_PATH: str = os.getenv("LIFECYCLE_POLICY_PATH", "")

    # Fixed pipeline constants (not read from env)
    CCA_AGENT_TIMEOUT_SECONDS: float = 120.0
    VALIDATION_POLL_SECONDS: float = 10.0
    SIGNED_URL_TTL_SECONDS: int = 3600
    IMPERSONATION_REASON_MIN_LENGTH: int = 5


settings = Settings()
