from fastapi import APIRouter, Request

from app.core.config import settings
from app.services.policy.registry import PolicyRegistry

router = APIRouter()


@router.get("")
def health(request: Request):
    policy = PolicyRegistry.get()
    return {
        "status": "ok",
        "lifecycle_policy_version": policy.version,
        "cca_agent": "configured" if settings.CCA_AGENT_URL else "simulated",
        "pending_validations": request.app.state.dispatcher.pending,
    }
