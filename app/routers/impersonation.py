from typing import Optional

from fastapi import APIRouter, Depends, Header

from app.dependencies import get_impersonation_manager
from app.services.impersonation.impersonation_manager import ImpersonationSessionManager
from app.services.impersonation.impersonation_models import (
    ImpersonationResponse,
    StartOrgImpersonationRequest,
    StartUserImpersonationRequest,
)

router = APIRouter()


def _response(manager: ImpersonationSessionManager, success: bool) -> ImpersonationResponse:
    return ImpersonationResponse(
        success=success,
        state=manager.state,
        effective_organization_id=manager.get_effective_organization_id(),
        notices=manager.notices.items,
    )


@router.get("", response_model=ImpersonationResponse)
def get_impersonation(manager: ImpersonationSessionManager = Depends(get_impersonation_manager)):
    """Restored + verified state for this browser session."""
    return _response(manager, True)


@router.post("/org", response_model=ImpersonationResponse)
def start_org_impersonation(
    payload: StartOrgImpersonationRequest,
    manager: ImpersonationSessionManager = Depends(get_impersonation_manager),
    user_agent: Optional[str] = Header(default=None),
):
    ok = manager.start_org_impersonation(
        payload.org_id, payload.org_name, payload.reason, user_agent=user_agent
    )
    return _response(manager, ok)


@router.post("/user", response_model=ImpersonationResponse)
def start_user_impersonation(
    payload: StartUserImpersonationRequest,
    manager: ImpersonationSessionManager = Depends(get_impersonation_manager),
    user_agent: Optional[str] = Header(default=None),
):
    ok = manager.start_user_impersonation(
        payload.user_id, payload.user_name, payload.reason, user_agent=user_agent
    )
    return _response(manager, ok)


@router.post("/stop", response_model=ImpersonationResponse)
def stop_impersonation(manager: ImpersonationSessionManager = Depends(get_impersonation_manager)):
    ok = manager.stop_impersonation()
    return _response(manager, ok)


@router.post("/teardown", response_model=ImpersonationResponse)
def teardown_impersonation(manager: ImpersonationSessionManager = Depends(get_impersonation_manager)):
    manager.teardown()
    return _response(manager, True)
