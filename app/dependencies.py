from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from app.core.auth import optional_user_id
from app.services.extraction.draft_store import ExtractionDraftStore
from app.services.impersonation.impersonation_manager import ImpersonationSessionManager
from app.services.impersonation.impersonation_models import NoticeBuffer
from app.services.lifecycle.lifecycle_service import LifecycleService
from app.services.validation.validation_orchestrator import ValidationOrchestrator


def get_sb(request: Request):
    return request.state.sb


def get_lifecycle_service(sb=Depends(get_sb)) -> LifecycleService:
    return LifecycleService(sb)


def get_draft_store(sb=Depends(get_sb)) -> ExtractionDraftStore:
    return ExtractionDraftStore(sb)


def get_orchestrator(sb=Depends(get_sb)) -> ValidationOrchestrator:
    return ValidationOrchestrator(sb)


def get_browser_session_id(x_session_id: Optional[str] = Header(default=None)) -> str:
    if not x_session_id:
        raise HTTPException(status_code=400, detail="X-Session-Id header required")
    return x_session_id


def get_impersonation_manager(
    request: Request,
    session_id: str = Depends(get_browser_session_id),
    actor_id: Optional[str] = Depends(optional_user_id),
) -> ImpersonationSessionManager:
    """
    One manager per request, bound to the caller's browser session.
    State is rebuilt from the session store via restore().
    """
    state = request.app.state
    manager = ImpersonationSessionManager(
        request.state.sb,
        actor_id=actor_id,
        store=state.session_store.scoped(session_id),
        cache=state.tenant_caches.get(session_id),
        release_cache=lambda: state.tenant_caches.release(session_id),
        notices=NoticeBuffer(),
    )
    manager.restore()
    return manager
