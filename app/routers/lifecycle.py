from typing import Optional

from fastapi import APIRouter, Depends

from app.core.auth import optional_user_id
from app.services.lifecycle.lifecycle_models import (
    LifecycleEventResult,
    LifecycleView,
    RecordEventRequest,
    TransitionRequest,
)
from app.services.lifecycle.lifecycle_service import LifecycleService
from app.dependencies import get_lifecycle_service
from app.services.policy.registry import PolicyRegistry

router = APIRouter()


@router.get("/lifecycle/policy")
def get_lifecycle_policy():
    return PolicyRegistry.get().as_dict()


@router.get("/contracts/{contract_id}/lifecycle", response_model=LifecycleView)
def get_contract_lifecycle(
    contract_id: str,
    service: LifecycleService = Depends(get_lifecycle_service),
):
    """
    Current state + what the UI may offer next
    - valid_events: events the timeline dialog may record
    - allowed_targets: explicit transitions
    """
    return service.view(contract_id)


@router.get("/contracts/{contract_id}/events")
def list_contract_events(
    contract_id: str,
    service: LifecycleService = Depends(get_lifecycle_service),
):
    return {
        "contract_id": contract_id,
        "events": [e.model_dump() for e in service.list_events(contract_id)],
    }


@router.post("/contracts/{contract_id}/events", response_model=LifecycleEventResult, status_code=201)
def record_contract_event(
    contract_id: str,
    payload: RecordEventRequest,
    service: LifecycleService = Depends(get_lifecycle_service),
    actor_id: Optional[str] = Depends(optional_user_id),
):
    return service.record_event(
        contract_id,
        payload.event_type,
        description=payload.description,
        event_date=payload.event_date,
        created_by=actor_id,
    )


@router.post("/contracts/{contract_id}/transition")
def transition_contract(
    contract_id: str,
    payload: TransitionRequest,
    service: LifecycleService = Depends(get_lifecycle_service),
):
    state = service.transition(contract_id, payload.target)
    return {"contract_id": contract_id, "state": state.value}
