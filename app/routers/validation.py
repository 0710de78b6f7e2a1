import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse

from app.core.auth import optional_user_id
from app.core.errors import DispatchError, NotFoundError, StorageError
from app.dependencies import get_draft_store, get_orchestrator, get_sb
from app.repositories.contract_repo import ContractRepository
from app.repositories.storage_repo import StorageRepository
from app.services.extraction.draft_store import ExtractionDraftStore
from app.services.extraction.extraction_models import (
    ExtractionsView,
    RevalidateRequest,
    SaveDraftRequest,
    ValidateContractRequest,
    ValidationStatus,
)
from app.services.validation.validation_orchestrator import ValidationOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


def _ensure_contract(sb, contract_id: str) -> None:
    if not ContractRepository(sb).exists(contract_id):
        raise NotFoundError(f"Contract not found: {contract_id}")


# =========================================================
# Serverless-function shaped entry
# =========================================================
@router.post("/validate-contract")
async def validate_contract(
    payload: ValidateContractRequest,
    orchestrator: ValidationOrchestrator = Depends(get_orchestrator),
):
    if not payload.contract_id or payload.extraction_draft is None:
        return JSONResponse(
            status_code=400,
            content={"error": "contract_id and extraction_draft are required"},
        )

    outcome = await orchestrator.run_validation(
        payload.contract_id,
        payload.extraction_draft,
        document_reference=payload.document_reference,
        client_id=payload.client_id,
        matter_id=payload.matter_id,
    )
    return outcome.model_dump(mode="json", exclude_none=True)


# =========================================================
# Explicit re-validation
# =========================================================
@router.post("/contracts/{contract_id}/validate")
async def revalidate_contract(
    contract_id: str,
    payload: Optional[RevalidateRequest] = None,
    sb=Depends(get_sb),
    store: ExtractionDraftStore = Depends(get_draft_store),
    orchestrator: ValidationOrchestrator = Depends(get_orchestrator),
):
    payload = payload or RevalidateRequest()
    _ensure_contract(sb, contract_id)

    draft = payload.extraction_draft
    if draft is None:
        draft = store.resolve_draft_for_revalidation(contract_id, payload.reuse_existing_draft)

    document_reference = None
    if payload.document_path:
        document_reference = StorageRepository(sb).create_signed_url(storage_key=payload.document_path)

    outcome = await orchestrator.run_validation(contract_id, draft, document_reference)
    return outcome.model_dump(mode="json", exclude_none=True)


# =========================================================
# Extractions
# =========================================================
@router.post("/contracts/{contract_id}/extractions/draft", status_code=201)
def save_draft_extraction(
    contract_id: str,
    payload: SaveDraftRequest,
    sb=Depends(get_sb),
    store: ExtractionDraftStore = Depends(get_draft_store),
    actor_id: Optional[str] = Depends(optional_user_id),
):
    _ensure_contract(sb, contract_id)
    draft = store.save_draft(
        contract_id,
        payload.extraction_data,
        confidence=payload.confidence,
        evidence=payload.evidence,
        created_by=actor_id,
    )
    return draft.model_dump(mode="json")


@router.get("/contracts/{contract_id}/extractions", response_model=ExtractionsView)
def get_contract_extractions(
    contract_id: str,
    store: ExtractionDraftStore = Depends(get_draft_store),
):
    return store.view(contract_id)


# =========================================================
# Upload -> fire-and-forget validation
# =========================================================
@router.post("/contracts/{contract_id}/documents", status_code=202)
async def upload_contract_document(
    request: Request,
    contract_id: str,
    file: UploadFile = File(...),
    sb=Depends(get_sb),
    store: ExtractionDraftStore = Depends(get_draft_store),
):
    _ensure_contract(sb, contract_id)

    data = await file.read()
    filename = file.filename or "document.pdf"
    storage_key = f"{contract_id}/{filename}"
    storage = StorageRepository(sb)

    try:
        storage.upload_bytes(
            storage_key=storage_key,
            data=data,
            content_type=file.content_type or "application/pdf",
        )
    except StorageError as e:
        raise HTTPException(status_code=502, detail=str(e))

    ContractRepository(sb).set_validation_status(contract_id, ValidationStatus.VALIDATING.value)

    try:
        document_reference = storage.create_signed_url(storage_key=storage_key)
    except Exception as e:
        logger.warning("Signed URL failed contract=%s key=%s: %s", contract_id, storage_key, e)
        document_reference = None

    draft = store.get_draft(contract_id)
    status = ValidationStatus.VALIDATING
    scheduled = True
    try:
        request.app.state.dispatcher.submit(
            contract_id,
            dict(draft.extraction_data) if draft else {},
            document_reference,
        )
    except DispatchError as e:
        # no run exists to move the contract off "validating"
        logger.error("Validation not scheduled contract=%s: %s", contract_id, e)
        status = ValidationStatus.FAILED
        scheduled = False
        ContractRepository(sb).set_validation_status(contract_id, status.value)

    return {
        "contract_id": contract_id,
        "storage_key": storage_key,
        "validation_status": status.value,
        "validation_scheduled": scheduled,
    }


# =========================================================
# Job status watcher
# =========================================================
@router.post("/contracts/{contract_id}/validation-watch")
async def watch_validation(request: Request, contract_id: str):
    poller = await request.app.state.pollers.watch(contract_id)
    return {
        "contract_id": contract_id,
        "polling": poller.is_polling,
        "last_job_status": poller.last_status.value if poller.last_status else None,
    }


@router.delete("/contracts/{contract_id}/validation-watch")
def unwatch_validation(request: Request, contract_id: str):
    request.app.state.pollers.unwatch(contract_id)
    return {"contract_id": contract_id, "polling": False}
