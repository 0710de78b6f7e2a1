from __future__ import annotations

import logging
from typing import Optional

from app.repositories.audit_repo import AuditRepository
from app.repositories.base import utc_now_iso
from app.repositories.contract_repo import ContractRepository
from app.repositories.extraction_repo import ExtractionRepository
from app.services.extraction.extraction_models import (
    CANONICAL_SOURCE,
    CCAValidationRequest,
    CCAValidationResult,
    ExtractionStatus,
    FieldMap,
    ValidationOutcome,
    ValidationStatus,
)
from app.services.validation.cca_agent_client import CCAAgentClient, simulated_result
from app.services.validation.diff_reconciler import (
    FieldDiff,
    build_diff_audit,
    canonical_summary,
    compute_diff,
)

logger = logging.getLogger(__name__)

AUDIT_VALIDATION_FAILED = "cca_validation_failed"
AUDIT_VALIDATION_DIFF = "cca_validation_diff"


class ValidationOrchestrator:
    """
    Drives one contract through canonical validation.

    Flow (strictly sequential):
    1) contract -> validating, canonical row -> provisional (upsert)
    2) call CCA agent (or simulate when not configured)
    3) diff draft vs canonical on the critical fields
    4) persist canonical row + contract status
    5) audit the diff (best effort)

    Any failure ends with canonical=failed, contract=failed, an audit entry
    and a ValidationOutcome(success=False, fallback="draft"). Nothing is
    raised to the caller.
    """

    def __init__(self, sb, agent: Optional[CCAAgentClient] = None):
        self.sb = sb
        self.agent = agent or CCAAgentClient()
        self.contracts = ContractRepository(sb)
        self.extractions = ExtractionRepository(sb)
        self.audit = AuditRepository(sb)

    # =========================================================
    # ENTRY
    # =========================================================
    async def run_validation(
        self,
        contract_id: str,
        draft_extraction: FieldMap,
        document_reference: Optional[str] = None,
        client_id: Optional[str] = None,
        matter_id: Optional[str] = None,
    ) -> ValidationOutcome:
        logger.info("Starting validation contract=%s", contract_id)
        draft = draft_extraction or {}

        try:
            self._mark_validating(contract_id)

            result = await self._call_agent(
                CCAValidationRequest(
                    contract_id=contract_id,
                    document_reference=document_reference,
                    extraction_draft=draft,
                    client_id=client_id,
                    matter_id=matter_id,
                )
            )

            diff = compute_diff(draft, result.extraction_canonical)
            final_status = result.final_status

            self._persist_canonical(contract_id, result, diff)
            self.contracts.set_validation_status(contract_id, final_status.value)
        except Exception as e:
            logger.error("Validation failed contract=%s: %s", contract_id, e, exc_info=True)
            return self._fail(contract_id, str(e))

        if diff:
            self._audit_diff(contract_id, diff)

        logger.info(
            "Validation done contract=%s status=%s diffs=%d",
            contract_id, final_status.value, len(diff),
        )
        return ValidationOutcome(
            success=True,
            status=final_status,
            has_diff=bool(diff),
            diff_fields=list(diff.keys()),
            confidence=result.confidence,
        )

    # =========================================================
    # STEPS
    # =========================================================
    def _mark_validating(self, contract_id: str) -> None:
        self.contracts.set_validation_status(contract_id, ValidationStatus.VALIDATING.value)
        self.extractions.upsert(
            contract_id=contract_id,
            source=CANONICAL_SOURCE,
            fields={
                "status": ExtractionStatus.PROVISIONAL.value,
                "extraction_data": {},
                "job_started_at": utc_now_iso(),
            },
        )

    async def _call_agent(self, request: CCAValidationRequest) -> CCAValidationResult:
        if not self.agent.configured:
            logger.warning("CCA_AGENT_URL not set, simulating validation contract=%s", request.contract_id)
            return simulated_result(request.extraction_draft)
        return await self.agent.validate(request)

    def _persist_canonical(self, contract_id: str, result: CCAValidationResult, diff: FieldDiff) -> None:
        canonical = result.extraction_canonical
        self.extractions.upsert(
            contract_id=contract_id,
            source=CANONICAL_SOURCE,
            fields={
                "status": result.final_status.value,
                "extraction_data": canonical,
                "confidence": result.confidence,
                "evidence": result.evidence,
                "review_notes": result.review_notes,
                "diff_from_draft": diff or None,
                "error_message": None,
                **canonical_summary(canonical),
                "job_completed_at": utc_now_iso(),
            },
        )

    def _audit_diff(self, contract_id: str, diff: FieldDiff) -> None:
        try:
            self.audit.emit(
                action=AUDIT_VALIDATION_DIFF,
                table_name=ExtractionRepository.TABLE,
                record_id=contract_id,
                **build_diff_audit(diff),
            )
        except Exception as e:
            # audit trail is observability; canonical row is already committed
            logger.warning("Audit log insert failed contract=%s: %s", contract_id, e)

    def _fail(self, contract_id: str, message: str) -> ValidationOutcome:
        try:
            self.extractions.upsert(
                contract_id=contract_id,
                source=CANONICAL_SOURCE,
                fields={
                    "status": ExtractionStatus.FAILED.value,
                    "extraction_data": {},
                    "error_message": message,
                    "job_completed_at": utc_now_iso(),
                },
            )
            self.contracts.set_validation_status(contract_id, ValidationStatus.FAILED.value)
        except Exception as e:
            logger.error("Could not record validation failure contract=%s: %s", contract_id, e)

        try:
            self.audit.emit(
                action=AUDIT_VALIDATION_FAILED,
                table_name=ExtractionRepository.TABLE,
                record_id=contract_id,
                metadata={"error": message},
            )
        except Exception as e:
            logger.warning("Audit log insert failed contract=%s: %s", contract_id, e)

        return ValidationOutcome(
            success=False,
            error="CCA validation failed",
            details=message,
            fallback="draft",
        )
