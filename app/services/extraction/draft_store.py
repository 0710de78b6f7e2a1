from __future__ import annotations

import logging
from typing import Any, List, Optional

from app.repositories.contract_repo import ContractRepository
from app.repositories.extraction_repo import ExtractionRepository
from app.services.extraction.extraction_models import (
    CANONICAL_SOURCE,
    DRAFT_SOURCE,
    ContractExtraction,
    ExtractionStatus,
    ExtractionsView,
    FieldMap,
    ValidationStatus,
)

logger = logging.getLogger(__name__)

_CANONICAL_TO_VALIDATION = {
    ExtractionStatus.VALIDATED: ValidationStatus.VALIDATED,
    ExtractionStatus.NEEDS_REVIEW: ValidationStatus.NEEDS_REVIEW,
    ExtractionStatus.FAILED: ValidationStatus.FAILED,
    ExtractionStatus.PROVISIONAL: ValidationStatus.VALIDATING,
}


def active_extraction(
    draft: Optional[ContractExtraction],
    canonical: Optional[ContractExtraction],
) -> Optional[ContractExtraction]:
    """Canonical wins unless it is missing or failed; then the draft stays visible."""
    if canonical is not None and canonical.status != ExtractionStatus.FAILED:
        return canonical
    return draft


def derive_validation_status(
    draft: Optional[ContractExtraction],
    canonical: Optional[ContractExtraction],
) -> ValidationStatus:
    if canonical is not None:
        return _CANONICAL_TO_VALIDATION[canonical.status]
    if draft is not None:
        return ValidationStatus.DRAFT_ONLY
    return ValidationStatus.NONE


class ExtractionDraftStore:
    """
    AI draft extraction (source=lovable_ai) next to the canonical one
    (source=cca_agent). The draft is informal; it is never overwritten by
    validation, only superseded for display.
    """

    def __init__(self, sb):
        self.sb = sb
        self.extractions = ExtractionRepository(sb)
        self.contracts = ContractRepository(sb)

    # -------------------------------------------------
    # Write
    # -------------------------------------------------
    def save_draft(
        self,
        contract_id: str,
        extraction_data: FieldMap,
        confidence: Optional[float] = None,
        evidence: Optional[List[Any]] = None,
        created_by: Optional[str] = None,
    ) -> ContractExtraction:
        row = self.extractions.upsert(
            contract_id=contract_id,
            source=DRAFT_SOURCE,
            fields={
                "status": ExtractionStatus.PROVISIONAL.value,
                "extraction_data": extraction_data,
                "confidence": confidence,
                "evidence": evidence or [],
                "created_by_id": created_by,
            },
        )
        if not row:
            raise RuntimeError("Failed to save draft extraction")
        self.contracts.set_validation_status(contract_id, ValidationStatus.DRAFT_ONLY.value)
        logger.info("Draft extraction saved contract=%s fields=%d", contract_id, len(extraction_data))
        return ContractExtraction(**row)

    # -------------------------------------------------
    # Read
    # -------------------------------------------------
    def _get(self, contract_id: str, source: str) -> Optional[ContractExtraction]:
        row = self.extractions.get_by_source(contract_id, source)
        return ContractExtraction(**row) if row else None

    def get_draft(self, contract_id: str) -> Optional[ContractExtraction]:
        return self._get(contract_id, DRAFT_SOURCE)

    def get_canonical(self, contract_id: str) -> Optional[ContractExtraction]:
        return self._get(contract_id, CANONICAL_SOURCE)

    def list_extractions(self, contract_id: str) -> List[ContractExtraction]:
        return [ContractExtraction(**r) for r in self.extractions.list_by_contract(contract_id)]

    def view(self, contract_id: str) -> ExtractionsView:
        draft = self.get_draft(contract_id)
        canonical = self.get_canonical(contract_id)
        return ExtractionsView(
            contract_id=contract_id,
            draft=draft,
            canonical=canonical,
            active=active_extraction(draft, canonical),
            validation_status=derive_validation_status(draft, canonical),
        )

    def resolve_draft_for_revalidation(self, contract_id: str, reuse_existing_draft: bool = False) -> FieldMap:
        """
        Field map to send on an explicit re-validation: the stored draft when
        asked to reuse it, otherwise whatever is currently shown.
        """
        draft = self.get_draft(contract_id)
        if reuse_existing_draft and draft is not None:
            return dict(draft.extraction_data)

        active = active_extraction(draft, self.get_canonical(contract_id))
        return dict(active.extraction_data) if active is not None else {}
