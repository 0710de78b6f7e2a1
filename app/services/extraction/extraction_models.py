from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Open-ended field map: str | number | bool | null | list | nested map
JSONValue = Union[str, int, float, bool, None, List[Any], Dict[str, Any]]
FieldMap = Dict[str, JSONValue]

DRAFT_SOURCE = "lovable_ai"
CANONICAL_SOURCE = "cca_agent"


class ExtractionStatus(str, Enum):
    PROVISIONAL = "provisional"
    VALIDATED = "validated"
    NEEDS_REVIEW = "needs_review"
    FAILED = "failed"


class ValidationStatus(str, Enum):
    """contratos.validation_status (NONE is derived only, never stored)"""
    NONE = "none"
    DRAFT_ONLY = "draft_only"
    VALIDATING = "validating"
    VALIDATED = "validated"
    NEEDS_REVIEW = "needs_review"
    FAILED = "failed"


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    VALIDATED = "validated"
    NEEDS_REVIEW = "needs_review"
    FAILED = "failed"


# =========================================================
# ROWS
# =========================================================

class ContractExtraction(BaseModel):
    """1 row from contract_extractions"""
    model_config = ConfigDict(extra="allow")

    contrato_id: str
    source: str
    status: ExtractionStatus
    extraction_data: FieldMap = Field(default_factory=dict)
    confidence: Optional[float] = None
    evidence: List[Any] = Field(default_factory=list)
    review_notes: Optional[str] = None
    diff_from_draft: Optional[Dict[str, Dict[str, Any]]] = None
    error_message: Optional[str] = None

    @field_validator("extraction_data", mode="before")
    @classmethod
    def _null_map(cls, v):
        return {} if v is None else v

    @field_validator("evidence", mode="before")
    @classmethod
    def _null_list(cls, v):
        return [] if v is None else v


class ExtractionsView(BaseModel):
    contract_id: str
    draft: Optional[ContractExtraction] = None
    canonical: Optional[ContractExtraction] = None
    active: Optional[ContractExtraction] = None
    validation_status: ValidationStatus = ValidationStatus.NONE


# =========================================================
# CCA AGENT WIRE FORMAT
# =========================================================

class CCAValidationRequest(BaseModel):
    contract_id: str
    document_reference: Optional[str] = None
    extraction_draft: FieldMap = Field(default_factory=dict)
    client_id: Optional[str] = None
    matter_id: Optional[str] = None


class CCAValidationResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    extraction_canonical: FieldMap = Field(default_factory=dict)
    status: Optional[Literal["validated", "needs_review", "failed"]] = None
    confidence: Optional[float] = None
    review_notes: Optional[str] = None
    evidence: List[Any] = Field(default_factory=list)

    @property
    def final_status(self) -> ExtractionStatus:
        return ExtractionStatus(self.status or ExtractionStatus.VALIDATED.value)


# =========================================================
# API
# =========================================================

class ValidateContractRequest(BaseModel):
    """Body of POST /validate-contract (serverless-function shape)."""
    contract_id: Optional[str] = None
    extraction_draft: Optional[FieldMap] = None
    document_reference: Optional[str] = None
    client_id: Optional[str] = None
    matter_id: Optional[str] = None


class RevalidateRequest(BaseModel):
    extraction_draft: Optional[FieldMap] = None
    reuse_existing_draft: bool = False
    document_path: Optional[str] = None


class SaveDraftRequest(BaseModel):
    extraction_data: FieldMap
    confidence: Optional[float] = None
    evidence: List[Any] = Field(default_factory=list)


class ValidationOutcome(BaseModel):
    success: bool
    status: Optional[ExtractionStatus] = None
    has_diff: bool = False
    diff_fields: List[str] = Field(default_factory=list)
    confidence: Optional[float] = None
    error: Optional[str] = None
    details: Optional[str] = None
    fallback: Optional[Literal["draft"]] = None
