import pytest

from app.services.extraction.draft_store import (
    ExtractionDraftStore,
    active_extraction,
    derive_validation_status,
)
from app.services.extraction.extraction_models import ContractExtraction, ValidationStatus
from tests.fakes import CONTRACT_ID


def _extraction(source, status, data=None):
    return ContractExtraction(contrato_id=CONTRACT_ID, source=source, status=status, extraction_data=data or {})


@pytest.fixture
def store(sb):
    return ExtractionDraftStore(sb)


def test_save_draft_sets_draft_only(sb, store):
    draft = store.save_draft(CONTRACT_ID, {"data_termo": "2025-01-01"}, confidence=70, created_by="user-1")

    assert draft.source == "lovable_ai"
    assert draft.status.value == "provisional"
    assert draft.extraction_data == {"data_termo": "2025-01-01"}
    assert sb.rows("contratos")[0]["validation_status"] == "draft_only"


def test_save_draft_twice_keeps_one_row(sb, store):
    store.save_draft(CONTRACT_ID, {"a": 1})
    store.save_draft(CONTRACT_ID, {"a": 2})
    rows = sb.rows("contract_extractions")
    assert len(rows) == 1
    assert rows[0]["extraction_data"] == {"a": 2}


def test_view_prefers_canonical(sb, store):
    store.save_draft(CONTRACT_ID, {"data_termo": "2025-01-01"})
    sb.tables["contract_extractions"].append({
        "contrato_id": CONTRACT_ID,
        "source": "cca_agent",
        "status": "validated",
        "extraction_data": {"data_termo": "2025-06-01"},
        "evidence": None,
        "created_at": "2026-01-02",
    })

    view = store.view(CONTRACT_ID)
    assert view.active.source == "cca_agent"
    assert view.canonical.evidence == []
    assert view.validation_status == ValidationStatus.VALIDATED
    assert len(store.list_extractions(CONTRACT_ID)) == 2


def test_view_without_any_extraction(store):
    view = store.view(CONTRACT_ID)
    assert view.active is None
    assert view.validation_status == ValidationStatus.NONE


def test_failed_canonical_shows_the_draft():
    draft = _extraction("lovable_ai", "provisional")
    canonical = _extraction("cca_agent", "failed")
    assert active_extraction(draft, canonical) is draft
    assert derive_validation_status(draft, canonical) == ValidationStatus.FAILED
    assert derive_validation_status(draft, None) == ValidationStatus.DRAFT_ONLY
    assert derive_validation_status(None, _extraction("cca_agent", "provisional")) == ValidationStatus.VALIDATING


def test_resolve_draft_for_revalidation(sb, store):
    store.save_draft(CONTRACT_ID, {"data_termo": "2025-01-01"})
    sb.tables["contract_extractions"].append({
        "contrato_id": CONTRACT_ID,
        "source": "cca_agent",
        "status": "needs_review",
        "extraction_data": {"data_termo": "2025-06-01"},
    })

    assert store.resolve_draft_for_revalidation(CONTRACT_ID) == {"data_termo": "2025-06-01"}
    assert store.resolve_draft_for_revalidation(CONTRACT_ID, reuse_existing_draft=True) == {
        "data_termo": "2025-01-01"
    }
    assert store.resolve_draft_for_revalidation("other") == {}
