from app.services.validation.diff_reconciler import (
    CRITICAL_FIELDS,
    build_diff_audit,
    canonical_summary,
    compute_diff,
    serialize,
)


def test_single_field_difference():
    diff = compute_diff({"data_termo": "2025-01-01"}, {"data_termo": "2025-06-01"})
    assert diff == {"data_termo": {"draft": "2025-01-01", "canonical": "2025-06-01"}}


def test_field_absent_on_both_sides_is_skipped():
    assert compute_diff({}, {}) == {}
    assert compute_diff(None, None) == {}


def test_field_missing_on_one_side_reports_null():
    assert compute_diff({"lei_aplicavel": "PT"}, {}) == {
        "lei_aplicavel": {"draft": "PT", "canonical": None}
    }
    assert compute_diff({}, {"foro_arbitragem": "Lisboa"}) == {
        "foro_arbitragem": {"draft": None, "canonical": "Lisboa"}
    }


def test_structural_equality_for_nested_values():
    draft = {"prazos_denuncia_rescisao": {"b": [1, 2], "a": "x"}}
    canonical = {"prazos_denuncia_rescisao": {"a": "x", "b": [1, 2]}}
    assert compute_diff(draft, canonical) == {}


def test_nested_difference_marks_whole_field():
    diff = compute_diff(
        {"prazos_denuncia_rescisao": {"a": 1, "b": 2}},
        {"prazos_denuncia_rescisao": {"a": 1, "b": 3}},
    )
    assert list(diff) == ["prazos_denuncia_rescisao"]


def test_integral_float_equals_int():
    assert compute_diff({"renovacao_periodo_meses": 12}, {"renovacao_periodo_meses": 12.0}) == {}
    assert compute_diff({"renovacao_periodo_meses": 12}, {"renovacao_periodo_meses": 12.5}) != {}


def test_type_change_is_a_difference():
    diff = compute_diff({"existe_dpa_anexo_rgpd": "true"}, {"existe_dpa_anexo_rgpd": True})
    assert diff["existe_dpa_anexo_rgpd"] == {"draft": "true", "canonical": True}


def test_explicit_null_against_missing_is_a_difference():
    diff = compute_diff({"data_termo": None}, {})
    assert "data_termo" in diff


def test_non_critical_fields_are_ignored():
    assert "nome_contraparte" not in CRITICAL_FIELDS
    assert compute_diff({"nome_contraparte": "A"}, {"nome_contraparte": "B"}) == {}


def test_diff_is_deterministic():
    draft = {f: i for i, f in enumerate(CRITICAL_FIELDS)}
    canonical = {f: i + 1 for i, f in enumerate(CRITICAL_FIELDS)}
    first = compute_diff(draft, canonical)
    assert compute_diff(draft, canonical) == first
    assert list(first) == list(CRITICAL_FIELDS)


def test_serialize_is_key_order_independent():
    assert serialize({"a": 1, "b": 2}) == serialize({"b": 2, "a": 1})
    assert serialize(None) == "null"


def test_build_diff_audit():
    audit = build_diff_audit({"data_termo": {"draft": "2025-01-01", "canonical": "2025-06-01"}})
    assert audit["old_data"] == {"source": "ai_extraction", "fields": {"data_termo": "2025-01-01"}}
    assert audit["new_data"] == {"source": "cca_agent", "fields": {"data_termo": "2025-06-01"}}
    assert audit["metadata"] == {"diff_count": 1, "critical_fields": ["data_termo"]}


def test_canonical_summary_groups_fields():
    summary = canonical_summary({"data_termo": "2030-01-01", "existe_dpa_anexo_rgpd": True})
    assert summary["prazos"]["data_termo"] == "2030-01-01"
    assert summary["rgpd_summary"]["dpa"] is True
    assert summary["lei_aplicavel"] is None
