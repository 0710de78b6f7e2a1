# app/services/validation/diff_reconciler.py
from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Optional, Tuple

from app.services.extraction.extraction_models import CANONICAL_SOURCE

# Fields whose draft-vs-canonical discrepancy is audited.
CRITICAL_FIELDS: Tuple[str, ...] = (
    "tipo_contrato",
    "data_inicio_vigencia",
    "data_termo",
    "tipo_renovacao",
    "renovacao_periodo_meses",
    "aviso_previo_nao_renovacao_dias",
    "prazos_denuncia_rescisao",
    "lei_aplicavel",
    "foro_arbitragem",
    "tratamento_dados_pessoais",
    "existe_dpa_anexo_rgpd",
    "transferencia_internacional",
    "classificacao_juridica",
)

DRAFT_AUDIT_SOURCE = "ai_extraction"

_MISSING = object()

FieldDiff = Dict[str, Dict[str, Any]]


def _normalize(value: Any) -> Any:
    # 30 and 30.0 are the same JSON number
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, dict):
        return {str(k): _normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    return value


def serialize(value: Any) -> Optional[str]:
    """
    Deterministic JSON form used for comparison.
    Returns None for an absent key (distinct from the string "null").
    """
    if value is _MISSING:
        return None
    return json.dumps(
        _normalize(value),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def compute_diff(
    draft: Optional[Mapping[str, Any]],
    canonical: Optional[Mapping[str, Any]],
    fields: Tuple[str, ...] = CRITICAL_FIELDS,
) -> FieldDiff:
    """
    Flat structural diff over the critical fields.

    A nested difference marks the whole top-level field as changed.
    Fields absent from both sides are skipped; a side that is absent is
    reported as None.
    """
    draft = draft or {}
    canonical = canonical or {}
    diff: FieldDiff = {}

    for field in fields:
        d_raw = draft.get(field, _MISSING)
        c_raw = canonical.get(field, _MISSING)
        d = serialize(d_raw)
        c = serialize(c_raw)

        if d == c:
            continue

        diff[field] = {
            "draft": None if d_raw is _MISSING else d_raw,
            "canonical": None if c_raw is _MISSING else c_raw,
        }

    return diff


def build_diff_audit(diff: FieldDiff) -> Dict[str, Any]:
    """old_data / new_data / metadata of a cca_validation_diff audit entry."""
    return {
        "old_data": {
            "source": DRAFT_AUDIT_SOURCE,
            "fields": {k: v["draft"] for k, v in diff.items()},
        },
        "new_data": {
            "source": CANONICAL_SOURCE,
            "fields": {k: v["canonical"] for k, v in diff.items()},
        },
        "metadata": {
            "diff_count": len(diff),
            "critical_fields": list(diff.keys()),
        },
    }


def canonical_summary(canonical: Mapping[str, Any]) -> Dict[str, Any]:
    """Denormalized summary columns stored next to the canonical field map."""
    return {
        "classificacao_juridica": canonical.get("classificacao_juridica"),
        "prazos": {
            "data_inicio": canonical.get("data_inicio_vigencia"),
            "data_termo": canonical.get("data_termo"),
            "renovacao": canonical.get("tipo_renovacao"),
            "periodo_meses": canonical.get("renovacao_periodo_meses"),
        },
        "denuncia_rescisao": {
            "aviso_previo": canonical.get("aviso_previo_nao_renovacao_dias"),
            "detalhes": canonical.get("prazos_denuncia_rescisao"),
        },
        "lei_aplicavel": canonical.get("lei_aplicavel"),
        "foro_arbitragem": canonical.get("foro_arbitragem"),
        "rgpd_summary": {
            "dados_pessoais": canonical.get("tratamento_dados_pessoais"),
            "dpa": canonical.get("existe_dpa_anexo_rgpd"),
            "transferencia": canonical.get("transferencia_internacional"),
            "paises": canonical.get("paises_transferencia"),
        },
    }
