from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# =========================================================
# ENUMS
# =========================================================

class ContractState(str, Enum):
    """
    Lifecycle state. Values are the API names; `db_value` is what
    contratos.estado_contrato stores.
    """

    DRAFT = "draft"
    IN_REVIEW = "in_review"
    IN_APPROVAL = "in_approval"
    SENT_FOR_SIGNATURE = "sent_for_signature"
    ACTIVE = "active"
    EXPIRED = "expired"
    TERMINATED_FOR_CAUSE = "terminated_for_cause"
    RESCINDED = "rescinded"

    @property
    def db_value(self) -> str:
        return _STATE_DB_VALUES[self]

    @classmethod
    def from_db(cls, value: str) -> "ContractState":
        for state, db in _STATE_DB_VALUES.items():
            if db == value:
                return state
        return cls(value)

    @classmethod
    def coerce(cls, value: Any) -> Optional["ContractState"]:
        """Accept an enum, an API name or a stored value; None if unknown."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls.from_db(value)
        except ValueError:
            return None


class EventType(str, Enum):
    CREATION = "creation"
    SIGNATURE = "signature"
    EFFECTIVE_DATE_START = "effective_date_start"
    RENEWAL = "renewal"
    AMENDMENT = "amendment"
    TERMINATION_FOR_CAUSE = "termination_for_cause"
    RESCISSION = "rescission"
    EXPIRATION = "expiration"
    INTERNAL_NOTE = "internal_note"
    MODIFICATION = "modification"

    @property
    def db_value(self) -> str:
        return _EVENT_DB_VALUES[self]

    @classmethod
    def from_db(cls, value: str) -> "EventType":
        for event, db in _EVENT_DB_VALUES.items():
            if db == value:
                return event
        return cls(value)

    @classmethod
    def coerce(cls, value: Any) -> Optional["EventType"]:
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls.from_db(value)
        except ValueError:
            return None


_STATE_DB_VALUES: Dict[ContractState, str] = {
    ContractState.DRAFT: "rascunho",
    ContractState.IN_REVIEW: "em_revisao",
    ContractState.IN_APPROVAL: "em_aprovacao",
    ContractState.SENT_FOR_SIGNATURE: "enviado_para_assinatura",
    ContractState.ACTIVE: "activo",
    ContractState.EXPIRED: "expirado",
    ContractState.TERMINATED_FOR_CAUSE: "denunciado",
    ContractState.RESCINDED: "rescindido",
}

_EVENT_DB_VALUES: Dict[EventType, str] = {
    EventType.CREATION: "criacao",
    EventType.SIGNATURE: "assinatura",
    EventType.EFFECTIVE_DATE_START: "inicio_vigencia",
    EventType.RENEWAL: "renovacao",
    EventType.AMENDMENT: "adenda",
    EventType.TERMINATION_FOR_CAUSE: "denuncia",
    EventType.RESCISSION: "rescisao",
    EventType.EXPIRATION: "expiracao",
    EventType.INTERNAL_NOTE: "nota_interna",
    EventType.MODIFICATION: "alteracao",
}


# =========================================================
# API MODELS
# =========================================================

class RecordEventRequest(BaseModel):
    event_type: EventType
    description: Optional[str] = None
    event_date: Optional[date] = None


class TransitionRequest(BaseModel):
    target: ContractState


class LifecycleEvent(BaseModel):
    """1 row from eventos_ciclo_vida_contrato"""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    contrato_id: str
    tipo_evento: str
    descricao: Optional[str] = None
    data_evento: Optional[str] = None
    criado_por_id: Optional[str] = None
    created_at: Optional[str] = None


class LifecycleEventResult(BaseModel):
    event: LifecycleEvent
    previous_state: Optional[ContractState] = None
    new_state: Optional[ContractState] = None
    state_changed: bool = False


class LifecycleView(BaseModel):
    contract_id: str
    state: Optional[ContractState] = None
    valid_events: List[EventType] = Field(default_factory=list)
    allowed_targets: List[ContractState] = Field(default_factory=list)
    is_terminal: bool = False
