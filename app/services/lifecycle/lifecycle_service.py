from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from app.core.errors import InvalidTransitionError, NotFoundError
from app.repositories.contract_repo import ContractRepository
from app.repositories.lifecycle_event_repo import LifecycleEventRepository
from app.services.lifecycle.lifecycle_models import (
    ContractState,
    EventType,
    LifecycleEvent,
    LifecycleEventResult,
    LifecycleView,
)
from app.services.lifecycle.state_machine import StateTransitionPolicy
from app.services.policy.registry import PolicyRegistry

logger = logging.getLogger(__name__)


class LifecycleService:
    """
    Append-only lifecycle event log + the state changes events force.

    Responsibilities:
    - record_event: append event, then apply forced state (second write)
    - transition: explicit state change, guarded by the transition table
    - list_events / view: read side for the contract timeline

    In strict mode (default) an event is rejected before any write when
    the current state does not accept it, or when the state it forces is
    not reachable from the current one. strict=False appends and force-sets
    regardless (data repair / back-fill).
    """

    def __init__(self, sb, policy: Optional[StateTransitionPolicy] = None):
        self.sb = sb
        self.policy = policy or PolicyRegistry.get()
        self.contracts = ContractRepository(sb)
        self.events = LifecycleEventRepository(sb)

    # ==========================================================
    # Helpers
    # ==========================================================
    def _load_contract(self, contract_id: str) -> dict:
        contract = self.contracts.get(contract_id)
        if not contract:
            raise NotFoundError(f"Contract not found: {contract_id}")
        return contract

    @staticmethod
    def _current_state(contract: dict) -> Optional[ContractState]:
        return ContractState.coerce(contract.get("estado_contrato"))

    # ==========================================================
    # RECORD EVENT
    # ==========================================================
    def record_event(
        self,
        contract_id: str,
        event_type: EventType | str,
        description: Optional[str] = None,
        event_date: Optional[date] = None,
        created_by: Optional[str] = None,
        *,
        strict: bool = True,
    ) -> LifecycleEventResult:
        event = EventType.coerce(event_type)
        if event is None:
            raise InvalidTransitionError(f"Unknown lifecycle event: {event_type}")

        contract = self._load_contract(contract_id)
        current = self._current_state(contract)
        forced = self.policy.forced_state_for(event)

        if strict:
            if event not in self.policy.valid_events_for(current):
                raise InvalidTransitionError(
                    f"Event {event.value} not allowed in state "
                    f"{current.value if current else contract.get('estado_contrato')}"
                )
            if forced is not None and forced != current and not self.policy.can_transition(current, forced):
                raise InvalidTransitionError(
                    f"Event {event.value} would force {forced.value}, "
                    f"unreachable from {current.value if current else None}"
                )

        row = self.events.append(
            contract_id=contract_id,
            event_type=event.db_value,
            event_date=(event_date or date.today()).isoformat(),
            description=description,
            created_by=created_by,
        )

        changed = forced is not None and forced != current
        if changed:
            if not strict and not self.policy.can_transition(current, forced):
                logger.warning(
                    "Forcing contract %s from %s to %s outside the transition table (event=%s)",
                    contract_id, current, forced.value, event.value,
                )
            self.contracts.update_state(contract_id, forced.db_value)

        new_state = forced if changed else current
        logger.info(
            "Lifecycle event recorded contract=%s event=%s state=%s->%s",
            contract_id,
            event.value,
            current.value if current else None,
            new_state.value if new_state else None,
        )

        return LifecycleEventResult(
            event=LifecycleEvent(**row),
            previous_state=current,
            new_state=new_state,
            state_changed=changed,
        )

    # ==========================================================
    # EXPLICIT TRANSITION
    # ==========================================================
    def transition(self, contract_id: str, target: ContractState | str) -> ContractState:
        tgt = ContractState.coerce(target)
        if tgt is None:
            raise InvalidTransitionError(f"Unknown contract state: {target}")

        contract = self._load_contract(contract_id)
        current = self._current_state(contract)

        if not self.policy.can_transition(current, tgt):
            raise InvalidTransitionError(
                f"Transition not allowed: {current.value if current else None} -> {tgt.value}"
            )

        self.contracts.update_state(contract_id, tgt.db_value)
        return tgt

    # ==========================================================
    # READ
    # ==========================================================
    def list_events(self, contract_id: str) -> List[LifecycleEvent]:
        return [LifecycleEvent(**r) for r in self.events.list_by_contract(contract_id)]

    def view(self, contract_id: str) -> LifecycleView:
        contract = self._load_contract(contract_id)
        current = self._current_state(contract)
        return LifecycleView(
            contract_id=contract_id,
            state=current,
            valid_events=sorted(self.policy.valid_events_for(current), key=lambda e: e.value),
            allowed_targets=sorted(self.policy.allowed_targets(current), key=lambda s: s.value),
            is_terminal=self.policy.is_terminal(current),
        )
