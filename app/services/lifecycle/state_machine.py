# app/services/lifecycle/state_machine.py
from __future__ import annotations

import logging
from typing import Any, Dict, FrozenSet, Mapping, Optional

from app.core.errors import ConfigError
from app.services.lifecycle.lifecycle_models import ContractState, EventType
from app.services.policy.schema import LifecyclePolicyBundle

logger = logging.getLogger(__name__)


class StateTransitionPolicy:
    """
    Pure lookup over three fixed tables:
    - transitions:      state -> states it may move to
    - events_per_state: state -> lifecycle events it accepts
    - forced_states:    event -> state the event forces

    All three lookups are total: unknown inputs never raise.
    """

    def __init__(
        self,
        *,
        transitions: Mapping[ContractState, FrozenSet[ContractState]],
        events_per_state: Mapping[ContractState, FrozenSet[EventType]],
        forced_states: Mapping[EventType, ContractState],
        fallback_event: EventType = EventType.INTERNAL_NOTE,
        version: str = "",
    ):
        self._transitions = dict(transitions)
        self._events = dict(events_per_state)
        self._forced = dict(forced_states)
        self.fallback_event = fallback_event
        self.version = version
        self._check_terminal_states()

    # -------------------------------------------------
    # Build
    # -------------------------------------------------
    @classmethod
    def from_bundle(cls, bundle: LifecyclePolicyBundle) -> "StateTransitionPolicy":
        def state(name: str) -> ContractState:
            s = ContractState.coerce(name)
            if s is None:
                raise ConfigError(f"Unknown contract state in policy: {name}")
            return s

        def event(name: str) -> EventType:
            e = EventType.coerce(name)
            if e is None:
                raise ConfigError(f"Unknown lifecycle event in policy: {name}")
            return e

        transitions = {
            state(src): frozenset(state(t) for t in targets)
            for src, targets in bundle.transitions.items()
        }
        events = {
            state(s): frozenset(event(e) for e in evs)
            for s, evs in bundle.events_per_state.items()
        }
        forced = {event(e): state(s) for e, s in bundle.forced_states.items()}

        return cls(
            transitions=transitions,
            events_per_state=events,
            forced_states=forced,
            fallback_event=event(bundle.meta.fallback_event),
            version=bundle.meta.version,
        )

    def _check_terminal_states(self) -> None:
        # a terminal state must not accept an event that would force it elsewhere
        for s in ContractState:
            if not self.is_terminal(s):
                continue
            for e in self.valid_events_for(s):
                forced = self._forced.get(e)
                if forced is not None and forced != s:
                    raise ConfigError(
                        f"Event {e.value} forces {forced.value} out of terminal state {s.value}"
                    )

    # -------------------------------------------------
    # Lookups
    # -------------------------------------------------
    def can_transition(self, current: Any, target: Any) -> bool:
        cur = ContractState.coerce(current)
        tgt = ContractState.coerce(target)
        if cur is None or tgt is None:
            return False
        return tgt in self._transitions.get(cur, frozenset())

    def allowed_targets(self, state: Any) -> FrozenSet[ContractState]:
        s = ContractState.coerce(state)
        if s is None:
            return frozenset()
        return self._transitions.get(s, frozenset())

    def is_terminal(self, state: Any) -> bool:
        s = ContractState.coerce(state)
        return s is not None and s in self._transitions and not self._transitions[s]

    def valid_events_for(self, state: Any) -> FrozenSet[EventType]:
        s = ContractState.coerce(state)
        events = self._events.get(s) if s is not None else None
        if not events:
            logger.debug("No event table for state %r, falling back to %s", state, self.fallback_event.value)
            return frozenset({self.fallback_event})
        return events

    def forced_state_for(self, event_type: Any) -> Optional[ContractState]:
        e = EventType.coerce(event_type)
        if e is None:
            return None
        return self._forced.get(e)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "fallback_event": self.fallback_event.value,
            "transitions": {
                s.value: sorted(t.value for t in targets)
                for s, targets in self._transitions.items()
            },
            "events_per_state": {
                s.value: sorted(e.value for e in evs)
                for s, evs in self._events.items()
            },
            "forced_states": {e.value: s.value for e, s in self._forced.items()},
        }
