from typing import Dict, List, Optional
from pydantic import BaseModel, Field


# =========================================================
# META
# =========================================================

class PolicyMeta(BaseModel):
    policy_id: str
    version: str
    description: Optional[str] = None
    fallback_event: str = "internal_note"


# =========================================================
# BUNDLE
# =========================================================

class LifecyclePolicyBundle(BaseModel):
    """
    Raw shape of app/policies/contract_lifecycle_*.yaml.
    Names are plain strings here; StateTransitionPolicy.from_bundle
    resolves them against the enums and rejects unknown ones.
    """
    meta: PolicyMeta
    transitions: Dict[str, List[str]] = Field(default_factory=dict)
    events_per_state: Dict[str, List[str]] = Field(default_factory=dict)
    forced_states: Dict[str, str] = Field(default_factory=dict)
