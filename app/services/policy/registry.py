import logging
from pathlib import Path
from typing import Optional

from app.services.lifecycle.state_machine import StateTransitionPolicy
from app.services.policy.loader import load_policy_from_file
from app.services.policy.schema import LifecyclePolicyBundle

logger = logging.getLogger(__name__)


class PolicyRegistry:
    """
    Lean in-memory lifecycle policy registry
    - load() called once at startup
    - get() returns the StateTransitionPolicy (loads the bundled default
      file on first use if startup did not)
    - get_bundle() returns raw LifecyclePolicyBundle (if needed elsewhere)
    """

    _bundle: Optional[LifecyclePolicyBundle] = None
    _policy: Optional[StateTransitionPolicy] = None

    # ---------- LOAD ON STARTUP ----------

    @classmethod
    def load(cls, bundle: LifecyclePolicyBundle) -> StateTransitionPolicy:
        policy = StateTransitionPolicy.from_bundle(bundle)
        cls._bundle = bundle
        cls._policy = policy
        logger.info("Lifecycle policy loaded: %s (%s)", bundle.meta.policy_id, bundle.meta.version)
        return policy

    @classmethod
    def load_file(cls, path: str | Path | None = None) -> StateTransitionPolicy:
        return cls.load(load_policy_from_file(path))

    # ---------- GET ----------

    @classmethod
    def get(cls) -> StateTransitionPolicy:
        if cls._policy is None:
            cls.load_file()
        return cls._policy

    @classmethod
    def get_bundle(cls) -> LifecyclePolicyBundle:
        if cls._bundle is None:
            cls.load_file()
        return cls._bundle

    @classmethod
    def reset(cls) -> None:
        cls._bundle = None
        cls._policy = None
