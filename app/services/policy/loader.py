import yaml
from pathlib import Path
from pydantic import ValidationError

from app.core.errors import ConfigError
from app.services.policy.schema import LifecyclePolicyBundle

DEFAULT_POLICY_PATH = Path(__file__).resolve().parents[2] / "policies" / "contract_lifecycle_v1.yaml"


def load_policy_from_file(path: str | Path | None = None) -> LifecyclePolicyBundle:

    p = Path(path) if path else DEFAULT_POLICY_PATH

    if not p.exists():
        raise ConfigError(f"Policy file not found: {p}")

    with open(p, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ConfigError(f"Policy file is not a mapping: {p}")

    try:
        return LifecyclePolicyBundle(**raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid policy file {p}: {e}", e) from e
