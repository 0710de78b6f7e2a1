from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger("clm.notify")


class ImpersonationType(str, Enum):
    ORG = "org"
    USER = "user"


class StoredSession(BaseModel):
    """JSON written to the browser-session store under `impersonation_session`."""

    impersonated_org_id: Optional[str] = None
    impersonated_org_name: Optional[str] = None
    impersonated_user_id: Optional[str] = None
    impersonated_user_name: Optional[str] = None
    impersonation_type: ImpersonationType
    reason: str
    session_id: str
    real_user_id: str

    @model_validator(mode="after")
    def _one_target(self):
        has_org = bool(self.impersonated_org_id)
        has_user = bool(self.impersonated_user_id)
        if has_org == has_user:
            raise ValueError("exactly one of impersonated_org_id / impersonated_user_id must be set")
        expected = ImpersonationType.ORG if has_org else ImpersonationType.USER
        if self.impersonation_type != expected:
            raise ValueError("impersonation_type does not match target")
        return self


class ImpersonationState(BaseModel):
    is_impersonating: bool = False
    impersonated_org_id: Optional[str] = None
    impersonated_org_name: Optional[str] = None
    impersonated_user_id: Optional[str] = None
    impersonated_user_name: Optional[str] = None
    impersonation_type: Optional[ImpersonationType] = None
    reason: Optional[str] = None
    session_id: Optional[str] = None

    @classmethod
    def from_stored(cls, stored: StoredSession) -> "ImpersonationState":
        return cls(is_impersonating=True, **stored.model_dump(exclude={"real_user_id"}))


# =========================================================
# SIDE-CHANNEL NOTICES (toast equivalent)
# =========================================================

class Notice(BaseModel):
    level: str
    message: str


class NoticeBuffer:
    """Collects user-facing notices for the current request and logs them."""

    def __init__(self):
        self.items: List[Notice] = []

    def success(self, message: str) -> None:
        self.items.append(Notice(level="success", message=message))
        logger.info(message)

    def error(self, message: str) -> None:
        self.items.append(Notice(level="error", message=message))
        logger.warning(message)


# =========================================================
# API
# =========================================================

class StartOrgImpersonationRequest(BaseModel):
    org_id: str
    org_name: str
    reason: str


class StartUserImpersonationRequest(BaseModel):
    user_id: str
    user_name: str
    reason: str


class ImpersonationResponse(BaseModel):
    success: bool
    state: ImpersonationState
    effective_organization_id: Optional[str] = None
    notices: List[Notice] = Field(default_factory=list)
