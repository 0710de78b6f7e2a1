from __future__ import annotations

import logging
from typing import Callable, Optional

from app.core.config import settings
from app.repositories.impersonation_repo import ImpersonationSessionRepository
from app.services.impersonation.impersonation_models import (
    ImpersonationState,
    ImpersonationType,
    NoticeBuffer,
    StoredSession,
)
from app.services.impersonation.session_store import KeyValueStore
from app.services.impersonation.tenant_cache import TENANT_SCOPED_KEYS, TenantCache

logger = logging.getLogger(__name__)

STORAGE_KEY = "impersonation_session"


class ImpersonationSessionManager:
    """
    Platform-admin impersonation for one browser session.

    inactive -> active -> inactive. The server row (impersonation_sessions)
    is the source of truth; the key/value store only mirrors its identity so
    restore() can re-verify it. Every context switch invalidates the
    tenant-scoped caches.

    start_*/stop_impersonation never raise: problems go to `notices` and the
    call returns False.

    A stored identity is only adopted when its server row is active and was
    opened by `actor_id`; the browser-session key alone proves nothing.
    `release_cache` is called when the local identity is dropped so the
    owner can free the session's cache.
    """

    def __init__(
        self,
        sb,
        *,
        actor_id: Optional[str],
        store: KeyValueStore,
        cache: Optional[TenantCache] = None,
        release_cache: Optional[Callable[[], None]] = None,
        notices: Optional[NoticeBuffer] = None,
        min_reason_length: Optional[int] = None,
    ):
        self.actor_id = actor_id
        self.sessions = ImpersonationSessionRepository(sb)
        self.store = store
        self.cache = cache
        self.release_cache = release_cache
        self.notices = notices or NoticeBuffer()
        self.min_reason_length = min_reason_length or settings.IMPERSONATION_REASON_MIN_LENGTH
        self._state = ImpersonationState()

    @property
    def state(self) -> ImpersonationState:
        return self._state.model_copy()

    def get_effective_organization_id(self) -> Optional[str]:
        s = self._state
        if s.is_impersonating and s.impersonation_type == ImpersonationType.ORG:
            return s.impersonated_org_id
        return None

    # =========================================================
    # START
    # =========================================================
    def start_org_impersonation(
        self, org_id: str, org_name: str, reason: str, user_agent: Optional[str] = None
    ) -> bool:
        return self._start(
            {
                "impersonated_org_id": org_id,
                "impersonated_org_name": org_name,
                "impersonation_type": ImpersonationType.ORG,
                "reason": reason,
            },
            user_agent=user_agent,
            success_message=f"Acting in the context of: {org_name}",
            error_message="Could not start organization impersonation",
        )

    def start_user_impersonation(
        self, user_id: str, user_name: str, reason: str, user_agent: Optional[str] = None
    ) -> bool:
        return self._start(
            {
                "impersonated_user_id": user_id,
                "impersonated_user_name": user_name,
                "impersonation_type": ImpersonationType.USER,
                "reason": reason,
            },
            user_agent=user_agent,
            success_message=f"Impersonating: {user_name}",
            error_message="Could not start user impersonation",
        )

    def _check_preconditions(self, reason: str) -> bool:
        if not self.actor_id:
            self.notices.error("Session not authenticated")
            return False

        if len((reason or "").strip()) < self.min_reason_length:
            self.notices.error(f"The reason must be at least {self.min_reason_length} characters long")
            return False

        try:
            is_admin = self.sessions.is_platform_admin(self.actor_id)
        except Exception as e:
            logger.error("Platform admin check failed actor=%s: %s", self.actor_id, e)
            self.notices.error("Could not verify platform administrator privileges")
            return False

        if not is_admin:
            self.notices.error("Only platform administrators can use this feature")
            return False
        return True

    def _start(
        self,
        target: dict,
        *,
        user_agent: Optional[str],
        success_message: str,
        error_message: str,
    ) -> bool:
        if not self._check_preconditions(target["reason"]):
            return False

        try:
            row = self.sessions.create(
                real_user_id=self.actor_id,
                reason=target["reason"],
                organization_id=target.get("impersonated_org_id"),
                user_id=target.get("impersonated_user_id"),
                user_name=target.get("impersonated_user_name"),
                user_agent=user_agent,
            )
            stored = StoredSession(**target, session_id=str(row["id"]), real_user_id=self.actor_id)
        except Exception as e:
            logger.error("%s actor=%s: %s", error_message, self.actor_id, e)
            self.notices.error(error_message)
            return False

        # a new start replaces whatever was active; the old row is closed
        previous = self._state.session_id
        if previous:
            self._end_server_session(previous)

        self.store.set(STORAGE_KEY, stored.model_dump_json())
        self._state = ImpersonationState.from_stored(stored)
        self._invalidate_caches()

        logger.info(
            "Impersonation started session=%s actor=%s type=%s",
            stored.session_id, self.actor_id, stored.impersonation_type.value,
        )
        self.notices.success(success_message)
        return True

    # =========================================================
    # STOP
    # =========================================================
    def stop_impersonation(self) -> bool:
        session_id = self._state.session_id
        if not session_id:
            return False

        try:
            self.sessions.end(session_id)
        except Exception as e:
            logger.error("Could not end impersonation session=%s: %s", session_id, e)
            self.notices.error("Could not end impersonation")
            return False

        self._clear_local()
        logger.info("Impersonation ended session=%s actor=%s", session_id, self.actor_id)
        self.notices.success("Left impersonation mode")
        return True

    def teardown(self) -> None:
        """Drop local identity on sign-out; the server row expires on its own."""
        if self._state.is_impersonating:
            self._clear_local()

    # =========================================================
    # RESTORE
    # =========================================================
    def restore(self) -> ImpersonationState:
        if not self.actor_id:
            self._state = ImpersonationState()
            return self.state

        raw = self.store.get(STORAGE_KEY)
        if not raw:
            return self.state

        try:
            stored = StoredSession.model_validate_json(raw)
        except ValueError:
            logger.warning("Discarding unreadable stored impersonation session")
            self.store.delete(STORAGE_KEY)
            self._state = ImpersonationState()
            return self.state

        if stored.real_user_id != self.actor_id:
            # another account's identity under this browser session: ignore it, keep it stored
            logger.warning(
                "Ignoring impersonation session=%s owned by another user actor=%s",
                stored.session_id, self.actor_id,
            )
            self._state = ImpersonationState()
            return self.state

        if self._verify(stored.session_id):
            self._state = ImpersonationState.from_stored(stored)
        else:
            self.store.delete(STORAGE_KEY)
            self._state = ImpersonationState()
        return self.state

    def _verify(self, session_id: str) -> bool:
        try:
            self.sessions.expire_stale()
            row = self.sessions.get_active(session_id)
            return row is not None and row.get("real_user_id") == self.actor_id
        except Exception as e:
            logger.warning("Impersonation session verification failed session=%s: %s", session_id, e)
            return False

    # =========================================================
    # Helpers
    # =========================================================
    def _end_server_session(self, session_id: str) -> None:
        try:
            self.sessions.end(session_id)
        except Exception as e:
            logger.warning("Could not close replaced impersonation session=%s: %s", session_id, e)

    def _clear_local(self) -> None:
        self.store.delete(STORAGE_KEY)
        self._state = ImpersonationState()
        self._invalidate_caches()
        if self.release_cache is not None:
            self.release_cache()

    def _invalidate_caches(self) -> None:
        if self.cache is not None:
            self.cache.invalidate_many(TENANT_SCOPED_KEYS)
