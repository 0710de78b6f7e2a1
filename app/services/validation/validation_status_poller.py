from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from app.core.config import settings
from app.core.errors import TransientReadError
from app.repositories.ai_job_repo import ContractAIJobRepository
from app.repositories.contract_repo import ContractRepository
from app.services.extraction.extraction_models import JobStatus, ValidationStatus

logger = logging.getLogger(__name__)

TERMINAL_JOB_STATUSES = frozenset({JobStatus.VALIDATED, JobStatus.NEEDS_REVIEW, JobStatus.FAILED})
ACTIVE_JOB_STATUSES = frozenset({JobStatus.QUEUED, JobStatus.RUNNING})

# contract-facing status is coarser than the job's
JOB_STATUS_TO_VALIDATION_STATUS: Dict[JobStatus, ValidationStatus] = {
    JobStatus.VALIDATED: ValidationStatus.VALIDATED,
    JobStatus.NEEDS_REVIEW: ValidationStatus.NEEDS_REVIEW,
    JobStatus.FAILED: ValidationStatus.FAILED,
    JobStatus.QUEUED: ValidationStatus.VALIDATING,
    JobStatus.RUNNING: ValidationStatus.VALIDATING,
}


def map_job_status(job_status: JobStatus) -> ValidationStatus:
    return JOB_STATUS_TO_VALIDATION_STATUS[job_status]


class ValidationStatusPoller:
    """
    Mirrors the latest contract_ai_jobs status onto contratos.validation_status.

    - at most one interval loop per instance (start twice = no-op)
    - immediate check, then every `interval` seconds until terminal
    - a failed read is logged and skipped; the next tick retries
    - each write is an idempotent "set status to X", safe across tabs/workers
    """

    def __init__(self, sb, contract_id: str, interval: Optional[float] = None):
        self.contract_id = contract_id
        self.interval = settings.VALIDATION_POLL_SECONDS if interval is None else interval
        self.jobs = ContractAIJobRepository(sb)
        self.contracts = ContractRepository(sb)
        self._task: Optional[asyncio.Task] = None
        self._polling = False
        self.last_status: Optional[JobStatus] = None

    @property
    def is_polling(self) -> bool:
        return self._polling

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    # -------------------------------------------------
    # Read
    # -------------------------------------------------
    def _latest_job_status(self) -> Optional[JobStatus]:
        try:
            job = self.jobs.latest_for_contract(self.contract_id, columns="status, canonical_extraction_id, error")
        except Exception as e:
            raise TransientReadError(f"Error fetching job for {self.contract_id}: {e}", e) from e

        if not job:
            return None
        try:
            return JobStatus(job.get("status"))
        except ValueError as e:
            raise TransientReadError(f"Unknown job status {job.get('status')!r}", e) from e

    # -------------------------------------------------
    # Lifecycle
    # -------------------------------------------------
    async def on_mount(self) -> bool:
        """Start polling only when the latest job is still queued/running."""
        try:
            status = self._latest_job_status()
        except TransientReadError as e:
            logger.warning("Poller mount read failed contract=%s: %s", self.contract_id, e)
            return False

        if status in ACTIVE_JOB_STATUSES:
            return self.start_polling()
        return False

    def start_polling(self) -> bool:
        if self._polling:
            return False
        self._polling = True
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"validation-poller:{self.contract_id}"
        )
        return True

    def stop_polling(self) -> None:
        self._polling = False
        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def wait(self) -> None:
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        try:
            while self._polling:
                await self.check_job_status()
                if not self._polling:
                    break
                await asyncio.sleep(self.interval)
        finally:
            # a cancelled loop must not clear the flag of the task that replaced it
            if self._task is asyncio.current_task():
                self._polling = False

    # -------------------------------------------------
    # Tick
    # -------------------------------------------------
    async def check_job_status(self) -> Optional[JobStatus]:
        try:
            status = self._latest_job_status()
        except TransientReadError as e:
            logger.warning("Poll read skipped contract=%s: %s", self.contract_id, e)
            return None

        if status is None:
            return None

        self.last_status = status
        try:
            self.contracts.set_validation_status(self.contract_id, map_job_status(status).value)
        except Exception as e:
            logger.warning("Poll write failed contract=%s: %s", self.contract_id, e)

        if status in TERMINAL_JOB_STATUSES:
            logger.info("Validation job terminal contract=%s status=%s", self.contract_id, status.value)
            self.stop_polling()

        return status


class PollerRegistry:
    """
    Single-slot registry: one live poller per contract id.

    Only running pollers are kept; a poller leaves the registry when its loop
    ends, whether it reached a terminal status or was stopped.
    """

    def __init__(self, sb, interval: Optional[float] = None):
        self.sb = sb
        self.interval = interval
        self._pollers: Dict[str, ValidationStatusPoller] = {}

    def get(self, contract_id: str) -> Optional[ValidationStatusPoller]:
        return self._pollers.get(contract_id)

    async def watch(self, contract_id: str) -> ValidationStatusPoller:
        poller = self._pollers.get(contract_id)
        if poller is not None and poller.is_polling:
            return poller

        poller = ValidationStatusPoller(self.sb, contract_id, interval=self.interval)
        if await poller.on_mount():
            self._pollers[contract_id] = poller
            poller.task.add_done_callback(lambda _t: self._forget(contract_id, poller))
        else:
            self._pollers.pop(contract_id, None)
        return poller

    def _forget(self, contract_id: str, poller: ValidationStatusPoller) -> None:
        if self._pollers.get(contract_id) is poller:
            del self._pollers[contract_id]

    def unwatch(self, contract_id: str) -> None:
        poller = self._pollers.pop(contract_id, None)
        if poller is not None:
            poller.stop_polling()

    def __len__(self) -> int:
        return len(self._pollers)

    async def shutdown(self) -> None:
        pollers = list(self._pollers.values())
        self._pollers.clear()
        for p in pollers:
            p.stop_polling()
        for p in pollers:
            await p.wait()
