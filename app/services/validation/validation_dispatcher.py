from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Set

from app.core.errors import DispatchError
from app.services.extraction.extraction_models import FieldMap, ValidationOutcome
from app.services.validation.validation_orchestrator import ValidationOrchestrator

logger = logging.getLogger(__name__)


class ValidationDispatcher:
    """
    Detached validation runs (upload handler does not wait for the agent).

    submit() only reports whether the run was scheduled; the run's own
    outcome is logged when the task finishes. Task references are held
    until completion so the event loop does not drop them.
    """

    def __init__(self, orchestrator_factory: Callable[[], ValidationOrchestrator]):
        self._factory = orchestrator_factory
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(
        self,
        contract_id: str,
        draft_extraction: FieldMap,
        document_reference: Optional[str] = None,
    ) -> asyncio.Task:
        try:
            orchestrator = self._factory()
            task = asyncio.get_running_loop().create_task(
                orchestrator.run_validation(contract_id, draft_extraction, document_reference),
                name=f"validate-contract:{contract_id}",
            )
        except Exception as e:
            logger.error("Could not schedule validation contract=%s: %s", contract_id, e)
            raise DispatchError(f"Could not schedule validation for {contract_id}", e) from e

        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        logger.info("Validation scheduled contract=%s", contract_id)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Validation task cancelled: %s", task.get_name())
            return

        exc = task.exception()
        if exc is not None:
            logger.error("Validation task crashed %s: %s", task.get_name(), exc)
            return

        outcome: ValidationOutcome = task.result()
        if outcome.success:
            logger.info("Validation task finished %s status=%s", task.get_name(), outcome.status)
        else:
            logger.warning("Validation task failed %s: %s", task.get_name(), outcome.details)

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.drain()
