import asyncio
from unittest.mock import Mock

import pytest

from app.services.extraction.extraction_models import JobStatus, ValidationStatus
from app.services.validation.validation_status_poller import (
    PollerRegistry,
    ValidationStatusPoller,
    map_job_status,
)
from tests.fakes import CONTRACT_ID


def _record_status_writes(poller):
    seen = []
    original = poller.contracts.set_validation_status

    def record(contract_id, status):
        seen.append(status)
        return original(contract_id, status)

    poller.contracts.set_validation_status = record
    return seen


def _jobs(poller, *statuses):
    poller.jobs.latest_for_contract = Mock(
        side_effect=[s if isinstance(s, Exception) else {"status": s} for s in statuses]
    )
    return poller.jobs.latest_for_contract


def test_job_status_mapping():
    assert map_job_status(JobStatus.QUEUED) == ValidationStatus.VALIDATING
    assert map_job_status(JobStatus.RUNNING) == ValidationStatus.VALIDATING
    assert map_job_status(JobStatus.NEEDS_REVIEW) == ValidationStatus.NEEDS_REVIEW
    assert map_job_status(JobStatus.FAILED) == ValidationStatus.FAILED


@pytest.mark.asyncio
async def test_polls_until_terminal_then_stops(sb):
    poller = ValidationStatusPoller(sb, CONTRACT_ID, interval=0)
    reads = _jobs(poller, "queued", "running", "validated")
    writes = _record_status_writes(poller)

    assert poller.start_polling() is True
    await asyncio.wait_for(poller.wait(), timeout=1)

    assert writes == ["validating", "validating", "validated"]
    assert reads.call_count == 3
    assert poller.is_polling is False
    assert poller.last_status == JobStatus.VALIDATED
    assert sb.rows("contratos")[0]["validation_status"] == "validated"


@pytest.mark.asyncio
async def test_read_failure_is_skipped_and_retried(sb):
    poller = ValidationStatusPoller(sb, CONTRACT_ID, interval=0)
    _jobs(poller, "running", RuntimeError("network"), "failed")
    writes = _record_status_writes(poller)

    poller.start_polling()
    await asyncio.wait_for(poller.wait(), timeout=1)

    assert writes == ["validating", "failed"]
    assert poller.last_status == JobStatus.FAILED


@pytest.mark.asyncio
async def test_unknown_job_status_is_treated_as_a_failed_read(sb):
    poller = ValidationStatusPoller(sb, CONTRACT_ID, interval=0)
    _jobs(poller, "exploded")
    writes = _record_status_writes(poller)

    assert await poller.check_job_status() is None
    assert writes == []


@pytest.mark.asyncio
async def test_write_failure_does_not_stop_terminal_detection(sb):
    sb.fail("contratos", "update")
    poller = ValidationStatusPoller(sb, CONTRACT_ID, interval=0)
    _jobs(poller, "validated")

    poller.start_polling()
    await asyncio.wait_for(poller.wait(), timeout=1)
    assert poller.is_polling is False
    assert poller.last_status == JobStatus.VALIDATED


@pytest.mark.asyncio
async def test_second_start_is_a_no_op(sb):
    poller = ValidationStatusPoller(sb, CONTRACT_ID, interval=60)
    _jobs(poller, "queued", "queued")

    assert poller.start_polling() is True
    assert poller.start_polling() is False
    await asyncio.sleep(0)

    poller.stop_polling()
    await poller.wait()
    assert poller.jobs.latest_for_contract.call_count == 1


@pytest.mark.asyncio
async def test_on_mount_only_polls_active_jobs(sb):
    done = ValidationStatusPoller(sb, CONTRACT_ID, interval=0)
    _jobs(done, "validated")
    assert await done.on_mount() is False
    assert done.is_polling is False

    nothing = ValidationStatusPoller(sb, CONTRACT_ID, interval=0)
    assert await nothing.on_mount() is False

    active = ValidationStatusPoller(sb, CONTRACT_ID, interval=0)
    _jobs(active, "running", "running", "validated")
    assert await active.on_mount() is True
    await asyncio.wait_for(active.wait(), timeout=1)
    assert active.last_status == JobStatus.VALIDATED


@pytest.mark.asyncio
async def test_reads_latest_job_row(sb):
    sb.tables["contract_ai_jobs"] = [
        {"contract_id": CONTRACT_ID, "status": "failed", "started_at": "2026-01-01T00:00:00"},
        {"contract_id": CONTRACT_ID, "status": "running", "started_at": "2026-01-02T00:00:00"},
    ]
    poller = ValidationStatusPoller(sb, CONTRACT_ID, interval=0)
    assert await poller.check_job_status() == JobStatus.RUNNING


@pytest.mark.asyncio
async def test_registry_keeps_one_poller_per_contract(sb):
    sb.tables["contract_ai_jobs"] = [
        {"contract_id": CONTRACT_ID, "status": "queued", "started_at": "2026-01-01T00:00:00"},
    ]
    registry = PollerRegistry(sb, interval=60)

    first = await registry.watch(CONTRACT_ID)
    second = await registry.watch(CONTRACT_ID)
    assert first is second
    assert first.is_polling is True

    registry.unwatch(CONTRACT_ID)
    assert registry.get(CONTRACT_ID) is None
    assert first.is_polling is False
    await registry.shutdown()


@pytest.mark.asyncio
async def test_restart_after_stop_keeps_polling(sb):
    poller = ValidationStatusPoller(sb, CONTRACT_ID, interval=0.02)
    poller.jobs.latest_for_contract = Mock(return_value={"status": "running"})

    assert poller.start_polling() is True
    await asyncio.sleep(0)
    poller.stop_polling()
    assert poller.start_polling() is True
    await asyncio.sleep(0.1)

    assert poller.is_polling is True
    assert poller.task.done() is False
    assert poller.start_polling() is False
    assert poller.jobs.latest_for_contract.call_count > 2

    poller.stop_polling()
    await poller.wait()
    assert poller.is_polling is False


@pytest.mark.asyncio
async def test_registry_drops_pollers_that_reach_a_terminal_status(sb):
    sb.tables["contract_ai_jobs"] = [
        {"contract_id": CONTRACT_ID, "status": "running", "started_at": "2026-01-01T00:00:00"},
    ]
    registry = PollerRegistry(sb, interval=0.01)

    poller = await registry.watch(CONTRACT_ID)
    assert registry.get(CONTRACT_ID) is poller
    assert len(registry) == 1

    sb.tables["contract_ai_jobs"][0]["status"] = "validated"
    await asyncio.wait_for(poller.wait(), timeout=1)
    await asyncio.sleep(0)

    assert poller.last_status == JobStatus.VALIDATED
    assert registry.get(CONTRACT_ID) is None
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_registry_does_not_keep_idle_pollers(sb):
    registry = PollerRegistry(sb, interval=60)

    poller = await registry.watch(CONTRACT_ID)
    assert poller.is_polling is False
    assert len(registry) == 0
