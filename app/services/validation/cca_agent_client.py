from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

from app.core.config import settings
from app.core.errors import ValidationAgentError, ValidationAgentTimeout
from app.services.extraction.extraction_models import (
    CCAValidationRequest,
    CCAValidationResult,
    ExtractionStatus,
    FieldMap,
)

logger = logging.getLogger(__name__)

SIMULATED_CONFIDENCE = 85.0


def simulated_result(draft: FieldMap) -> CCAValidationResult:
    """Dev mode (no agent URL): the draft is accepted as canonical."""
    return CCAValidationResult(
        extraction_canonical=dict(draft),
        status=ExtractionStatus.VALIDATED.value,
        confidence=SIMULATED_CONFIDENCE,
        review_notes="Simulated validation - CCA agent not configured",
        evidence=[],
    )


class CCAAgentClient:
    """
    HTTP client for the external canonical-validation agent.

    Every transport problem (timeout, connection error, non-2xx, bad JSON)
    surfaces as ValidationAgentError; callers never see httpx exceptions.
    """

    PATH = "/cca/validate-contract"

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (settings.CCA_AGENT_URL if base_url is None else base_url).rstrip("/")
        self.api_key = settings.CCA_AGENT_KEY if api_key is None else api_key
        self.timeout = timeout or settings.CCA_AGENT_TIMEOUT_SECONDS
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        return headers

    async def validate(self, request: CCAValidationRequest) -> CCAValidationResult:
        url = f"{self.base_url}{self.PATH}"
        logger.info("Calling CCA agent contract=%s url=%s", request.contract_id, url)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                # httpx timeouts are per phase; this bounds the whole call
                r = await asyncio.wait_for(
                    client.post(url, json=request.model_dump(), headers=self._headers()),
                    timeout=self.timeout,
                )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise ValidationAgentTimeout(f"CCA Agent timed out after {self.timeout:g}s", e) from e
        except httpx.HTTPError as e:
            raise ValidationAgentError(f"CCA Agent request failed: {e}", e) from e

        if not r.is_success:
            raise ValidationAgentError(f"CCA Agent HTTP {r.status_code}: {r.text}")

        try:
            return CCAValidationResult.model_validate(r.json())
        except ValueError as e:
            raise ValidationAgentError(f"CCA Agent returned an invalid payload: {e}", e) from e
