"""
Deduplication and backend submission.

Items and inspection reports are pushed one at a time to the backend's
idempotent upsert endpoints. Each call gets up to 3 attempts with
exponential backoff; a record that still fails is counted and the pipeline
moves on to the next one.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from .base import AuctionItem, Colors, InspectionReport
from .errors import SubmissionError
from .utils.retry import exponential_delay, retry_async

logger = logging.getLogger(__name__)

VEHICLE_UPSERT_PATH = '/vehicles/upsert'
INSPECTION_UPSERT_PATH = '/vehicles/inspection/upsert'


def deduplicate_items(items: List[AuctionItem]) -> List[AuctionItem]:
    """
    Collapse repeated captures to one item per source_id.

    The most recent occurrence wins; output order follows first appearance.
    """
    unique: Dict[str, AuctionItem] = {}
    for item in items:
        unique[item.source_id] = item
    return list(unique.values())


def is_retryable_submission_error(exc: BaseException) -> bool:
    """Non-2xx answers and transport failures are retried."""
    return isinstance(exc, (SubmissionError, httpx.HTTPError))


@dataclass
class SubmitResult:
    """Outcome of submitting one batch."""
    submitted: int = 0
    failed: int = 0
    error_details: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.submitted + self.failed


class ApiClient:
    """
    Client for the backend upsert endpoints.

    Usage:
        async with ApiClient("http://auto-auction-api:8080/api") as client:
            result = await client.submit_items(items)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        max_attempts: int = 3,
        retry_base_seconds: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize the client.

        Args:
            base_url: Backend API root, e.g. http://host:8080/api
            timeout: Per-request timeout in seconds
            max_attempts: Attempts per record
            retry_base_seconds: Delay before the first retry (doubles after)
            transport: Optional httpx transport (tests)
            sleep: Awaitable sleep used between attempts
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.retry_base_seconds = retry_base_seconds
        self.transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={'Content-Type': 'application/json'},
                transport=self.transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def post_json(self, path: str, payload: Dict[str, Any], label: str) -> httpx.Response:
        """
        POST a JSON body with retries.

        Raises:
            SubmissionError: Last attempt got a non-2xx response
            httpx.HTTPError: Last attempt failed in transport
        """
        client = await self._get_client()
        url = f"{self.base_url}{path}"

        async def attempt() -> httpx.Response:
            response = await client.post(url, json=payload)
            if not response.is_success:
                raise SubmissionError(response.status_code, response.text)
            return response

        return await retry_async(
            attempt,
            max_attempts=self.max_attempts,
            delay_fn=exponential_delay(self.retry_base_seconds),
            is_retryable=is_retryable_submission_error,
            sleep=self._sleep,
            label=label,
        )

    async def submit_items(self, items: List[AuctionItem]) -> SubmitResult:
        """
        Upsert vehicles one by one.

        Args:
            items: Deduplicated items

        Returns:
            SubmitResult with submitted/failed counts
        """
        result = SubmitResult()
        total = len(items)

        for item in items:
            try:
                await self.post_json(VEHICLE_UPSERT_PATH, item.to_payload(), item.source_id)
            except (SubmissionError, httpx.HTTPError) as e:
                result.failed += 1
                result.error_details.append({'key': item.source_id, 'error': str(e)})
                logger.error(
                    f"  {Colors.red('✗')} Failed to submit {item.source_id} "
                    f"after {self.max_attempts} attempts: {e}"
                )
                continue

            result.submitted += 1
            display_name = item.model_name or item.mgmt_number or item.source_id
            logger.info(f"  {Colors.green('✓')} Submitted {result.submitted}/{total}: {item.source_id} - {display_name}")

        return result

    async def submit_inspection_reports(self, reports: List[InspectionReport]) -> SubmitResult:
        """
        Upsert inspection reports one by one.

        Args:
            reports: Reports collected during the run

        Returns:
            SubmitResult with submitted/failed counts
        """
        result = SubmitResult()
        total = len(reports)

        for report in reports:
            try:
                await self.post_json(INSPECTION_UPSERT_PATH, report.to_payload(), report.vehicle_source_id)
            except (SubmissionError, httpx.HTTPError) as e:
                result.failed += 1
                result.error_details.append({'key': report.vehicle_source_id, 'error': str(e)})
                logger.error(
                    f"  {Colors.red('✗')} Failed to submit inspection for {report.mgmt_number} "
                    f"after {self.max_attempts} attempts: {e}"
                )
                continue

            result.submitted += 1
            logger.info(f"  {Colors.green('✓')} Submitted inspection {result.submitted}/{total}: {report.mgmt_number}")

        return result
