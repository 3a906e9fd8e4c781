"""
Infrastructure layer: telemetry store client with retry logic.

Reads are idempotent and retried on transient failures (5xx, transport
errors). Writes are sent once; a failed write surfaces as PersistenceError
and the caller re-invokes the whole unit of work.
"""
from datetime import datetime
from typing import Any, List, Optional
import logging

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception,
)

from app.config import settings
from app.domain.errors import PersistenceError
from app.domain.models import Block, BlockMetrics, Ping, Visit
from app.infrastructure.api_constants import APIConstants, StoreEndpoints, StoreHeaders

logger = logging.getLogger(__name__)


def _is_transient(error: BaseException) -> bool:
    """Server errors and transport failures are worth retrying."""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code >= 500
    return isinstance(error, httpx.RequestError)


class TelemetryStoreClient:
    """
    Client for the telemetry store REST API.
    Implements retry logic with exponential backoff for reads.
    """

    def __init__(self):
        """Initialize the store client with configuration."""
        self.base_url = settings.store_base_url
        self.api_key = settings.store_api_key
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "apikey": self.api_key,
                "Authorization": f"Bearer {self.api_key}",
                "accept": APIConstants.CONTENT_TYPE_JSON,
            },
            timeout=settings.store_timeout_seconds,
        )

    async def __aenter__(self) -> "TelemetryStoreClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def _send(self, method: str, endpoint: str, **kwargs) -> Any:
        response = await self.client.request(method, endpoint, **kwargs)
        response.raise_for_status()
        if not response.content:
            return None
        return response.json()

    @retry(
        stop=stop_after_attempt(settings.max_retry_attempts),
        wait=wait_exponential(
            multiplier=settings.retry_backoff_multiplier,
            min=settings.retry_min_wait,
            max=settings.retry_max_wait,
        ),
        retry=retry_if_exception(_is_transient),
        reraise=True,
    )
    async def _send_with_retry(self, method: str, endpoint: str, **kwargs) -> Any:
        return await self._send(method, endpoint, **kwargs)

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        retry_transient: bool = False,
        **kwargs
    ) -> Any:
        """
        Make an HTTP request against the store.

        Args:
            method: HTTP method (GET, POST, DELETE)
            endpoint: Store table path
            retry_transient: Retry 5xx and transport errors (reads only)
            **kwargs: Additional arguments for the request

        Returns:
            Decoded JSON body, or None for empty responses

        Raises:
            PersistenceError: If the request fails (after retries for reads)
        """
        send = self._send_with_retry if retry_transient else self._send
        try:
            return await send(method, endpoint, **kwargs)
        except httpx.HTTPStatusError as e:
            raise PersistenceError(
                f"Store request failed: {e.response.status_code} - {e.response.text}",
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            raise PersistenceError(f"Store request error: {str(e)}") from e

    async def _read(self, endpoint: str, params: List[tuple]) -> List[dict]:
        data = await self._make_request("GET", endpoint, retry_transient=True, params=params)
        return data or []

    async def list_blocks(
        self,
        tenant_id: str,
        block_id: Optional[str] = None,
        offset: int = 0,
        limit: int = APIConstants.DEFAULT_PAGE_SIZE,
    ) -> List[Block]:
        """
        Fetch one page of a tenant's blocks, ordered by id.

        Args:
            tenant_id: Tenant scope
            block_id: Optional single block filter
            offset: Page offset
            limit: Page size

        Returns:
            List of Block instances
        """
        params = [
            ("select", StoreEndpoints.BLOCK_COLUMNS),
            ("tenant_id", StoreEndpoints.eq(tenant_id)),
            ("order", "id.asc"),
            ("offset", offset),
            ("limit", limit),
        ]
        if block_id:
            params.append(("id", StoreEndpoints.eq(block_id)))

        rows = await self._read(StoreEndpoints.BLOCKS, params)
        return [Block(**row) for row in rows]

    async def get_block(self, block_id: str) -> Optional[Block]:
        rows = await self._read(StoreEndpoints.BLOCKS, [
            ("select", StoreEndpoints.BLOCK_COLUMNS),
            ("id", StoreEndpoints.eq(block_id)),
            ("limit", 1),
        ])
        return Block(**rows[0]) if rows else None

    async def list_pings(
        self,
        tenant_id: str,
        tractor_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        offset: int = 0,
        limit: int = APIConstants.DEFAULT_PAGE_SIZE,
    ) -> List[Ping]:
        """
        Fetch one page of pings in ascending timestamp order.

        Args:
            tenant_id: Tenant scope
            tractor_id: Optional tractor filter
            start: Optional inclusive lower time bound
            end: Optional inclusive upper time bound
            offset: Page offset
            limit: Page size

        Returns:
            List of Ping instances
        """
        params = [
            ("select", StoreEndpoints.PING_COLUMNS),
            ("tenant_id", StoreEndpoints.eq(tenant_id)),
            ("order", "ts.asc,tractor_id.asc"),
            ("offset", offset),
            ("limit", limit),
        ]
        if tractor_id:
            params.append(("tractor_id", StoreEndpoints.eq(tractor_id)))
        if start is not None:
            params.append(("ts", StoreEndpoints.gte(start.isoformat())))
        if end is not None:
            params.append(("ts", StoreEndpoints.lte(end.isoformat())))

        rows = await self._read(StoreEndpoints.GPS_PINGS, params)
        return [Ping(**row) for row in rows]

    async def list_visits(
        self,
        block_id: str,
        tractor_id: Optional[str] = None,
        offset: int = 0,
        limit: int = APIConstants.DEFAULT_PAGE_SIZE,
    ) -> List[Visit]:
        """
        Fetch one page of a block's stored visits.

        The store caps rows per response, so callers that need the complete
        set drain this with offset pagination.

        Args:
            block_id: Block scope
            tractor_id: Optional tractor filter
            offset: Page offset
            limit: Page size

        Returns:
            List of Visit instances ordered by start time
        """
        params = [
            ("select", StoreEndpoints.VISIT_COLUMNS),
            ("block_id", StoreEndpoints.eq(block_id)),
            ("order", "started_at.asc,id.asc"),
            ("offset", offset),
            ("limit", limit),
        ]
        if tractor_id:
            params.append(("tractor_id", StoreEndpoints.eq(tractor_id)))

        rows = await self._read(StoreEndpoints.BLOCK_VISITS, params)
        return [Visit(**row) for row in rows]

    async def get_visit(self, visit_id: str) -> Optional[Visit]:
        rows = await self._read(StoreEndpoints.BLOCK_VISITS, [
            ("select", StoreEndpoints.VISIT_COLUMNS),
            ("id", StoreEndpoints.eq(visit_id)),
            ("limit", 1),
        ])
        return Visit(**rows[0]) if rows else None

    async def delete_visits(
        self,
        block_id: str,
        tractor_id: Optional[str] = None,
    ) -> None:
        """
        Delete stored visits of a block, optionally for one tractor only.

        Raises:
            PersistenceError: If the delete fails
        """
        params = [("block_id", StoreEndpoints.eq(block_id))]
        if tractor_id:
            params.append(("tractor_id", StoreEndpoints.eq(tractor_id)))

        await self._make_request(
            "DELETE",
            StoreEndpoints.BLOCK_VISITS,
            params=params,
            headers={"Prefer": StoreHeaders.RETURN_MINIMAL},
        )

    async def insert_visits(self, visits: List[Visit]) -> None:
        """
        Insert one batch of visits.

        Raises:
            PersistenceError: If the insert fails
        """
        if not visits:
            return
        await self._make_request(
            "POST",
            StoreEndpoints.BLOCK_VISITS,
            json=[v.model_dump(mode="json") for v in visits],
            headers={"Prefer": StoreHeaders.RETURN_MINIMAL},
        )

    async def get_block_metrics(self, block_id: str) -> Optional[BlockMetrics]:
        rows = await self._read(StoreEndpoints.BLOCK_METRICS, [
            ("select", StoreEndpoints.METRICS_COLUMNS),
            ("block_id", StoreEndpoints.eq(block_id)),
            ("limit", 1),
        ])
        return BlockMetrics(**rows[0]) if rows else None

    async def upsert_block_metrics(self, metrics: BlockMetrics) -> None:
        """
        Insert or replace the metrics row of a block (unique on block_id).

        Raises:
            PersistenceError: If the upsert fails
        """
        await self._make_request(
            "POST",
            StoreEndpoints.BLOCK_METRICS,
            params=[("on_conflict", "block_id")],
            json=metrics.model_dump(mode="json"),
            headers={"Prefer": StoreHeaders.UPSERT},
        )


# Singleton instance
_store_client: Optional[TelemetryStoreClient] = None


def get_store_client() -> TelemetryStoreClient:
    """
    Get or create the singleton store client instance.

    Returns:
        TelemetryStoreClient instance
    """
    global _store_client
    if _store_client is None:
        _store_client = TelemetryStoreClient()
    return _store_client
