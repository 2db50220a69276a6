"""
Infrastructure layer: Supabase (PostgREST) persistence gateway with retry logic.
"""
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from field_hierarchy.config import settings
from field_hierarchy.domain.errors import DuplicateKeyError, StoreError
from field_hierarchy.infrastructure.gateway import (
    Filters,
    PersistenceGateway,
    Record,
    TableGateway,
)
from field_hierarchy.infrastructure.store_constants import (
    PostgrestFilters,
    StoreConstants,
    SupabaseEndpoints,
)

logger = logging.getLogger(__name__)


def _filter_params(filters: Filters) -> Dict[str, str]:
    return {field: PostgrestFilters.eq(value) for field, value in filters.items()}


class SupabaseTable(TableGateway):
    """One PostgREST table, accessed through the owning gateway's HTTP client."""

    def __init__(self, gateway: "SupabaseGateway", name: str):
        self.gateway = gateway
        self.name = name
        self.path = SupabaseEndpoints.table(name)

    async def insert(self, record: Mapping[str, Any]) -> Record:
        rows = await self.gateway._request(
            "POST",
            self.path,
            json=dict(record),
            headers={"Prefer": StoreConstants.PREFER_REPRESENTATION},
            retryable=False,
        )
        if not rows:
            raise StoreError(f"Insert into {self.name} returned no row")
        return rows[0]

    async def select_where(self, filters: Filters) -> List[Record]:
        params = {"select": "*", **_filter_params(filters)}
        return await self.gateway._request("GET", self.path, params=params) or []

    async def select_one_where(self, filters: Filters) -> Optional[Record]:
        params = {"select": "*", "limit": "1", **_filter_params(filters)}
        rows = await self.gateway._request("GET", self.path, params=params)
        return rows[0] if rows else None

    async def update(self, match: Filters, patch: Mapping[str, Any]) -> None:
        await self.gateway._request(
            "PATCH",
            self.path,
            params=_filter_params(match),
            json=dict(patch),
            headers={"Prefer": StoreConstants.PREFER_MINIMAL},
        )

    async def delete(self, match: Filters) -> None:
        await self.gateway._request(
            "DELETE",
            self.path,
            params=_filter_params(match),
            headers={"Prefer": StoreConstants.PREFER_MINIMAL},
        )

    async def delete_where_in(self, field: str, values: Iterable[Any]) -> None:
        values = list(values)
        if not values:
            return
        await self.gateway._request(
            "DELETE",
            self.path,
            params={field: PostgrestFilters.in_(values)},
            headers={"Prefer": StoreConstants.PREFER_MINIMAL},
        )


class SupabaseGateway(PersistenceGateway):
    """
    Gateway to the Supabase REST API.
    Implements retry logic with exponential backoff on 5xx and transport errors
    for reads, updates and deletes. Inserts are sent once: a retried insert
    that had already committed would come back as a duplicate key.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the gateway with configuration.

        Args:
            base_url: Supabase project URL (defaults to settings.store_url)
            api_key: Supabase API key (defaults to settings.store_api_key)
            transport: Optional httpx transport, mainly for tests
        """
        self.base_url = SupabaseEndpoints.base_url(base_url or settings.store_url)
        self.api_key = api_key if api_key is not None else settings.store_api_key
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "apikey": self.api_key,
                "Authorization": f"Bearer {self.api_key}",
                "accept": StoreConstants.CONTENT_TYPE_JSON,
            },
            timeout=settings.store_timeout,
            transport=transport,
        )
        self.phases = SupabaseTable(self, settings.phase_table)
        self.blocks = SupabaseTable(self, settings.block_table)
        self.tasks = SupabaseTable(self, settings.task_table)

    async def __aenter__(self) -> "SupabaseGateway":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    @retry(
        stop=stop_after_attempt(settings.max_retry_attempts),
        wait=wait_exponential(
            multiplier=settings.retry_backoff_multiplier,
            min=settings.retry_min_wait,
            max=settings.retry_max_wait,
        ),
        retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.RequestError)),
        reraise=True,
    )
    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send one HTTP request, retrying server and transport errors."""
        return await self._send_once(method, path, **kwargs)

    async def _send_once(self, method: str, path: str, **kwargs) -> httpx.Response:
        """
        Send one HTTP request, raising on server errors.

        Args:
            method: HTTP method (GET, POST, PATCH, DELETE)
            path: Table path relative to the REST base URL
            **kwargs: Additional arguments for the request

        Returns:
            The response; 4xx responses are returned, not raised
        """
        response = await self.client.request(method, path, **kwargs)
        if response.status_code >= 500:
            logger.warning(f"Store returned {response.status_code} for {method} {path}")
            response.raise_for_status()
        return response

    async def _request(self, method: str, path: str, retryable: bool = True, **kwargs) -> Any:
        """
        Make a store request and decode the JSON body.

        Args:
            method: HTTP method
            path: Table path relative to the REST base URL
            retryable: Whether server and transport errors are retried
            **kwargs: Additional arguments for the request

        Returns:
            Decoded JSON body, or None for an empty body

        Raises:
            DuplicateKeyError: If the store reports a unique constraint conflict
            StoreError: If the request fails after retries or returns a 4xx
        """
        try:
            send = self._send if retryable else self._send_once
            response = await send(method, path, **kwargs)
        except httpx.HTTPStatusError as e:
            raise StoreError(
                f"Store request failed: {e.response.status_code} - {e.response.text}"
            )
        except httpx.RequestError as e:
            raise StoreError(f"Store request error: {str(e)}")

        if response.status_code == StoreConstants.CONFLICT_STATUS:
            raise DuplicateKeyError(f"Store rejected duplicate key: {response.text}")
        if response.is_error:
            raise StoreError(
                f"Store request failed: {response.status_code} - {response.text}"
            )
        if not response.content:
            return None
        return response.json()
