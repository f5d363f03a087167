"""
HTTP client for the record service API.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from entrysync.schemas.records import UpsertResult
from .base import (
    RemoteStore, RemoteStoreError, BatchRejectedError, validate_batch, parse_rows,
    ATTENDANCE, GRADES, ROSTER
)

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

T = TypeVar("T")


class HttpRemoteStore(RemoteStore):
    """Remote store that talks to the service over HTTP.

    The client is owned by the store unless one is passed in, in which case
    the caller keeps responsibility for closing it.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
        headers: Optional[Dict[str, str]] = None
    ):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers=headers or {"Accept": "application/json"}
        )

    async def batch_upsert(
        self,
        collection: str,
        items: List[Dict[str, Any]],
        conflict_fields: List[str]
    ) -> UpsertResult:
        # Fail fast on batches the server would refuse anyway
        validate_batch(collection, items, conflict_fields)

        response = await self._request(
            "POST",
            f"{API_PREFIX}/{collection}/batch",
            json={"items": items, "conflict_fields": conflict_fields}
        )
        return _parse_body(response, UpsertResult.model_validate)

    async def query(self, collection: str, **filters: Any) -> List[BaseModel]:
        params = {key: value for key, value in filters.items() if value is not None}

        if collection == ROSTER:
            course_id = params.pop("course_id", None)
            if not course_id:
                raise RemoteStoreError("course_id is required")
            path = f"{API_PREFIX}/courses/{course_id}/roster"
        elif collection == ATTENDANCE:
            path = f"{API_PREFIX}/attendance"
        elif collection == GRADES:
            path = f"{API_PREFIX}/grades"
        else:
            raise RemoteStoreError(f"Unknown collection: {collection}")

        response = await self._request("GET", path, params=params)
        payload = _parse_body(response, lambda body: body)
        if not isinstance(payload, list):
            raise RemoteStoreError(f"Expected a list of {collection} rows")
        return parse_rows(collection, payload)

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise RemoteStoreError(f"Request to {path} failed: {e}") from e

        if response.status_code == 422:
            raise BatchRejectedError(f"{path} rejected the request", errors=_detail(response))
        if response.is_error:
            logger.error(f"{method} {path} returned {response.status_code}")
            raise RemoteStoreError(f"{path} returned {response.status_code}: {_detail(response)}")
        return response

    async def close(self):
        if self._owns_client:
            await self.client.aclose()


def _parse_body(response: httpx.Response, parse: Callable[[Any], T]) -> T:
    """Decode and validate a success body; anything unexpected is a store failure."""
    try:
        return parse(response.json())
    except (ValueError, ValidationError) as e:
        logger.error(f"Unexpected response body from {response.request.url.path}: {e}")
        raise RemoteStoreError(f"{response.request.url.path} returned an unreadable body") from e


def _detail(response: httpx.Response) -> Any:
    try:
        payload = response.json()
    except ValueError:
        return response.text
    return payload.get("detail") if isinstance(payload, dict) else payload
