"""Paging queue clients.

The paging queue owns the waiting: it receives the full, delay-annotated
batch of page requests for a ticket, holds each one until its delay has
elapsed and then calls back ``POST /api/alerts/page`` to deliver it.
"""

import uuid
from typing import Protocol

import httpx

from escalator.config import settings
from escalator.core.errors import TransportError
from escalator.logging_config import get_logger
from escalator.schemas.page import PageHandle, PageRequest

logger = get_logger(__name__)


class PagingQueueClient(Protocol):
    async def submit_batch(self, requests: list[PageRequest]) -> list[PageHandle]: ...

    async def cancel(self, page_ids: list[str]) -> None: ...


class HttpPagingQueueClient:
    """Talks to the paging queue's HTTP API."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        path: str | None = None,
        secret: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.paging_queue_url).rstrip("/")
        self._path = path or settings.paging_queue_path
        self._secret = secret if secret is not None else settings.paging_queue_secret
        self._timeout = timeout or settings.paging_queue_timeout_seconds
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._secret:
            headers["Authorization"] = self._secret
        return headers

    async def _post(self, path: str, payload: dict) -> httpx.Response:
        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(url, json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            raise TransportError(f"Paging queue unreachable: {e}") from e

        if response.status_code >= 300:
            raise TransportError(
                f"Paging queue error: {response.status_code} {response.text}"
            )
        return response

    async def submit_batch(self, requests: list[PageRequest]) -> list[PageHandle]:
        """Submit every page for a ticket in one call.

        Returns:
            The handles the queue generated, possibly empty if the queue
            does not report identifiers.

        Raises:
            TransportError: If the queue is unreachable or rejects the batch.
        """
        if not requests:
            return []

        response = await self._post(
            self._path,
            {"pages": [r.model_dump(mode="json") for r in requests]},
        )
        data = response.json() if response.content else {}
        handles = [PageHandle.model_validate(p) for p in data.get("pages", [])]

        logger.info(
            "Submitted page batch",
            ticket_id=str(requests[0].ticket_id),
            requested=len(requests),
            accepted=len(handles),
        )
        return handles

    async def cancel(self, page_ids: list[str]) -> None:
        """Ask the queue to drop pages that have not fired yet.

        Raises:
            TransportError: If the queue is unreachable or rejects the request.
        """
        if not page_ids:
            return
        await self._post(f"{self._path}/cancel", {"page_ids": page_ids})
        logger.info("Cancelled pending pages", count=len(page_ids))


class InMemoryPagingQueue:
    """Records submitted pages instead of delivering them."""

    def __init__(self) -> None:
        self.pages: dict[str, PageRequest] = {}
        self.cancelled: list[str] = []

    async def submit_batch(self, requests: list[PageRequest]) -> list[PageHandle]:
        handles = []
        for request in requests:
            page_id = uuid.uuid4().hex
            self.pages[page_id] = request
            handles.append(PageHandle(page_id=page_id, ticket_id=request.ticket_id))
        return handles

    async def cancel(self, page_ids: list[str]) -> None:
        for page_id in page_ids:
            if self.pages.pop(page_id, None) is not None:
                self.cancelled.append(page_id)

    def size(self) -> int:
        return len(self.pages)
