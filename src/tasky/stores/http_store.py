"""REST client for the hosted tasky API.

Endpoints used:

    GET    /api/todos?listId=&date=   list tasks
    POST   /api/todos                 create
    PUT    /api/todos?id=             partial update
    DELETE /api/todos?id=             delete
    PUT    /api/todos/reorder         {"todoIds": [...]} bulk positions
    POST   /api/auth                  {"password": ...} -> {"token": ...}

Write endpoints require a bearer token obtained from :meth:`login`.
"""

from __future__ import annotations

import logging
from typing import Any

import aiohttp
from pydantic import ValidationError

from tasky.errors import LoadError, PersistenceError, TaskNotFoundError, TaskyError
from tasky.models import Task, TaskDraft

logger = logging.getLogger(__name__)

# Python field name -> wire name for update payloads
WIRE_NAMES = {
    "text": "text",
    "description": "description",
    "important": "isImportant",
    "completed": "completed",
    "list_id": "listId",
    "position": "position",
}


class HttpTaskStore:
    """Task repository and position store talking to the hosted API."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> HttpTaskStore:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying session if this store created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        not_found: str | None = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with self._get_session().request(
                method, url, params=params, json=json, headers=self._headers()
            ) as response:
                if response.status == 404 and not_found is not None:
                    raise TaskNotFoundError(not_found)
                if response.status >= 400:
                    message = await _error_message(response)
                    raise PersistenceError(f"{method} {path} failed ({response.status}): {message}")
                return await response.json(content_type=None)
        except TaskyError:
            raise
        except (aiohttp.ClientError, TimeoutError, ValueError) as exc:
            raise PersistenceError(f"{method} {path} failed: {exc}") from exc

    # ---- auth ----

    async def login(self, password: str) -> str:
        """Exchange the password for a session token and keep it."""
        data = await self._request("POST", "/api/auth", json={"password": password})
        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            raise PersistenceError("Login response did not contain a token")
        self.token = token
        logger.info("Logged in to %s", self.base_url)
        return token

    # ---- TaskRepository ----

    async def fetch(self, list_id: str | None = None, date: str | None = None) -> list[Task]:
        """List tasks, optionally filtered by list and creation day."""
        params: dict[str, str] = {}
        if list_id:
            params["listId"] = list_id
        if date:
            params["date"] = date

        try:
            data = await self._request("GET", "/api/todos", params=params)
        except PersistenceError as exc:
            raise LoadError(str(exc)) from exc

        if not isinstance(data, list):
            raise LoadError("Malformed response: expected a list of tasks")
        try:
            return [Task.model_validate(item) for item in data]
        except ValidationError as exc:
            raise LoadError(f"Malformed task record: {exc}") from exc

    async def create(self, draft: TaskDraft) -> Task:
        """Create a task; the server assigns id and timestamp."""
        data = await self._request("POST", "/api/todos", json=draft.to_wire())
        return _parse_task(data)

    async def update(self, task_id: str, **fields: Any) -> Task:
        """Apply a partial update."""
        unknown = set(fields) - set(WIRE_NAMES)
        if unknown:
            raise PersistenceError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        payload = {WIRE_NAMES[name]: value for name, value in fields.items()}
        data = await self._request(
            "PUT", "/api/todos", params={"id": task_id}, json=payload, not_found=task_id
        )
        return _parse_task(data)

    async def delete(self, task_id: str) -> None:
        """Delete a task."""
        await self._request("DELETE", "/api/todos", params={"id": task_id}, not_found=task_id)

    # ---- PositionStore ----

    async def bulk_set_positions(self, task_ids: list[str]) -> None:
        """Persist the given order in one request."""
        await self._request("PUT", "/api/todos/reorder", json={"todoIds": list(task_ids)})
        logger.debug("Reorder of %d tasks accepted", len(task_ids))


async def _error_message(response: aiohttp.ClientResponse) -> str:
    """Best-effort extraction of the server's error message."""
    try:
        data = await response.json(content_type=None)
    except (aiohttp.ContentTypeError, ValueError):
        return response.reason or ""
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return response.reason or ""


def _parse_task(data: Any) -> Task:
    try:
        return Task.model_validate(data)
    except ValidationError as exc:
        raise PersistenceError(f"Malformed task record: {exc}") from exc
