import logging
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..exceptions import SyncError
from ..schemas.entities import TaskComment
from .mapper import comments_payload, task_status_payload

logger = logging.getLogger("he-core.backend-client")


class BackendClient:
    """
    REST client for the HazardEye backend.
    Returns raw DTO dicts; mapping into models happens at the store boundary.
    Every transport or HTTP failure surfaces as SyncError.
    """

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None,
                 timeout: Optional[float] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.token = token if token is not None else settings.API_TOKEN
        self.timeout = timeout or settings.HTTP_TIMEOUT
        self._transport = transport
        self.http_client: Optional[httpx.AsyncClient] = None

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def open(self):
        if self.http_client is None:
            self.http_client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers(),
                timeout=self.timeout,
                transport=self._transport,
            )

    async def aclose(self):
        if self.http_client:
            await self.http_client.aclose()
            self.http_client = None

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        await self.open()
        try:
            response = await self.http_client.request(method, endpoint, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {endpoint} failed: {e}")
            raise SyncError(f"{method} {endpoint} failed: {e}") from e

        if response.status_code == 401:
            logger.warning("Unauthorized access to backend API; token may have expired")
        if response.is_error:
            detail = response.text or response.reason_phrase
            raise SyncError(f"API Error {response.status_code}: {detail}", status_code=response.status_code)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            logger.warning(f"{method} {endpoint} returned a non-JSON body")
            return None

    # ------------------------------------------------------------------
    # Bulk fetch
    # ------------------------------------------------------------------

    async def fetch_incidents(self) -> List[Dict[str, Any]]:
        data = await self._request("GET", "/incidents", params={"PageSize": settings.INCIDENT_PAGE_SIZE})
        if isinstance(data, dict):
            return data.get("items", [])
        return data or []

    async def fetch_tasks(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/tasks") or []

    async def fetch_users(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/users") or []

    async def fetch_locations(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/locations") or []

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def update_task_status(self, task_id: str, status: str) -> Optional[Dict[str, Any]]:
        return await self._request("PUT", f"/tasks/{task_id}/status", json=task_status_payload(status))

    async def add_task_comment(self, task_id: str, comment: TaskComment,
                               comments: List[TaskComment]) -> Optional[Any]:
        """Persist a new comment; the full serialized thread travels with it."""
        body = {
            "text": comment.text,
            "userId": comment.user_id,
            "userName": comment.user_name,
            "userRole": comment.user_role,
            "timestamp": comment.timestamp.isoformat(),
            "comments": comments_payload(comments),
        }
        return await self._request("POST", f"/tasks/{task_id}/comments", json=body)

    async def create_task(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self._request("POST", "/tasks", json=payload)

    async def update_incident(self, incident_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self._request("PUT", f"/incidents/{incident_id}", json=changes)
