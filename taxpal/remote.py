"""Client for the remote transactions/budgets API.

The API is a collaborator we consume, not something we own: every failure
(network error, non-success status, unexpected body) is raised as
``RemoteUnavailable`` and it is up to the caller to fall back.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import requests

from taxpal.errors import RemoteUnavailable

logger = logging.getLogger(__name__)


def _safe_json_response(response: requests.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as exc:
        raise RemoteUnavailable(f"invalid JSON from {response.url}", response.status_code) from exc


def unwrap_list(body: Any, plural: str) -> List[Dict[str, Any]]:
    """Accept ``{data: [...]}``, ``{<plural>: [...]}`` or a bare list."""
    if isinstance(body, dict):
        for key in ("data", plural):
            if key in body:
                return unwrap_list(body[key], plural)
    if isinstance(body, list):
        return body
    raise RemoteUnavailable(f"expected a list of {plural}, got {type(body).__name__}")


def unwrap_one(body: Any, singular: str) -> Optional[Dict[str, Any]]:
    """Accept ``{data: {...}}``, ``{<singular>: {...}}`` or the record itself."""
    if not isinstance(body, dict):
        return None
    for key in ("data", singular):
        if isinstance(body.get(key), dict):
            return unwrap_one(body[key], singular)
    return body


class RemoteClient:

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def close(self) -> None:
        self.session.close()

    def _send(self, method: str, path: str, payload: Optional[dict] = None) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            raise RemoteUnavailable(f"{method} {url} failed with {status}", status) from exc
        except requests.RequestException as exc:
            raise RemoteUnavailable(f"{method} {url} failed: {exc}") from exc
        return _safe_json_response(response)

    async def _request(self, method: str, path: str, payload: Optional[dict] = None) -> Any:
        # requests blocks; keep the event loop free while it waits
        return await asyncio.to_thread(self._send, method, path, payload)

    async def list_transactions(self) -> List[Dict[str, Any]]:
        body = await self._request("GET", "/transactions")
        return unwrap_list(body, "transactions")

    async def create_transaction(self, record: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        payload = {k: v for k, v in record.items() if k != "id"}
        body = await self._request("POST", "/transactions", payload)
        return unwrap_one(body, "transaction")

    async def list_budgets(self) -> List[Dict[str, Any]]:
        body = await self._request("GET", "/budgets")
        return unwrap_list(body, "budgets")

    async def create_budget(self, record: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        payload = {k: v for k, v in record.items() if k != "id"}
        body = await self._request("POST", "/budgets", payload)
        return unwrap_one(body, "budget")

    async def delete_budget(self, budget_id: str) -> None:
        await self._request("DELETE", f"/budgets/{budget_id}")
