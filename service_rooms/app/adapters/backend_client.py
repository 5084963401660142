"""
Supabase (PostgREST) client for the rooms service.
"""

import httpx
from typing import Any, Dict, List, Optional

from shared.logging import get_logger
from shared.errors import BackendError, NotFoundError
from shared.retry import retry_on_exception, RetryConfig


class BackendClient:
    """Row selector over the backend's REST interface.

    Filters use PostgREST operator syntax, e.g. ``{"user_id": "eq.u1"}`` or
    ``{"id": "in.(r1,r2)"}``.
    """

    def __init__(self, base_url: str, api_key: Optional[str] = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.logger = get_logger("rooms.backend_client")

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    @retry_on_exception((httpx.TransportError,), config=RetryConfig(max_attempts=3, base_delay=0.5))
    async def _get(self, path: str, params: Dict[str, str]) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.get(
                f"{self.base_url}{path}",
                params=params,
                headers=self._headers()
            )

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Dict[str, str]] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Select rows from a table."""
        params: Dict[str, str] = {"select": columns}
        params.update(filters or {})
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = str(limit)

        try:
            response = await self._get(f"/rest/v1/{table}", params)
        except httpx.HTTPError as e:
            self.logger.error("Backend unavailable", table=table, error=str(e))
            raise BackendError(
                "Backend unavailable",
                details={"table": table, "error": str(e)}
            ) from e

        if response.status_code != 200:
            self.logger.error("Backend query failed", table=table, status_code=response.status_code)
            raise BackendError(
                f"Query on {table} failed: {response.status_code}",
                details={"table": table, "status_code": response.status_code}
            )

        rows = response.json()
        self.logger.debug("Backend query", table=table, rows=len(rows))
        return rows

    async def select_one(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Select exactly one row; raises ``NotFoundError`` when none matches."""
        rows = await self.select(table, columns=columns, filters=filters, limit=1)
        if not rows:
            raise NotFoundError(
                f"No {table} row matches",
                details={"table": table, "filters": filters or {}}
            )
        return rows[0]
