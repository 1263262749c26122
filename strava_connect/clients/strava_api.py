"""Read-only wrapper around the Strava v3 resource API."""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from strava_connect.core.config import StravaSettings
from strava_connect.utils.http import RetryConfig, request_with_retry


class StravaAPIError(Exception):
    """Raised when the Strava API responds with an error or is unreachable."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StravaAPIClient:
    """Fetch athlete resources on behalf of a user holding a valid access token."""

    def __init__(
        self,
        strava_settings: StravaSettings,
        retry_config: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._strava = strava_settings
        self._retry = retry_config or RetryConfig(attempts=2, backoff_seconds=0.5)
        self._transport = transport

    async def list_activities(
        self,
        access_token: str,
        *,
        before: Optional[int] = None,
        after: Optional[int] = None,
        per_page: int = 200,
    ) -> list[Dict[str, Any]]:
        params: Dict[str, Any] = {"per_page": per_page}
        if before is not None:
            params["before"] = before
        if after is not None:
            params["after"] = after
        return await self._get("/athlete/activities", access_token, params=params)

    async def get_athlete_stats(self, access_token: str, athlete_id: int) -> Dict[str, Any]:
        return await self._get(f"/athletes/{athlete_id}/stats", access_token)

    async def _get(
        self,
        path: str,
        access_token: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self._strava.api_base_url}{path}"
        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            async with httpx.AsyncClient(
                timeout=self._strava.request_timeout_seconds, transport=self._transport
            ) as client:
                response = await request_with_retry(
                    client.get,
                    url,
                    params=params,
                    headers=headers,
                    retry_config=self._retry,
                )
        except httpx.HTTPError as exc:
            raise StravaAPIError(f"Strava request failed: {exc}") from exc

        if response.status_code != httpx.codes.OK:
            raise StravaAPIError(_error_message(response), status_code=response.status_code)
        return response.json()


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.text


__all__ = ["StravaAPIClient", "StravaAPIError"]
