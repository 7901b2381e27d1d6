from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig


def _drop_none(params: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in params.items() if value is not None}


class ApiClient:
    """Minimal HTTP client for the temperature service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def get_buckets(
        self,
        period: str,
        offset: int = 0,
        location: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        params = _drop_none(
            {
                "period": period,
                "offset": offset,
                "location": location,
                "start_date": start_date,
                "end_date": end_date,
                "limit": limit,
            }
        )
        return self._get("/api/temperatures", params)

    def get_latest(self, location: Optional[str] = None) -> Dict[str, Any]:
        return self._get("/api/temperatures/latest", _drop_none({"location": location}))

    def get_stats(
        self,
        period: str,
        offset: int = 0,
        location: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Dict[str, Any]:
        params = _drop_none(
            {
                "period": period,
                "offset": offset,
                "location": location,
                "start_date": start_date,
                "end_date": end_date,
            }
        )
        return self._get("/api/temperatures/stats", params)

    def get_raw(self, label: str, location: str, period: Optional[str] = None) -> List[Dict[str, Any]]:
        params = _drop_none({"timestamp": label, "location": location, "period": period})
        return self._get("/api/temperatures/raw", params)

    def ingest(
        self,
        temperature: float,
        device_id: str,
        timestamp: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not self._config.ingest_secret:
            raise typer.BadParameter("An ingest secret is required (--secret or TEMPS_INGEST_SECRET).")
        body = _drop_none({"temperature": temperature, "device_id": device_id, "timestamp": timestamp})
        try:
            response = self._client.post(
                "/api/temperatures",
                json=body,
                headers={"X-Ingest-Secret": self._config.ingest_secret},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    def _get(self, path: str, params: Dict[str, Any]) -> Any:
        try:
            response = self._client.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: Any = None
        try:
            detail = exc.response.json().get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        if isinstance(detail, dict):
            detail = f"{detail.get('error')}: {detail.get('reason')}"
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
