"""HTTP client for the analytics backend used by the upload pipeline."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel

from .config import ApiConfig
from .errors import ConflictError, TransmissionError
from .upload.conflict import parse_timestamp
from .upload.validator import CandidateFile

logger = logging.getLogger(__name__)


class UploadEligibility(BaseModel):
    """Answer of the usage upload eligibility endpoint."""

    eligible: bool
    message: Optional[str] = None
    last_upload_date: Optional[datetime] = None
    days_since_last_upload: Optional[int] = None


class AnalyticsClient:
    """Thin async wrapper over the dashboard REST API.

    Every failure is raised as ``TransmissionError`` carrying a message fit
    for display, except usage overwrite refusals which raise
    ``ConflictError``.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:3001/api",
        timeout: float = 10.0,
        token: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, headers=headers
        )
        if http_client is not None and headers:
            self._client.headers.update(headers)

    @classmethod
    def from_config(cls, config: ApiConfig) -> "AnalyticsClient":
        return cls(base_url=config.base_url, timeout=config.timeout, token=config.token)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "AnalyticsClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Endpoints
    async def upload_tickets(
        self, file: CandidateFile, organization: Optional[str] = None
    ) -> Dict[str, Any]:
        """POST /tickets/upload with the file as multipart ``file`` field."""
        data = {"organization": organization} if organization else None
        return await self._post_file("/tickets/upload", file, data=data)

    async def upload_usage(
        self, file: CandidateFile, organization: str, force: bool = False
    ) -> Dict[str, Any]:
        """POST /usage/upload; HTTP 409 means the conflict window is still open."""
        params = {"force": "true"} if force else None
        return await self._post_file(
            "/usage/upload", file, data={"organization": organization}, params=params
        )

    async def last_upload_date(self, organization: str) -> Optional[datetime]:
        """Return the organization's most recent usage upload time, if any."""
        body = await self._get(
            "/analytics/last-upload-date", params={"organization": organization}
        )
        return parse_timestamp(body.get("usage") if isinstance(body, dict) else None)

    async def check_upload_eligibility(self, organization: str) -> UploadEligibility:
        body = await self._get(f"/usage/check-upload-eligibility/{organization}")
        if not isinstance(body, dict):
            raise TransmissionError("Unexpected eligibility response")
        return UploadEligibility(
            eligible=bool(body.get("eligible")),
            message=body.get("message"),
            last_upload_date=parse_timestamp(body.get("lastUploadDate")),
            days_since_last_upload=body.get("daysSinceLastUpload"),
        )

    # ------------------------------------------------------------------
    # Request helpers
    async def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        response = await self._send("GET", path, params=params)
        return self._unwrap(response)

    async def _post_file(
        self,
        path: str,
        file: CandidateFile,
        data: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        content = await asyncio.to_thread(file.read_bytes)
        files = {"file": (file.name, content, file.content_type)}
        response = await self._send("POST", path, files=files, data=data, params=params)
        body = self._unwrap(response)
        return body if isinstance(body, dict) else {"data": body}

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"{method} {path} timed out: {e}")
            raise TransmissionError(
                f"Request timed out: {self.base_url}{path}"
            ) from e
        except httpx.TransportError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise TransmissionError(
                f"Network error: Cannot connect to backend at {self.base_url}"
            ) from e

        if response.status_code == 409:
            body = _json_object(response)
            raise ConflictError(
                body.get("message") or "Upload conflicts with a recent upload",
                days_since_last_upload=body.get("daysSinceLastUpload"),
                last_upload_date=body.get("lastUploadDate"),
            )
        if response.is_error:
            raise TransmissionError(
                _derive_error_message(response, path),
                status_code=response.status_code,
                details=_json_object(response).get("details"),
            )
        return response

    @staticmethod
    def _unwrap(response: httpx.Response) -> Any:
        """Strip the ``{success, data}`` envelope when the backend uses it."""
        body = _json_or_empty(response)
        if isinstance(body, dict) and "success" in body:
            if not body["success"]:
                raise TransmissionError(
                    body.get("message") or body.get("error") or "API request failed",
                    status_code=response.status_code,
                )
            if "data" in body:
                return body["data"]
        return body


def _json_or_empty(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {}


def _json_object(response: httpx.Response) -> Dict[str, Any]:
    body = _json_or_empty(response)
    return body if isinstance(body, dict) else {}


def _derive_error_message(response: httpx.Response, path: str) -> str:
    status = response.status_code
    if status >= 500:
        return f"Server error ({status}): {response.reason_phrase}"
    if status == 404:
        return f"API endpoint not found: {path}"
    body = _json_object(response)
    detail = body.get("error") or body.get("message")
    if detail:
        return str(detail)
    return f"Request failed ({status}): {response.reason_phrase}"
