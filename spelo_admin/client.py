from __future__ import annotations

from typing import Any, Dict, Iterable, Optional, Union

import httpx

from .logging_setup import get_logger
from .schemas import JobFilter
from .settings import settings

log = get_logger("client")

JOBS_PATH = "/api/v1/jobs"
AUDIO_JOBS_PATH = "/api/v1/audio-processing/jobs"
VOCAB_AUTO_CREATE_PATH = "/api/v1/vocab/auto-create"
UPLOAD_TASKS_PATH = "/api/admin/upload-tasks"


class TransportError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AdminClient:
    """Async transport for the admin API. Every failure surfaces as ``TransportError``."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"accept": "application/json"}
        token = token if token is not None else settings.api_token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=(base_url or settings.api_url).rstrip("/"),
            headers=headers,
            timeout=timeout if timeout is not None else settings.http_timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AdminClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def _request(self, action: str, method: str, url: str, **kwargs: Any) -> Any:
        try:
            resp = await self._client.request(method, url, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as err:
            body = err.response.text.strip()
            raise TransportError(
                f"Failed to {action}: HTTP {err.response.status_code} - {body or err.response.reason_phrase}",
                status_code=err.response.status_code,
            ) from err
        except httpx.RequestError as err:
            raise TransportError(f"Failed to {action}: {err}") from err
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as err:
            raise TransportError(f"Failed to {action}: response is not JSON") from err

    async def submit_job(self, path: str, payload: Dict[str, Any]) -> Any:
        url = path if path.startswith("/") else f"/{path}"
        return await self._request("submit job", "POST", url, json=payload)

    async def fetch_job_status(self, job_id: Union[int, str]) -> Any:
        return await self._request("fetch job status", "GET", f"{JOBS_PATH}/{job_id}")

    async def fetch_audio_job(self, job_id: Union[int, str]) -> Any:
        return await self._request("fetch audio job", "GET", f"{AUDIO_JOBS_PATH}/{job_id}")

    async def fetch_job_list(self, job_filter: Optional[JobFilter] = None) -> Any:
        params = (job_filter or JobFilter()).to_query()
        return await self._request("list jobs", "GET", JOBS_PATH, params=params)

    async def fetch_upload_task(self, task_id: str) -> Any:
        return await self._request("fetch upload progress", "GET", f"{UPLOAD_TASKS_PATH}/{task_id}/status")

    async def auto_create_vocab(self, words: Iterable[str]) -> Any:
        payload = {"words": [w for w in (s.strip() for s in words) if w]}
        if not payload["words"]:
            raise ValueError("no words to submit")
        log.info("submitting %d word(s) for auto-create", len(payload["words"]))
        return await self.submit_job(VOCAB_AUTO_CREATE_PATH, payload)

    async def finalize_audio_job(self, job_id: Union[int, str]) -> Any:
        return await self._request("finalize audio job", "POST", f"{AUDIO_JOBS_PATH}/{job_id}/finalize")
