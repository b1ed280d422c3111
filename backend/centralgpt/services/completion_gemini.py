"""
Google Gemini Completion Adapter

Calls the Gemini REST API with credential failover:
- keys are tried strictly in order, one request in flight at a time
- only rate-limit / permission failures (429, 403, RESOURCE_EXHAUSTED,
  PERMISSION_DENIED) move on to the next key
- every other failure, and an empty reply, is raised immediately
"""
import asyncio
import base64
import logging
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

import httpx

from .completion_base import Attachment, CompletionGateway, Turn
from .credential_pool import CredentialPool
from ..config import settings
from ..core.errors import (
    CredentialsExhausted,
    EmptyMessage,
    EmptyResponse,
    ProviderError,
    QuotaOrAuthError,
    VideoCancelled,
    VideoTimeout,
)

logger = logging.getLogger("uvicorn.error")

T = TypeVar("T")

RETRYABLE_STATUS_CODES = (429, 403)
RETRYABLE_PROVIDER_STATUSES = ("RESOURCE_EXHAUSTED", "PERMISSION_DENIED")

HARM_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


def classify_http_error(resp: httpx.Response) -> ProviderError:
    """
    Turn a failed Gemini response into QuotaOrAuthError (retry with the next key)
    or ProviderError (give up).

    Gemini error bodies look like:
        {"error": {"code": 429, "message": "...", "status": "RESOURCE_EXHAUSTED"}}
    """
    message = resp.text
    provider_status = None
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        message = body["error"].get("message") or message
        provider_status = body["error"].get("status")

    text = f"HTTP {resp.status_code}: {message}"
    if resp.status_code in RETRYABLE_STATUS_CODES or provider_status in RETRYABLE_PROVIDER_STATUSES:
        return QuotaOrAuthError(text, status_code=resp.status_code, provider_status=provider_status)
    return ProviderError(text, status_code=resp.status_code, provider_status=provider_status)


def build_contents(history: Sequence[Turn], message: str, attachments: Sequence[Attachment]) -> list[dict]:
    """Prior turns first, then the current user turn (text part, then inline data parts)"""
    contents = [{"role": t.role, "parts": [{"text": t.text}]} for t in history]

    current_parts: list[dict] = []
    if message:
        current_parts.append({"text": message})
    for att in attachments:
        current_parts.append({
            "inlineData": {
                "mimeType": att.mime_type,
                "data": base64.b64encode(att.data).decode("ascii"),
            }
        })
    contents.append({"role": "user", "parts": current_parts})
    return contents


def extract_text(result: dict) -> str:
    """Concatenate the text parts of the first candidate ("" if there are none)"""
    candidates = result.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(p.get("text", "") for p in parts if isinstance(p, dict))


def extract_video_uri(operation: dict) -> Optional[str]:
    response = operation.get("response") or {}
    samples = (response.get("generateVideoResponse") or {}).get("generatedSamples") or []
    if not samples:
        return None
    return (samples[0].get("video") or {}).get("uri")


class GeminiGateway(CompletionGateway):
    """Google Gemini API completion gateway"""

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        poll_interval: Optional[float] = None,
        poll_timeout: Optional[float] = None,
    ):
        self.api_base = settings.gemini_api_base.rstrip("/")
        self.model = settings.gemini_model
        self.video_model = settings.veo_model
        self.timeout = settings.gemini_timeout_sec
        self.poll_interval = settings.video_poll_interval_sec if poll_interval is None else poll_interval
        self.poll_timeout = settings.video_poll_timeout_sec if poll_timeout is None else poll_timeout
        self._transport = transport  # Tests plug an httpx.MockTransport in here

    @property
    def name(self) -> str:
        return "Google Gemini API"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _post(self, client: httpx.AsyncClient, url: str, api_key: str, payload: dict) -> dict:
        resp = await client.post(url, headers={"x-goog-api-key": api_key}, json=payload)
        if resp.is_error:
            raise classify_http_error(resp)
        return resp.json()

    async def _get(self, client: httpx.AsyncClient, url: str, api_key: str) -> dict:
        resp = await client.get(url, headers={"x-goog-api-key": api_key})
        if resp.is_error:
            raise classify_http_error(resp)
        return resp.json()

    async def _with_failover(
        self,
        label: str,
        credentials: CredentialPool,
        attempt: Callable[[str], Awaitable[T]],
    ) -> T:
        """
        Run attempt(key) for each key in order until one is not rejected.
        Bounded by len(credentials); raises CredentialsExhausted past the end.
        """
        for idx in range(len(credentials)):
            try:
                return await attempt(credentials[idx])
            except QuotaOrAuthError as e:
                logger.warning("[gateway] %s: key #%d rejected (%s), trying next", label, idx, e.message)
        logger.error("[gateway] %s: all %d keys exhausted", label, len(credentials))
        raise CredentialsExhausted(attempts=len(credentials))

    async def complete(self, message, attachments, history, credentials, system_instruction):
        attachments = list(attachments or [])
        if not message and not attachments:
            raise EmptyMessage("Message cannot be empty")

        pool = CredentialPool.of(credentials)
        url = f"{self.api_base}/models/{self.model}:generateContent"
        payload = {
            "contents": build_contents(list(history or []), message, attachments),
            "systemInstruction": {"parts": [{"text": system_instruction}]},
            "safetySettings": [
                {"category": c, "threshold": "BLOCK_NONE"} for c in HARM_CATEGORIES
            ],
        }

        async with self._client() as client:
            async def attempt(api_key: str) -> str:
                result = await self._post(client, url, api_key, payload)
                text = extract_text(result)
                if not text:
                    raise EmptyResponse("Empty response")
                return text

            return await self._with_failover("complete", pool, attempt)

    async def complete_as_video(self, prompt, credentials, cancel=None):
        pool = CredentialPool.of(credentials)
        url = f"{self.api_base}/models/{self.video_model}:predictLongRunning"
        payload = {
            "instances": [{"prompt": prompt}],
            "parameters": {"sampleCount": 1, "resolution": "720p", "aspectRatio": "16:9"},
        }

        async with self._client() as client:
            async def attempt(api_key: str) -> str:
                operation = await self._post(client, url, api_key, payload)
                operation = await self._poll(client, operation, api_key, cancel)
                if operation.get("error"):
                    err = operation["error"]
                    raise ProviderError(err.get("message") or "Video job failed",
                                        provider_status=err.get("status"))
                video_uri = extract_video_uri(operation)
                if not video_uri:
                    raise EmptyResponse("Failed to generate video URI")
                return f"{video_uri}&key={api_key}"

            return await self._with_failover("complete_as_video", pool, attempt)

    async def _poll(
        self,
        client: httpx.AsyncClient,
        operation: dict,
        api_key: str,
        cancel: Optional[asyncio.Event],
    ) -> dict:
        """Re-read the operation every poll_interval seconds until it reports done"""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.poll_timeout
        name = operation.get("name")
        while not operation.get("done"):
            if not name:
                raise ProviderError("Video job returned no operation name")
            if cancel is not None and cancel.is_set():
                raise VideoCancelled("Video generation cancelled")
            if loop.time() >= deadline:
                raise VideoTimeout(f"Video generation did not finish within {self.poll_timeout:g}s")
            await self._sleep(cancel)
            if cancel is not None and cancel.is_set():
                raise VideoCancelled("Video generation cancelled")
            operation = await self._get(client, f"{self.api_base}/{name}", api_key)
        return operation

    async def _sleep(self, cancel: Optional[asyncio.Event]) -> None:
        if cancel is None:
            await asyncio.sleep(self.poll_interval)
            return
        try:
            await asyncio.wait_for(cancel.wait(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            pass
