from __future__ import annotations
import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx
import requests

from config import Settings
from errors import GenerationTransportFailure

logger = logging.getLogger(__name__)


def _mask(api_key: Optional[str]) -> str:
    if api_key and len(api_key) > 10:
        return api_key[:6] + "..." + api_key[-4:]
    return str(bool(api_key))


def _extract_content(data: Dict[str, Any], transport: str) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise GenerationTransportFailure(transport, f"malformed response: {e}") from e
    if not isinstance(content, str) or not content.strip():
        raise GenerationTransportFailure(transport, "empty completion")
    return content.strip()


class BaseOpenRouterClient:
    """
    Shared OpenRouter wire format: credentials, headers, payload and response parsing.
    Docs: https://openrouter.ai/docs/api-reference/chat-completion

    A missing API key does not raise here; `configured` is False and every
    call fails fast with GenerationTransportFailure.
    """
    transport = "openrouter"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        api_url: Optional[str] = None,
        referer: Optional[str] = None,
        title: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.model = model
        self.referer = referer
        self.title = title
        self.timeout = timeout

        logger.info(
            "[%s] API_KEY=%s MODEL=%s URL=%s REFERER=%s TITLE=%s",
            self.__class__.__name__, _mask(self.api_key), self.model,
            self.api_url, self.referer, self.title,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "BaseOpenRouterClient":
        return cls(
            api_key=settings.api_key,
            model=settings.model,
            api_url=settings.api_url,
            referer=settings.referer,
            title=settings.title,
            timeout=settings.timeout,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.api_url and self.model)

    def _headers(self) -> Dict[str, str]:
        h = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if self.referer:
            h["HTTP-Referer"] = self.referer
        if self.title:
            h["X-Title"] = self.title
        return h

    def _payload(
        self,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: int,
        extra: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if extra:
            payload.update(extra)
        return payload

    def _ensure_configured(self) -> None:
        if not self.configured:
            raise GenerationTransportFailure(self.transport, "client is not configured")

    def _read_response(self, resp: Any) -> str:
        # requests.Response and httpx.Response share status_code/text/json().
        if resp.status_code != 200:
            raise GenerationTransportFailure(
                self.transport, f"error {resp.status_code}: {resp.text[:500]}", resp.status_code
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise GenerationTransportFailure(self.transport, "response was not valid JSON") from e
        return _extract_content(data, self.transport)

    async def achat(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.7,
        max_tokens: int = 300,
        extra: Optional[Dict[str, Any]] = None,
    ) -> str:
        raise NotImplementedError


class OpenRouterClient(BaseOpenRouterClient):
    """Primary tier: blocking `requests` client, awaited through a worker thread."""

    def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.7,
        max_tokens: int = 300,
        extra: Optional[Dict[str, Any]] = None,
    ) -> str:
        self._ensure_configured()
        payload = self._payload(messages, temperature, max_tokens, extra)
        try:
            resp = requests.post(self.api_url, json=payload, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            raise GenerationTransportFailure(self.transport, str(e)) from e
        return self._read_response(resp)

    async def achat(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.7,
        max_tokens: int = 300,
        extra: Optional[Dict[str, Any]] = None,
    ) -> str:
        # Runs the blocking call off the event loop. Cancelling the awaiting
        # task abandons the result; the worker thread finishes on its own.
        return await asyncio.to_thread(
            self.chat, messages, temperature=temperature, max_tokens=max_tokens, extra=extra
        )


class AsyncOpenRouterClient(BaseOpenRouterClient):
    """Secondary tier: same wire format over an `httpx.AsyncClient`, fully cancellable."""
    transport = "openrouter-async"

    @classmethod
    def from_settings(cls, settings: Settings) -> "AsyncOpenRouterClient":
        return cls(
            api_key=settings.api_key,
            model=settings.fallback_model,
            api_url=settings.fallback_api_url,
            referer=settings.referer,
            title=settings.title,
            timeout=settings.timeout,
        )

    async def achat(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.7,
        max_tokens: int = 300,
        extra: Optional[Dict[str, Any]] = None,
    ) -> str:
        self._ensure_configured()
        payload = self._payload(messages, temperature, max_tokens, extra)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(self.api_url, json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            raise GenerationTransportFailure(self.transport, str(e)) from e
        return self._read_response(resp)
