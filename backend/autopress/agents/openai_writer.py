"""Writer for OpenAI-compatible chat completion endpoints."""

from typing import Any

import httpx

from autopress.agents.base import Completion, ProviderCredential, error_for_status
from autopress.exceptions import ParseFailure, ProviderError, TransientProviderError


class OpenAICompatibleWriter:
    """
    Plain httpx client for `/chat/completions`.

    Works against OpenAI itself and the gateways that mirror its API.
    Web search is not available on this path and the flag is ignored.
    """

    name = "openai"

    def __init__(
        self,
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o-mini",
        max_tokens: int = 4096,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.max_tokens = max_tokens
        self.http = http or httpx.AsyncClient()

    async def complete(
        self,
        system: str,
        user: str,
        *,
        credential: ProviderCredential,
        web_search: bool = False,
        timeout: float = 90.0,
    ) -> Completion:
        payload: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        }

        try:
            response = await self.http.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {credential.api_key}"},
                timeout=timeout,
            )
        except httpx.TransportError as e:
            raise TransientProviderError(f"openai connection failed: {e}", provider=self.name) from e

        if response.status_code >= 400:
            raise error_for_status(self.name, response.status_code, response.text[:300])

        try:
            data = response.json()
        except ValueError as e:
            raise ParseFailure(f"openai returned a non-JSON body: {response.text[:120]!r}", provider=self.name) from e
        try:
            text = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError("openai response has no message content", provider=self.name) from e

        usage = data.get("usage") or {}
        return Completion(
            text=text,
            tokens_in=int(usage.get("prompt_tokens", 0)),
            tokens_out=int(usage.get("completion_tokens", 0)),
            model=data.get("model") or self.model,
        )
