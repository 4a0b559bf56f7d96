"""Gemini-backed article writer.

Alternative to the Claude writer, using Google's Gemini model.
"""

import httpx
from google import genai
from google.genai import errors, types

from autopress.agents.base import Completion, ProviderCredential, error_for_status
from autopress.exceptions import TransientProviderError


class GeminiWriter:
    """Writer that calls Gemini through the google-genai async client."""

    name = "gemini"

    def __init__(self, model: str = "gemini-2.0-flash", max_tokens: int = 4096) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self._clients: dict[str, genai.Client] = {}

    def _client(self, credential: ProviderCredential) -> genai.Client:
        if credential.api_key not in self._clients:
            self._clients[credential.api_key] = genai.Client(api_key=credential.api_key)
        return self._clients[credential.api_key]

    async def complete(
        self,
        system: str,
        user: str,
        *,
        credential: ProviderCredential,
        web_search: bool = False,
        timeout: float = 90.0,
    ) -> Completion:
        config = types.GenerateContentConfig(
            system_instruction=system,
            max_output_tokens=self.max_tokens,
            http_options=types.HttpOptions(timeout=int(timeout * 1000)),
            tools=[types.Tool(google_search=types.GoogleSearch())] if web_search else None,
        )

        try:
            response = await self._client(credential).aio.models.generate_content(
                model=self.model,
                contents=user,
                config=config,
            )
        except errors.APIError as e:
            raise error_for_status(self.name, e.code or 500, e.message or str(e)) from e
        except httpx.TransportError as e:
            # Includes httpx.TimeoutException
            raise TransientProviderError(f"gemini connection failed: {e}", provider=self.name) from e

        usage = response.usage_metadata
        return Completion(
            text=response.text or "",
            tokens_in=(usage.prompt_token_count or 0) if usage else 0,
            tokens_out=(usage.candidates_token_count or 0) if usage else 0,
            model=self.model,
        )
