"""Claude-backed article writer."""

import anthropic

from autopress.agents.base import Completion, ProviderCredential, error_for_status
from autopress.exceptions import TransientProviderError

WEB_SEARCH_TOOL = {"type": "web_search_20250305", "name": "web_search", "max_uses": 3}


class AnthropicWriter:
    """Calls the Messages API with whichever key the rotation hands over."""

    name = "anthropic"

    def __init__(self, model: str = "claude-sonnet-4-20250514", max_tokens: int = 4096) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self._clients: dict[str, anthropic.AsyncAnthropic] = {}

    def _client(self, credential: ProviderCredential) -> anthropic.AsyncAnthropic:
        if credential.api_key not in self._clients:
            # Rotation owns retries; the SDK should fail fast.
            self._clients[credential.api_key] = anthropic.AsyncAnthropic(
                api_key=credential.api_key,
                max_retries=0,
            )
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
        kwargs = {}
        if web_search:
            kwargs["tools"] = [WEB_SEARCH_TOOL]

        try:
            response = await self._client(credential).messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system,
                messages=[{"role": "user", "content": user}],
                timeout=timeout,
                **kwargs,
            )
        except anthropic.APIConnectionError as e:
            # Includes APITimeoutError
            raise TransientProviderError(f"anthropic connection failed: {e}", provider=self.name) from e
        except anthropic.APIStatusError as e:
            raise error_for_status(self.name, e.status_code, str(e)) from e
        except anthropic.APIError as e:
            # Malformed responses and other SDK failures
            raise TransientProviderError(f"anthropic request failed: {e}", provider=self.name) from e

        text = "".join(block.text for block in response.content if block.type == "text")
        return Completion(
            text=text,
            tokens_in=response.usage.input_tokens,
            tokens_out=response.usage.output_tokens,
            model=response.model or self.model,
        )
