"""Shared types for text-generation providers."""

from dataclasses import dataclass
from typing import Protocol

from autopress.exceptions import ProviderError, TransientProviderError

# Statuses that mean "try another credential": rate limit, bad/expired key,
# exhausted quota, request timeout and server-side failures.
TRANSIENT_STATUSES = frozenset({401, 403, 408, 429})


@dataclass(frozen=True)
class ProviderCredential:
    """One API key for one provider."""
    provider: str
    api_key: str
    label: str

    def __repr__(self) -> str:
        return f"ProviderCredential(provider={self.provider!r}, label={self.label!r})"


@dataclass
class Completion:
    """Raw provider answer plus token accounting."""
    text: str
    tokens_in: int
    tokens_out: int
    model: str


class TextProvider(Protocol):
    name: str
    model: str

    async def complete(
        self,
        system: str,
        user: str,
        *,
        credential: ProviderCredential,
        web_search: bool = False,
        timeout: float = 90.0,
    ) -> Completion: ...


def is_transient_status(status_code: int) -> bool:
    return status_code in TRANSIENT_STATUSES or status_code >= 500


def error_for_status(provider: str, status_code: int, message: str) -> ProviderError:
    """Map an HTTP status from any provider onto the error taxonomy."""
    if is_transient_status(status_code):
        return TransientProviderError(
            f"{provider} returned {status_code}: {message}", provider=provider, status=status_code
        )
    return ProviderError(f"{provider} returned {status_code}: {message}", provider=provider, status=status_code)
