"""Round-robin credential rotation shared by every provider call."""

from collections.abc import Iterable

from autopress.agents.base import ProviderCredential
from autopress.config import Settings
from autopress.exceptions import ProviderExhausted


class CredentialRotation:
    """
    Ring of credentials with one shared "next" cursor.

    Concurrent callers (translations for several languages at once) all draw
    from the same cursor, so load spreads across keys instead of every caller
    starting at the first one.
    """

    def __init__(self, credentials: Iterable[ProviderCredential]) -> None:
        self._ring = list(credentials)
        self._cursor = 0

    def __len__(self) -> int:
        return len(self._ring)

    @property
    def credentials(self) -> list[ProviderCredential]:
        return list(self._ring)

    def next(self) -> ProviderCredential:
        if not self._ring:
            raise ProviderExhausted("no provider credentials configured", attempts=0)
        credential = self._ring[self._cursor % len(self._ring)]
        self._cursor += 1
        return credential

    @classmethod
    def from_settings(cls, settings: Settings) -> "CredentialRotation":
        """Keys grouped by provider, providers in configured order."""
        credentials = [
            ProviderCredential(provider=provider, api_key=key, label=f"{provider}#{index + 1}")
            for provider, keys in settings.provider_keys.items()
            for index, key in enumerate(keys)
        ]
        return cls(credentials)
