"""Error taxonomy for generation, translation and persistence."""

from typing import Any


class AutopressError(Exception):
    """Base class for every error raised by the generation core."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = {key: value for key, value in context.items() if value is not None}

    def to_detail(self) -> dict[str, Any]:
        """Payload for HTTP error responses."""
        return {"error": type(self).__name__, "message": self.message, **self.context}


class ValidationError(AutopressError):
    """Bad caller input. Never retried."""


class InvalidChunkCount(ValidationError):
    def __init__(self, value: Any) -> None:
        super().__init__(
            f"chunk count must be an integer between 0 and 10, got {value!r}",
            chunk_count=value,
        )


class ProviderError(AutopressError):
    """A generation provider returned something unusable."""


class TransientProviderError(ProviderError):
    """Timeout, rate limit, auth/quota rejection or 5xx. Eligible for rotation."""


class ProviderExhausted(ProviderError):
    """Every attempt in the credential rotation failed."""

    def __init__(self, message: str, attempts: int, **context: Any) -> None:
        super().__init__(message, attempts=attempts, **context)
        self.attempts = attempts


class ParseFailure(ProviderError):
    """Provider text could not be mapped onto the article document shape."""


class StructuralMismatch(ProviderError):
    """A translated document's skeleton differs from its source."""

    def __init__(self, source: Any, translated: Any) -> None:
        super().__init__(
            f"translated skeleton {translated} does not match source skeleton {source}",
        )
        self.source = source
        self.translated = translated


class PersistenceError(AutopressError):
    """A single unit's transaction failed and was rolled back."""


class StoreUnavailable(PersistenceError):
    """The content store could not be reached."""


class CategoryNotFound(AutopressError):
    def __init__(self, slug: str | None) -> None:
        super().__init__(f"category {slug!r} not found", category=slug)


class ArticleNotFound(AutopressError):
    def __init__(self, slug: str, language: str | None = None) -> None:
        super().__init__(f"article {slug!r} not found", slug=slug, language=language)


class TranslationConflict(AutopressError):
    def __init__(self, slug: str, language: str) -> None:
        super().__init__(
            f"article {slug!r} already has a {language} translation",
            slug=slug,
            language=language,
        )
