"""Provider gateway: prompts in, structured documents out.

Every provider call goes through one bounded attempt loop. Each attempt takes
the next credential from the shared rotation; timeouts, rate limits and
unparseable answers move on to the next credential, and running out of
attempts surfaces as ProviderExhausted.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
import logging
import random
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from autopress.agents.anthropic_writer import AnthropicWriter
from autopress.agents.base import Completion, TextProvider
from autopress.agents.gemini_writer import GeminiWriter
from autopress.agents.openai_writer import OpenAICompatibleWriter
from autopress.agents.prompts import prompt_for, translation_prompt, variant_count
from autopress.agents.rotation import CredentialRotation
from autopress.config import Settings
from autopress.exceptions import (
    ParseFailure,
    ProviderError,
    ProviderExhausted,
    StructuralMismatch,
    TransientProviderError,
)
from autopress.models import Category
from autopress.services.document import MasterArticleDocument, parse, strip_code_fence
from autopress.services.translation import ChunkedTranslator, ChunkTranslation, validate_chunk_count

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    TRANSIENT_FAILURE = "transient_failure"
    EXHAUSTED = "exhausted"


@dataclass
class AttemptRecord:
    credential: str | None
    outcome: AttemptOutcome
    error: str | None = None


@dataclass
class MasterResult:
    doc: MasterArticleDocument
    tokens_in: int
    tokens_out: int
    provider_used: str
    model: str
    prompt: str
    attempts: list[AttemptRecord] = field(default_factory=list)


@dataclass
class TranslationResult:
    doc: MasterArticleDocument
    tokens_in: int
    tokens_out: int
    model: str | None
    chunk_count_used: int
    chunks_sent: int
    attempts: list[AttemptRecord] = field(default_factory=list)


class ProviderGateway:
    """Hides credential rotation and provider differences from the orchestrator."""

    def __init__(
        self,
        rotation: CredentialRotation,
        providers: dict[str, TextProvider],
        settings: Settings,
        translator: ChunkedTranslator | None = None,
        choose_variant: Callable[[int], int] | None = None,
    ) -> None:
        self.rotation = rotation
        self.providers = providers
        self.settings = settings
        self.translator = translator or ChunkedTranslator(settings.translation_max_chunk_chars)
        self.choose_variant = choose_variant or random.randrange

    async def _call(
        self,
        system: str,
        user: str,
        *,
        web_search: bool,
        parse_text: Callable[[str], T],
        attempts: list[AttemptRecord],
    ) -> tuple[T, Completion, str]:
        """Run one logical request through the rotation. Returns (parsed, completion, provider)."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, self.settings.provider_max_attempts)),
            wait=wait_exponential(
                multiplier=1,
                min=self.settings.retry_wait_min,
                max=self.settings.retry_wait_max,
            ),
            retry=retry_if_exception_type((TransientProviderError, ParseFailure)),
        )

        try:
            async for attempt in retrying:
                with attempt:
                    credential = self.rotation.next()
                    provider = self.providers.get(credential.provider)
                    if provider is None:
                        raise ProviderError(f"no provider registered for {credential.provider!r}")
                    try:
                        completion = await asyncio.wait_for(
                            provider.complete(
                                system,
                                user,
                                credential=credential,
                                web_search=web_search,
                                timeout=self.settings.provider_timeout_seconds,
                            ),
                            timeout=self.settings.provider_timeout_seconds,
                        )
                        parsed = parse_text(completion.text)
                    except TimeoutError as e:
                        attempts.append(
                            AttemptRecord(credential.label, AttemptOutcome.TRANSIENT_FAILURE, "timeout")
                        )
                        logger.warning(
                            "Attempt %s on %s timed out", attempt.retry_state.attempt_number, credential.label
                        )
                        raise TransientProviderError(
                            f"{credential.provider} timed out", provider=credential.provider
                        ) from e
                    except (TransientProviderError, ParseFailure) as e:
                        attempts.append(
                            AttemptRecord(credential.label, AttemptOutcome.TRANSIENT_FAILURE, str(e))
                        )
                        logger.warning(
                            "Attempt %s on %s failed: %s",
                            attempt.retry_state.attempt_number,
                            credential.label,
                            e,
                        )
                        raise
                    attempts.append(AttemptRecord(credential.label, AttemptOutcome.SUCCESS))
                    return parsed, completion, credential.provider
        except RetryError as e:
            attempts.append(AttemptRecord(None, AttemptOutcome.EXHAUSTED))
            last = e.last_attempt.exception()
            tried = e.last_attempt.attempt_number
            raise ProviderExhausted(f"all {tried} provider attempts failed: {last}", attempts=tried) from last

        raise AssertionError("retry loop exited without a result")

    async def generate_master(
        self,
        category: Category,
        *,
        prefer_web_search: bool = False,
    ) -> MasterResult:
        """Write one master article for a category."""
        variant = self.choose_variant(variant_count(category.slug))
        prompt = prompt_for(category.slug, category.display_name, variant)
        web_search = prefer_web_search or self.settings.enable_web_search
        attempts: list[AttemptRecord] = []

        doc, completion, provider = await self._call(
            prompt.system,
            prompt.user,
            web_search=web_search,
            parse_text=parse,
            attempts=attempts,
        )
        logger.info(
            "Master for %s written by %s after %s attempt(s): %r",
            category.slug,
            provider,
            len(attempts),
            doc.title,
        )
        return MasterResult(
            doc=doc,
            tokens_in=completion.tokens_in,
            tokens_out=completion.tokens_out,
            provider_used=provider,
            model=completion.model,
            prompt=f"{prompt.system}\n\n{prompt.user}",
            attempts=attempts,
        )

    async def generate_translation(
        self,
        target_lang: str,
        master_doc: MasterArticleDocument,
        chunk_count: int,
    ) -> TranslationResult:
        """
        Translate a document into one language.

        The chunk count is validated before any provider call. A structural
        mismatch gets one whole-document retry; a second one is reported as
        ProviderExhausted.
        """
        count = validate_chunk_count(chunk_count)
        attempts: list[AttemptRecord] = []

        async def translate_chunk(chunk: str) -> ChunkTranslation:
            prompt = translation_prompt(target_lang, chunk)
            text, completion, _ = await self._call(
                prompt.system,
                prompt.user,
                web_search=False,
                parse_text=_require_text,
                attempts=attempts,
            )
            return ChunkTranslation(
                text=text,
                tokens_in=completion.tokens_in,
                tokens_out=completion.tokens_out,
                model=completion.model,
            )

        try:
            result = await self.translator.translate(master_doc, count, translate_chunk)
        except (StructuralMismatch, ParseFailure) as e:
            raise ProviderExhausted(
                f"{target_lang} translation kept failing the structural check: {e}",
                attempts=len(attempts),
                language=target_lang,
                chunk_count=count,
            ) from e

        logger.info(
            "Translated %r into %s in %s chunk(s), %s call(s)",
            master_doc.title,
            target_lang,
            result.chunks_sent,
            len(attempts),
        )
        return TranslationResult(
            doc=result.doc,
            tokens_in=result.tokens_in,
            tokens_out=result.tokens_out,
            model=result.model,
            chunk_count_used=result.chunk_count_used,
            chunks_sent=result.chunks_sent,
            attempts=attempts,
        )


def _require_text(text: str) -> str:
    cleaned = strip_code_fence(text)
    if not cleaned:
        raise ParseFailure("provider returned an empty translation")
    return cleaned


def build_providers(settings: Settings) -> dict[str, TextProvider]:
    """Provider adapters for every provider named in the configured order."""
    available: dict[str, Callable[[], TextProvider]] = {
        "anthropic": lambda: AnthropicWriter(settings.anthropic_model, settings.max_output_tokens),
        "gemini": lambda: GeminiWriter(settings.gemini_model, settings.max_output_tokens),
        "openai": lambda: OpenAICompatibleWriter(
            settings.openai_base_url, settings.openai_model, settings.max_output_tokens
        ),
    }
    return {name: available[name]() for name in settings.provider_names if name in available}
