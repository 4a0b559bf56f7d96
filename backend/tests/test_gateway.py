"""Tests for credential rotation and the provider gateway."""

import asyncio

import pytest

from conftest import FakeProvider, article_text, chunk_of, make_gateway, make_settings, sample_document

from autopress.agents.base import ProviderCredential, error_for_status, is_transient_status
from autopress.agents.gateway import AttemptOutcome, build_providers
from autopress.agents.rotation import CredentialRotation
from autopress.exceptions import (
    InvalidChunkCount,
    ProviderError,
    ProviderExhausted,
    TransientProviderError,
)
from autopress.models import Category

CATEGORY = Category(id=1, slug="technology", display_name="Technology")


class TestRotation:
    def test_from_settings_keeps_provider_order(self) -> None:
        rotation = CredentialRotation.from_settings(make_settings())
        assert [c.label for c in rotation.credentials] == ["anthropic#1", "anthropic#2", "gemini#1"]

    def test_next_cycles(self) -> None:
        rotation = CredentialRotation.from_settings(make_settings())
        labels = [rotation.next().label for _ in range(4)]
        assert labels == ["anthropic#1", "anthropic#2", "gemini#1", "anthropic#1"]

    def test_empty_rotation_is_exhausted(self) -> None:
        rotation = CredentialRotation([])
        assert len(rotation) == 0
        with pytest.raises(ProviderExhausted):
            rotation.next()

    def test_repr_hides_key(self) -> None:
        credential = ProviderCredential(provider="anthropic", api_key="sk-secret", label="anthropic#1")
        assert "sk-secret" not in repr(credential)


class TestStatusMapping:
    @pytest.mark.parametrize("status", [401, 403, 408, 429, 500, 503])
    def test_transient(self, status: int) -> None:
        assert is_transient_status(status)
        assert isinstance(error_for_status("gemini", status, "nope"), TransientProviderError)

    def test_bad_request_is_not_transient(self) -> None:
        error = error_for_status("gemini", 400, "bad request")
        assert not isinstance(error, TransientProviderError)
        assert error.context == {"provider": "gemini", "status": 400}


class TestGenerateMaster:
    async def test_success_on_first_credential(self) -> None:
        provider = FakeProvider()
        result = await make_gateway(make_settings(), provider).generate_master(CATEGORY)

        assert result.doc.title == "Field Notes Volume 1"
        assert result.provider_used == "anthropic"
        assert (result.tokens_in, result.tokens_out) == (10, 20)
        assert [a.outcome for a in result.attempts] == [AttemptOutcome.SUCCESS]
        assert '"Technology" category' in result.prompt

    async def test_timeout_moves_to_next_credential(self) -> None:
        class SlowFirstKey(FakeProvider):
            async def complete(self, system, user, *, credential, web_search=False, timeout=90.0):
                if credential.label == "anthropic#1":
                    await asyncio.sleep(1)
                return await super().complete(
                    system, user, credential=credential, web_search=web_search, timeout=timeout
                )

        provider = SlowFirstKey()
        gateway = make_gateway(make_settings(provider_timeout_seconds=0.05), provider)
        result = await gateway.generate_master(CATEGORY)

        assert [(a.credential, a.outcome) for a in result.attempts] == [
            ("anthropic#1", AttemptOutcome.TRANSIENT_FAILURE),
            ("anthropic#2", AttemptOutcome.SUCCESS),
        ]
        assert result.attempts[0].error == "timeout"

    async def test_unparseable_answer_is_retried(self) -> None:
        answers = iter(["Sorry, I cannot help with that.", article_text("Second Try")])
        provider = FakeProvider(respond=lambda system, user, credential: next(answers))

        result = await make_gateway(make_settings(), provider).generate_master(CATEGORY)

        assert result.doc.title == "Second Try"
        assert len(provider.calls) == 2
        assert provider.calls[1][0] == "anthropic#2"

    async def test_exhaustion_after_max_attempts(self) -> None:
        def rate_limited(system, user, credential):
            raise TransientProviderError("429", provider=credential.provider)

        provider = FakeProvider(respond=rate_limited)
        gateway = make_gateway(make_settings(provider_max_attempts=4), provider)

        with pytest.raises(ProviderExhausted) as info:
            await gateway.generate_master(CATEGORY)

        assert info.value.attempts == 4
        assert [label for label, _ in provider.calls] == ["anthropic#1", "anthropic#2", "gemini#1", "anthropic#1"]

    async def test_permanent_error_is_not_rotated(self) -> None:
        def bad_request(system, user, credential):
            raise error_for_status(credential.provider, 400, "invalid model")

        provider = FakeProvider(respond=bad_request)
        with pytest.raises(ProviderError) as info:
            await make_gateway(make_settings(), provider).generate_master(CATEGORY)

        assert not isinstance(info.value, ProviderExhausted)
        assert len(provider.calls) == 1

    async def test_no_credentials(self) -> None:
        settings = make_settings(anthropic_api_keys="", gemini_api_keys="")
        with pytest.raises(ProviderExhausted):
            await make_gateway(settings, FakeProvider()).generate_master(CATEGORY)

    async def test_web_search_flag_reaches_provider(self) -> None:
        seen: list[bool] = []

        class Recording(FakeProvider):
            async def complete(self, system, user, *, credential, web_search=False, timeout=90.0):
                seen.append(web_search)
                return await super().complete(
                    system, user, credential=credential, web_search=web_search, timeout=timeout
                )

        await make_gateway(make_settings(), Recording()).generate_master(CATEGORY, prefer_web_search=True)
        assert seen == [True]


class TestGenerateTranslation:
    async def test_translates_in_requested_chunks(self) -> None:
        provider = FakeProvider()
        doc = sample_document()

        result = await make_gateway(make_settings(), provider).generate_translation("de", doc, 3)

        assert result.doc == doc
        assert result.chunks_sent == 3
        assert len(provider.translation_calls) == 3
        assert "into German" in provider.translation_calls[0][1]
        assert (result.tokens_in, result.tokens_out) == (30, 60)

    async def test_invalid_chunk_count_makes_no_calls(self) -> None:
        provider = FakeProvider()
        with pytest.raises(InvalidChunkCount):
            await make_gateway(make_settings(), provider).generate_translation("de", sample_document(), 15)
        assert provider.calls == []

    async def test_structural_failure_twice_is_exhausted(self) -> None:
        def drop_faq(system, user, credential):
            return chunk_of(user).replace("### How long does a starter take?", "")

        provider = FakeProvider(respond=drop_faq)
        with pytest.raises(ProviderExhausted) as info:
            await make_gateway(make_settings(), provider).generate_translation("fr", sample_document(), 2)

        assert info.value.context["language"] == "fr"
        assert info.value.context["chunk_count"] == 2

    async def test_empty_translation_is_retried_on_next_credential(self) -> None:
        answers = iter(["", None])

        def flaky(system, user, credential):
            answer = next(answers, None)
            return chunk_of(user) if answer is None else answer

        provider = FakeProvider(respond=flaky)
        result = await make_gateway(make_settings(), provider).generate_translation("de", sample_document(), 1)

        assert result.doc == sample_document()
        assert [a.outcome for a in result.attempts] == [
            AttemptOutcome.TRANSIENT_FAILURE,
            AttemptOutcome.SUCCESS,
        ]


def test_build_providers_follows_configured_order() -> None:
    providers = build_providers(make_settings(provider_order="gemini,openai"))
    assert list(providers) == ["gemini", "openai"]
