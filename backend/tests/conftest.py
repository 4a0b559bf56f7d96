"""Shared fixtures: isolated settings, a throwaway SQLite store and a scripted provider."""

from collections.abc import Callable
from datetime import datetime, UTC
import itertools
import os
import socket
from typing import Any

import pytest

# Safe configuration before any autopress module reads settings.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENABLE_GENERATION", "false")

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

import autopress.models  # noqa: E402,F401
from autopress.agents.base import Completion, ProviderCredential  # noqa: E402
from autopress.agents.gateway import ProviderGateway  # noqa: E402
from autopress.agents.rotation import CredentialRotation  # noqa: E402
from autopress.config import Settings  # noqa: E402
from autopress.services.document import (  # noqa: E402
    ExternalLink,
    FaqEntry,
    MasterArticleDocument,
    Section,
)
from autopress.services.ledger import ArticleLedger  # noqa: E402
from autopress.services.orchestrator import GenerationOrchestrator  # noqa: E402
from autopress.services.timing import TimingGate  # noqa: E402

# 2026-10-20 is a Tuesday, inside the default window.
TUESDAY_9AM = datetime(2026, 10, 20, 9, 0, tzinfo=UTC)
FRIDAY_9AM = datetime(2026, 10, 23, 9, 0, tzinfo=UTC)


class NetworkBlockedError(RuntimeError):
    pass


def _blocked(*_args: Any, **_kwargs: Any) -> Any:
    raise NetworkBlockedError("Network access is disabled during tests. Set ALLOW_NETWORK=1 to allow it.")


@pytest.fixture(autouse=True)
def _disable_network(monkeypatch: pytest.MonkeyPatch) -> None:
    """Prevent accidental outbound calls to real providers."""
    if os.getenv("ALLOW_NETWORK") == "1":
        return
    monkeypatch.setattr(socket, "create_connection", _blocked)
    monkeypatch.setattr(socket, "getaddrinfo", _blocked)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


def article_text(title: str) -> str:
    """Provider answer in the layout the article prompt asks for."""
    return f"""# {title}

**Meta Description:** Everything worth knowing about {title.lower()}.

## Introduction

An opening paragraph that tells the reader what {title.lower()} covers.

## Getting Started

The first steps, explained with **plain** words.

Second paragraph of the first section.

## Going Further

Advanced advice for readers who already know the basics.

## Frequently Asked Questions

### Is it hard to learn?

Not really, a few evenings are enough.

### Why does it matter?

Because small habits add up over time.

## Key Takeaways

- Start small
- Stay consistent

**Keywords:** habits, learning, practice

## External Resources

- [Example Guide](https://example.org/guide)
"""


def sample_document(title: str = "A Practical Guide to Sourdough") -> MasterArticleDocument:
    return MasterArticleDocument(
        title=title,
        meta_description="How to bake sourdough bread at home.",
        intro="Sourdough is easier than it looks.",
        sections=[
            Section(heading="Feeding the Starter", body="Feed it every day.\n\nKeep it warm."),
            Section(heading="Shaping the Loaf", body="Use wet hands."),
            Section(heading="Baking", body="- Preheat the oven\n- Use a dutch oven"),
        ],
        summary="- Patience matters\n- Temperature matters",
        faq=[
            FaqEntry(q="How long does a starter take?", a="About a week."),
            FaqEntry(q="Can I use whole wheat flour?", a="Yes, it ferments faster."),
        ],
        keywords=["sourdough", "bread", "baking"],
        external_links=[ExternalLink(anchor="King Arthur", url="https://example.org/sourdough")],
    )


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


def chunk_of(user: str) -> str:
    """The text a translation prompt asks to translate."""
    return user.split(":\n\n", 1)[1]


class FakeProvider:
    """
    Scripted stand-in for every provider adapter.

    Master prompts get a fresh article with a unique title; translation
    prompts get their chunk echoed back. `respond` overrides both and may
    return text or raise.
    """

    name = "fake"
    model = "fake-model"

    def __init__(self, respond: Callable[[str, str, ProviderCredential], str] | None = None) -> None:
        self.respond = respond
        self.calls: list[tuple[str, str]] = []
        self._titles = itertools.count(1)

    def next_article(self) -> str:
        return article_text(f"Field Notes Volume {next(self._titles)}")

    async def complete(
        self,
        system: str,
        user: str,
        *,
        credential: ProviderCredential,
        web_search: bool = False,
        timeout: float = 90.0,
    ) -> Completion:
        self.calls.append((credential.label, user))
        if self.respond is not None:
            text = self.respond(system, user, credential)
        elif user.startswith("Translate this part"):
            text = chunk_of(user)
        else:
            text = self.next_article()
        return Completion(text=text, tokens_in=10, tokens_out=20, model=self.model)

    @property
    def translation_calls(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if call[1].startswith("Translate this part")]

    @property
    def master_calls(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if not call[1].startswith("Translate this part")]


# ---------------------------------------------------------------------------
# Settings and store
# ---------------------------------------------------------------------------


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "_env_file": None,
        "provider_order": "anthropic,gemini",
        "anthropic_api_keys": "key-a1,key-a2",
        "gemini_api_keys": "key-g1",
        "provider_max_attempts": 4,
        "provider_timeout_seconds": 5.0,
        "retry_wait_min": 0,
        "retry_wait_max": 0,
        "supported_languages": "en,de,fr",
        "articles_per_category_per_day": 2,
        "category_pause_seconds": 0,
        "translation_concurrency": 1,
        "canonical_base_url": "https://example.test",
        "force_generation": False,
        "enable_web_search": False,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'autopress.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def ledger(session_factory, settings) -> ArticleLedger:
    ledger = ArticleLedger(session_factory, settings, clock=lambda: TUESDAY_9AM)
    await ledger.seed_categories(["technology", "food-recipes"])
    return ledger


def make_gateway(settings: Settings, provider: FakeProvider) -> ProviderGateway:
    return ProviderGateway(
        rotation=CredentialRotation.from_settings(settings),
        providers={"anthropic": provider, "gemini": provider},
        settings=settings,
        choose_variant=lambda count: 0,
    )


def make_orchestrator(
    ledger: ArticleLedger,
    settings: Settings,
    provider: FakeProvider,
) -> GenerationOrchestrator:
    return GenerationOrchestrator(
        ledger=ledger,
        gateway=make_gateway(settings, provider),
        gate=TimingGate.from_settings(settings),
        settings=settings,
        clock=lambda: TUESDAY_9AM,
    )
