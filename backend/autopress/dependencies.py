"""Process-wide generation components, built once and shared by routes and scheduler."""

from functools import lru_cache

from autopress.agents.gateway import ProviderGateway, build_providers
from autopress.agents.rotation import CredentialRotation
from autopress.config import get_settings
from autopress.services.ledger import ArticleLedger
from autopress.services.orchestrator import GenerationOrchestrator
from autopress.services.publication import PublicationNotifier
from autopress.services.status_service import StatusReporter
from autopress.services.timing import TimingGate


@lru_cache
def get_orchestrator() -> GenerationOrchestrator:
    """The shared orchestrator. One rotation cursor and in-flight counter per process."""
    from autopress.db.postgres import async_session

    settings = get_settings()
    gateway = ProviderGateway(
        rotation=CredentialRotation.from_settings(settings),
        providers=build_providers(settings),
        settings=settings,
    )
    return GenerationOrchestrator(
        ledger=ArticleLedger(async_session, settings),
        gateway=gateway,
        gate=TimingGate.from_settings(settings),
        settings=settings,
        notifier=PublicationNotifier(settings.ping_urls, settings.publication_timeout_seconds),
    )


def get_status_reporter() -> StatusReporter:
    orchestrator = get_orchestrator()
    return StatusReporter(
        ledger=orchestrator.ledger,
        gate=orchestrator.gate,
        orchestrator=orchestrator,
        settings=orchestrator.settings,
    )
