"""Agents package - LLM writers for Claude, Gemini and OpenAI-compatible APIs."""

from autopress.agents.anthropic_writer import AnthropicWriter
from autopress.agents.base import Completion, ProviderCredential, TextProvider
from autopress.agents.gateway import (
    AttemptOutcome,
    AttemptRecord,
    MasterResult,
    ProviderGateway,
    TranslationResult,
    build_providers,
)
from autopress.agents.gemini_writer import GeminiWriter
from autopress.agents.openai_writer import OpenAICompatibleWriter
from autopress.agents.rotation import CredentialRotation

__all__ = [
    # Writers
    "AnthropicWriter",
    "GeminiWriter",
    "OpenAICompatibleWriter",
    "TextProvider",
    "Completion",
    # Rotation
    "CredentialRotation",
    "ProviderCredential",
    # Gateway
    "ProviderGateway",
    "MasterResult",
    "TranslationResult",
    "AttemptOutcome",
    "AttemptRecord",
    "build_providers",
]
