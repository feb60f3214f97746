"""Lookbook Generator - Hamburg '84 archetype portraits from a single photo."""

__version__ = "0.1.0"

from lookbook.core.config import LookbookConfig, config
from lookbook.core.generation_client import GenerationClient, client_registry

# Import clients to ensure they're registered
from lookbook.core.clients import DiffusersEditClient, GeminiClient  # noqa: F401

__all__ = [
    "GenerationClient",
    "client_registry",
    "LookbookConfig",
    "config",
    "GeminiClient",
    "DiffusersEditClient",
]
