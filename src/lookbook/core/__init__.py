"""Core functionality for lookbook generation.

Architecture Overview
---------------------
Leaf-first:

1. **Configuration** (config.py): environment-based settings using Pydantic
   Settings, all prefixed with LOOKBOOK_.
2. **Domain** (archetypes.py, models.py, errors.py): the closed archetype
   set, image and item records, and the exception hierarchy.
3. **Generation clients** (generation_client.py, clients/): one backend call
   per archetype behind a registry (Gemini API or local diffusers).
4. **Pipeline** (retry.py, state_store.py, scheduler.py): retries with
   exponential backoff, per-item lifecycle state, and the worker pool.
5. **Output** (renderer.py, export.py): the lookbook page and files on disk.
6. **Facade** (session.py): what the API and CLI talk to.

Usage Example
-------------
    import asyncio
    from lookbook.core import LookbookSession, config

    session = LookbookSession.from_config(config)
    session.set_source(data_url)
    asyncio.run(session.generate_all())
    page = session.build_lookbook()
"""

# Import clients to ensure they're registered
from lookbook.core.clients import DiffusersEditClient, GeminiClient  # noqa: F401
from lookbook.core.config import LookbookConfig, config
from lookbook.core.generation_client import GenerationClient, client_registry
from lookbook.core.session import LookbookSession

__all__ = [
    "GenerationClient",
    "client_registry",
    "LookbookConfig",
    "LookbookSession",
    "config",
]
