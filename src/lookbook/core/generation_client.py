"""Base class and registry for generation backends.

A generation client performs exactly one image-edit call: it receives the
source photo and an archetype prompt and returns the generated image, or
raises :class:`~lookbook.core.errors.GenerationError` with a
``classification`` of ``"transient"`` or ``"permanent"``.  Clients never
retry on their own; retries are the job of
:class:`~lookbook.core.retry.RetryPolicy`.

Available backends
------------------
- **gemini**: remote editing through the Gemini API (``google-genai``)
- **diffusers**: local instruction-based editing with a diffusers pipeline

Usage Example
-------------
::

    from lookbook.core.config import config
    from lookbook.core.generation_client import client_registry

    client = client_registry.instantiate(config.generation_backend, config)
    image = await client.generate(source, Archetype.DISCO_DIETER.prompt)

See Also
--------
- GeminiClient: remote backend
- DiffusersEditClient: local backend
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from .config import LookbookConfig
from .models import EncodedImage, SourceImage

logger = logging.getLogger(__name__)


class GenerationClient(ABC):
    """Abstract base class for generation backends.

    Attributes
    ----------
    name : str
        Registry name of the backend (e.g. "gemini")
    description : str
        Brief description of the backend
    config : LookbookConfig
        Configuration object
    """

    name: str = "base"
    description: str = "Base class for generation clients"

    def __init__(self, config: LookbookConfig) -> None:
        self.config = config
        logger.info(f"Initialized {self.name} generation client")

    @abstractmethod
    async def generate(self, source: SourceImage, prompt: str) -> EncodedImage:
        """Generate one image from *source* following *prompt*.

        Raises
        ------
        GenerationError
            If the backend fails or returns no image.  Server-side faults are
            classified ``"transient"``; everything else ``"permanent"``.
        """

    async def close(self) -> None:
        """Release backend resources.  Safe to call more than once."""

    def get_client_info(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description}


class ClientRegistry:
    """Registry of available generation backends.

    Usage
    -----
        >>> client_registry.register(MyClient)
        >>> client = client_registry.instantiate("my-client", config)
    """

    def __init__(self) -> None:
        self._clients: dict[str, type[GenerationClient]] = {}

    def register(self, client_class: type[GenerationClient]) -> type[GenerationClient]:
        """Register a client class.  Usable as a class decorator."""
        client_name = client_class.name

        if client_name in self._clients:
            logger.warning(f"Generation client '{client_name}' is already registered, overwriting")

        self._clients[client_name] = client_class
        logger.debug(f"Registered generation client: {client_name}")
        return client_class

    def instantiate(self, client_name: str, config: LookbookConfig) -> GenerationClient:
        """Create an instance of a registered client.

        Raises
        ------
        KeyError
            If client_name is not registered
        """
        if client_name not in self._clients:
            available = ", ".join(self.list_available())
            raise KeyError(
                f"Generation client '{client_name}' not found. Available clients: {available}"
            )

        instance = self._clients[client_name](config)
        logger.info(f"Instantiated generation client: {client_name}")
        return instance

    def get_client_class(self, client_name: str) -> type[GenerationClient] | None:
        return self._clients.get(client_name)

    def list_available(self) -> list[str]:
        return list(self._clients.keys())


# Global client registry instance
client_registry = ClientRegistry()
