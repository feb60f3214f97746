"""Generation backends.

Importing this package registers every backend with ``client_registry``.
"""

from .diffusers_edit import DiffusersEditClient
from .gemini import GeminiClient

__all__ = [
    "DiffusersEditClient",
    "GeminiClient",
]
