"""Shared pytest fixtures for Lookbook tests."""

from __future__ import annotations

import asyncio
import io
import shutil
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest
from PIL import Image

from lookbook.core.config import LookbookConfig
from lookbook.core.generation_client import GenerationClient
from lookbook.core.models import EncodedImage, SourceImage


def make_png(color: tuple[int, int, int] = (200, 40, 40), size: tuple[int, int] = (64, 80)) -> bytes:
    """Encode a solid-colour PNG.

    Args:
        color: RGB fill colour
        size: Image size (width, height)

    Returns:
        PNG bytes
    """
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeClient(GenerationClient):
    """Scriptable generation client.

    ``outcomes`` maps a prompt to a list of outcomes consumed one per call;
    an exception instance is raised, anything else falls through to a
    generated PNG.  Calls without a script succeed.

    Attributes
    ----------
    calls : list[str]
        Prompts in call order
    max_in_flight : int
        Highest number of overlapping ``generate`` calls observed
    """

    name = "fake"
    description = "In-memory client for tests"

    def __init__(self, config=None, outcomes=None, delay: float = 0.0):
        self.config = config
        self.outcomes = {prompt: list(script) for prompt, script in (outcomes or {}).items()}
        self.delay = delay
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def generate(self, source: SourceImage, prompt: str) -> EncodedImage:
        self.calls.append(prompt)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            script = self.outcomes.get(prompt)
            if script:
                outcome = script.pop(0)
                if isinstance(outcome, BaseException):
                    raise outcome
            return EncodedImage(media_type="image/png", payload=make_png())
        finally:
            self.in_flight -= 1

    async def close(self) -> None:
        self.closed = True


async def no_sleep(delay: float) -> None:
    """Stand-in for ``asyncio.sleep`` that returns immediately."""


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> LookbookConfig:
    """Create a test configuration with a small canvas and no retry delay.

    Args:
        temp_dir: Temporary directory from fixture

    Returns:
        LookbookConfig instance for testing
    """
    return LookbookConfig(
        generation_backend="gemini",
        gemini_api_key=None,
        models_dir=temp_dir / "models",
        outputs_dir=temp_dir / "outputs",
        device="cpu",
        torch_dtype="float32",
        worker_count=2,
        initial_retry_delay=0.0,
        canvas_width=800,
        canvas_height=1100,
        texture_dots=300,
        grid_padding=30,
        title_margin=150,
    )


@pytest.fixture
def source_image() -> SourceImage:
    """A small PNG photo."""
    return SourceImage(media_type="image/png", payload=make_png((120, 90, 60), (96, 128)))


@pytest.fixture
def fake_client(test_config: LookbookConfig) -> FakeClient:
    return FakeClient(test_config)
