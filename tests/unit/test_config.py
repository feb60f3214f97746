"""Tests for lookbook.core.config — environment-based settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from lookbook.core.config import LookbookConfig


class TestLookbookConfig:
    """Test defaults, environment overrides and validation."""

    def test_defaults(self, temp_dir):
        config = LookbookConfig(outputs_dir=temp_dir / "outputs")
        assert config.gemini_model == "gemini-2.5-flash-image"
        assert config.worker_count == 2
        assert config.max_attempts == 3
        assert config.initial_retry_delay == 1.0
        assert (config.canvas_width, config.canvas_height) == (2480, 3508)
        assert (config.grid_columns, config.grid_rows) == (2, 3)
        assert config.grid_padding == 100
        assert config.title_margin == 550
        assert config.jpeg_quality == 90
        assert config.texture_dots == 150_000

    def test_outputs_dir_created(self, temp_dir):
        outputs = temp_dir / "nested" / "outputs"
        LookbookConfig(outputs_dir=outputs)
        assert outputs.is_dir()

    def test_environment_override(self, temp_dir, monkeypatch):
        monkeypatch.setenv("LOOKBOOK_WORKER_COUNT", "4")
        monkeypatch.setenv("LOOKBOOK_GENERATION_BACKEND", "diffusers")
        config = LookbookConfig(outputs_dir=temp_dir)
        assert config.worker_count == 4
        assert config.generation_backend == "diffusers"

    def test_worker_count_bounds(self, temp_dir):
        with pytest.raises(ValidationError):
            LookbookConfig(outputs_dir=temp_dir, worker_count=0)

    def test_unknown_backend(self, temp_dir):
        with pytest.raises(ValidationError):
            LookbookConfig(outputs_dir=temp_dir, generation_backend="dall-e")

    def test_jpeg_quality_bounds(self, temp_dir):
        with pytest.raises(ValidationError):
            LookbookConfig(outputs_dir=temp_dir, jpeg_quality=100)
