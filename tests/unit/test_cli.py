"""Tests for lookbook.cli — the command-line entry point.

``LookbookSession.from_config`` is patched to use an in-memory client so no
backend is contacted.
"""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest
from conftest import FakeClient, make_png, no_sleep

from lookbook import cli
from lookbook.core.archetypes import Archetype
from lookbook.core.errors import CompositionError, GenerationError
from lookbook.core.renderer import CompositeRenderer, LayoutSpec
from lookbook.core.retry import RetryPolicy
from lookbook.core.session import LookbookSession


@pytest.fixture
def photo(temp_dir):
    path = temp_dir / "me.png"
    path.write_bytes(make_png(size=(120, 160)))
    return path


def _patched_session(test_config, client):
    created = {}

    def factory(config=None, backend=None, seed=None):
        created["config"] = config
        created["backend"] = backend
        created["seed"] = seed
        session = LookbookSession(
            client,
            config=test_config,
            renderer=CompositeRenderer(LayoutSpec.from_config(test_config), seed=seed),
            retry_policy=RetryPolicy(sleep=no_sleep),
        )
        created["session"] = session
        return session

    return patch.object(cli.LookbookSession, "from_config", side_effect=factory), created


class TestParser:
    def test_defaults(self):
        args = cli.build_parser().parse_args(["me.jpg"])
        assert args.archetypes is None
        assert args.workers is None
        assert args.backend is None

    def test_repeated_archetypes(self):
        args = cli.build_parser().parse_args(
            ["me.jpg", "--archetype", "Disco Dieter", "--archetype", "Porsche-Paul"]
        )
        assert args.archetypes == ["Disco Dieter", "Porsche-Paul"]

    def test_unknown_archetype_rejected(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["me.jpg", "--archetype", "Hafen-Hans"])


class TestLoadSource:
    def test_media_type_from_extension(self, photo):
        source = cli.load_source(photo)
        assert source.media_type == "image/png"
        assert source.payload == photo.read_bytes()


class TestMain:
    """Test complete command runs."""

    def test_successful_run_writes_lookbook(self, test_config, photo, temp_dir):
        client = FakeClient()
        patcher, created = _patched_session(test_config, client)
        out = temp_dir / "results"

        with patcher:
            code = cli.main([str(photo), "--out", str(out), "--seed", "5", "--workers", "3"])

        assert code == 0
        assert (out / "hamburg-84-lookbook.jpg").exists()
        assert (out / "hamburg-pimp-disco-dieter.jpg").exists()
        assert created["seed"] == 5
        assert created["config"].worker_count == 3
        assert client.closed

    def test_failed_item_exits_with_error(self, test_config, photo, temp_dir):
        client = FakeClient(
            outcomes={Archetype.DISCO_DIETER.prompt: [GenerationError("blocked")]}
        )
        patcher, _ = _patched_session(test_config, client)
        out = temp_dir / "results"

        with patcher:
            code = cli.main([str(photo), "--out", str(out)])

        assert code == 1
        assert not (out / "hamburg-84-lookbook.jpg").exists()
        assert (out / "hamburg-pimp-porsche-paul.jpg").exists()
        with open(out / "lookbook.json", encoding="utf-8") as f:
            record = json.load(f)
        errors = {item["name"]: item["error"] for item in record["items"]}
        assert "blocked" in errors["Disco Dieter"]

    def test_composition_failure_still_exports_items(self, test_config, photo, temp_dir):
        patcher, _ = _patched_session(test_config, FakeClient())
        out = temp_dir / "results"

        with patcher, patch.object(
            CompositeRenderer, "compose", side_effect=CompositionError("no fonts")
        ):
            code = cli.main([str(photo), "--out", str(out)])

        assert code == 1
        assert not (out / "hamburg-84-lookbook.jpg").exists()
        assert (out / "hamburg-pimp-disco-dieter.jpg").exists()
        with open(out / "lookbook.json", encoding="utf-8") as f:
            record = json.load(f)
        assert {item["status"] for item in record["items"]} == {"done"}

    def test_archetype_subset(self, test_config, photo, temp_dir):
        client = FakeClient()
        patcher, _ = _patched_session(test_config, client)

        with patcher:
            code = cli.main(
                [str(photo), "--out", str(temp_dir), "--archetype", "Luden-Larry"]
            )

        assert code == 0
        assert client.calls == [Archetype.LUDEN_LARRY.prompt]

    def test_missing_photo(self, test_config, temp_dir):
        patcher, _ = _patched_session(test_config, FakeClient())
        with patcher:
            assert cli.main([str(temp_dir / "missing.jpg"), "--out", str(temp_dir)]) == 1

    def test_invalid_worker_count(self, photo):
        assert cli.main([str(photo), "--workers", "0"]) == 2
