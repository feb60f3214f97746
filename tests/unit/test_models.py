"""Tests for lookbook.core.models — images and generation records."""

from __future__ import annotations

import base64

import pytest

from lookbook.core.archetypes import Archetype
from lookbook.core.errors import InvalidSourceImageError
from lookbook.core.models import EncodedImage, GenerationItem, ItemStatus, SourceImage


class TestEncodedImage:
    """Test data URL parsing."""

    def test_from_data_url(self):
        payload = b"\x89PNG fake"
        url = "data:image/png;base64," + base64.b64encode(payload).decode()

        image = EncodedImage.from_data_url(url)

        assert image.media_type == "image/png"
        assert image.payload == payload

    def test_to_data_url(self):
        image = EncodedImage(media_type="image/jpeg", payload=b"abc")
        assert image.to_data_url() == "data:image/jpeg;base64,YWJj"
        assert EncodedImage.from_data_url(image.to_data_url()) == image

    @pytest.mark.parametrize(
        "url",
        [
            "not a data url",
            "data:text/plain;base64,YWJj",
            "data:image/png,YWJj",
            "data:image/png;base64,!!!",
            "data:image/png;base64,",
        ],
    )
    def test_invalid_data_url(self, url):
        with pytest.raises(InvalidSourceImageError):
            EncodedImage.from_data_url(url)

    def test_repr_hides_payload(self):
        image = EncodedImage(media_type="image/png", payload=b"x" * 1000)
        assert "size=1000" in repr(image)


class TestSourceImage:
    """Test source image validation."""

    def test_rejects_non_image_media_type(self):
        with pytest.raises(InvalidSourceImageError):
            SourceImage(media_type="application/pdf", payload=b"abc")

    def test_rejects_empty_payload(self):
        with pytest.raises(InvalidSourceImageError):
            SourceImage(media_type="image/png", payload=b"")

    def test_is_immutable(self):
        source = SourceImage(media_type="image/png", payload=b"abc")
        with pytest.raises(AttributeError):
            source.payload = b"other"


class TestGenerationItem:
    """Test the status/result/error invariant and transitions."""

    def test_new_item_is_pending(self):
        item = GenerationItem(Archetype.LUDEN_LARRY)
        assert item.status is ItemStatus.PENDING
        assert item.result is None
        assert item.error_message is None
        assert item.name == "Luden-Larry"
        assert item.prompt == Archetype.LUDEN_LARRY.prompt

    def test_done_sets_result(self):
        result = EncodedImage(media_type="image/png", payload=b"img")
        item = GenerationItem(Archetype.LUDEN_LARRY).in_flight().done(result)
        assert item.status is ItemStatus.DONE
        assert item.result == result
        assert item.error_message is None

    def test_failed_sets_message(self):
        item = GenerationItem(Archetype.LUDEN_LARRY).in_flight().failed("boom")
        assert item.status is ItemStatus.ERROR
        assert item.result is None
        assert item.error_message == "boom"

    def test_pending_discards_outcome(self):
        item = GenerationItem(Archetype.LUDEN_LARRY).in_flight().failed("boom").pending()
        assert item.status is ItemStatus.PENDING
        assert item.error_message is None

    def test_result_without_done_is_rejected(self):
        with pytest.raises(ValueError):
            GenerationItem(
                Archetype.LUDEN_LARRY,
                status=ItemStatus.IN_FLIGHT,
                result=EncodedImage(media_type="image/png", payload=b"img"),
            )

    def test_error_without_message_is_rejected(self):
        with pytest.raises(ValueError):
            GenerationItem(Archetype.LUDEN_LARRY, status=ItemStatus.ERROR)

    def test_terminal_statuses(self):
        assert ItemStatus.DONE.is_terminal
        assert ItemStatus.ERROR.is_terminal
        assert not ItemStatus.PENDING.is_terminal
        assert not ItemStatus.IN_FLIGHT.is_terminal

    def test_to_record(self):
        result = EncodedImage(media_type="image/png", payload=b"img")
        record = GenerationItem(Archetype.DISCO_DIETER).in_flight().done(result).to_record()
        assert record == {
            "name": "Disco Dieter",
            "status": "done",
            "prompt": Archetype.DISCO_DIETER.prompt,
            "media_type": "image/png",
            "has_result": True,
            "error": None,
        }
