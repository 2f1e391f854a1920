"""
Schema Tests
============

Tests for the wire contracts shared by client and relay.
"""

import pytest
from pydantic import ValidationError

from shared.schemas import (
    AnalysisRequest,
    ErrorCategory,
    ErrorResponse,
    parse_image_data_url,
)


class TestImageDataUrl:
    """Tests for data URL parsing."""

    def test_parses_jpeg(self):
        parsed = parse_image_data_url("data:image/jpeg;base64,AAAA")
        assert parsed.mime_type == "image/jpeg"
        assert parsed.data == "AAAA"

    def test_mime_type_is_case_insensitive(self):
        assert parse_image_data_url("data:IMAGE/PNG;base64,AAAA").mime_type == "image/png"

    @pytest.mark.parametrize(
        "value",
        [
            "AAAA",
            "data:image/jpeg,AAAA",
            "data:image/jpeg;base64,",
            "data:application/pdf;base64,AAAA",
            "data:image/jpeg;base64,A",
        ],
    )
    def test_rejects(self, value):
        with pytest.raises(ValueError):
            parse_image_data_url(value)


class TestAnalysisRequest:
    def test_valid(self):
        request = AnalysisRequest.model_validate({"image": "data:image/jpeg;base64,AAAA"})
        assert request.image.startswith("data:image/jpeg")

    def test_missing_image(self):
        with pytest.raises(ValidationError):
            AnalysisRequest.model_validate({})


def test_error_response_serializes_category():
    body = ErrorResponse(error="nope", category=ErrorCategory.INVALID_REQUEST).model_dump(mode="json")
    assert body == {"error": "nope", "category": "invalid_request"}
