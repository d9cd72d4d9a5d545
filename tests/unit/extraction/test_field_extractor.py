"""Tests for the vision model fallback chain."""

import pytest
from unittest.mock import AsyncMock

from sugarop.core.exceptions import APIClientError, APITimeoutError
from sugarop.services.extraction.field_extractor import (
    ALL_FAILED_PREFIX,
    NOT_CONFIGURED_ERROR,
    FieldExtractor,
)

MODEL_A = "vendor/model-a:free"
MODEL_B = "vendor/model-b:free"
MODEL_C = "vendor/model-c:free"


@pytest.mark.asyncio
async def test_first_successful_model_wins(mock_vision_client, sample_image, complete_ocr_json):
    """Model B is never invoked once model A returns usable output."""
    mock_vision_client.generate_content = AsyncMock(return_value=complete_ocr_json)
    extractor = FieldExtractor(mock_vision_client, [MODEL_A, MODEL_B])

    result = await extractor.extract(sample_image, "image/png")

    assert result.error is None
    assert result.model == MODEL_A
    assert result.data.supplier_name == "Mitr Phol Sugar"
    assert result.data.price_per_ton == 1000
    mock_vision_client.generate_content.assert_awaited_once()
    called_model = mock_vision_client.generate_content.await_args.args[0]
    assert called_model == MODEL_A


@pytest.mark.asyncio
async def test_falls_back_after_failure(mock_vision_client, sample_image, complete_ocr_json):
    mock_vision_client.generate_content = AsyncMock(
        side_effect=[APIClientError("503 upstream unavailable"), complete_ocr_json]
    )
    extractor = FieldExtractor(mock_vision_client, [MODEL_A, MODEL_B, MODEL_C])

    result = await extractor.extract(sample_image, "image/png")

    assert result.data is not None
    assert result.model == MODEL_B
    assert result.attempts == [MODEL_A, MODEL_B]
    assert mock_vision_client.generate_content.await_count == 2


@pytest.mark.asyncio
async def test_all_models_fail_reports_every_model(mock_vision_client, sample_image):
    mock_vision_client.generate_content = AsyncMock(
        side_effect=[
            APITimeoutError("API request timed out after 1 attempts"),
            "",
            "Sorry, no JSON here",
        ]
    )
    extractor = FieldExtractor(mock_vision_client, [MODEL_A, MODEL_B, MODEL_C])

    result = await extractor.extract(sample_image, "image/jpeg")

    assert result.data is None
    assert result.error.startswith(ALL_FAILED_PREFIX)
    assert f"{MODEL_A}: API request timed out" in result.error
    assert f"{MODEL_B}: Empty response" in result.error
    assert f"{MODEL_C}: Invalid JSON structure" in result.error
    assert result.error.count(" | ") == 2


@pytest.mark.asyncio
async def test_parse_and_schema_failures_are_diagnosed(mock_vision_client, sample_image):
    mock_vision_client.generate_content = AsyncMock(
        side_effect=['{"supplier_name": "A",}', '{"total_amount": "lots"}']
    )
    extractor = FieldExtractor(mock_vision_client, [MODEL_A, MODEL_B])

    result = await extractor.extract(sample_image, "image/png")

    assert result.data is None
    assert f"{MODEL_A}: Invalid JSON:" in result.error
    assert f"{MODEL_B}: Schema mismatch:" in result.error


@pytest.mark.asyncio
async def test_long_exception_messages_are_truncated(mock_vision_client, sample_image):
    mock_vision_client.generate_content = AsyncMock(side_effect=RuntimeError("x" * 200))
    extractor = FieldExtractor(mock_vision_client, [MODEL_A])

    result = await extractor.extract(sample_image, "image/png")

    assert result.error == f"{ALL_FAILED_PREFIX}{MODEL_A}: {'x' * 50}"


@pytest.mark.asyncio
async def test_unconfigured_client_makes_no_calls(mock_vision_client, sample_image):
    mock_vision_client.is_configured = False
    extractor = FieldExtractor(mock_vision_client, [MODEL_A, MODEL_B])

    result = await extractor.extract(sample_image, "image/png")

    assert result.data is None
    assert result.error == NOT_CONFIGURED_ERROR
    mock_vision_client.generate_content.assert_not_awaited()


@pytest.mark.asyncio
async def test_raw_output_keeps_unknown_keys(mock_vision_client, sample_image):
    mock_vision_client.generate_content = AsyncMock(
        return_value='```json\n{"supplier_name": "Mill", "truck_plate": "1234", "weight_net": "12,500"}\n```'
    )
    extractor = FieldExtractor(mock_vision_client, [MODEL_A])

    result = await extractor.extract(sample_image, "image/png")

    assert result.raw == {"supplier_name": "Mill", "truck_plate": "1234", "weight_net": "12,500"}
    assert result.data.weight_net == 12500
    assert not hasattr(result.data, "truck_plate")


@pytest.mark.asyncio
async def test_non_finite_numbers_fall_through_to_next_model(mock_vision_client, sample_image, complete_ocr_json):
    mock_vision_client.generate_content = AsyncMock(
        side_effect=['{"supplier_name": "A", "total_amount": NaN, "weight_net": 1e400}', complete_ocr_json]
    )
    extractor = FieldExtractor(mock_vision_client, [MODEL_A, MODEL_B])

    result = await extractor.extract(sample_image, "image/png")

    assert result.error is None
    assert result.model == MODEL_B
    assert result.data.supplier_name == "Mitr Phol Sugar"
    assert mock_vision_client.generate_content.await_count == 2


@pytest.mark.asyncio
async def test_non_finite_number_strings_are_schema_mismatches(mock_vision_client, sample_image):
    mock_vision_client.generate_content = AsyncMock(
        side_effect=['{"total_amount": "Infinity"}', '{"weight_net": -Infinity}']
    )
    extractor = FieldExtractor(mock_vision_client, [MODEL_A, MODEL_B])

    result = await extractor.extract(sample_image, "image/png")

    assert result.data is None
    assert f"{MODEL_A}: Schema mismatch:" in result.error
    assert f"{MODEL_B}: Invalid JSON:" in result.error
