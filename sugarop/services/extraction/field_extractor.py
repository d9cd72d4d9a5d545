"""Sequential vision-model fallback chain for receipt field extraction."""

import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from sugarop.core.openrouter_client import OpenRouterVisionClient
from sugarop.prompts.system_prompts import RECEIPT_EXTRACTION_PROMPT
from sugarop.schemas.receipt import ExtractedFields
from sugarop.services.extraction.sanitizer import clean_json
from sugarop.utils.logging import get_logger

LOGGER = get_logger(__name__)

NOT_CONFIGURED_ERROR = "AI client not configured (missing OPENROUTER_API_KEY)"
ALL_FAILED_PREFIX = "All AI models failed for OCR extraction. Details: "
MAX_ERROR_DETAIL = 50


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-finite number {name}")


def _finite_float(literal: str) -> float:
    value = float(literal)
    if not math.isfinite(value):
        raise ValueError(f"Number out of range: {literal}")
    return value


@dataclass
class ExtractionResult:
    """Outcome of one extraction run.

    Exactly one of ``data`` and ``error`` is set. ``raw`` holds the parsed
    model object untouched, including keys the typed view ignores.
    """

    data: Optional[ExtractedFields] = None
    raw: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    model: Optional[str] = None
    attempts: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.data is not None


class FieldExtractor:
    """Tries each vision model once, in order, until one returns usable fields.

    The chain is a fallback, not a race: the first model whose output
    sanitizes, parses and matches :class:`ExtractedFields` wins and no further
    model is called. Nothing raised by a model call escapes :meth:`extract`.
    """

    def __init__(
        self,
        client: OpenRouterVisionClient,
        models: Sequence[str],
        prompt: str = RECEIPT_EXTRACTION_PROMPT,
    ):
        self.client = client
        self.models = list(models)
        self.prompt = prompt

    async def extract(self, image: bytes, mime_type: str) -> ExtractionResult:
        """Extract receipt fields from an image.

        Args:
            image: Raw image bytes
            mime_type: Declared MIME type of the image

        Returns:
            ExtractionResult with either typed data or a diagnostic error
        """
        if not self.client.is_configured:
            LOGGER.warning("Skipping OCR extraction, AI client not configured")
            return ExtractionResult(error=NOT_CONFIGURED_ERROR)

        diagnostics: List[str] = []
        attempts: List[str] = []

        for model in self.models:
            attempts.append(model)
            LOGGER.info("Attempting OCR extraction", extra={"model": model})
            try:
                content = await self.client.generate_content(model, self.prompt, image, mime_type)
            except Exception as e:
                message = str(e) or type(e).__name__
                LOGGER.warning(f"Model {model} failed: {message}")
                diagnostics.append(f"{model}: {message[:MAX_ERROR_DETAIL]}")
                continue

            if not content or not content.strip():
                diagnostics.append(f"{model}: Empty response")
                continue

            cleaned = clean_json(content)
            if cleaned is None:
                LOGGER.warning(f"Model {model} returned no JSON object")
                diagnostics.append(f"{model}: Invalid JSON structure")
                continue

            try:
                parsed = json.loads(cleaned, parse_constant=_reject_constant, parse_float=_finite_float)
            except json.JSONDecodeError as e:
                diagnostics.append(f"{model}: Invalid JSON: {e.msg}")
                continue
            except ValueError as e:
                diagnostics.append(f"{model}: Invalid JSON: {e}")
                continue

            if not isinstance(parsed, dict):
                diagnostics.append(f"{model}: Schema mismatch: expected an object, got {type(parsed).__name__}")
                continue

            try:
                data = ExtractedFields.model_validate(parsed)
            except PydanticValidationError as e:
                first = e.errors()[0] if e.errors() else {}
                location = ".".join(str(part) for part in first.get("loc", ()))
                reason = f"{location} {first.get('msg', '')}".strip()
                diagnostics.append(f"{model}: Schema mismatch: {reason}")
                continue

            LOGGER.info(
                "OCR extraction succeeded",
                extra={"model": model, "filled_fields": data.filled_fields()},
            )
            return ExtractionResult(data=data, raw=parsed, model=model, attempts=attempts)

        error = ALL_FAILED_PREFIX + " | ".join(diagnostics)
        LOGGER.error(error)
        return ExtractionResult(error=error, attempts=attempts)
