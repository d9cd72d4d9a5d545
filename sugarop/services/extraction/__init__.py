"""Receipt field extraction: model fallback chain plus response sanitizing."""

from sugarop.services.extraction.field_extractor import ExtractionResult, FieldExtractor
from sugarop.services.extraction.sanitizer import clean_json

__all__ = ["ExtractionResult", "FieldExtractor", "clean_json"]
