"""Prompts sent to the vision models."""

RECEIPT_EXTRACTION_PROMPT = """Analyze this sugarcane receipt image. Extract data into this exact JSON schema:
{
    "supplier_name": string | null,
    "date": string | null (ISO format YYYY-MM-DD),
    "total_amount": number | null,
    "cane_type": string | null,
    "weight_net": number | null (in kg),
    "price_per_ton": number | null
}

IMPORTANT:
- Convert Thai dates to ISO format (YYYY-MM-DD)
- Return ONLY the JSON object, no explanation or markdown
- Use null for any field you cannot determine"""
