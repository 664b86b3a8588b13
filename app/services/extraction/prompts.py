# Prompts for attribute extraction from narrative reports.
# The completion service is asked for JSON only; the response is still
# parsed defensively by the extractor.

from typing import Sequence

from app.schemas.attributes import AttributeDefinitionSchema

ATTRIBUTE_EXTRACTION_SYSTEM_PROMPT = (
    "You are an AI assistant that extracts structured attributes from experience "
    "descriptions. Always respond with valid JSON only."
)

ATTRIBUTE_EXTRACTION_PROMPT = r"""
Analyze this experience and extract the following attributes. Return ONLY a JSON
object with the attributes found (return in canonical lowercase English). For each
attribute, include: value (string), confidence (0.0-1.0), evidence (brief quote
from text). Omit attributes the text does not mention.

Available attributes to extract:
{attribute_lines}

Experience text:
{text}

Return format:
{{
  "attributes": {{
    "attribute_key": {{
      "value": "extracted_value",
      "confidence": 0.95,
      "evidence": "quote from text"
    }}
  }}
}}
"""


def describe_definition(definition: AttributeDefinitionSchema) -> str:
    """One prompt line: `- key (data_type): allowed values | free text`."""
    if definition.allowed_values:
        values = ", ".join(definition.allowed_values)
    else:
        values = "free text"
    return f"- {definition.key} ({definition.data_type}): {values}"


def build_extraction_prompt(
    text: str, definitions: Sequence[AttributeDefinitionSchema]
) -> str:
    attribute_lines = "\n".join(describe_definition(d) for d in definitions)
    return ATTRIBUTE_EXTRACTION_PROMPT.format(
        attribute_lines=attribute_lines, text=text.strip()
    ).strip()


def build_response_schema(definitions: Sequence[AttributeDefinitionSchema]) -> dict:
    """JSON schema of the expected response, keyed by attribute key."""
    properties = {}
    for definition in definitions:
        value_schema: dict = {"type": "string"}
        if definition.allowed_values:
            value_schema["enum"] = list(definition.allowed_values)
        properties[definition.key] = {
            "type": "object",
            "properties": {
                "value": value_schema,
                "confidence": {"type": "number", "minimum": 0, "maximum": 1},
                "evidence": {"type": "string"},
            },
            "required": ["value"],
        }

    return {
        "type": "object",
        "properties": {
            "attributes": {"type": "object", "properties": properties},
        },
        "required": ["attributes"],
    }
