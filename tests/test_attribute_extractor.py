"""Unit tests for schema-constrained attribute extraction."""

import uuid
from typing import Any, Dict, Optional

import pytest
from unittest.mock import AsyncMock

from app.core.exceptions import SchemaMismatchError, UpstreamServiceError
from app.schemas.attributes import AttributeDefinitionSchema
from app.services.extraction.attribute_extractor import AttributeExtractor, normalize_value
from app.services.extraction.completion_service import CompletionService
from app.services.extraction.fuzzy_validator import FuzzyValidator
from app.services.extraction.prompts import build_extraction_prompt, build_response_schema


class StubCompletionService(CompletionService):
    """Deterministic completion service returning a fixed payload."""

    def __init__(self, payload: Dict[str, Any]):
        self.payload = payload
        self.calls = []

    async def complete(
        self,
        prompt: str,
        schema: Optional[Dict[str, Any]] = None,
        system_instruction: Optional[str] = None,
    ) -> Dict[str, Any]:
        self.calls.append({"prompt": prompt, "schema": schema})
        return self.payload


REPORT_TEXT = "Around 9pm I saw a triangel shaped craft, bright orange, for ten minutes."


class TestAttributeExtractor:
    """Tests for AttributeExtractor."""

    @pytest.mark.asyncio
    async def test_extract_validates_and_orders_by_definition(self, ufo_definitions):
        stub = StubCompletionService(
            {
                "attributes": {
                    "duration_minutes": {"value": "10", "confidence": 0.7},
                    "shape": {"value": "triangel", "confidence": 0.8, "evidence": "triangel shaped"},
                    "color": {"value": "orange", "confidence": 0.95},
                    "witnessed_by_others": {"value": "no", "confidence": 0.6},
                }
            }
        )
        extractor = AttributeExtractor(stub, validator=FuzzyValidator(0.7, 0.9))
        report_id = uuid.uuid4()

        result = await extractor.extract(report_id, REPORT_TEXT, ufo_definitions)

        assert [a.key for a in result] == [
            "shape", "color", "witnessed_by_others", "duration_minutes",
        ]
        shape = result[0]
        assert shape.value == "triangle"
        assert shape.confidence == pytest.approx(0.72)
        assert shape.evidence == "triangel shaped"
        assert shape.source == "ai_extracted"
        assert all(a.report_id == report_id for a in result)
        assert result[2].value == "false"
        assert result[3].value == "10"

    @pytest.mark.asyncio
    async def test_unknown_keys_are_discarded(self, ufo_definitions):
        stub = StubCompletionService(
            {
                "attributes": {
                    "shape": {"value": "disc", "confidence": 0.9},
                    "alien_species": {"value": "grey", "confidence": 0.9},
                }
            }
        )
        extractor = AttributeExtractor(stub)

        result = await extractor.extract(uuid.uuid4(), REPORT_TEXT, ufo_definitions)

        assert [a.key for a in result] == ["shape"]

    @pytest.mark.asyncio
    async def test_rejected_enum_value_is_dropped(self, ufo_definitions):
        stub = StubCompletionService(
            {
                "shape": {"value": "cigar", "confidence": 0.9},
                "color": {"value": "green", "confidence": 0.9},
            }
        )
        extractor = AttributeExtractor(stub)

        result = await extractor.extract(uuid.uuid4(), REPORT_TEXT, ufo_definitions)

        assert [(a.key, a.value) for a in result] == [("color", "green")]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("allowed_values", [None, []])
    async def test_enum_without_vocabulary_stores_nothing(self, allowed_values):
        stub = StubCompletionService(
            {"attributes": {"shape": {"value": "banana", "confidence": 0.9}}}
        )
        definitions = [
            AttributeDefinitionSchema(
                key="shape", data_type="enum", allowed_values=allowed_values, category_slug="ufo"
            )
        ]
        extractor = AttributeExtractor(stub)

        assert await extractor.extract(uuid.uuid4(), REPORT_TEXT, definitions) == []

    @pytest.mark.asyncio
    async def test_null_and_empty_values_are_skipped(self, ufo_definitions):
        stub = StubCompletionService(
            {"attributes": {"shape": None, "color": {"value": "  "}, "duration_minutes": []}}
        )
        extractor = AttributeExtractor(stub)

        assert await extractor.extract(uuid.uuid4(), REPORT_TEXT, ufo_definitions) == []

    @pytest.mark.asyncio
    async def test_missing_confidence_uses_default(self, ufo_definitions):
        stub = StubCompletionService({"attributes": {"color": "orange"}})
        extractor = AttributeExtractor(stub, default_confidence=0.5)

        result = await extractor.extract(uuid.uuid4(), REPORT_TEXT, ufo_definitions)

        assert result[0].confidence == 0.5

    @pytest.mark.asyncio
    async def test_confidence_is_clamped(self, ufo_definitions):
        stub = StubCompletionService({"attributes": {"color": {"value": "red", "confidence": 7}}})
        extractor = AttributeExtractor(stub)

        result = await extractor.extract(uuid.uuid4(), REPORT_TEXT, ufo_definitions)

        assert result[0].confidence == 1.0

    @pytest.mark.asyncio
    async def test_extraction_is_idempotent_with_stub(self, ufo_definitions):
        payload = {
            "attributes": {
                "shape": {"value": "Sphere", "confidence": 0.8},
                "color": {"value": "white", "confidence": 0.6},
            }
        }
        extractor = AttributeExtractor(StubCompletionService(payload))
        report_id = uuid.uuid4()

        first = await extractor.extract(report_id, REPORT_TEXT, ufo_definitions)
        second = await extractor.extract(report_id, REPORT_TEXT, ufo_definitions)

        assert first == second
        assert first[0].value == "sphere"

    @pytest.mark.asyncio
    async def test_no_definitions_skips_completion_call(self):
        completion = AsyncMock(spec=CompletionService)
        extractor = AttributeExtractor(completion)

        assert await extractor.extract(uuid.uuid4(), REPORT_TEXT, []) == []
        completion.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_upstream_errors_propagate(self, ufo_definitions):
        completion = AsyncMock(spec=CompletionService)
        completion.complete.side_effect = UpstreamServiceError("boom")
        extractor = AttributeExtractor(completion)

        with pytest.raises(UpstreamServiceError):
            await extractor.extract(uuid.uuid4(), REPORT_TEXT, ufo_definitions)

    @pytest.mark.asyncio
    async def test_prompt_lists_every_definition(self, ufo_definitions):
        stub = StubCompletionService({"attributes": {}})
        extractor = AttributeExtractor(stub)

        await extractor.extract(uuid.uuid4(), REPORT_TEXT, ufo_definitions)

        prompt = stub.calls[0]["prompt"]
        for definition in ufo_definitions:
            assert definition.key in prompt
        assert "triangle, disc, sphere" in prompt
        assert REPORT_TEXT in prompt
        assert set(stub.calls[0]["schema"]["properties"]["attributes"]["properties"]) == {
            d.key for d in ufo_definitions
        }


class TestNormalizeValue:
    """Tests for type coercion of extracted values."""

    @pytest.fixture
    def validator(self):
        return FuzzyValidator(0.7, 0.9)

    def test_boolean_values(self, validator):
        definition = AttributeDefinitionSchema(key="lights", data_type="boolean")

        assert normalize_value(definition, True, 0.8, validator) == ("true", 0.8)
        assert normalize_value(definition, "Yes", 0.8, validator) == ("true", 0.8)
        with pytest.raises(SchemaMismatchError):
            normalize_value(definition, "maybe", 0.8, validator)

    def test_number_values(self, validator):
        definition = AttributeDefinitionSchema(key="count", data_type="number")

        assert normalize_value(definition, 3.0, 0.8, validator)[0] == "3"
        assert normalize_value(definition, "2.5", 0.8, validator)[0] == "2.5"
        for bad in ["several", "nan", "inf", True]:
            with pytest.raises(SchemaMismatchError):
                normalize_value(definition, bad, 0.8, validator)

    def test_list_values_are_joined(self, validator):
        definition = AttributeDefinitionSchema(key="colors", data_type="text")

        assert normalize_value(definition, ["red", " blue "], 0.8, validator)[0] == "red, blue"


class TestPrompts:
    def test_free_text_definition_is_described(self, ufo_definitions):
        prompt = build_extraction_prompt("text", ufo_definitions)

        assert "free text" in prompt

    def test_response_schema_shape(self, ufo_definitions):
        schema = build_response_schema(ufo_definitions)

        assert schema["type"] == "object"
        assert "attributes" in schema["properties"]
