"""Schema-constrained attribute extraction from narrative text."""

from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from app.core.config import settings
from app.core.exceptions import SchemaMismatchError
from app.schemas.attributes import AttributeDefinitionSchema, ExtractedAttributeCandidate
from app.services.extraction.completion_service import CompletionService
from app.services.extraction.fuzzy_validator import FuzzyValidator
from app.services.extraction.prompts import (
    ATTRIBUTE_EXTRACTION_SYSTEM_PROMPT,
    build_extraction_prompt,
    build_response_schema,
)
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

_TRUE_VALUES = {"true", "yes", "y", "1"}
_FALSE_VALUES = {"false", "no", "n", "0"}


class AttributeExtractor:
    """Turn report text into validated attributes with one completion call.

    Keys the model invents are discarded. Values that fail type or
    vocabulary validation are dropped individually; the rest are kept.
    The extractor never retries: an UpstreamServiceError from the
    completion service propagates to the caller.
    """

    def __init__(
        self,
        completion_service: CompletionService,
        validator: Optional[FuzzyValidator] = None,
        default_confidence: Optional[float] = None,
    ):
        self.completion_service = completion_service
        self.validator = validator or FuzzyValidator()
        self.default_confidence = (
            default_confidence
            if default_confidence is not None
            else settings.extraction.default_confidence
        )

    async def extract(
        self,
        report_id: UUID,
        text: str,
        definitions: Sequence[AttributeDefinitionSchema],
    ) -> List[ExtractedAttributeCandidate]:
        """Extract attributes for one report.

        Returns:
            Accepted attributes in definition order (possibly empty)

        Raises:
            UpstreamServiceError: If the completion call fails or returns garbage
        """
        if not definitions or not text or not text.strip():
            return []

        response = await self.completion_service.complete(
            build_extraction_prompt(text, definitions),
            schema=build_response_schema(definitions),
            system_instruction=ATTRIBUTE_EXTRACTION_SYSTEM_PROMPT,
        )

        raw_attributes = self._attributes_payload(response)
        by_key = {definition.key: definition for definition in definitions}

        accepted: Dict[str, ExtractedAttributeCandidate] = {}
        for key, item in raw_attributes.items():
            definition = by_key.get(key)
            if definition is None:
                LOGGER.debug("Discarding unknown attribute key", extra={"key": key})
                continue

            raw_value, confidence, evidence = self._unpack(item)
            if raw_value is None:
                continue

            try:
                value, confidence = normalize_value(
                    definition, raw_value, confidence, self.validator
                )
            except SchemaMismatchError as e:
                LOGGER.warning(
                    "Dropping attribute that failed validation",
                    extra={"report_id": str(report_id), "key": key, "reason": e.reason},
                )
                continue

            accepted[key] = ExtractedAttributeCandidate(
                report_id=report_id,
                key=key,
                value=value,
                confidence=confidence,
                evidence=evidence,
            )

        LOGGER.info(
            "Attribute extraction completed",
            extra={
                "report_id": str(report_id),
                "returned": len(raw_attributes),
                "accepted": len(accepted),
            },
        )
        return [accepted[d.key] for d in definitions if d.key in accepted]

    @staticmethod
    def _attributes_payload(response: Dict[str, Any]) -> Dict[str, Any]:
        """Accept both {"attributes": {...}} and a bare object keyed by attribute."""
        payload = response.get("attributes", response)
        return payload if isinstance(payload, dict) else {}

    def _unpack(self, item: Any) -> Tuple[Any, float, Optional[str]]:
        if isinstance(item, dict):
            raw_value = item.get("value")
            confidence = self._confidence(item.get("confidence"))
            evidence = item.get("evidence")
            if evidence is not None:
                evidence = str(evidence).strip() or None
        else:
            raw_value, confidence, evidence = item, self.default_confidence, None

        if isinstance(raw_value, str) and not raw_value.strip():
            raw_value = None
        if isinstance(raw_value, list) and not raw_value:
            raw_value = None
        return raw_value, confidence, evidence

    def _confidence(self, raw: Any) -> float:
        if isinstance(raw, bool) or raw is None:
            return self.default_confidence
        try:
            value = float(raw)
        except (TypeError, ValueError):
            return self.default_confidence
        if value != value:  # NaN
            return self.default_confidence
        return min(1.0, max(0.0, value))


def normalize_value(
    definition: AttributeDefinitionSchema,
    raw_value: Any,
    confidence: float,
    validator: FuzzyValidator,
) -> Tuple[str, float]:
    """Coerce a raw value to the definition's data type.

    Returns:
        (stored value, possibly penalised confidence)

    Raises:
        SchemaMismatchError: If the value cannot be represented
    """
    if isinstance(raw_value, list):
        raw_value = ", ".join(str(v).strip() for v in raw_value if str(v).strip())

    if definition.data_type == "boolean":
        return _boolean(definition.key, raw_value), confidence

    if definition.data_type == "number":
        return _number(definition.key, raw_value), confidence

    text = str(raw_value).strip()
    if not text:
        raise SchemaMismatchError(definition.key, raw_value, "empty value")

    if definition.is_enum:
        if not definition.allowed_values:
            raise SchemaMismatchError(definition.key, raw_value, "enum has no allowed values")
        result = validator.validate(text, definition.allowed_values)
        if not result.accepted:
            raise SchemaMismatchError(
                definition.key,
                raw_value,
                f"no allowed value within threshold (best similarity {result.similarity:.2f})",
            )
        return result.corrected_value, validator.adjust_confidence(confidence, result)

    return text, confidence


def _boolean(key: str, raw_value: Any) -> str:
    if isinstance(raw_value, bool):
        return "true" if raw_value else "false"
    lowered = str(raw_value).strip().lower()
    if lowered in _TRUE_VALUES:
        return "true"
    if lowered in _FALSE_VALUES:
        return "false"
    raise SchemaMismatchError(key, raw_value, "not a boolean")


def _number(key: str, raw_value: Any) -> str:
    if isinstance(raw_value, bool):
        raise SchemaMismatchError(key, raw_value, "not a number")
    try:
        number = float(str(raw_value).strip())
    except ValueError:
        raise SchemaMismatchError(key, raw_value, "not a number")
    if number != number or number in (float("inf"), float("-inf")):
        raise SchemaMismatchError(key, raw_value, "not a finite number")
    return str(int(number)) if number.is_integer() else repr(number)
