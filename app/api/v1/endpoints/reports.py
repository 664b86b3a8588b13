from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_async_session as get_session
from app.schemas.attributes import AttributeConfirmationRequest, ExtractedAttributeView
from app.services.extraction.attribute_service import AttributeService

router = APIRouter()


async def get_attribute_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> AttributeService:
    return AttributeService(db_session)


@router.put(
    "/{report_id}/attributes/{key}",
    response_model=ExtractedAttributeView,
    summary="Confirm or correct a report attribute",
    operation_id="confirm_report_attribute",
)
async def confirm_report_attribute(
    report_id: UUID,
    key: str,
    request: AttributeConfirmationRequest,
    attribute_service: Annotated[AttributeService, Depends(get_attribute_service)],
) -> ExtractedAttributeView:
    """Store a user-confirmed value (confidence 1.0) that supersedes AI extraction."""
    attribute = await attribute_service.confirm_attribute(
        report_id, key, request.value, user_id=request.user_id
    )
    return ExtractedAttributeView.model_validate(attribute)
