from typing import Annotated, Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_completion_service
from app.core.database import get_async_session as get_session
from app.schemas.attributes import BackfillRequest, BackfillResponse, DeleteDefinitionResponse
from app.services.extraction.attribute_extractor import AttributeExtractor
from app.services.extraction.backfill_service import BackfillService
from app.services.extraction.completion_service import CompletionService
from app.services.schema_registry import AttributeSchemaRegistry
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()


async def get_backfill_service(
    db_session: Annotated[AsyncSession, Depends(get_session)],
    completion_service: Annotated[CompletionService, Depends(get_completion_service)],
) -> BackfillService:
    return BackfillService(db_session, AttributeExtractor(completion_service))


async def get_schema_registry(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> AttributeSchemaRegistry:
    return AttributeSchemaRegistry(db_session)


@router.post(
    "/backfill-attributes",
    response_model=BackfillResponse,
    response_model_exclude_none=True,
    summary="Extract attributes for existing reports",
    operation_id="backfill_attributes",
)
async def backfill_attributes(
    backfill_service: Annotated[BackfillService, Depends(get_backfill_service)],
    request: Annotated[Optional[BackfillRequest], Body()] = None,
) -> BackfillResponse:
    """
    Run attribute extraction over a batch of reports.

    Always returns 200 with a per-report status (success, skipped, error);
    a failing report never aborts the batch.
    """
    request = request or BackfillRequest()
    LOGGER.info(
        "Backfill requested",
        extra={"limit": request.limit, "force": request.force},
    )
    return await backfill_service.run(
        limit=request.limit, force=request.force, created_by=request.created_by
    )


@router.delete(
    "/attributes/{key}",
    response_model=DeleteDefinitionResponse,
    summary="Delete an attribute definition",
    operation_id="delete_attribute_definition",
)
async def delete_attribute_definition(
    key: str,
    registry: Annotated[AttributeSchemaRegistry, Depends(get_schema_registry)],
    category: Optional[str] = None,
    cascade: bool = False,
) -> DeleteDefinitionResponse:
    """
    Delete a definition. Refused with 409 while extracted attributes still
    reference it, unless cascade=true deletes them explicitly.
    """
    deleted = await registry.delete_definition(key, category_slug=category, cascade=cascade)
    return DeleteDefinitionResponse(
        key=key,
        category=category,
        deleted_attributes=deleted,
        message=f"Attribute definition '{key}' deleted",
    )
