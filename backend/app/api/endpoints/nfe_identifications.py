"""
NF-e Identification API endpoints

CRUD over the cache-aside repository:
- Paginated, filtered listing
- Single-record read, create, partial update and delete
- Repository error kinds mapped to HTTP status codes
"""

from datetime import date
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from pydantic import BaseModel

from ...core.config import get_settings
from ...domain.nfe.models import (
    NFeIdentification,
    NFeIdentificationCreate,
    NFeIdentificationFilters,
    NFeIdentificationUpdate,
)
from ...repositories.exceptions import (
    InvalidIdentifierError,
    InvalidRecordError,
    RecordNotFoundError,
    RepositoryError,
    UpdateFailedError,
)
from ...repositories.nfe_identification import NFeIdentificationRepository
from ...repositories.nfe_identification_queries import total_pages

logger = structlog.get_logger()
settings = get_settings()
router = APIRouter(prefix="/api/identifications")


class PaginationResponse(BaseModel):
    """One page of records plus pagination metadata."""

    data: List[NFeIdentification]
    total: int
    current_page: int
    page_size: int
    total_pages: int


def get_nfe_repository(request: Request) -> NFeIdentificationRepository:
    """Repository instance created at start-up and shared by all requests."""
    repository = getattr(request.app.state, "nfe_repository", None)
    if repository is None:
        raise HTTPException(status_code=503, detail="Repository not initialized")
    return repository


def _http_error(error: RepositoryError, action: str) -> HTTPException:
    if isinstance(error, InvalidIdentifierError):
        return HTTPException(status_code=400, detail=error.message)
    if isinstance(error, InvalidRecordError):
        return HTTPException(status_code=422, detail=error.message)
    if isinstance(error, (RecordNotFoundError, UpdateFailedError)):
        return HTTPException(status_code=404, detail="Identification not found")

    logger.error(
        f"Failed to {action} identification",
        error_code=error.error_code,
        error=error.message,
    )
    return HTTPException(status_code=500, detail=f"Failed to {action} identification")


@router.get("", response_model=PaginationResponse)
async def list_identifications(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(
        settings.DEFAULT_PAGE_SIZE,
        ge=1,
        le=settings.MAX_PAGE_SIZE,
        description="Items per page",
    ),
    nat_op: Optional[str] = Query(None, description="Operation nature contains"),
    n_nf: Optional[str] = Query(None, description="Document number contains"),
    tp_nf: Optional[str] = Query(None, description="Operation type equals"),
    dh_emi: Optional[date] = Query(None, description="Emission date (YYYY-MM-DD)"),
    search: Optional[str] = Query(None, description="Free text over several fields"),
    repository: NFeIdentificationRepository = Depends(get_nfe_repository),
):
    """
    List identifications with pagination.

    Args:
        page: Page number (1-indexed)
        page_size: Items per page
        nat_op, n_nf, tp_nf, dh_emi, search: Optional filters

    Returns:
        Paginated identification list
    """
    filters = NFeIdentificationFilters(
        nat_op=nat_op, n_nf=n_nf, tp_nf=tp_nf, dh_emi=dh_emi, search=search
    )

    try:
        records, total = await repository.find_all(page, page_size, filters)
    except RepositoryError as e:
        raise _http_error(e, "list") from e

    return PaginationResponse(
        data=records,
        total=total,
        current_page=page,
        page_size=page_size,
        total_pages=total_pages(total, page_size),
    )


@router.get("/{internal_key}", response_model=NFeIdentification)
async def get_identification(
    internal_key: str,
    repository: NFeIdentificationRepository = Depends(get_nfe_repository),
):
    """Get one identification by its identifier."""
    try:
        record = await repository.find_by_id(internal_key)
    except RepositoryError as e:
        raise _http_error(e, "get") from e

    if record is None:
        raise HTTPException(status_code=404, detail="Identification not found")
    return record


@router.post("", response_model=NFeIdentification, status_code=201)
async def create_identification(
    payload: NFeIdentificationCreate,
    repository: NFeIdentificationRepository = Depends(get_nfe_repository),
):
    """Create an identification; the identifier is generated server-side."""
    try:
        return await repository.create(payload)
    except RepositoryError as e:
        raise _http_error(e, "create") from e


@router.put("/{internal_key}", response_model=NFeIdentification)
async def update_identification(
    internal_key: str,
    payload: NFeIdentificationUpdate,
    repository: NFeIdentificationRepository = Depends(get_nfe_repository),
):
    """Partially update an identification. Omitted fields keep their value."""
    try:
        return await repository.update(internal_key, payload)
    except RepositoryError as e:
        raise _http_error(e, "update") from e


@router.delete("/{internal_key}", status_code=204)
async def delete_identification(
    internal_key: str,
    repository: NFeIdentificationRepository = Depends(get_nfe_repository),
):
    try:
        await repository.delete(internal_key)
    except RepositoryError as e:
        raise _http_error(e, "delete") from e
    return Response(status_code=204)
