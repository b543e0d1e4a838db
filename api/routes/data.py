"""
Person retrieval with pagination and filtering, and sample data generation
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from api.dependencies import get_db
from ingestion.samples import generate_partial_sample
from models.base import ProcessingStatus
from repositories.person_repository import PersonRepository
from schemas.api import GenerateSampleResponse, PaginationMetadata, PersonCountResponse, PersonListResponse
from schemas.person import PersonResponse
from typing import Optional
import time
import uuid
import math
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["Data"])

PARTIAL_SAMPLE_LINES = 10000
PARTIAL_SAMPLE_INVALID_EVERY = 7


@router.get("/persons", response_model=PersonListResponse)
async def get_persons(
    request: Request,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=1000, description="Items per page"),
    run_id: Optional[str] = Query(None, description="Filter by run identifier"),
    status: Optional[ProcessingStatus] = Query(None, description="Filter by processing status"),
    db: AsyncSession = Depends(get_db)
):
    """
    Retrieve paginated persons, oldest first.

    Features:
    - Pagination
    - Filtering by run and processing status
    """
    start_time = time.time()
    request_id = getattr(request.state, "request_id", f"req_{uuid.uuid4().hex[:12]}")

    logger.info(
        f"[{request_id}] GET /api/persons - page={page}, page_size={page_size}, "
        f"filters: run_id={run_id}, status={status}"
    )

    repo = PersonRepository(db)
    total_items = await repo.count(run_id=run_id, status=status)
    total_pages = math.ceil(total_items / page_size) if total_items > 0 else 0
    offset = (page - 1) * page_size

    persons = await repo.list(limit=page_size, offset=offset, run_id=run_id, status=status)
    items = [PersonResponse.model_validate(person) for person in persons]

    api_latency_ms = (time.time() - start_time) * 1000
    logger.info(f"[{request_id}] Returned {len(items)} persons ({api_latency_ms:.2f}ms)")

    return PersonListResponse(
        items=items,
        pagination=PaginationMetadata(
            current_page=page,
            page_size=page_size,
            total_items=total_items,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_previous=page > 1
        ),
        filters_applied={k: v for k, v in {
            "run_id": run_id,
            "status": status.value if status else None,
        }.items() if v is not None}
    )


@router.get("/persons/count", response_model=PersonCountResponse)
async def count_persons(db: AsyncSession = Depends(get_db)):
    return PersonCountResponse(count=await PersonRepository(db).count())


@router.post("/data/generate/partial10k", response_model=GenerateSampleResponse)
async def generate_partial10k():
    """
    Write a 10k-line sample CSV where every 7th email is invalid.

    Running the pipeline on it exercises CSV validation at volume.
    """
    try:
        path, invalid = generate_partial_sample(
            total_lines=PARTIAL_SAMPLE_LINES,
            invalid_every=PARTIAL_SAMPLE_INVALID_EVERY
        )
    except OSError as e:
        logger.error(f"Failed generating partial sample: {e}")
        raise HTTPException(status_code=500, detail=f"Failed generating file: {e}")

    return GenerateSampleResponse(
        file_path=str(path),
        total_lines=PARTIAL_SAMPLE_LINES,
        invalid_lines=invalid
    )
