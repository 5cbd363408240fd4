"""
Persons API — Person Route Handlers
=====================================

What:  POST/GET /persons and PUT/DELETE /persons/{id}.
How:   Thin handlers: parse the body, delegate to PersonService, set status
       codes and headers. Errors raised by the service are turned into JSON
       by the global exception handlers in main.py.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Path, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.schemas.common import ErrorResponse, MessageResponse
from app.schemas.person import (
    INT32_MAX,
    INT32_MIN,
    PersonCreate,
    PersonResponse,
    PersonUpdate,
)
from app.services.person_service import person_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/persons", tags=["Persons"])


@router.post(
    "",
    response_model=PersonResponse,
    status_code=status.HTTP_201_CREATED,
    responses={500: {"description": "Server error", "model": ErrorResponse}},
    summary="Create a person",
)
async def create_person(
    payload: PersonCreate,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> PersonResponse:
    """
    Create a person and return it with its assigned id.

    The Location header points at the new resource, e.g. /persons/7.
    """
    person = await person_service.create_person(db=db, data=payload)
    response.headers["Location"] = f"/persons/{person.id}"
    return person


@router.get(
    "",
    response_model=List[PersonResponse],
    responses={500: {"description": "Server error", "model": ErrorResponse}},
    summary="List all persons",
)
async def list_persons(
    db: AsyncSession = Depends(get_db_session),
) -> List[PersonResponse]:
    return await person_service.list_persons(db=db)


@router.put(
    "/{person_id}",
    response_model=PersonResponse,
    responses={
        404: {"description": "Person not found", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Update a person's name and age",
)
async def update_person(
    payload: PersonUpdate,
    person_id: int = Path(ge=INT32_MIN, le=INT32_MAX, description="Person id"),
    db: AsyncSession = Depends(get_db_session),
) -> PersonResponse:
    return await person_service.update_person(db=db, person_id=person_id, data=payload)


@router.delete(
    "/{person_id}",
    response_model=MessageResponse,
    responses={
        404: {"description": "Person not found", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Delete a person",
)
async def delete_person(
    person_id: int = Path(ge=INT32_MIN, le=INT32_MAX, description="Person id"),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    return await person_service.delete_person(db=db, person_id=person_id)
